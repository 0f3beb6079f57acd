"""Thin wrapper over the Proxmox ``qm`` command."""

import logging
from typing import Any

from vmdeploy.runner import CommandRunner

logger = logging.getLogger(__name__)


class QmClient:
    """Builds and runs qm subcommands through a CommandRunner."""

    def __init__(self, runner: CommandRunner, binary: str = "qm") -> None:
        self.runner = runner
        self.binary = binary

    def _qm(self, *args: Any) -> str:
        result = self.runner.run([self.binary, *args])
        return result.output

    def create(self, vmid: int, name: str, memory: int, cores: int, net0: str) -> None:
        self._qm(
            "create", vmid,
            "--name", name,
            "--memory", memory,
            "--cores", cores,
            "--net0", net0,
        )

    def import_disk(self, vmid: int, image: str, storage: str, disk_format: str) -> str:
        """Import an image as an unused disk and return qm's combined output."""
        return self._qm("disk", "import", vmid, image, storage, "--format", disk_format)

    def get_config(self, vmid: int) -> str:
        return self.runner.run([self.binary, "config", vmid]).stdout

    def set(self, vmid: int, *options: Any) -> None:
        """Run ``qm set`` with option/value pairs, e.g. ``set(100, "--ciuser", "admin")``."""
        self._qm("set", vmid, *options)

    def resize(self, vmid: int, disk: str, size: str) -> None:
        self._qm("resize", vmid, disk, size)

    def start(self, vmid: int) -> None:
        self._qm("start", vmid)
