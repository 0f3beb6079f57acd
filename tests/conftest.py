"""Shared test fixtures and configuration for vmdeploy tests."""

from typing import Any, Callable, Dict, Iterable, List, Tuple, Union

import pytest

from vmdeploy.models import DeployRequest
from vmdeploy.runner import CommandResult, CommandRunner

Response = Union[str, Tuple[str, int], Callable[[List[str]], Any]]


class FakeRunner(CommandRunner):
    """In-memory runner: records argv and answers from canned responses.

    Responses are keyed by argv prefix; the longest matching prefix wins.
    A response is stdout, a (stdout, returncode) tuple, or a callable
    taking argv and returning either of those.
    """

    def __init__(
        self,
        files: Iterable[str] = (),
        dirs: Iterable[str] = (),
        responses: Dict[Tuple[str, ...], Response] = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(verbose)
        self.files = set(files)
        self.dirs = set(dirs)
        self.responses = responses or {}
        self.commands: List[List[str]] = []
        self.downloads: List[Tuple[str, str]] = []
        self.closed = False

    def _execute(self, argv: List[str]) -> CommandResult:
        self.commands.append(argv)
        for prefix in sorted(self.responses, key=len, reverse=True):
            if tuple(argv[: len(prefix)]) == prefix:
                response = self.responses[prefix]
                if callable(response):
                    response = response(argv)
                stdout, returncode = response if isinstance(response, tuple) else (response, 0)
                return CommandResult(argv, returncode, stdout, "" if returncode == 0 else "error")
        return CommandResult(argv, 0, "", "")

    def is_file(self, path: str) -> bool:
        return path in self.files

    def is_dir(self, path: str) -> bool:
        return path in self.dirs

    def makedirs(self, path: str) -> None:
        self.dirs.add(path)

    def download(self, url: str, dest: str) -> None:
        self.downloads.append((url, dest))
        self.files.add(dest)

    def close(self) -> None:
        self.closed = True

    def qm_commands(self) -> List[List[str]]:
        return [cmd for cmd in self.commands if cmd[0] == "qm"]


IMPORT_DIR = "/var/lib/vz/import"
SSH_KEY = "/root/.ssh/id_rsa.pub"

IMPORT_OUTPUT = """importing disk '/var/lib/vz/import/noble-server-cloudimg-amd64.img' to VM 9000 ...
  Logical volume "vm-9000-disk-0" created.
transferred 0.0 B of 3.5 GiB (0.00%)
transferred 3.5 GiB of 3.5 GiB (100.00%)
Successfully imported disk as 'unused0:local-lvm:vm-9000-disk-0'"""

CONFIG_BEFORE_ATTACH = """boot: order=net0
cores: 2
memory: 4096
meta: creation-qemu=9.0.2,ctime=1760000000
name: server
net0: virtio=BC:24:11:5E:2A:01,bridge=vmbr0
smbios1: uuid=7f0c5a1e-3b9e-4c0a-9d0e-2f7b6a5c4d3e
unused0: local-lvm:vm-9000-disk-0
vmgenid: 0b6f7d8e-1a2b-4c3d-8e9f-0a1b2c3d4e5f"""

CONFIG_AFTER_ATTACH = """boot: c
bootdisk: scsi0
cores: 2
ide2: local-lvm:vm-9000-cloudinit,media=cdrom
memory: 4096
name: server
net0: virtio=BC:24:11:5E:2A:01,bridge=vmbr0
scsi0: local-lvm:vm-9000-disk-0,size=3584M
scsihw: virtio-scsi-pci"""


def qm_config_sequence(*outputs: str) -> Callable[[List[str]], str]:
    """Response returning successive ``qm config`` outputs, repeating the last."""
    remaining = list(outputs)

    def respond(argv: List[str]) -> str:
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return respond


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Runner for a host with an SSH key, the import dir, and a cached cloud image."""
    return FakeRunner(
        files={SSH_KEY, f"{IMPORT_DIR}/noble-server-cloudimg-amd64.img"},
        dirs={IMPORT_DIR},
        responses={
            ("file",): "QEMU QCOW2 Image (v3), 3758096384 bytes (v3), 3758096384 bytes",
            ("qm", "disk", "import"): IMPORT_OUTPUT,
            ("qm", "config"): qm_config_sequence(CONFIG_BEFORE_ATTACH, CONFIG_AFTER_ATTACH),
        },
    )


@pytest.fixture
def base_request() -> DeployRequest:
    """Request using defaults and a local cloud image."""
    return DeployRequest(
        vmid=9000,
        name="server",
        memory=4096,
        cores=2,
        bridge="vmbr0",
        storage="local-lvm",
        ciuser="serveradmin",
        nameserver="1.1.1.1",
        sshkey=SSH_KEY,
        image_dir=IMPORT_DIR,
        image_file="noble-server-cloudimg-amd64.img",
    )


@pytest.fixture
def temp_ssh_key(tmp_path, monkeypatch):
    """Create temporary SSH key for testing."""
    key_file = tmp_path / "id_rsa.pub"
    key_file.write_text("ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQ test@example.com")
    monkeypatch.setenv("SSH_PUBKEY_PATH", str(key_file))
    return str(key_file)


@pytest.fixture
def mock_env(monkeypatch, temp_ssh_key):
    """Set deployment defaults through environment variables."""
    env_vars = {
        "VM_ID": "9100",
        "VM_NAME": "web",
        "VM_MEMORY": "2048",
        "VM_CORES": "4",
        "VM_BRIDGE": "vmbr1",
        "VM_STORAGE": "local-zfs",
        "IMPORT_DIR": "/srv/images",
        "CLOUD_USER": "ubuntu",
        "CLOUD_NAMESERVER": "9.9.9.9",
        "SSH_USER": "admin",
        "DOWNLOAD_TIMEOUT": "120",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("PVE_HOST", raising=False)
    return env_vars
