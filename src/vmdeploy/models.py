"""Data models for a VM deployment."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ImageOrigin(Enum):
    """Where the resolved disk image came from."""

    EXISTING_RAW = "existing raw image"
    EXISTING_IMG = "existing img file"
    DOWNLOADED = "downloaded"
    IMAGE_DIR = "image directory"
    GIVEN_PATH = "given path"


@dataclass
class DeployRequest:
    """Validated inputs for a single VM deployment."""

    vmid: int
    name: str
    memory: int
    cores: int
    bridge: str
    storage: str
    ciuser: str
    nameserver: str
    sshkey: str
    image_dir: str
    image_url: Optional[str] = None
    image_file: Optional[str] = None
    vlan: Optional[int] = None
    macaddr: Optional[str] = None
    new_disksize: Optional[str] = None
    start_vm: bool = False
    tag: Optional[str] = None
    verbose: bool = False

    @property
    def net0(self) -> str:
        """Network device spec for ``qm create --net0``."""
        parts = ["virtio", f"bridge={self.bridge}"]
        if self.vlan is not None:
            parts.append(f"tag={self.vlan}")
        if self.macaddr:
            parts.append(f"macaddr={self.macaddr}")
        return ",".join(parts)


@dataclass(frozen=True)
class ResolvedImage:
    """Disk image located on the host that runs qm."""

    path: str
    origin: ImageOrigin


@dataclass
class DeployResult:
    """Outcome of a deployment, used for the final summary."""

    vmid: int
    name: str
    status: str
    disk_path: str
    disk_slot: str
    disk_format: str
    image_path: str
    image_source: str
    current_size: Optional[str] = None
    resized: bool = False

    @property
    def started(self) -> bool:
        return self.status == "Started"
