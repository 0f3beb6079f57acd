"""
Input validation for deployment options.

Every check raises ValidationError with the message shown to the user.
build_request() runs all checks that do not need the target host and
returns a typed DeployRequest.
"""

import os
import re
from typing import Any, Dict, Optional

from vmdeploy.exceptions import ValidationError
from vmdeploy.models import DeployRequest

NUMERIC_RE = re.compile(r"^[0-9]+$")
MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")
DISK_SIZE_RE = re.compile(r"^[0-9]+[KkMmGgTt]$")

TRUE_VALUES = {"true", "yes", "1"}
FALSE_VALUES = {"false", "no", "0"}


def _optional(value: Any) -> Optional[str]:
    """Normalize an optional value; empty strings count as unset."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_numeric(value: Any, message: str) -> int:
    """Return value as int, or raise with message if it is not all digits."""
    text = str(value).strip() if value is not None else ""
    if not NUMERIC_RE.match(text):
        raise ValidationError(message)
    return int(text)


def validate_mac(mac: Optional[str]) -> Optional[str]:
    mac = _optional(mac)
    if mac is None:
        return None
    if not MAC_RE.match(mac):
        raise ValidationError(
            f"Invalid MAC address format: {mac}\nExpected format: XX:XX:XX:XX:XX:XX"
        )
    return mac


def validate_disk_size(size: Optional[str]) -> Optional[str]:
    size = _optional(size)
    if size is None:
        return None
    if not DISK_SIZE_RE.match(size):
        raise ValidationError("Invalid --new-disksize format. Use syntax like 20G, 512M, etc.")
    return size


def validate_vlan(vlan: Any) -> Optional[int]:
    """VLAN tags are limited to the 802.1Q range 1-4094."""
    text = _optional(vlan)
    if text is None:
        return None
    tag = require_numeric(text, f"Invalid VLAN tag: {text}")
    if not 1 <= tag <= 4094:
        raise ValidationError(f"Invalid VLAN tag: {text} (must be 1-4094)")
    return tag


def validate_image_source(image_url: Optional[str], image_file: Optional[str]) -> None:
    if image_url and image_file:
        raise ValidationError("You cannot specify both --image-url and --image-file.")
    if not image_url and not image_file:
        raise ValidationError("You must specify either --image-url or --image-file.")


def parse_bool(value: Any, option: str) -> bool:
    """Parse a true/false option value such as ``--startvm true``."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError(f"Invalid value for {option}: {value} (expected true or false)")


def build_request(values: Dict[str, Any], default_image_dir: str) -> DeployRequest:
    """
    Validate merged option values and build a DeployRequest.

    Args:
        values: Option values keyed by CLI option name (see Config.defaults)
        default_image_dir: Directory used when no image_dir is given

    Returns:
        DeployRequest ready for VMDeployer

    Raises:
        ValidationError: On the first invalid value
    """
    vmid = require_numeric(values.get("vmid"), "VMID must be numeric.")
    memory = require_numeric(values.get("memory"), "Memory must be numeric.")
    cores = require_numeric(values.get("cores"), "CPU cores must be numeric.")

    macaddr = validate_mac(values.get("mac"))
    new_disksize = validate_disk_size(values.get("new_disksize"))
    vlan = validate_vlan(values.get("vlan"))

    image_url = _optional(values.get("image_url"))
    image_file = _optional(values.get("image_file"))
    validate_image_source(image_url, image_file)

    start_vm = parse_bool(values.get("startvm", False), "--startvm")

    return DeployRequest(
        vmid=vmid,
        name=str(values.get("name")),
        memory=memory,
        cores=cores,
        bridge=str(values.get("bridge")),
        storage=str(values.get("storage")),
        ciuser=str(values.get("ciuser")),
        nameserver=str(values.get("nameserver")),
        sshkey=os.path.expanduser(str(values.get("sshkey"))),
        image_dir=_optional(values.get("image_dir")) or default_image_dir,
        image_url=image_url,
        image_file=image_file,
        vlan=vlan,
        macaddr=macaddr,
        new_disksize=new_disksize,
        start_vm=start_vm,
        tag=_optional(values.get("tag")),
        verbose=parse_bool(values.get("verbose", False), "--verbose"),
    )
