"""Parsing of qm output: imported volume, free SCSI slot, disk size."""

import re
from typing import Optional

from vmdeploy.exceptions import ValidationError

# Block volumes (local-lvm:vm-100-disk-0) and directory volumes (local:100/vm-100-disk-0.qcow2)
DISK_VOLUME_RE = re.compile(
    r"[a-zA-Z0-9_-]+:(?:[0-9]+/)?[a-zA-Z0-9._-]+-disk-[0-9]+(?:\.(?:raw|qcow2|vmdk))?"
)
SIZE_VALUE_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?)([KMGTP]?)$", re.IGNORECASE)

MAX_SCSI_SLOTS = 16

UNIT_EXPONENTS = {"K": 1, "M": 2, "G": 3, "T": 4, "P": 5}


def parse_imported_disk(output: str) -> Optional[str]:
    """Return the last volume ID (e.g. ``local-lvm:vm-9000-disk-0``) in import output."""
    matches = DISK_VOLUME_RE.findall(output)
    return matches[-1] if matches else None


def find_free_scsi_slot(config_text: str, max_slots: int = MAX_SCSI_SLOTS) -> Optional[str]:
    """Return the first scsiN key absent from ``qm config`` output."""
    used = {line.split(":", 1)[0] for line in config_text.splitlines() if ":" in line}
    for index in range(max_slots):
        slot = f"scsi{index}"
        if slot not in used:
            return slot
    return None


def parse_disk_size(config_text: str, slot: str) -> Optional[str]:
    """
    Read the size of a disk from ``qm config`` output.

    Args:
        config_text: Output of ``qm config <vmid>``
        slot: Disk key such as ``scsi0``

    Returns:
        Size as printed by qm (e.g. ``2252M``), or None if not present
    """
    pattern = re.compile(
        rf"^{re.escape(slot)}:.*?\bsize=([0-9]+(?:\.[0-9]+)?[KMGTP]?)\b", re.IGNORECASE
    )
    for line in config_text.splitlines():
        match = pattern.match(line)
        if match:
            return match.group(1)
    return None


def size_to_bytes(size: str) -> int:
    """Convert an IEC size such as ``20G`` or ``3.5G`` to bytes; a bare number is taken as G."""
    match = SIZE_VALUE_RE.match(size.strip())
    if not match:
        raise ValidationError(f"Invalid disk size: {size}")
    value, unit = match.groups()
    exponent = UNIT_EXPONENTS[(unit or "G").upper()]
    return int(float(value) * 1024 ** exponent)


def needs_resize(current: str, target: str) -> bool:
    """True only when target is strictly larger than current."""
    return size_to_bytes(target) > size_to_bytes(current)
