#!/usr/bin/env python3
"""
src/vmdeploy/deployer.py

Provision a cloud-init VM on Proxmox through qm, from a downloaded or local image.
"""

import logging
from typing import Optional, Tuple

from vmdeploy.disk import find_free_scsi_slot, needs_resize, parse_disk_size, parse_imported_disk
from vmdeploy.exceptions import DiskImportError, DiskSizeError, NoFreeSlotError, ValidationError
from vmdeploy.image import ImageManager
from vmdeploy.models import DeployRequest, DeployResult, ResolvedImage
from vmdeploy.qm import QmClient
from vmdeploy.runner import CommandRunner

logger = logging.getLogger(__name__)


class VMDeployer:
    """Runs the create/import/attach/cloud-init sequence for one VM."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner
        self.qm = QmClient(runner)

    def deploy(self, request: DeployRequest) -> DeployResult:
        """
        Create and configure a VM from request.

        Args:
            request: Validated deployment inputs

        Returns:
            DeployResult describing the created VM

        Raises:
            DeployError: If any step fails; the VM may be left partially configured
        """
        images = ImageManager(self.runner, request.image_dir)
        self.check_prerequisites(request, images)

        image = images.resolve(request)
        disk_format = self.inspect_image(images, image, request.storage)

        print(f"[+] Creating VM ({request.name}, ID: {request.vmid})...")
        self.qm.create(request.vmid, request.name, request.memory, request.cores, request.net0)

        disk_path = self.import_disk(request, image, disk_format)
        slot = self.attach_disk(request.vmid, disk_path)
        self.configure_cloud_init(request, slot)

        current_size: Optional[str] = None
        resized = False
        if request.new_disksize:
            current_size, resized = self.resize_disk(request.vmid, slot, request.new_disksize)

        if request.tag:
            print(f"[+] Tagging VM with: {request.tag}")
            self.qm.set(request.vmid, "--tags", request.tag)

        status = self.start_vm(request.vmid) if request.start_vm else self._skip_start(request.vmid)

        return DeployResult(
            vmid=request.vmid,
            name=request.name,
            status=status,
            disk_path=disk_path,
            disk_slot=slot,
            disk_format=disk_format,
            image_path=image.path,
            image_source=request.image_url or image.path,
            current_size=current_size,
            resized=resized,
        )

    def check_prerequisites(self, request: DeployRequest, images: ImageManager) -> None:
        """Checks that need the target host: SSH key presence and the image directory."""
        if not self.runner.is_file(request.sshkey):
            raise ValidationError(f"SSH key file not found: {request.sshkey}")
        images.ensure_image_dir()
        print("[✓] Input validated successfully.")

    @staticmethod
    def inspect_image(images: ImageManager, image: ResolvedImage, storage: str) -> str:
        description = images.describe(image.path)
        images.validate_description(description)
        print(f"[✓] Valid image detected: {description}")

        disk_format = images.detect_disk_format(description, storage)
        print(f"[✓] Using disk format: {disk_format}")
        return disk_format

    def import_disk(self, request: DeployRequest, image: ResolvedImage, disk_format: str) -> str:
        print(f"[+] Importing disk into {request.storage}...")
        output = self.qm.import_disk(request.vmid, image.path, request.storage, disk_format)
        disk_path = parse_imported_disk(output)
        if not disk_path:
            raise DiskImportError(output)
        print(f"[✓] Disk imported as: {disk_path}")
        return disk_path

    def attach_disk(self, vmid: int, disk_path: str) -> str:
        """Attach disk_path to the first free SCSI slot and return the slot name."""
        slot = find_free_scsi_slot(self.qm.get_config(vmid))
        if slot is None:
            raise NoFreeSlotError(f"No available SCSI slots found for VM {vmid}.")

        print(f"[+] Attaching imported disk as {slot}...")
        self.qm.set(vmid, "--scsihw", "virtio-scsi-pci", f"--{slot}", disk_path)
        return slot

    def configure_cloud_init(self, request: DeployRequest, slot: str) -> None:
        vmid = request.vmid
        self.qm.set(vmid, "--ide2", f"{request.storage}:cloudinit")
        self.qm.set(vmid, "--boot", "c", "--bootdisk", slot)
        self.qm.set(vmid, "--serial0", "socket", "--vga", "serial0")
        self.qm.set(vmid, "--ipconfig0", "ip=dhcp")
        self.qm.set(vmid, "--sshkey", request.sshkey)
        self.qm.set(vmid, "--ciuser", request.ciuser)
        self.qm.set(vmid, "--nameserver", request.nameserver)
        logger.info(f"Configured cloud-init for VM {vmid}")

    def resize_disk(self, vmid: int, slot: str, new_size: str) -> Tuple[str, bool]:
        """
        Grow the attached disk to new_size if it is larger than the current size.

        Returns:
            Tuple of (current size as reported by qm, whether a resize ran)
        """
        print(f"[+] Checking current attached disk size for VM {vmid} ({slot})...")
        current = parse_disk_size(self.qm.get_config(vmid), slot)
        if not current:
            raise DiskSizeError("Could not determine current disk size from VM config.")
        print(f"[✓] Current disk size: {current}")

        if not needs_resize(current, new_size):
            print(
                f"⚠️  Requested disk size ({new_size}) is not larger than current size "
                f"({current}). Skipping resize."
            )
            return current, False

        print(f"[+] Resizing {slot} from {current} to {new_size}...")
        self.qm.resize(vmid, slot, new_size)
        print(f"[✓] Disk resized successfully to {new_size}.")
        return current, True

    def start_vm(self, vmid: int) -> str:
        print("[+] Starting VM...")
        self.qm.start(vmid)
        print(f"[✓] VM with ID {vmid} started successfully.")
        return "Started"

    @staticmethod
    def _skip_start(vmid: int) -> str:
        print("[ℹ] VM creation complete. Not starting (use --startvm true to auto-start).")
        print(f"To start manually: qm start {vmid}, or click the start button in the Proxmox UI.")
        return "Not started"
