"""Exceptions raised while deploying a VM."""


class DeployError(Exception):
    """Base exception for deployment errors."""

    pass


class ValidationError(DeployError):
    """Raised when user input fails validation."""

    pass


class ConfigurationError(DeployError):
    """Raised when a deployment profile cannot be loaded."""

    pass


class CommandError(DeployError):
    """Raised when an external command exits non-zero."""

    def __init__(self, result):
        self.result = result
        detail = (result.stderr or result.stdout).strip()
        message = f"Command failed ({result.returncode}): {' '.join(result.argv)}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class ImageNotFoundError(DeployError):
    """Raised when a local image file cannot be located."""

    pass


class InvalidImageError(DeployError):
    """Raised when the image file is not a disk image."""

    pass


class DiskImportError(DeployError):
    """Raised when the imported disk volume cannot be parsed from qm output."""

    def __init__(self, output: str):
        self.output = output
        super().__init__(f"Could not parse imported disk path!\n{output}")


class NoFreeSlotError(DeployError):
    """Raised when every SCSI slot of the VM is taken."""

    pass


class DiskSizeError(DeployError):
    """Raised when the current disk size cannot be read from the VM config."""

    pass


class DownloadError(DeployError):
    """Raised when the cloud image cannot be downloaded."""

    pass


class RemoteConnectionError(DeployError):
    """Raised when the SSH connection to the Proxmox host fails."""

    pass
