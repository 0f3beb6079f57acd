import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from vmdeploy.exceptions import ConfigurationError

# Keys accepted in a deployment profile, mirroring the CLI options.
PROFILE_KEYS = frozenset(
    {
        "vmid",
        "name",
        "memory",
        "cores",
        "bridge",
        "vlan",
        "mac",
        "storage",
        "new_disksize",
        "image_url",
        "image_file",
        "image_dir",
        "ciuser",
        "nameserver",
        "sshkey",
        "startvm",
        "tag",
        "verbose",
        "host",
    }
)


class Config:
    """Loads deployment defaults from environment variables."""

    load_dotenv()

    VM_ID = os.getenv("VM_ID", "9000")
    VM_NAME = os.getenv("VM_NAME", "server")
    VM_MEMORY = os.getenv("VM_MEMORY", "4096")
    VM_CORES = os.getenv("VM_CORES", "2")
    VM_BRIDGE = os.getenv("VM_BRIDGE", "vmbr0")
    VM_STORAGE = os.getenv("VM_STORAGE", "local-lvm")
    IMPORT_DIR = os.getenv("IMPORT_DIR", "/var/lib/vz/import")
    CLOUD_USER = os.getenv("CLOUD_USER", "serveradmin")
    CLOUD_NAMESERVER = os.getenv("CLOUD_NAMESERVER", "1.1.1.1")
    SSH_PUBKEY_PATH = os.path.expanduser(os.getenv("SSH_PUBKEY_PATH", "~/.ssh/id_rsa.pub"))

    # Remote execution; when PVE_HOST is unset qm runs on this machine
    PVE_HOST = os.getenv("PVE_HOST") or None
    SSH_USER = os.getenv("SSH_USER", "root")
    SSH_KEY_PATH = os.path.expanduser(os.getenv("SSH_KEY_PATH", "~/.ssh/id_rsa"))

    DOWNLOAD_TIMEOUT = int(os.getenv("DOWNLOAD_TIMEOUT", "60"))

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        """Return option defaults keyed by CLI option name."""
        return {
            "vmid": cls.VM_ID,
            "name": cls.VM_NAME,
            "memory": cls.VM_MEMORY,
            "cores": cls.VM_CORES,
            "bridge": cls.VM_BRIDGE,
            "vlan": None,
            "mac": None,
            "storage": cls.VM_STORAGE,
            "new_disksize": None,
            "image_url": None,
            "image_file": None,
            "image_dir": None,
            "ciuser": cls.CLOUD_USER,
            "nameserver": cls.CLOUD_NAMESERVER,
            "sshkey": cls.SSH_PUBKEY_PATH,
            "startvm": "false",
            "tag": None,
            "verbose": False,
            "host": cls.PVE_HOST,
        }


def load_profile(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML deployment profile.

    Keys may use dashes or underscores (``new-disksize`` or ``new_disksize``).

    Args:
        path: Path to the YAML file

    Returns:
        Mapping of option name to value

    Raises:
        ConfigurationError: If the file is unreadable, not a mapping, or has unknown keys
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read profile {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Profile {path} must contain a mapping of options")

    profile: Dict[str, Any] = {}
    for key, value in data.items():
        option = str(key).replace("-", "_")
        if option not in PROFILE_KEYS:
            raise ConfigurationError(f"Unknown option in profile {path}: {key}")
        profile[option] = value
    return profile


def merge_options(
    cli_values: Dict[str, Any], profile: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Merge option sources: CLI beats profile, profile beats defaults."""
    merged = Config.defaults()
    for source in (profile or {}, cli_values):
        for key, value in source.items():
            if value is not None:
                merged[key] = value
    return merged
