#!/usr/bin/env python3
"""
Command-line interface for deploying a cloud-init VM on Proxmox VE.

    vmdeploy --vmid 9001 --name web01 \\
        --image-url https://cloud-images.ubuntu.com/noble/current/noble-server-cloudimg-amd64.img \\
        --new-disksize 20G --startvm true
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from vmdeploy.config import Config, load_profile, merge_options
from vmdeploy.deployer import VMDeployer
from vmdeploy.exceptions import DeployError
from vmdeploy.models import DeployRequest, DeployResult
from vmdeploy.runner import CommandRunner, LocalRunner, RemoteRunner
from vmdeploy.validation import build_request

EPILOG = f"""Notes:

- The VM will NOT auto-start unless you pass --startvm true.

- When using --image-url, the image is downloaded to --image-dir (or {Config.IMPORT_DIR})
unless a matching .img.raw or .img (same basename) already exists there.

- When using --image-file, the file is looked up in --image-dir (or {Config.IMPORT_DIR})
and falls back to the provided absolute/relative path if not found in that dir.

- With --host, every command runs on that Proxmox host over SSH
(SSH_USER / SSH_KEY_PATH), and all paths refer to that host.
"""

# Initialize CLI app and console
app = typer.Typer(
    name="vmdeploy",
    help="Deploy a cloud-init ready VM on Proxmox VE using a cloud image.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)8s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


def make_runner(host: Optional[str], verbose: bool) -> CommandRunner:
    """Local runner, or an SSH runner when a Proxmox host is given."""
    if host:
        return RemoteRunner(host, user=Config.SSH_USER, key_path=Config.SSH_KEY_PATH, verbose=verbose)
    return LocalRunner(verbose=verbose, download_timeout=Config.DOWNLOAD_TIMEOUT)


def print_summary(request: DeployRequest, result: DeployResult) -> None:
    """Render the final deployment summary."""
    if result.resized:
        disk_size = request.new_disksize
    elif result.current_size:
        disk_size = f"Current size unchanged ({result.current_size})"
    else:
        disk_size = "Current size unchanged"

    table = Table(title="✅ SUCCESS: Server VM prepared.")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("VM ID", str(result.vmid))
    table.add_row("Name", result.name)
    table.add_row("Status", result.status)
    table.add_row("Memory", f"{request.memory}MB")
    table.add_row("Cores", str(request.cores))
    table.add_row("Storage", request.storage)
    table.add_row("Disk Path", result.disk_path)
    table.add_row("Disk Format", result.disk_format)
    table.add_row("Disk Size", disk_size)
    table.add_row("Bridge", request.bridge)
    table.add_row("VLAN Tag", str(request.vlan) if request.vlan is not None else "None")
    table.add_row("MAC Address", request.macaddr or "Auto")
    table.add_row("Cloud User", request.ciuser)
    table.add_row("Nameserver", request.nameserver)
    table.add_row("SSH Key", request.sshkey)
    table.add_row("VM Tag", request.tag or "None")
    table.add_row("Image Source", result.image_source)

    console.print()
    console.print(table)
    console.print("Access the VM after boot with:")
    console.print(f"  ssh {request.ciuser}@<vm_ip>", markup=False)
    console.print()


@app.command(epilog=EPILOG)
def deploy(
    vmid: Optional[str] = typer.Option(None, "--vmid", help=f"VM ID (default: {Config.VM_ID})"),
    name: Optional[str] = typer.Option(None, "--name", help=f"VM name (default: {Config.VM_NAME})"),
    memory: Optional[str] = typer.Option(None, "--memory", help=f"Memory in MB (default: {Config.VM_MEMORY})"),
    cores: Optional[str] = typer.Option(None, "--cores", help=f"CPU cores (default: {Config.VM_CORES})"),
    bridge: Optional[str] = typer.Option(None, "--bridge", help=f"Bridge interface (default: {Config.VM_BRIDGE})"),
    vlan: Optional[str] = typer.Option(None, "--vlan", help="VLAN tag (optional)"),
    mac: Optional[str] = typer.Option(None, "--mac", help="MAC address (optional, XX:XX:XX:XX:XX:XX)"),
    storage: Optional[str] = typer.Option(None, "--storage", help=f"Storage pool (default: {Config.VM_STORAGE})"),
    new_disksize: Optional[str] = typer.Option(
        None, "--new-disksize", help="Resize after import (e.g., 20G; must include unit)"
    ),
    image_url: Optional[str] = typer.Option(None, "--image-url", help="Cloud image URL (exclusive with --image-file)"),
    image_file: Optional[str] = typer.Option(
        None, "--image-file", help="Local image file (exclusive with --image-url)"
    ),
    image_dir: Optional[str] = typer.Option(
        None, "--image-dir", help=f"Directory for image storage (default: {Config.IMPORT_DIR})"
    ),
    ciuser: Optional[str] = typer.Option(None, "--ciuser", help=f"Cloud-init user (default: {Config.CLOUD_USER})"),
    nameserver: Optional[str] = typer.Option(
        None, "--nameserver", help=f"DNS nameserver (default: {Config.CLOUD_NAMESERVER})"
    ),
    sshkey: Optional[str] = typer.Option(
        None, "--sshkey", "-sshkey", help=f"SSH public key (default: {Config.SSH_PUBKEY_PATH})"
    ),
    startvm: Optional[str] = typer.Option(
        None, "--startvm", metavar="<true|false>", help="Start VM after creation (default: false)"
    ),
    tag: Optional[str] = typer.Option(None, "--tag", help="VM tag (optional)"),
    host: Optional[str] = typer.Option(
        None, "--host", help="Run qm on this Proxmox host over SSH (default: local, or PVE_HOST)"
    ),
    profile: Optional[Path] = typer.Option(
        None, "--profile", help="YAML file with option defaults (CLI options take precedence)"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show native qm output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """
    Deploy a cloud-init ready Ubuntu/Debian VM from a downloaded cloud image
    (--image-url) or a local image file (--image-file).

    Creates the VM, imports the image into the first free SCSI slot, configures
    cloud-init, optionally resizes the disk, and can tag and start the VM.
    """
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    cli_values = {
        "vmid": vmid,
        "name": name,
        "memory": memory,
        "cores": cores,
        "bridge": bridge,
        "vlan": vlan,
        "mac": mac,
        "storage": storage,
        "new_disksize": new_disksize,
        "image_url": image_url,
        "image_file": image_file,
        "image_dir": image_dir,
        "ciuser": ciuser,
        "nameserver": nameserver,
        "sshkey": sshkey,
        "startvm": startvm,
        "tag": tag,
        "verbose": verbose or None,
        "host": host,
    }

    try:
        options = merge_options(cli_values, load_profile(profile) if profile else None)
        request = build_request(options, default_image_dir=Config.IMPORT_DIR)

        with make_runner(options.get("host"), request.verbose) as runner:
            result = VMDeployer(runner).deploy(request)

    except DeployError as e:
        console.print(f"❌ {e}", markup=False)
        logger.debug("Deployment failed", exc_info=True)
        raise typer.Exit(1)

    print_summary(request, result)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
