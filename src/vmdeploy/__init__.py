"""Provision cloud-init VMs on Proxmox VE through the qm CLI."""

__version__ = "0.1.0"
