"""Unattended single-VM provisioning for VirtualBox hosts."""

__version__ = '0.1.0'
