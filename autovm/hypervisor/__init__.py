"""Hypervisor client interface plus VBoxManage and in-memory implementations."""

from __future__ import annotations

from .base import GuestCredential, HypervisorClient, VmHandle, VmSpec
from .fake import FakeHypervisor
from .vbox import VBoxManageClient

__all__ = [
    'FakeHypervisor',
    'GuestCredential',
    'HypervisorClient',
    'VBoxManageClient',
    'VmHandle',
    'VmSpec',
]
