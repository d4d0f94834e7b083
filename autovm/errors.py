"""Project-specific exception types."""

from __future__ import annotations


class AutoVMError(RuntimeError):
    """Base error for domain-level autovm failures."""


class ValidationError(AutoVMError):
    """Configuration is missing/invalid or a required preflight check failed."""


class TransportError(AutoVMError):
    """Invoking the hypervisor tool or the guest command channel failed."""


class HypervisorError(TransportError):
    """A hypervisor CLI call exited non-zero or returned unparseable output."""

    def __init__(self, message: str, diagnostic: str = ''):
        self.diagnostic = diagnostic
        text = message
        if diagnostic:
            text = f'{message}\n{diagnostic}'
        super().__init__(text.strip())


class InstallTimeoutError(AutoVMError, TimeoutError):
    """The guest did not become reachable before the install ceiling."""


class ProvisionCancelled(AutoVMError):
    """The run was cancelled while waiting."""


class LockError(AutoVMError):
    """Another run already holds the lock for this VM name."""


class StateTransitionError(AutoVMError):
    """A lifecycle step was requested out of order."""
