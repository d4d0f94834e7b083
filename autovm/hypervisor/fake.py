"""In-memory hypervisor with scripted guest command results, for tests and dry runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..errors import HypervisorError
from .base import GuestCredential, HypervisorClient, VmHandle, VmSpec


@dataclass
class FakeVm:
    spec: VmSpec
    running: bool = False
    headless: bool = True
    disks: list[str] = field(default_factory=list)
    media: dict[int, str] = field(default_factory=dict)
    nics: dict[int, tuple[str, str | None]] = field(default_factory=dict)
    forwards: dict[str, tuple[int, int]] = field(default_factory=dict)
    answer_file: str | None = None


class FakeHypervisor(HypervisorClient):
    """
    Keeps VMs in a dict and records every call as ``(method, vm_name, ...)``.

    ``guest_results`` maps a command string to either its output or an
    exception instance to raise; unknown commands succeed with ''.
    """

    def __init__(self, guest_results: dict[str, object] | None = None):
        self.vms: dict[str, FakeVm] = {}
        self.calls: list[tuple] = []
        self.guest_results = dict(guest_results or {})

    def _get(self, handle: VmHandle) -> FakeVm:
        try:
            return self.vms[handle.name]
        except KeyError:
            raise HypervisorError(f'VM not registered: {handle.name}') from None

    def list_vms(self) -> list[str]:
        self.calls.append(('list_vms',))
        return list(self.vms)

    def create_vm(self, spec: VmSpec) -> VmHandle:
        self.calls.append(('create_vm', spec.name))
        if spec.name in self.vms:
            raise HypervisorError(f'VM already registered: {spec.name}')
        self.vms[spec.name] = FakeVm(spec)
        return VmHandle(spec.name)

    def destroy_vm(self, handle: VmHandle) -> None:
        self.calls.append(('destroy_vm', handle.name))
        self._get(handle)
        del self.vms[handle.name]

    def configure_vm(self, handle: VmHandle, spec: VmSpec) -> None:
        self.calls.append(('configure_vm', handle.name))
        self._get(handle).spec = spec

    def attach_disk(self, handle: VmHandle, path: Path, size_mb: int) -> None:
        self.calls.append(('attach_disk', handle.name, str(path), size_mb))
        self._get(handle).disks.append(str(path))

    def attach_removable_media(
        self, handle: VmHandle, path: Path, *, port: int = 0
    ) -> None:
        self.calls.append(('attach_removable_media', handle.name, str(path), port))
        self._get(handle).media[port] = str(path)

    def configure_unattended_install(
        self,
        handle: VmHandle,
        install_iso: Path,
        answer_file: Path,
        credential: GuestCredential,
    ) -> None:
        self.calls.append(
            (
                'configure_unattended_install',
                handle.name,
                str(install_iso),
                str(answer_file),
                credential.username,
            )
        )
        self._get(handle).answer_file = str(answer_file)

    def configure_network_adapter(
        self,
        handle: VmHandle,
        slot: int,
        mode: str,
        *,
        host_adapter: str | None = None,
    ) -> None:
        self.calls.append(('configure_network_adapter', handle.name, slot, mode))
        self._get(handle).nics[slot] = (mode, host_adapter)

    def configure_port_forward(
        self, handle: VmHandle, rule: str, host_port: int, guest_port: int
    ) -> None:
        self.calls.append(
            ('configure_port_forward', handle.name, rule, host_port, guest_port)
        )
        self._get(handle).forwards[rule] = (host_port, guest_port)

    def start(self, handle: VmHandle, *, headless: bool = True) -> None:
        self.calls.append(('start', handle.name, headless))
        vm = self._get(handle)
        vm.running = True
        vm.headless = headless

    def stop(self, handle: VmHandle) -> None:
        self.calls.append(('stop', handle.name))
        self._get(handle).running = False

    def run_guest_command(
        self, handle: VmHandle, credential: GuestCredential, command: str
    ) -> str:
        self.calls.append(
            ('run_guest_command', handle.name, credential.username, command)
        )
        if not self._get(handle).running:
            raise HypervisorError(f'VM not running: {handle.name}')
        result = self.guest_results.get(command, '')
        if isinstance(result, BaseException):
            raise result
        return str(result)
