"""Capability interface over an external hypervisor control tool."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..config import ProvisioningConfig


@dataclass(frozen=True)
class VmHandle:
    name: str


@dataclass(frozen=True)
class VmSpec:
    name: str
    os_type: str
    memory_mb: int
    cpus: int
    disk_mb: int
    base_folder: str

    @classmethod
    def from_config(cls, cfg: ProvisioningConfig) -> 'VmSpec':
        return cls(
            name=cfg.vm_name,
            os_type=cfg.os_type,
            memory_mb=cfg.memory_mb,
            cpus=cfg.cpus,
            disk_mb=cfg.disk_mb,
            base_folder=str(cfg.work_path),
        )

    @property
    def disk_path(self) -> Path:
        return Path(self.base_folder) / self.name / f'{self.name}.vdi'


@dataclass(frozen=True)
class GuestCredential:
    username: str
    password: str

    @classmethod
    def root(cls, cfg: ProvisioningConfig) -> 'GuestCredential':
        return cls('root', cfg.root_password)

    @classmethod
    def user(cls, cfg: ProvisioningConfig) -> 'GuestCredential':
        return cls(cfg.user, cfg.password)


class HypervisorClient:
    """
    Synchronous operations on a single hypervisor.

    Every method either completes or raises
    :class:`autovm.errors.HypervisorError`. ``create_vm`` does not replace
    an existing VM of the same name; callers destroy it first.
    """

    def create_vm(self, spec: VmSpec) -> VmHandle:
        raise NotImplementedError

    def destroy_vm(self, handle: VmHandle) -> None:
        raise NotImplementedError

    def configure_vm(self, handle: VmHandle, spec: VmSpec) -> None:
        raise NotImplementedError

    def attach_disk(self, handle: VmHandle, path: Path, size_mb: int) -> None:
        raise NotImplementedError

    def attach_removable_media(
        self, handle: VmHandle, path: Path, *, port: int = 0
    ) -> None:
        raise NotImplementedError

    def configure_unattended_install(
        self,
        handle: VmHandle,
        install_iso: Path,
        answer_file: Path,
        credential: GuestCredential,
    ) -> None:
        """Arrange for the installer on ``install_iso`` to read ``answer_file``."""
        raise NotImplementedError

    def configure_network_adapter(
        self,
        handle: VmHandle,
        slot: int,
        mode: str,
        *,
        host_adapter: str | None = None,
    ) -> None:
        raise NotImplementedError

    def configure_port_forward(
        self, handle: VmHandle, rule: str, host_port: int, guest_port: int
    ) -> None:
        raise NotImplementedError

    def start(self, handle: VmHandle, *, headless: bool = True) -> None:
        raise NotImplementedError

    def stop(self, handle: VmHandle) -> None:
        raise NotImplementedError

    def list_vms(self) -> list[str]:
        raise NotImplementedError

    def run_guest_command(
        self, handle: VmHandle, credential: GuestCredential, command: str
    ) -> str:
        raise NotImplementedError
