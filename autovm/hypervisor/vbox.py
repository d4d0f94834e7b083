"""VirtualBox implementation of the hypervisor client, driving `VBoxManage`."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from loguru import logger

from ..errors import HypervisorError
from ..host import find_vboxmanage
from ..util import CmdError, CmdResult, ensure_dir, run_cmd
from .base import GuestCredential, HypervisorClient, VmHandle, VmSpec

log = logger

DISK_CONTROLLER = 'SATA'
MEDIA_CONTROLLER = 'IDE'
GUEST_SHELL = '/bin/sh'
GUEST_COMMAND_TIMEOUT_MS = 30 * 60 * 1000

_LIST_VMS_RE = re.compile(r'^"(?P<name>.*)"\s+\{(?P<uuid>[0-9a-fA-F-]+)\}$')


class VBoxManageClient(HypervisorClient):
    """Each method maps to one or a few synchronous `VBoxManage` calls."""

    def __init__(self, exe: str | None = None):
        self.exe = exe or find_vboxmanage() or 'VBoxManage'

    def _vbox(self, *args: str, secrets: tuple[str, ...] = ()) -> CmdResult:
        try:
            return run_cmd(
                [self.exe, *args], check=True, capture=True, secrets=secrets
            )
        except CmdError as ex:
            diag = (ex.result.stderr or ex.result.stdout or '').strip()
            raise HypervisorError(
                f'VBoxManage {args[0]} failed (code={ex.result.code})', diag
            ) from ex

    def list_vms(self) -> list[str]:
        res = self._vbox('list', 'vms')
        names: list[str] = []
        for line in res.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            match = _LIST_VMS_RE.match(line)
            if match is None:
                raise HypervisorError(
                    'Unparseable `VBoxManage list vms` output', res.stdout
                )
            names.append(match.group('name'))
        return names

    def create_vm(self, spec: VmSpec) -> VmHandle:
        ensure_dir(Path(spec.base_folder))
        self._vbox(
            'createvm',
            '--name',
            spec.name,
            '--ostype',
            spec.os_type,
            '--basefolder',
            spec.base_folder,
            '--register',
        )
        log.info('VM registered: {}', spec.name)
        return VmHandle(spec.name)

    def _settings_dir(self, name: str) -> Path | None:
        res = run_cmd(
            [self.exe, 'showvminfo', name, '--machinereadable'],
            check=False,
            capture=True,
        )
        if res.code != 0:
            return None
        for line in res.stdout.splitlines():
            if line.startswith('CfgFile='):
                return Path(line.split('=', 1)[1].strip().strip('"')).parent
        return None

    def _remove_leftovers(self, name: str, folder: Path | None) -> None:
        # Only the per-VM folder that createvm made under the base folder.
        if folder is None or folder.name != name or not folder.exists():
            return
        log.warning('Removing leftover VM files in {}', folder)
        shutil.rmtree(folder)

    def destroy_vm(self, handle: VmHandle) -> None:
        folder = self._settings_dir(handle.name)
        run_cmd(
            [self.exe, 'controlvm', handle.name, 'poweroff'],
            check=False,
            capture=True,
        )
        # --delete fails when media are already gone or the session is still
        # locked right after poweroff; a plain unregister leaves the settings
        # file and disk behind, and those would block the next createvm.
        attempts = [
            ['unregistervm', handle.name, '--delete'],
            ['unregistervm', handle.name],
        ]
        errs: list[str] = []
        for args in attempts:
            res = run_cmd([self.exe, *args], check=False, capture=True)
            if res.code == 0 and '--delete' in args:
                log.info('VM removed: {}', handle.name)
                return
            if res.code == 0 or handle.name not in self.list_vms():
                self._remove_leftovers(handle.name, folder)
                log.info('VM removed: {}', handle.name)
                return
            errs.append((res.stderr or res.stdout or '').strip())
        raise HypervisorError(
            f'Failed to unregister VM {handle.name}', '\n'.join(errs[-2:])
        )

    def configure_vm(self, handle: VmHandle, spec: VmSpec) -> None:
        self._vbox(
            'modifyvm',
            handle.name,
            '--memory',
            str(spec.memory_mb),
            '--cpus',
            str(spec.cpus),
            '--ioapic',
            'on',
            '--boot1',
            'dvd',
            '--boot2',
            'disk',
            '--boot3',
            'none',
            '--boot4',
            'none',
        )
        self._vbox(
            'storagectl',
            handle.name,
            '--name',
            DISK_CONTROLLER,
            '--add',
            'sata',
            '--controller',
            'IntelAhci',
        )
        self._vbox(
            'storagectl', handle.name, '--name', MEDIA_CONTROLLER, '--add', 'ide'
        )

    def attach_disk(self, handle: VmHandle, path: Path, size_mb: int) -> None:
        ensure_dir(path.parent)
        self._vbox(
            'createmedium',
            'disk',
            '--filename',
            str(path),
            '--size',
            str(size_mb),
            '--format',
            'VDI',
        )
        self._vbox(
            'storageattach',
            handle.name,
            '--storagectl',
            DISK_CONTROLLER,
            '--port',
            '0',
            '--device',
            '0',
            '--type',
            'hdd',
            '--medium',
            str(path),
        )

    def attach_removable_media(
        self, handle: VmHandle, path: Path, *, port: int = 0
    ) -> None:
        self._vbox(
            'storageattach',
            handle.name,
            '--storagectl',
            MEDIA_CONTROLLER,
            '--port',
            str(port),
            '--device',
            '0',
            '--type',
            'dvddrive',
            '--medium',
            str(path),
        )

    def configure_unattended_install(
        self,
        handle: VmHandle,
        install_iso: Path,
        answer_file: Path,
        credential: GuestCredential,
    ) -> None:
        # VirtualBox remasters the boot entry so the installer reads the
        # rendered answer file, and installs Guest Additions for guestcontrol.
        self._vbox(
            'unattended',
            'install',
            handle.name,
            f'--iso={install_iso}',
            f'--script-template={answer_file}',
            f'--user={credential.username}',
            f'--password={credential.password}',
            f'--full-user-name={credential.username}',
            '--install-additions',
            '--time-zone=UTC',
            secrets=(credential.password,),
        )
        log.info('Unattended install prepared for {} from {}', handle.name, answer_file)

    def configure_network_adapter(
        self,
        handle: VmHandle,
        slot: int,
        mode: str,
        *,
        host_adapter: str | None = None,
    ) -> None:
        args = ['modifyvm', handle.name, f'--nic{slot}', mode]
        if mode == 'hostonly':
            if not host_adapter:
                raise HypervisorError(
                    f'host-only adapter name required for nic{slot}'
                )
            args += [f'--hostonlyadapter{slot}', host_adapter]
        self._vbox(*args)

    def configure_port_forward(
        self, handle: VmHandle, rule: str, host_port: int, guest_port: int
    ) -> None:
        self._vbox(
            'modifyvm',
            handle.name,
            '--natpf1',
            f'{rule},tcp,127.0.0.1,{host_port},,{guest_port}',
        )

    def start(self, handle: VmHandle, *, headless: bool = True) -> None:
        self._vbox(
            'startvm', handle.name, '--type', 'headless' if headless else 'gui'
        )
        log.info('VM started: {} (headless={})', handle.name, headless)

    def stop(self, handle: VmHandle) -> None:
        self._vbox('controlvm', handle.name, 'poweroff')

    def run_guest_command(
        self, handle: VmHandle, credential: GuestCredential, command: str
    ) -> str:
        res = self._vbox(
            'guestcontrol',
            handle.name,
            'run',
            '--exe',
            GUEST_SHELL,
            '--username',
            credential.username,
            '--password',
            credential.password,
            '--timeout',
            str(GUEST_COMMAND_TIMEOUT_MS),
            '--wait-stdout',
            '--wait-stderr',
            '--',
            'sh',
            '-c',
            command,
            secrets=(credential.password,),
        )
        return res.stdout
