"""Tests for the VBoxManage-backed hypervisor client."""

from __future__ import annotations

from pathlib import Path

import pytest

from autovm.errors import HypervisorError, TransportError
from autovm.hypervisor import GuestCredential, VBoxManageClient, VmHandle, VmSpec
from autovm.util import CmdError, CmdResult


class FakeRunner:
    """Records commands; responds from a list of (predicate, result) rules."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.rules: list[tuple] = []
        self.kwargs: list[dict] = []

    def on(self, subcommand: str, result: CmdResult) -> None:
        self.rules.append((subcommand, result))

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        res = CmdResult(0, '', '')
        for sub, rule_res in self.rules:
            if sub in cmd:
                res = rule_res
        if kwargs.get('check', True) and res.code != 0:
            raise CmdError(cmd, res)
        return res


@pytest.fixture
def runner(monkeypatch):
    fake = FakeRunner()
    monkeypatch.setattr('autovm.hypervisor.vbox.run_cmd', fake)
    return fake


def _spec(tmp_path: Path) -> VmSpec:
    return VmSpec(
        name='vm1',
        os_type='Debian_64',
        memory_mb=2048,
        cpus=2,
        disk_mb=20480,
        base_folder=str(tmp_path),
    )


def test_list_vms_parses_names(runner) -> None:
    runner.on(
        'list',
        CmdResult(
            0,
            '"vm one" {0b5e0d5c-1111-2222-3333-444455556666}\n'
            '"vm1" {aa5e0d5c-1111-2222-3333-444455556666}\n',
            '',
        ),
    )
    client = VBoxManageClient(exe='VBoxManage')
    assert client.list_vms() == ['vm one', 'vm1']
    assert runner.calls[0] == ['VBoxManage', 'list', 'vms']


def test_list_vms_unparseable_output(runner) -> None:
    runner.on('list', CmdResult(0, 'garbage here\n', ''))
    with pytest.raises(HypervisorError) as info:
        VBoxManageClient(exe='VBoxManage').list_vms()
    assert 'garbage here' in info.value.diagnostic


def test_nonzero_exit_becomes_transport_error(runner) -> None:
    runner.on('startvm', CmdResult(1, '', 'VBOX_E_INVALID_OBJECT_STATE'))
    client = VBoxManageClient(exe='VBoxManage')
    with pytest.raises(TransportError) as info:
        client.start(VmHandle('vm1'))
    assert 'VBOX_E_INVALID_OBJECT_STATE' in str(info.value)


def test_create_and_configure_commands(runner, tmp_path) -> None:
    client = VBoxManageClient(exe='VBoxManage')
    spec = _spec(tmp_path)
    handle = client.create_vm(spec)
    assert handle == VmHandle('vm1')
    client.configure_vm(handle, spec)
    client.attach_disk(handle, spec.disk_path, spec.disk_mb)
    client.attach_removable_media(handle, tmp_path / 'install.iso', port=0)
    client.configure_network_adapter(handle, 1, 'nat')
    client.configure_network_adapter(handle, 2, 'hostonly', host_adapter='vboxnet0')
    client.configure_port_forward(handle, 'ssh', 2222, 22)
    client.start(handle, headless=True)
    subs = [c[1] for c in runner.calls]
    assert subs == [
        'createvm',
        'modifyvm',
        'storagectl',
        'storagectl',
        'createmedium',
        'storageattach',
        'storageattach',
        'modifyvm',
        'modifyvm',
        'modifyvm',
        'startvm',
    ]
    create = runner.calls[0]
    assert create[create.index('--basefolder') + 1] == str(tmp_path)
    assert '--register' in create
    modify = runner.calls[1]
    assert modify[modify.index('--memory') + 1] == '2048'
    assert modify[modify.index('--boot1') + 1] == 'dvd'
    assert runner.calls[8][-2:] == ['--hostonlyadapter2', 'vboxnet0']
    assert runner.calls[9][-1] == 'ssh,tcp,127.0.0.1,2222,,22'
    assert runner.calls[10][-2:] == ['--type', 'headless']


def test_hostonly_requires_adapter(runner) -> None:
    with pytest.raises(HypervisorError):
        VBoxManageClient(exe='VBoxManage').configure_network_adapter(
            VmHandle('vm1'), 2, 'hostonly'
        )


def test_destroy_falls_back_without_delete(monkeypatch, tmp_path) -> None:
    vm_dir = tmp_path / 'vm1'
    vm_dir.mkdir()
    (vm_dir / 'vm1.vbox').write_text('<xml/>', encoding='utf-8')
    (vm_dir / 'vm1.vdi').write_bytes(b'\0')
    outputs = iter(
        [
            CmdResult(0, '', ''),  # poweroff
            CmdResult(1, '', 'machine is locked by a session'),
            CmdResult(0, '', ''),  # plain unregister
        ]
    )
    calls = []

    def fake(cmd, **kwargs):
        calls.append(list(cmd))
        if cmd[1] == 'list':
            return CmdResult(0, '"vm1" {aa5e0d5c-1111-2222-3333-444455556666}\n', '')
        if cmd[1] == 'showvminfo':
            return CmdResult(0, f'name="vm1"\nCfgFile="{vm_dir / "vm1.vbox"}"\n', '')
        return next(outputs)

    monkeypatch.setattr('autovm.hypervisor.vbox.run_cmd', fake)
    VBoxManageClient(exe='VBoxManage').destroy_vm(VmHandle('vm1'))
    subs = [c[1:3] for c in calls]
    assert subs[0] == ['showvminfo', 'vm1']
    assert subs[1] == ['controlvm', 'vm1']
    assert calls[-1] == ['VBoxManage', 'unregistervm', 'vm1']
    # Leftover settings and disk would make the next createvm fail.
    assert not vm_dir.exists()
    assert tmp_path.exists()


def test_destroy_keeps_folders_not_named_after_vm(runner, tmp_path) -> None:
    other = tmp_path / 'shared'
    other.mkdir()
    runner.on(
        'showvminfo', CmdResult(0, f'CfgFile="{other / "vm1.vbox"}"\n', '')
    )
    runner.on('unregistervm', CmdResult(1, '', 'locked'))
    runner.on('list', CmdResult(0, '', ''))
    VBoxManageClient(exe='VBoxManage').destroy_vm(VmHandle('vm1'))
    assert other.exists()


def test_destroy_raises_when_vm_persists(runner) -> None:
    runner.on('unregistervm', CmdResult(1, '', 'locked by session'))
    runner.on(
        'list', CmdResult(0, '"vm1" {aa5e0d5c-1111-2222-3333-444455556666}\n', '')
    )
    with pytest.raises(HypervisorError, match='Failed to unregister'):
        VBoxManageClient(exe='VBoxManage').destroy_vm(VmHandle('vm1'))


def test_run_guest_command_redacts_password(runner) -> None:
    runner.on('guestcontrol', CmdResult(0, 'hello\n', ''))
    client = VBoxManageClient(exe='VBoxManage')
    out = client.run_guest_command(
        VmHandle('vm1'), GuestCredential('root', 'pw123'), 'echo hello'
    )
    assert out == 'hello\n'
    cmd = runner.calls[0]
    assert cmd[1:4] == ['guestcontrol', 'vm1', 'run']
    assert cmd[cmd.index('--username') + 1] == 'root'
    assert cmd[-3:] == ['sh', '-c', 'echo hello']
    assert runner.kwargs[0]['secrets'] == ('pw123',)


def test_unattended_install_passes_rendered_answer_file(runner, tmp_path) -> None:
    client = VBoxManageClient(exe='VBoxManage')
    client.configure_unattended_install(
        VmHandle('vm1'),
        tmp_path / 'debian.iso',
        tmp_path / 'answer' / 'preseed.cfg',
        GuestCredential('debian', 'pw123'),
    )
    cmd = runner.calls[0]
    assert cmd[1:4] == ['unattended', 'install', 'vm1']
    assert f'--iso={tmp_path / "debian.iso"}' in cmd
    assert f'--script-template={tmp_path / "answer" / "preseed.cfg"}' in cmd
    assert '--user=debian' in cmd
    assert '--install-additions' in cmd
    assert runner.kwargs[0]['secrets'] == ('pw123',)
