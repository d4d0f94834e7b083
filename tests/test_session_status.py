"""Tests for session command construction and report rendering."""

from __future__ import annotations

import pytest

from autovm.clock import FakeClock, SystemClock
from autovm.config import ProvisioningConfig
from autovm.errors import ProvisionCancelled
from autovm.preflight import CheckResult
from autovm.results import CommandOutcome, ProvisionReport
from autovm.session import launch_session, ssh_command
from autovm.status import render_checks, render_report
from autovm.util import CmdResult


def test_ssh_command_targets_forwarded_port() -> None:
    cfg = ProvisioningConfig(user='bob', ssh_port=2201)
    cmd = ssh_command(cfg)
    assert cmd[0] == 'ssh'
    assert cmd[1:3] == ['-p', '2201']
    assert cmd[-1] == 'bob@127.0.0.1'


def test_launch_session_returns_exit_code(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(
        'autovm.session.run_cmd',
        lambda cmd, **k: calls.append((cmd, k)) or CmdResult(3, '', ''),
    )
    assert launch_session(ProvisioningConfig(user='bob')) == 3
    assert calls[0][1]['capture'] is False


def test_render_checks_marks_advisory() -> None:
    text = render_checks(
        [
            CheckResult('config', True, 'ok'),
            CheckResult('hypervisor-conflict', False, 'Hyper-V', advisory=True),
        ]
    )
    assert '✅ config - ok' in text
    assert '⚠️ hypervisor-conflict - Hyper-V' in text
    assert text.endswith('Verdict: PASS')


def test_render_report_lists_failures() -> None:
    report = ProvisionReport(
        vm_name='vm1',
        state='configured',
        outcomes=[
            CommandOutcome('apt-get update -y', True),
            CommandOutcome('bad', False, error='exit 1'),
        ],
    )
    text = render_report(report)
    assert 'vm1: configured' in text
    assert '❌ bad - exit 1' in text
    assert report.failed_commands == ['bad']
    assert report.as_dict()['commands_failed'] == ['bad']


def test_fake_clock_advances() -> None:
    clock = FakeClock(10)
    clock.sleep(5)
    assert clock.monotonic() == 15
    assert clock.sleeps == [5]


def test_system_clock_cancel() -> None:
    clock = SystemClock()
    clock.cancel.set()
    with pytest.raises(ProvisionCancelled):
        clock.sleep(30)
    clock.sleep(0)
