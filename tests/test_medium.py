"""Tests for install-medium download idempotence."""

from __future__ import annotations

from pathlib import Path

import pytest

from autovm.errors import TransportError, ValidationError
from autovm.medium import ensure_medium, medium_path
from autovm.util import CmdError, CmdResult

URL = 'http://example.com/isos/debian-12-netinst.iso'


def _fake_curl(calls: list):
    def fake_run_cmd(cmd, **kwargs):
        calls.append(cmd)
        out = Path(cmd[cmd.index('-o') + 1])
        out.write_bytes(b'ISO')
        return CmdResult(0, '', '')

    return fake_run_cmd


def test_medium_path_uses_url_basename(tmp_path: Path) -> None:
    assert medium_path(URL, tmp_path) == tmp_path / 'debian-12-netinst.iso'
    assert medium_path('http://h/a%20b.iso?x=1', tmp_path).name == 'a b.iso'
    with pytest.raises(ValidationError):
        medium_path('http://example.com/', tmp_path)


def test_ensure_medium_downloads_once(monkeypatch, tmp_path: Path) -> None:
    calls: list = []
    monkeypatch.setattr('autovm.medium.run_cmd', _fake_curl(calls))
    dest = tmp_path / 'work'
    first = ensure_medium(URL, dest)
    second = ensure_medium(URL, dest)
    assert first == second == dest / 'debian-12-netinst.iso'
    assert len(calls) == 1
    assert calls[0][0] == 'curl'
    assert str(first) + '.part' in calls[0]
    assert first.read_bytes() == b'ISO'
    assert not Path(str(first) + '.part').exists()


def test_ensure_medium_existing_file_untouched(monkeypatch, tmp_path: Path) -> None:
    target = tmp_path / 'debian-12-netinst.iso'
    target.write_bytes(b'already here')

    def fail(*a, **k):
        raise AssertionError('should not download')

    monkeypatch.setattr('autovm.medium.run_cmd', fail)
    assert ensure_medium(URL, tmp_path) == target
    assert target.read_bytes() == b'already here'


def test_ensure_medium_failure_cleans_partial(monkeypatch, tmp_path: Path) -> None:
    def fake_run_cmd(cmd, **kwargs):
        Path(cmd[cmd.index('-o') + 1]).write_bytes(b'partial')
        raise CmdError(cmd, CmdResult(22, '', 'curl: (22) 404'))

    monkeypatch.setattr('autovm.medium.run_cmd', fake_run_cmd)
    with pytest.raises(TransportError, match='Failed to download'):
        ensure_medium(URL, tmp_path)
    assert list(tmp_path.iterdir()) == []
