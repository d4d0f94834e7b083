"""Tests for the per-VM run lock."""

from __future__ import annotations

import os

import pytest

from autovm.errors import LockError
from autovm.lock import RunLock


def test_lock_blocks_second_holder(tmp_path) -> None:
    with RunLock('vm1', lock_dir=tmp_path):
        with pytest.raises(LockError, match='vm1'):
            RunLock('vm1', lock_dir=tmp_path).acquire()
        # Other VM names are independent.
        with RunLock('vm2', lock_dir=tmp_path):
            pass
    assert sorted(p.name for p in tmp_path.glob('*.owner')) == []
    with RunLock('vm1', lock_dir=tmp_path) as lock:
        assert lock.owner_pid() == os.getpid()


def test_leftover_lock_admits_exactly_one_holder(tmp_path) -> None:
    # Files left by a crashed run that recorded a dead PID.
    (tmp_path / 'vm1.lock').write_text('', encoding='utf-8')
    (tmp_path / 'vm1.owner').write_text('999999', encoding='utf-8')
    first = RunLock('vm1', lock_dir=tmp_path)
    second = RunLock('vm1', lock_dir=tmp_path)
    first.acquire()
    with pytest.raises(LockError):
        second.acquire()
    assert first.owner_pid() == os.getpid()
    first.release()
    second.acquire()
    assert second.owner_pid() == os.getpid()
    second.release()
    assert not second.owner_path.exists()


def test_lock_error_names_live_owner(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr('autovm.lock.psutil.pid_exists', lambda pid: pid == 4242)
    with RunLock('vm1', lock_dir=tmp_path) as lock:
        lock.owner_path.write_text('4242', encoding='utf-8')
        with pytest.raises(LockError, match='pid=4242'):
            RunLock('vm1', lock_dir=tmp_path).acquire()
        lock.owner_path.write_text('999999', encoding='utf-8')
        with pytest.raises(LockError, match='another host'):
            RunLock('vm1', lock_dir=tmp_path).acquire()


def test_release_without_acquire_is_noop(tmp_path) -> None:
    lock = RunLock('vm1', lock_dir=tmp_path)
    lock.release()
    assert not lock.owner_path.exists()


def test_lock_name_is_sanitized(tmp_path) -> None:
    lock = RunLock('my vm/../x', lock_dir=tmp_path)
    assert lock.path.parent == tmp_path
    assert '/' not in lock.path.name
