"""Advisory per-VM-name lock file so two runs never race on destroy/create."""

from __future__ import annotations

import os
import re
from pathlib import Path

import filelock
import psutil
import ubelt as ub
from loguru import logger

from .errors import LockError

log = logger


def lock_dir_default() -> Path:
    return Path(ub.Path.appdir('autovm', type='cache').ensuredir()) / 'locks'


def _lock_name(vm_name: str) -> str:
    safe = re.sub(r'[^A-Za-z0-9_.-]+', '_', vm_name) or '_'
    return f'{safe}.lock'


class RunLock:
    """
    Exclusive lock keyed by VM name, held for the duration of a run.

    Exclusivity comes from an OS file lock, which the OS drops when the
    holding process exits, so a lock file left behind by a crashed run never
    blocks the next one. The holder's PID is written to a sidecar ``.owner``
    file for diagnostics only.

    Example:
        >>> import tempfile
        >>> dpath = Path(tempfile.mkdtemp())
        >>> with RunLock('demo', lock_dir=dpath) as lock:
        ...     assert lock.owner_path.read_text() == str(os.getpid())
        >>> assert not (dpath / 'demo.owner').exists()
    """

    def __init__(self, vm_name: str, *, lock_dir: Path | None = None):
        self.vm_name = vm_name
        self.lock_dir = lock_dir or lock_dir_default()
        self.path = self.lock_dir / _lock_name(vm_name)
        self.owner_path = self.path.with_suffix('.owner')
        self._lock = filelock.FileLock(str(self.path), timeout=0)

    def owner_pid(self) -> int:
        try:
            return int(self.owner_path.read_text(encoding='utf-8').strip() or '0')
        except (OSError, ValueError):
            return 0

    def acquire(self) -> None:
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire()
        except filelock.Timeout:
            owner = self.owner_pid()
            if owner and psutil.pid_exists(owner):
                holder = f'pid={owner}'
            else:
                holder = 'a process on another host or session'
            raise LockError(
                f'Another run ({holder}) is provisioning VM {self.vm_name!r}; '
                f'lock file: {self.path}'
            ) from None
        previous = self.owner_pid()
        if previous and previous != os.getpid():
            log.warning(
                'Taking over lock {} from a finished run (pid={})',
                self.path,
                previous,
            )
        self.owner_path.write_text(str(os.getpid()), encoding='utf-8')

    def release(self) -> None:
        if self._lock.is_locked:
            self.owner_path.unlink(missing_ok=True)
            self._lock.release()

    def __enter__(self) -> 'RunLock':
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
