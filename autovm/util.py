"""Shared utility helpers for subprocess execution, paths, and command formatting."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

log = logger


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{result.stderr}'.strip()
        )


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def redact(cmd: Sequence[str], secrets: Sequence[str]) -> list[str]:
    """Replace secret values in a command line before it is logged."""
    hidden = [s for s in secrets if s]
    out: list[str] = []
    for part in cmd:
        for secret in hidden:
            part = part.replace(secret, '******')
        out.append(part)
    return out


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    text: bool = True,
    input_text: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
    secrets: Sequence[str] = (),
) -> CmdResult:
    shown = shell_join(redact(cmd, secrets))
    log.opt(depth=1).debug('RUN: {}', shown)
    try:
        p = subprocess.run(
            list(cmd),
            input=input_text if input_text is not None else None,
            capture_output=capture,
            text=text,
            env=env,
        )
    except OSError as ex:
        # Missing executable or permission problems look like a failed call.
        res = CmdResult(127, '', str(ex))
        if check:
            raise CmdError(shown, res) from ex
        return res
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check and p.returncode != 0:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={} stdout={}',
            p.returncode,
            shown,
            res.stderr.strip(),
            res.stdout.strip(),
        )
        raise CmdError(shown, res)
    if p.returncode == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shown)
    return res


def which(cmd: str) -> Optional[str]:
    from shutil import which as _which

    return _which(cmd)


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))
