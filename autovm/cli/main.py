"""Top-level modal CLI wiring, exit codes, and logging setup."""

from __future__ import annotations

import os
import sys

import scriptconfig as scfg
from loguru import logger

from ..errors import ValidationError
from ._common import _load_cfg, log
from .commands import CheckCLI, DestroyCLI, InitCLI, ProvisionCLI, SSHCLI


class AutoVMModalCLI(scfg.ModalCLI):
    """Provision a VirtualBox VM end-to-end with an unattended install."""

    init = InitCLI
    check = CheckCLI
    provision = ProvisionCLI
    destroy = DestroyCLI
    ssh = SSHCLI


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    verbosity = 1
    env_value = None
    if '--env' in argv:
        try:
            env_value = argv[argv.index('--env') + 1]
        except IndexError:
            pass
    try:
        verbosity = _load_cfg(env_value).verbosity
    except Exception:
        verbosity = 1

    _setup_logging(_count_verbose(argv), verbosity)

    try:
        rc = AutoVMModalCLI.main(argv=argv, _noexit=True)
    except ValidationError as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.opt(exception=ex).error('Validation failed: {}', ex)
        sys.exit(1)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.opt(exception=ex).error('Unhandled autovm error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
