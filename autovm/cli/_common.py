"""Options and helpers shared by every autovm command."""

from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import ProvisioningConfig, load
from ..hypervisor import HypervisorClient, VBoxManageClient

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    env = scfg.Value('.env', help='Path to the KEY=VALUE provisioning config.')
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _env_path(p: str | None) -> Path:
    return Path(p or '.env').expanduser().resolve()


def _load_cfg(env_path: str | None) -> ProvisioningConfig:
    path = _env_path(env_path)
    cfg = load(path)
    log.debug('Using config {} for vm={}', path, cfg.vm_name or '(unset)')
    return cfg


def _make_client() -> HypervisorClient:
    return VBoxManageClient()


__all__ = [name for name in globals() if not name.startswith('__')]
