"""Interactive SSH session to the finished VM over the forwarded port."""

from __future__ import annotations

import os

from loguru import logger

from .config import ProvisioningConfig
from .runtime import LOCALHOST, ssh_base_args
from .util import run_cmd

log = logger


def ssh_command(cfg: ProvisioningConfig) -> list[str]:
    # Each re-provisioned VM gets a new host key on the same localhost port.
    return [
        'ssh',
        *ssh_base_args(cfg.ssh_port, user_known_hosts_file=os.devnull),
        f'{cfg.user}@{LOCALHOST}',
    ]


def launch_session(cfg: ProvisioningConfig) -> int:
    cmd = ssh_command(cfg)
    log.info('Opening SSH session: {}', ' '.join(cmd))
    return run_cmd(cmd, check=False, capture=False).code
