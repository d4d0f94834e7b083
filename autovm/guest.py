"""Best-effort guest command sequences and the post-install scripts they run."""

from __future__ import annotations

import shlex
from typing import Sequence

from loguru import logger

from .config import ProvisioningConfig
from .errors import TransportError
from .hypervisor import GuestCredential, HypervisorClient, VmHandle
from .results import CommandOutcome

log = logger

# Second NIC (host-only) as seen by a Debian-family guest on VirtualBox.
STATIC_INTERFACE = 'enp0s8'
DOCKER_KEYRING = '/etc/apt/keyrings/docker.gpg'


class GuestCommandRunner:
    """
    Run shell commands inside the guest one at a time.

    A failing command is logged and recorded, then the next command runs;
    nothing is retried and the sequence never stops early.
    """

    def __init__(self, client: HypervisorClient):
        self.client = client

    def run_sequence(
        self,
        handle: VmHandle,
        credential: GuestCredential,
        commands: Sequence[str],
    ) -> list[CommandOutcome]:
        outcomes: list[CommandOutcome] = []
        total = len(commands)
        for idx, command in enumerate(commands, start=1):
            log.info(
                'Guest command {}/{} as {}: {}',
                idx,
                total,
                credential.username,
                command,
            )
            try:
                output = self.client.run_guest_command(handle, credential, command)
            except TransportError as ex:
                log.warning(
                    'Guest command {}/{} failed; continuing: {}', idx, total, ex
                )
                outcomes.append(CommandOutcome(command, False, error=str(ex)))
                continue
            outcomes.append(CommandOutcome(command, True, output=output))
        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            log.warning('{} of {} guest commands failed', failed, total)
        return outcomes


def network_commands(cfg: ProvisioningConfig) -> list[str]:
    iface = STATIC_INTERFACE
    stanza = [
        f'auto {iface}',
        f'iface {iface} inet static',
        f'    address {cfg.static_ip}',
        f'    netmask {cfg.netmask}',
    ]
    if cfg.gateway:
        stanza.append(f'    gateway {cfg.gateway}')
    body = '\n'.join(stanza) + '\n'
    return [
        f'sed -i "/^auto {iface}$/,/^$/d" /etc/network/interfaces',
        f'printf %s {shlex.quote(chr(10) + body)} >> /etc/network/interfaces',
        f'ifdown {iface} || true',
        f'ifup {iface}',
    ]


def package_commands(cfg: ProvisioningConfig) -> list[str]:
    cmds = ['apt-get update -y']
    if cfg.packages:
        cmds.append(
            'DEBIAN_FRONTEND=noninteractive apt-get install -y '
            + ' '.join(shlex.quote(p) for p in cfg.packages)
        )
    if cfg.install_docker:
        cmds += [
            'DEBIAN_FRONTEND=noninteractive apt-get install -y ca-certificates curl gnupg',
            'install -m 0755 -d /etc/apt/keyrings',
            # Fails harmlessly when the key is already present.
            'curl -fsSL https://download.docker.com/linux/debian/gpg '
            f'| gpg --batch --no-tty --dearmor -o {DOCKER_KEYRING}',
            f'chmod a+r {DOCKER_KEYRING}',
            'echo "deb [arch=$(dpkg --print-architecture) '
            f'signed-by={DOCKER_KEYRING}] https://download.docker.com/linux/debian '
            '$(. /etc/os-release && echo $VERSION_CODENAME) stable" '
            '> /etc/apt/sources.list.d/docker.list',
            'apt-get update -y',
            'DEBIAN_FRONTEND=noninteractive apt-get install -y '
            'docker-ce docker-ce-cli containerd.io docker-compose-plugin',
            f'usermod -aG docker {shlex.quote(cfg.user)}',
        ]
    return cmds
