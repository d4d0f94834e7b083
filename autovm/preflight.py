"""Preflight validation: independent host checks folded into a pass/fail verdict."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Collection, Sequence
from urllib.parse import urlparse

from loguru import logger

from . import host
from .config import ProvisioningConfig

log = logger

MIN_FREE_DISK_GB = 25
MEMORY_HEADROOM_MB = 2048
NETWORK_PROBE_PORT = 80


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str = ''
    advisory: bool = False


def verdict(results: Sequence[CheckResult]) -> bool:
    """True unless a non-advisory check failed."""
    return all(r.ok for r in results if not r.advisory)


def check_hypervisor_tool(cfg: ProvisioningConfig) -> CheckResult:
    path = host.find_vboxmanage()
    if path:
        return CheckResult('hypervisor-tool', True, f'VBoxManage at {path}')
    probed = ', '.join(str(p) for p in host.vboxmanage_candidates())
    return CheckResult(
        'hypervisor-tool',
        False,
        f'VBoxManage not found (probed {probed} and PATH)',
    )


def check_config(cfg: ProvisioningConfig) -> CheckResult:
    missing = cfg.missing_fields()
    if missing:
        return CheckResult(
            'config', False, f'missing required values: {", ".join(missing)}'
        )
    return CheckResult('config', True, f'vm={cfg.vm_name} user={cfg.user}')


def check_network(cfg: ProvisioningConfig) -> CheckResult:
    hostname = urlparse(cfg.iso_url).hostname
    if not hostname:
        return CheckResult('network', False, f'cannot parse host from {cfg.iso_url!r}')
    if host.tcp_reachable(hostname, NETWORK_PROBE_PORT):
        return CheckResult('network', True, f'{hostname}:{NETWORK_PROBE_PORT} reachable')
    return CheckResult(
        'network', False, f'{hostname}:{NETWORK_PROBE_PORT} unreachable'
    )


def check_disk_space(cfg: ProvisioningConfig) -> CheckResult:
    target = cfg.work_path
    if not target.exists():
        target = Path.cwd()
    free_gb = host.host_free_disk_gb(target)
    detail = f'{free_gb:.1f} GiB free at {target} (need {MIN_FREE_DISK_GB})'
    return CheckResult('disk-space', free_gb >= MIN_FREE_DISK_GB, detail)


def check_memory(cfg: ProvisioningConfig) -> CheckResult:
    total = host.host_mem_total_mb()
    need = cfg.memory_mb + MEMORY_HEADROOM_MB
    if total is None:
        return CheckResult('memory', True, 'host memory unknown; not enforced')
    return CheckResult(
        'memory', total >= need, f'{total} MiB total (need {need} MiB)'
    )


def check_ssh_port(cfg: ProvisioningConfig) -> CheckResult:
    if host.port_in_use(cfg.ssh_port):
        return CheckResult(
            'ssh-port', False, f'127.0.0.1:{cfg.ssh_port} already in use'
        )
    return CheckResult('ssh-port', True, f'127.0.0.1:{cfg.ssh_port} free')


def check_hypervisor_conflict(cfg: ProvisioningConfig) -> CheckResult:
    conflict = host.conflicting_hypervisor()
    if conflict:
        return CheckResult(
            'hypervisor-conflict',
            False,
            f'{conflict}; VirtualBox may run slowly or fail to start VMs',
        )
    return CheckResult('hypervisor-conflict', True, 'no competing hypervisor')


Check = Callable[[ProvisioningConfig], CheckResult]

CHECKS: list[tuple[str, Check]] = [
    ('hypervisor-tool', check_hypervisor_tool),
    ('config', check_config),
    ('network', check_network),
    ('disk-space', check_disk_space),
    ('memory', check_memory),
    ('ssh-port', check_ssh_port),
    ('hypervisor-conflict', check_hypervisor_conflict),
]
# Checks whose failure is reported but never fails the verdict.
ADVISORY_CHECKS = frozenset({'hypervisor-conflict'})


def run_checks(
    cfg: ProvisioningConfig,
    checks: Sequence[tuple[str, Check]] | None = None,
    advisory: Collection[str] = ADVISORY_CHECKS,
) -> list[CheckResult]:
    results: list[CheckResult] = []
    for name, fn in CHECKS if checks is None else checks:
        try:
            res = fn(cfg)
        except Exception as ex:
            log.debug('Preflight check {} raised: {!r}', name, ex)
            res = CheckResult(name, False, f'check error: {ex}')
        res = replace(res, name=name, advisory=name in advisory)
        if res.ok:
            log.info('Preflight {} ok: {}', res.name, res.detail)
        elif res.advisory:
            log.warning('Preflight {} (advisory): {}', res.name, res.detail)
        else:
            log.error('Preflight {} failed: {}', res.name, res.detail)
        results.append(res)
    return results


def validate(
    cfg: ProvisioningConfig,
    checks: Sequence[tuple[str, Check]] | None = None,
) -> tuple[bool, list[CheckResult]]:
    results = run_checks(cfg, checks)
    return verdict(results), results
