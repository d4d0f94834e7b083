"""VM lifecycle state machine: create, boot, wait for the install, configure."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Callable

from loguru import logger

from . import host
from .answer import answer_values, render_answer_file
from .clock import Clock, SystemClock
from .config import ProvisioningConfig
from .errors import InstallTimeoutError, StateTransitionError, ValidationError
from .guest import GuestCommandRunner, network_commands, package_commands
from .hypervisor import GuestCredential, HypervisorClient, VmHandle, VmSpec
from .lock import RunLock
from .medium import ensure_medium
from .preflight import validate
from .results import CommandOutcome, ProvisionReport

log = logger

POLL_INTERVAL_S = 30
INSTALL_CEILING_S = 2400
READY_GRACE_S = 60
GUEST_SSH_PORT = 22


class VmState(enum.Enum):
    ABSENT = 'absent'
    CREATED = 'created'
    BOOTING = 'booting'
    INSTALL_IN_PROGRESS = 'install_in_progress'
    GUEST_REACHABLE = 'guest_reachable'
    CONFIGURED = 'configured'
    FAILED = 'failed'


_FORWARD_ORDER = [
    VmState.ABSENT,
    VmState.CREATED,
    VmState.BOOTING,
    VmState.INSTALL_IN_PROGRESS,
    VmState.GUEST_REACHABLE,
    VmState.CONFIGURED,
]


def _default_probe(port: int) -> bool:
    return host.ssh_banner_ready(port)


class VmLifecycleOrchestrator:
    """
    Drive one VM from nothing to a configured guest.

    The orchestrator only talks to the hypervisor through ``client`` and only
    keeps the :class:`VmHandle` it gets back. Steps run strictly in order;
    states move forward only, except :meth:`teardown` (back to ``ABSENT``)
    and any fatal error (``FAILED``).

    Args:
        client: hypervisor implementation.
        cfg: immutable provisioning config.
        clock: time source for the readiness wait; defaults to real time.
        probe: readiness probe called with the forwarded SSH port.
        poll_interval: seconds between readiness probes.
        ceiling: total seconds allowed for the install to finish.
        grace: one-time extra wait after the port first answers.
    """

    def __init__(
        self,
        client: HypervisorClient,
        cfg: ProvisioningConfig,
        *,
        clock: Clock | None = None,
        probe: Callable[[int], bool] | None = None,
        poll_interval: float = POLL_INTERVAL_S,
        ceiling: float = INSTALL_CEILING_S,
        grace: float = READY_GRACE_S,
    ):
        self.client = client
        self.cfg = cfg
        self.clock = clock or SystemClock()
        self.probe = probe or _default_probe
        self.poll_interval = poll_interval
        self.ceiling = ceiling
        self.grace = grace
        self.state = VmState.ABSENT
        self.handle: VmHandle | None = None

    def _transition(self, new: VmState) -> None:
        if new is not VmState.FAILED and new is not VmState.ABSENT:
            if self.state is VmState.FAILED or _FORWARD_ORDER.index(
                new
            ) <= _FORWARD_ORDER.index(self.state):
                raise StateTransitionError(
                    f'Cannot move VM {self.cfg.vm_name} from {self.state.value} to {new.value}'
                )
        log.debug('VM {} state {} -> {}', self.cfg.vm_name, self.state.value, new.value)
        self.state = new

    def _require(self, expected: VmState) -> VmHandle:
        if self.state is not expected or self.handle is None:
            raise StateTransitionError(
                f'VM {self.cfg.vm_name} must be {expected.value} (is {self.state.value})'
            )
        return self.handle

    def teardown(self) -> None:
        name = self.cfg.vm_name
        if name in self.client.list_vms():
            log.info('Destroying existing VM {}', name)
            self.client.destroy_vm(VmHandle(name))
        self.handle = None
        self._transition(VmState.ABSENT)

    def create(self, install_iso: Path, answer_file: Path | None = None) -> VmHandle:
        """Destroy any same-named VM, then create and fully configure hardware."""
        self.teardown()
        spec = VmSpec.from_config(self.cfg)
        log.info(
            'Creating VM {} (memory={} MiB, cpus={}, disk={} MiB)',
            spec.name,
            spec.memory_mb,
            spec.cpus,
            spec.disk_mb,
        )
        handle = self.client.create_vm(spec)
        self.handle = handle
        self.client.configure_vm(handle, spec)
        self.client.configure_network_adapter(handle, 1, 'nat')
        self.client.configure_port_forward(
            handle, 'ssh', self.cfg.ssh_port, GUEST_SSH_PORT
        )
        self.client.configure_network_adapter(
            handle, 2, 'hostonly', host_adapter=self.cfg.hostonly_adapter
        )
        self.client.attach_disk(handle, spec.disk_path, spec.disk_mb)
        self.client.attach_removable_media(handle, install_iso, port=0)
        if answer_file is not None:
            self.client.configure_unattended_install(
                handle, install_iso, answer_file, GuestCredential.user(self.cfg)
            )
        self._transition(VmState.CREATED)
        return handle

    def boot(self) -> None:
        handle = self._require(VmState.CREATED)
        self._transition(VmState.BOOTING)
        self.client.start(handle, headless=True)
        # The installer gives no signal of its own; only elapsed time passes.
        self._transition(VmState.INSTALL_IN_PROGRESS)

    def wait_until_reachable(self) -> None:
        """
        Poll the forwarded SSH port until two consecutive probes succeed.

        The first success is followed by a single ``grace`` wait because the
        port can open before the installer has finished. A failed probe is
        the normal waiting condition and resets the success streak. Raises
        :class:`InstallTimeoutError` once ``ceiling`` seconds have elapsed.
        """
        self._require(VmState.INSTALL_IN_PROGRESS)
        port = self.cfg.ssh_port
        start = self.clock.monotonic()
        grace_used = False
        streak = 0
        attempt = 0
        while True:
            elapsed = self.clock.monotonic() - start
            if elapsed >= self.ceiling:
                raise InstallTimeoutError(
                    f'Timed out after {int(elapsed)}s waiting for guest SSH '
                    f'(vm={self.cfg.vm_name}, port={port}, probes={attempt})'
                )
            attempt += 1
            if self.probe(port):
                streak += 1
                if streak >= 2:
                    log.info(
                        'Guest SSH ready on 127.0.0.1:{} after {}s',
                        port,
                        int(elapsed),
                    )
                    self._transition(VmState.GUEST_REACHABLE)
                    return
                if not grace_used:
                    grace_used = True
                    log.info(
                        'SSH port {} opened after {}s; install may still be '
                        'finalizing, waiting {}s',
                        port,
                        int(elapsed),
                        self.grace,
                    )
                    remaining = self.ceiling - (self.clock.monotonic() - start)
                    self.clock.sleep(min(self.grace, max(remaining, 0)))
                    continue
            else:
                streak = 0
                log.info(
                    'Waiting for guest install: vm={} elapsed={}s attempt={}',
                    self.cfg.vm_name,
                    int(elapsed),
                    attempt,
                )
            remaining = self.ceiling - (self.clock.monotonic() - start)
            self.clock.sleep(min(self.poll_interval, max(remaining, 0)))

    def configure(self, runner: GuestCommandRunner) -> list[CommandOutcome]:
        handle = self._require(VmState.GUEST_REACHABLE)
        root = GuestCredential.root(self.cfg)
        outcomes = runner.run_sequence(handle, root, network_commands(self.cfg))
        outcomes += runner.run_sequence(handle, root, package_commands(self.cfg))
        self._transition(VmState.CONFIGURED)
        return outcomes

    def provision(
        self,
        install_iso: Path,
        answer_file: Path | None = None,
        runner: GuestCommandRunner | None = None,
    ) -> list[CommandOutcome]:
        runner = runner or GuestCommandRunner(self.client)
        try:
            self.create(install_iso, answer_file)
            self.boot()
            self.wait_until_reachable()
            return self.configure(runner)
        except Exception:
            self._transition(VmState.FAILED)
            raise


def provision_vm(
    cfg: ProvisioningConfig,
    *,
    client: HypervisorClient,
    clock: Clock | None = None,
    probe: Callable[[int], bool] | None = None,
    skip_preflight: bool = False,
    lock_dir: Path | None = None,
) -> ProvisionReport:
    """Full run: preflight gate, lock, install medium and answer file, lifecycle."""
    report = ProvisionReport(vm_name=cfg.vm_name)
    if not skip_preflight:
        ok, report.checks = validate(cfg)
        if not ok:
            failed = [c.name for c in report.checks if not c.ok and not c.advisory]
            raise ValidationError(f'Preflight failed: {", ".join(failed)}')
    elif cfg.missing_fields():
        raise ValidationError(
            f'missing required values: {", ".join(cfg.missing_fields())}'
        )
    work = cfg.work_path
    with RunLock(cfg.vm_name, lock_dir=lock_dir):
        iso = ensure_medium(cfg.iso_url, work)
        answer = render_answer_file(cfg.template_path, answer_values(cfg), work)
        orch = VmLifecycleOrchestrator(client, cfg, clock=clock, probe=probe)
        try:
            report.outcomes = orch.provision(iso, answer)
        finally:
            report.state = orch.state.value
    return report
