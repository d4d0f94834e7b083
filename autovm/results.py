"""Result dataclasses produced by guest command sequences and whole runs."""

from __future__ import annotations

from dataclasses import dataclass, field

from .preflight import CheckResult


@dataclass(frozen=True)
class CommandOutcome:
    command: str
    ok: bool
    output: str = ''
    error: str = ''


@dataclass
class ProvisionReport:
    vm_name: str
    state: str = 'absent'
    checks: list[CheckResult] = field(default_factory=list)
    outcomes: list[CommandOutcome] = field(default_factory=list)

    @property
    def failed_commands(self) -> list[str]:
        return [o.command for o in self.outcomes if not o.ok]

    def as_dict(self) -> dict[str, object]:
        return {
            'vm_name': self.vm_name,
            'state': self.state,
            'checks': [
                {'name': c.name, 'ok': c.ok, 'detail': c.detail}
                for c in self.checks
            ],
            'commands_ok': [o.command for o in self.outcomes if o.ok],
            'commands_failed': self.failed_commands,
        }
