"""Plain-text rendering of preflight results and provisioning reports."""

from __future__ import annotations

from typing import Sequence

from .preflight import CheckResult, verdict
from .results import ProvisionReport


def status_line(ok: bool | None, label: str, detail: str = '') -> str:
    icon = '✅' if ok is True else ('⚠️' if ok is None else '❌')
    suffix = f' - {detail}' if detail else ''
    return f'{icon} {label}{suffix}'


def render_checks(results: Sequence[CheckResult]) -> str:
    lines = ['Preflight']
    for res in results:
        ok: bool | None = res.ok
        if res.advisory and not res.ok:
            ok = None
        lines.append('  ' + status_line(ok, res.name, res.detail))
    lines.append(f'Verdict: {"PASS" if verdict(results) else "FAIL"}')
    return '\n'.join(lines)


def render_report(report: ProvisionReport) -> str:
    lines = [f'VM {report.vm_name}: {report.state}']
    for outcome in report.outcomes:
        detail = '' if outcome.ok else clip(outcome.error, max_lines=3)
        lines.append('  ' + status_line(outcome.ok, outcome.command, detail))
    return '\n'.join(lines)


def clip(text: str, *, max_lines: int = 60) -> str:
    lines = (text or '').strip().splitlines()
    if len(lines) <= max_lines:
        return '\n'.join(lines)
    keep: list[str] = list(lines[:max_lines])
    keep.append(f'... ({len(lines) - max_lines} more lines)')
    return '\n'.join(keep)
