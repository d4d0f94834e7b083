"""Unattended-install answer file rendering."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from loguru import logger

from .config import ProvisioningConfig
from .errors import ValidationError
from .util import ensure_dir

log = logger

# Replacement order matters: values are inserted verbatim and never escaped.
TOKENS = ('USERNAME', 'USERPASSWORD', 'ROOTPASSWORD')


def answer_values(cfg: ProvisioningConfig) -> dict[str, str]:
    return {
        'USERNAME': cfg.user,
        'USERPASSWORD': cfg.password,
        'ROOTPASSWORD': cfg.root_password,
    }


def render_text(template: str, values: Mapping[str, str]) -> str:
    """
    Substitute the answer-file tokens literally.

    Values containing a token or characters meaningful to the template
    format produce undefined output.

    Example:
        >>> render_text('u=USERNAME p=USERPASSWORD', {'USERNAME': 'bob', 'USERPASSWORD': 'pw'})
        'u=bob p=pw'
    """
    text = template
    for token in TOKENS:
        if token in values:
            text = text.replace(token, values[token])
    return text


def render_answer_file(
    template: Path, values: Mapping[str, str], work_dir: Path
) -> Path:
    if not template.exists():
        raise ValidationError(f'Answer file template not found: {template}')
    # Rendered copies live in their own folder so a template kept in the
    # working directory is never overwritten.
    out_dir = work_dir / 'answer'
    ensure_dir(out_dir)
    out = out_dir / template.name
    text = render_text(template.read_text(encoding='utf-8'), values)
    out.write_text(text, encoding='utf-8')
    log.info('Answer file rendered: {}', out)
    return out

