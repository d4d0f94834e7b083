"""Tests for answer file rendering."""

from __future__ import annotations

from pathlib import Path

import pytest

from autovm.answer import (
    answer_values,
    render_answer_file,
    render_text,
)
from autovm.config import ProvisioningConfig
from autovm.errors import ValidationError


def test_render_text_replaces_all_tokens() -> None:
    template = (
        'user USERNAME\n'
        'pw USERPASSWORD again USERPASSWORD\n'
        'root ROOTPASSWORD\n'
    )
    out = render_text(
        template,
        {'USERNAME': 'alice', 'USERPASSWORD': 's3cret', 'ROOTPASSWORD': 'r00t'},
    )
    assert out == 'user alice\npw s3cret again s3cret\nroot r00t\n'


def test_render_text_does_not_escape() -> None:
    out = render_text('<p>USERPASSWORD</p>', {'USERPASSWORD': 'a<&>"b'})
    assert out == '<p>a<&>"b</p>'


def test_answer_values_from_config() -> None:
    cfg = ProvisioningConfig(user='u', password='p', root_password='r')
    assert answer_values(cfg) == {
        'USERNAME': 'u',
        'USERPASSWORD': 'p',
        'ROOTPASSWORD': 'r',
    }


def test_render_answer_file_writes_new_file(tmp_path: Path) -> None:
    template = tmp_path / 'preseed.cfg'
    template.write_text('passwd/username string USERNAME\n', encoding='utf-8')
    out = render_answer_file(template, {'USERNAME': 'bob'}, tmp_path)
    assert out != template
    assert out.name == 'preseed.cfg'
    assert out == tmp_path / 'answer' / 'preseed.cfg'
    assert out.read_text(encoding='utf-8') == 'passwd/username string bob\n'
    assert 'USERNAME' in template.read_text(encoding='utf-8')


def test_render_answer_file_missing_template(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match='template not found'):
        render_answer_file(tmp_path / 'nope.cfg', {}, tmp_path)

