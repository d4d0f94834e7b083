"""Flat KEY=VALUE provisioning config: parsing, defaults, and the immutable record."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from loguru import logger

from .errors import ValidationError
from .util import expand

log = logger

DEFAULT_ISO_URL = (
    'http://cdimage.debian.org/debian-cd/current/amd64/iso-cd/'
    'debian-12.7.0-amd64-netinst.iso'
)
DEFAULT_PACKAGES = ('openssh-server', 'curl', 'ca-certificates', 'sudo')

# Maps env-file keys to ProvisioningConfig fields.
KEY_FIELDS = {
    'VM_NAME': 'vm_name',
    'VM_MEMORY': 'memory_mb',
    'VM_DISK_SIZE': 'disk_mb',
    'VM_CPUS': 'cpus',
    'VM_STATIC_IP': 'static_ip',
    'VM_SSH_PORT': 'ssh_port',
    'VM_USER': 'user',
    'VM_PASSWORD': 'password',
    'VM_ROOT_PASSWORD': 'root_password',
    'WORK_DIR': 'work_dir',
    'ISO_URL': 'iso_url',
    'VM_NETMASK': 'netmask',
    'VM_GATEWAY': 'gateway',
    'VM_HOSTONLY_ADAPTER': 'hostonly_adapter',
    'VM_OS_TYPE': 'os_type',
    'GUEST_PACKAGES': 'packages',
    'INSTALL_DOCKER': 'install_docker',
    'ANSWER_TEMPLATE': 'answer_template',
    'VERBOSITY': 'verbosity',
}
INT_FIELDS = {'memory_mb', 'disk_mb', 'cpus', 'ssh_port', 'verbosity'}
REQUIRED_FIELDS = ('vm_name', 'user', 'password', 'static_ip')


@dataclass(frozen=True)
class ProvisioningConfig:
    vm_name: str = ''
    memory_mb: int = 4096
    disk_mb: int = 20480
    cpus: int = 2
    static_ip: str = ''
    ssh_port: int = 2222
    user: str = ''
    password: str = ''
    root_password: str = ''
    work_dir: str = '~/autovm'
    iso_url: str = DEFAULT_ISO_URL
    netmask: str = '255.255.255.0'
    gateway: str = ''
    hostonly_adapter: str = 'vboxnet0'
    os_type: str = 'Debian_64'
    packages: tuple[str, ...] = field(default_factory=lambda: DEFAULT_PACKAGES)
    install_docker: bool = False
    answer_template: str = ''
    verbosity: int = 1

    @property
    def work_path(self) -> Path:
        return Path(expand(self.work_dir))

    @property
    def template_path(self) -> Path:
        if self.answer_template:
            return Path(expand(self.answer_template))
        return self.work_path / 'preseed.cfg'

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


def parse_env_text(text: str) -> dict[str, str]:
    """
    Parse the flat ``KEY=VALUE`` config format.

    Blank lines and lines starting with ``#`` are skipped, the first ``=``
    splits key from value, and surrounding whitespace (plus one pair of
    matching quotes around the value) is stripped. Lines without ``=`` are
    ignored with a warning.

    Example:
        >>> parse_env_text('VM_NAME=Foo\\n# comment\\nVM_MEMORY = 2048\\n')
        {'VM_NAME': 'Foo', 'VM_MEMORY': '2048'}
    """
    values: dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue
        if '=' not in line:
            log.warning('Ignoring config line {} without "=": {!r}', lineno, line)
            continue
        key, value = line.split('=', 1)
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
            value = value[1:-1]
        values[key] = value
    return values


def _parse_bool(key: str, raw: str) -> bool:
    low = raw.strip().lower()
    if low in {'1', 'true', 'yes', 'on'}:
        return True
    if low in {'0', 'false', 'no', 'off', ''}:
        return False
    raise ValidationError(f'{key} must be a boolean (got {raw!r})')


def from_mapping(values: Mapping[str, str]) -> ProvisioningConfig:
    """Build a config from parsed key/value pairs, applying defaults."""
    kwargs: dict[str, object] = {}
    for key, raw in values.items():
        name = KEY_FIELDS.get(key)
        if name is None:
            log.debug('Ignoring unknown config key {}', key)
            continue
        if name in INT_FIELDS:
            try:
                kwargs[name] = int(raw)
            except ValueError:
                raise ValidationError(
                    f'{key} must be an integer (got {raw!r})'
                ) from None
            if kwargs[name] < 0:
                raise ValidationError(f'{key} must not be negative (got {raw!r})')
        elif name == 'install_docker':
            kwargs[name] = _parse_bool(key, raw)
        elif name == 'packages':
            kwargs[name] = tuple(raw.replace(',', ' ').split())
        else:
            kwargs[name] = raw
    cfg = ProvisioningConfig(**kwargs)
    if not 1 <= cfg.ssh_port <= 65535:
        raise ValidationError(f'VM_SSH_PORT out of range: {cfg.ssh_port}')
    return cfg


def load(path: Path) -> ProvisioningConfig:
    if not path.exists():
        raise ValidationError(f'Config not found: {path}')
    values = parse_env_text(path.read_text(encoding='utf-8'))
    log.debug('Loaded {} config keys from {}', len(values), path)
    return from_mapping(values)


def dump_env(cfg: ProvisioningConfig) -> str:
    lines: list[str] = []
    for key, name in KEY_FIELDS.items():
        val = getattr(cfg, name)
        if isinstance(val, bool):
            val = 'true' if val else 'false'
        elif isinstance(val, tuple):
            val = ' '.join(val)
        lines.append(f'{key}={val}')
    return '\n'.join(lines) + '\n'
