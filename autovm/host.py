"""Host probes: hypervisor tool discovery, memory, disk, ports, and conflicts."""

from __future__ import annotations

import shutil
import socket
import sys
from pathlib import Path

import psutil
from loguru import logger

from .util import run_cmd, which

log = logger

VBOXMANAGE_WINDOWS_PATHS = [
    Path('C:/Program Files/Oracle/VirtualBox/VBoxManage.exe'),
    Path('C:/Program Files (x86)/Oracle/VirtualBox/VBoxManage.exe'),
]
VBOXMANAGE_POSIX_PATHS = [
    Path('/usr/bin/VBoxManage'),
    Path('/usr/local/bin/VBoxManage'),
]
KVM_MODULES = ('kvm_intel', 'kvm_amd')


def vboxmanage_candidates() -> list[Path]:
    if sys.platform.startswith('win'):
        return list(VBOXMANAGE_WINDOWS_PATHS)
    return list(VBOXMANAGE_POSIX_PATHS)


def find_vboxmanage() -> str | None:
    for cand in vboxmanage_candidates():
        if cand.exists():
            return str(cand)
    return which('VBoxManage')


def host_mem_total_mb() -> int | None:
    """Physical memory in MiB, or None when the platform will not say."""
    try:
        total = psutil.virtual_memory().total
    except (OSError, RuntimeError, NotImplementedError) as ex:
        log.debug('psutil could not read host memory: {!r}', ex)
    else:
        return int(total) // (1024**2)
    try:
        text = Path('/proc/meminfo').read_text(encoding='utf-8', errors='ignore')
    except OSError:
        return None
    for line in text.splitlines():
        if line.startswith('MemTotal:'):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                return int(parts[1]) // 1024
    return None


def host_free_disk_gb(path: Path) -> float:
    usage = shutil.disk_usage(str(path))
    return usage.free / (1024**3)


def port_in_use(port: int, host: str = '127.0.0.1') -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
    except OSError:
        return True
    finally:
        sock.close()
    return False


def tcp_reachable(host: str, port: int, *, timeout: float = 5.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def hyperv_enabled() -> bool:
    res = run_cmd(
        [
            'powershell',
            '-NoProfile',
            '-Command',
            '(Get-CimInstance Win32_ComputerSystem).HypervisorPresent',
        ],
        check=False,
        capture=True,
    )
    return res.code == 0 and res.stdout.strip().lower() == 'true'


def kvm_modules_loaded() -> list[str]:
    try:
        text = Path('/proc/modules').read_text(encoding='utf-8', errors='ignore')
    except OSError:
        return []
    loaded = {line.split()[0] for line in text.splitlines() if line.strip()}
    return [m for m in KVM_MODULES if m in loaded]


def conflicting_hypervisor() -> str:
    """Describe an enabled hypervisor that competes with VirtualBox, or ''."""
    if sys.platform.startswith('win'):
        return 'Hyper-V is enabled' if hyperv_enabled() else ''
    mods = kvm_modules_loaded()
    if mods:
        return f'KVM modules loaded: {", ".join(mods)}'
    return ''


def ssh_banner_ready(port: int, host: str = '127.0.0.1', *, timeout: float = 5.0) -> bool:
    """True when something on ``host:port`` speaks first with an SSH banner."""
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            sock.settimeout(timeout)
            banner = sock.recv(255)
    except OSError:
        return False
    return banner.startswith(b'SSH-')
