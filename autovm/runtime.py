"""Runtime helpers for constructing SSH command arguments."""

from __future__ import annotations

LOCALHOST = '127.0.0.1'


def ssh_base_args(
    port: int,
    *,
    strict_host_key_checking: str = 'no',
    connect_timeout: int | None = None,
    batch_mode: bool = False,
    user_known_hosts_file: str | None = None,
) -> list[str]:
    args: list[str] = ['-p', str(port)]
    if batch_mode:
        args.extend(['-o', 'BatchMode=yes'])
    if connect_timeout is not None:
        args.extend(['-o', f'ConnectTimeout={connect_timeout}'])
    args.extend(['-o', f'StrictHostKeyChecking={strict_host_key_checking}'])
    if user_known_hosts_file:
        args.extend(['-o', f'UserKnownHostsFile={user_known_hosts_file}'])
    return args
