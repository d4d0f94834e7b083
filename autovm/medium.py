"""Install-medium provisioning: download the ISO once and reuse it afterwards."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import unquote, urlparse

from loguru import logger

from .errors import TransportError, ValidationError
from .util import CmdError, ensure_dir, run_cmd

log = logger


def medium_path(url: str, dest_dir: Path) -> Path:
    name = Path(unquote(urlparse(url).path)).name
    if not name:
        raise ValidationError(f'Cannot derive a file name from URL: {url!r}')
    return dest_dir / name


def ensure_medium(url: str, dest_dir: Path) -> Path:
    """
    Return the local copy of ``url`` under ``dest_dir``, downloading it if absent.

    The download goes to a ``.part`` file that is renamed into place only on
    success, so a present file is always complete and is returned as-is.
    Failures raise :class:`TransportError` and are not retried.
    """
    target = medium_path(url, dest_dir)
    if target.exists():
        log.info('Install medium cached: {}', target)
        return target
    ensure_dir(dest_dir)
    tmp = Path(str(target) + '.part')
    tmp.unlink(missing_ok=True)
    log.info('Downloading install medium to {} (showing progress)', target)
    try:
        run_cmd(
            ['curl', '-L', '--fail', '--progress-bar', '-o', str(tmp), url],
            check=True,
            capture=False,
        )
        os.replace(tmp, target)
    except (CmdError, OSError) as ex:
        tmp.unlink(missing_ok=True)
        raise TransportError(f'Failed to download {url}: {ex}') from ex
    log.info('Downloaded install medium: {}', target)
    return target
