"""
cloudflared as a persistent OS service (launchd on macOS, systemd/sysv on Linux).

Thin wrappers over `cloudflared service install|uninstall` plus readers for
the service's log files, which are run through the same LogParser used for
live tunnels.
"""

import logging
import os
import subprocess
from typing import List, Optional

import psutil

from . import config
from .exceptions import (
    AlreadyInstalledError,
    NotInstalledError,
    ServiceError,
    UnsupportedPlatformError,
)
from .models import TunnelState
from .parser import parse_log
from .platforms import Platform, current_platform

logger = logging.getLogger(__name__)

# launchd label, macOS
IDENTIFIER = 'com.cloudflare.cloudflared'

# systemd unit, linux
SERVICE_NAME = 'cloudflared.service'

SYSTEMD_RUN_DIR = '/run/systemd/system'

LINUX_SERVICE_PATH = {
    'SYSTEMD': f'/etc/systemd/system/{SERVICE_NAME}',
    'SERVICE': '/etc/init.d/cloudflared',
    'SERVICE_OUT': '/var/log/cloudflared.log',
    'SERVICE_ERR': '/var/log/cloudflared.err',
}


def is_root() -> bool:
    return hasattr(os, 'getuid') and os.getuid() == 0


def is_systemd() -> bool:
    return current_platform() == Platform.LINUX and os.path.exists(SYSTEMD_RUN_DIR)


def macos_service_path() -> dict:
    """Plist and log paths; system-wide for root, per-user otherwise."""
    if is_root():
        return {
            'PLIST': f'/Library/LaunchDaemons/{IDENTIFIER}.plist',
            'OUT': f'/Library/Logs/{IDENTIFIER}.out.log',
            'ERR': f'/Library/Logs/{IDENTIFIER}.err.log',
        }
    home = os.path.expanduser('~')
    return {
        'PLIST': f'{home}/Library/LaunchAgents/{IDENTIFIER}.plist',
        'OUT': f'{home}/Library/Logs/{IDENTIFIER}.out.log',
        'ERR': f'{home}/Library/Logs/{IDENTIFIER}.err.log',
    }


def _require_service_platform() -> Platform:
    kind = current_platform()
    if kind not in (Platform.MACOS, Platform.LINUX):
        raise UnsupportedPlatformError(kind.value)
    return kind


def _run_cloudflared(args: List[str], binary_path: Optional[str] = None) -> subprocess.CompletedProcess:
    binary_path = binary_path or config.get_binary_path()
    try:
        result = subprocess.run(
            [binary_path, *args],
            capture_output=True,
            text=True,
            timeout=60,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise ServiceError(f"cloudflared {' '.join(args)} failed: {e}") from e

    if result.returncode != 0:
        error_msg = result.stderr.strip() if result.stderr else "Unknown error"
        raise ServiceError(f"{' '.join(args)} failed: {error_msg}")
    return result


def exists() -> bool:
    """Check if the cloudflared service is installed."""
    kind = _require_service_platform()
    if kind == Platform.MACOS:
        return os.path.exists(macos_service_path()['PLIST'])
    if is_systemd():
        return os.path.exists(LINUX_SERVICE_PATH['SYSTEMD'])
    return os.path.exists(LINUX_SERVICE_PATH['SERVICE'])


def install(token: Optional[str] = None, binary_path: Optional[str] = None):
    """
    Install the cloudflared service.

    Args:
        token: Tunnel service token from the Cloudflare dashboard

    Raises:
        AlreadyInstalledError: If the service is already installed
        ServiceError: If cloudflared reports a failure
    """
    _require_service_platform()
    if exists():
        raise AlreadyInstalledError()

    args = ['service', 'install']
    if token:
        args.append(token)

    _run_cloudflared(args, binary_path)
    logger.info("Installed cloudflared service")


def uninstall(binary_path: Optional[str] = None):
    """
    Uninstall the cloudflared service and remove its log files.

    Raises:
        NotInstalledError: If the service is not installed
        ServiceError: If cloudflared reports a failure
    """
    kind = _require_service_platform()
    if not exists():
        raise NotInstalledError()

    _run_cloudflared(['service', 'uninstall'], binary_path)

    if kind == Platform.MACOS:
        paths = macos_service_path()
        _remove_logs(paths['OUT'], paths['ERR'])
    elif not is_systemd():
        _remove_logs(LINUX_SERVICE_PATH['SERVICE_OUT'], LINUX_SERVICE_PATH['SERVICE_ERR'])

    logger.info("Uninstalled cloudflared service")


def _remove_logs(*paths):
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def _read(path: str) -> str:
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return f.read()


def log() -> str:
    """Return the service's stdout log (usually empty). macOS and sysv Linux only."""
    if not exists():
        raise NotInstalledError()
    if current_platform() == Platform.MACOS:
        return _read(macos_service_path()['OUT'])
    if not is_systemd():
        return _read(LINUX_SERVICE_PATH['SERVICE_OUT'])
    raise UnsupportedPlatformError('linux (systemd)')


def err() -> str:
    """Return the service's stderr log, where cloudflared writes everything."""
    if not exists():
        raise NotInstalledError()
    if current_platform() == Platform.MACOS:
        return _read(macos_service_path()['ERR'])
    if not is_systemd():
        return _read(LINUX_SERVICE_PATH['SERVICE_ERR'])
    raise UnsupportedPlatformError('linux (systemd)')


def journal(n: int = 300) -> str:
    """Return the last *n* journal entries of the systemd unit."""
    if not is_systemd():
        raise UnsupportedPlatformError(current_platform().value)
    result = subprocess.run(
        ['journalctl', '-u', SERVICE_NAME, '-o', 'cat', '-n', str(n)],
        capture_output=True,
        text=True,
        timeout=30,
    )
    return result.stdout


def current() -> TunnelState:
    """
    Describe the running service from its log.

    Returns:
        TunnelState with tunnel/connector ids, connections, metrics and config
    """
    _require_service_platform()
    if not exists():
        raise NotInstalledError()

    output = journal() if is_systemd() else err()
    return parse_log(output)


def clean():
    """Remove leftover log files after uninstall. macOS only."""
    if current_platform() != Platform.MACOS:
        raise UnsupportedPlatformError(current_platform().value)
    if exists():
        raise AlreadyInstalledError()

    paths = macos_service_path()
    _remove_logs(paths['OUT'], paths['ERR'])


def running() -> List[int]:
    """PIDs of cloudflared processes currently running on this machine."""
    pids = []
    for proc in psutil.process_iter(['name', 'pid']):
        try:
            if proc.info['name'] and 'cloudflared' in proc.info['name'].lower():
                pids.append(proc.info['pid'])
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return pids
