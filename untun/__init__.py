"""
untun - expose a local server through a Cloudflare quick tunnel.

This package downloads the cloudflared agent, runs it, and turns its log
output into a structured tunnel state.
"""

__version__ = '0.1.0'

from .binary import BinaryManager, acquire_binary, install_cloudflared
from .exceptions import (
    UntunError,
    UnsupportedPlatformError,
    BinaryDownloadError,
    ExtractionError,
    ProcessSpawnError,
    ProcessExitedError,
    ConfigParseError,
    ServiceError,
    AlreadyInstalledError,
    NotInstalledError,
)
from .manager import Tunnel, start_tunnel
from .models import ConnectionSlot, TunnelOptions, TunnelState
from .parser import LogParser, parse_log
from .process import TunnelProcess, spawn_tunnel

__all__ = [
    'BinaryManager',
    'acquire_binary',
    'install_cloudflared',
    'Tunnel',
    'start_tunnel',
    'TunnelProcess',
    'spawn_tunnel',
    'LogParser',
    'parse_log',
    'ConnectionSlot',
    'TunnelOptions',
    'TunnelState',
    'UntunError',
    'UnsupportedPlatformError',
    'BinaryDownloadError',
    'ExtractionError',
    'ProcessSpawnError',
    'ProcessExitedError',
    'ConfigParseError',
    'ServiceError',
    'AlreadyInstalledError',
    'NotInstalledError',
]
