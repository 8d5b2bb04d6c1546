"""
Tunnel lifecycle - binary check, notice gate, spawn, cleanup.
"""

import logging
import sys
from typing import Callable, Iterable, List, Optional

import click

from . import cleanup, config
from .binary import BinaryManager
from .models import TunnelOptions, TunnelState
from .process import TunnelProcess, spawn_tunnel

logger = logging.getLogger(__name__)


def prompt_notice() -> bool:
    """Ask on the terminal whether the user accepts the Cloudflare notice."""
    if not sys.stdin.isatty():
        return False
    return click.confirm(
        "Do you agree with the above terms and wish to install the binary from GitHub?",
        default=False,
    )


class Tunnel:
    """Handle on a started tunnel."""

    def __init__(self, process: TunnelProcess):
        self.process = process
        self._cleanup_token = cleanup.register(self.process.stop)
        self._closed = False

    def get_url(self, timeout: Optional[float] = None) -> str:
        """
        Wait for the public URL.

        Raises:
            concurrent.futures.TimeoutError: If timeout elapses first
            ProcessExitedError: If cloudflared exits before printing a URL
        """
        return self.process.url.result(timeout=timeout)

    @property
    def connections(self) -> List:
        return self.process.connections

    @property
    def state(self) -> TunnelState:
        return self.process.state

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        return self.process.wait(timeout=timeout)

    def close(self):
        """Interrupt cloudflared. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        cleanup.unregister(self._cleanup_token)
        self.process.stop()

    def __enter__(self) -> 'Tunnel':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def start_tunnel(options: Optional[TunnelOptions] = None,
                 extra_args: Optional[Iterable[str]] = None,
                 binary_manager: Optional[BinaryManager] = None,
                 confirm: Callable[[], bool] = prompt_notice,
                 **kwargs) -> Optional[Tunnel]:
    """
    Start a cloudflared quick tunnel to a local server.

    Args:
        options: TunnelOptions; keyword arguments build one when omitted
        extra_args: Extra cloudflared arguments appended verbatim
        binary_manager: Binary cache to use (defaults to CLOUDFLARED_VERSION)
        confirm: Called when the notice must be accepted interactively

    Returns:
        Tunnel on success, None if the Cloudflare notice was declined

    Raises:
        UnsupportedPlatformError, BinaryDownloadError, ExtractionError:
            If cloudflared has to be installed and that fails
        ProcessSpawnError: If cloudflared cannot be started
    """
    if options is None:
        options = TunnelOptions(**kwargs)
    elif isinstance(options, dict):
        options = TunnelOptions.from_dict(options)
    binary_manager = binary_manager or BinaryManager()

    url = options.target_url()
    logger.info(f"Starting cloudflared tunnel to {url}")

    if not binary_manager.is_installed():
        logger.info(config.CLOUDFLARED_NOTICE)
        can_install = options.accept_notice or config.notice_accepted() or confirm()
        if not can_install:
            logger.warning("Skipping tunnel setup.")
            return None
        binary_manager.ensure_binary()

    tunnel_options = {'--url': url}
    if not options.verify_tls:
        tunnel_options['--no-tls-verify'] = None

    process = spawn_tunnel(
        tunnel_options,
        extra_args=extra_args,
        binary_path=binary_manager.get_binary_path(),
    )
    return Tunnel(process)
