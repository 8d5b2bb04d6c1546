"""
Process-wide registry of tunnel stop callbacks.

Every open tunnel registers its stop() here. The first termination signal
(or interpreter exit) runs all of them once, so no cloudflared child
outlives this process.
"""

import atexit
import logging
import signal
import threading
from typing import Callable, Dict

logger = logging.getLogger(__name__)

SIGNAL_NAMES = ('SIGINT', 'SIGTERM', 'SIGUSR1', 'SIGUSR2')

_lock = threading.RLock()
_callbacks: Dict[int, Callable[[], object]] = {}
_previous_handlers = {}
_installed = False
_next_token = 0


def register(callback: Callable[[], object]) -> int:
    """
    Register *callback* to run on termination.

    Returns:
        Token for unregister()
    """
    global _next_token
    with _lock:
        _next_token += 1
        token = _next_token
        _callbacks[token] = callback
    _install_handlers()
    return token


def unregister(token: int):
    with _lock:
        _callbacks.pop(token, None)


def registered() -> int:
    """Number of callbacks currently registered."""
    with _lock:
        return len(_callbacks)


def run_callbacks():
    """Run and drop every registered callback; errors are logged, not raised."""
    with _lock:
        callbacks = list(_callbacks.values())
        _callbacks.clear()

    for callback in callbacks:
        try:
            callback()
        except Exception:
            logger.exception("Tunnel cleanup callback failed")


def _handle_signal(signum, frame):
    logger.info(f"Received {signal.Signals(signum).name}, stopping tunnels")
    run_callbacks()

    previous = _previous_handlers.get(signum)
    if callable(previous):
        previous(signum, frame)
    elif signum == signal.SIGINT:
        raise KeyboardInterrupt
    elif previous != signal.SIG_IGN:
        raise SystemExit(128 + signum)


def _install_handlers():
    global _installed
    with _lock:
        if _installed:
            return
        _installed = True

    atexit.register(run_callbacks)

    # signal.signal() only works from the main thread; atexit still covers us
    if threading.current_thread() is not threading.main_thread():
        logger.debug("Not in main thread, relying on atexit for tunnel cleanup")
        return

    for name in SIGNAL_NAMES:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            _previous_handlers[signum] = signal.signal(signum, _handle_signal)
        except (OSError, ValueError):
            logger.debug(f"Could not install handler for {name}")
