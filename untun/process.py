"""
cloudflared process supervision - spawn, output capture, interrupt.
"""

import codecs
import logging
import os
import signal
import subprocess
import sys
import threading
from concurrent.futures import Future
from typing import Dict, Iterable, List, Optional, Union

from . import config
from .exceptions import ProcessSpawnError
from .models import TunnelState
from .parser import LogParser

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 8192

OptionValue = Optional[Union[str, int]]


def build_args(options: Optional[Dict[str, OptionValue]] = None,
               extra_args: Optional[Iterable[str]] = None) -> List[str]:
    """
    Build the cloudflared argument vector for a tunnel.

    String and int values become "flag value" pairs, None becomes a bare
    flag. --url defaults to http://localhost:3000.
    """
    options = options or {}
    args = ['tunnel']
    for key, value in options.items():
        if value is None:
            args.append(key)
        elif isinstance(value, (str, int)) and not isinstance(value, bool):
            args.extend([key, str(value)])

    if not options.get('--url'):
        args.extend(['--url', config.DEFAULT_TARGET_URL])

    if extra_args:
        args.extend(extra_args)

    return args


class TunnelProcess:
    """
    A running cloudflared tunnel.

    Owns the child process and the single reader thread that feeds its
    merged stdout/stderr into a LogParser.
    """

    def __init__(self, process: subprocess.Popen, parser: LogParser, debug: bool = False):
        self.process = process
        self.parser = parser
        self.debug = debug
        self._stop_lock = threading.Lock()
        self._stopped = False
        self._reader = threading.Thread(
            target=self._read_output,
            name=f"cloudflared-reader-{process.pid}",
            daemon=True,
        )
        self._reader.start()

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll()

    @property
    def url(self) -> Future:
        return self.parser.url

    @property
    def connections(self) -> List[Future]:
        return self.parser.connections

    @property
    def state(self) -> TunnelState:
        return self.parser.state

    def is_running(self) -> bool:
        return self.process.poll() is None

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for cloudflared to exit; returns the exit code."""
        return self.process.wait(timeout=timeout)

    def stop(self) -> bool:
        """
        Send an interrupt to cloudflared without waiting for it to exit.

        Only the first call signals the process.

        Returns:
            True if a signal was sent by this call
        """
        with self._stop_lock:
            if self._stopped:
                return False
            self._stopped = True

        if self.process.poll() is not None:
            logger.info(f"Process already exited with code {self.process.returncode}")
            return False

        try:
            if os.name == 'nt':
                self.process.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                self.process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            # exited between poll() and the signal
            return False

        logger.info(f"Sent interrupt to cloudflared process {self.process.pid}")
        return True

    def _read_output(self):
        """Feed raw output chunks to the parser until the pipe closes."""
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        stream = self.process.stdout
        try:
            for chunk in iter(lambda: stream.read1(READ_CHUNK_SIZE), b''):
                if self.debug:
                    sys.stdout.buffer.write(chunk)
                    sys.stdout.buffer.flush()
                text = decoder.decode(chunk)
                if text:
                    self.parser.feed(text)
            tail = decoder.decode(b'', final=True)
            if tail:
                self.parser.feed(tail)
        except (OSError, ValueError):
            logger.warning("Lost cloudflared output stream", exc_info=True)
        finally:
            returncode = self.process.poll()
            if returncode is not None:
                logger.info(f"cloudflared exited with code {returncode}")
            self.parser.close(returncode)


def spawn_tunnel(options: Optional[Dict[str, OptionValue]] = None,
                 extra_args: Optional[Iterable[str]] = None,
                 binary_path: Optional[str] = None,
                 debug: Optional[bool] = None,
                 connection_slots: int = config.DEFAULT_CONNECTION_SLOTS) -> TunnelProcess:
    """
    Start cloudflared with the given tunnel options.

    Args:
        options: cloudflared flags, e.g. {'--url': 'http://localhost:8080'}
        extra_args: Arguments appended verbatim
        binary_path: cloudflared executable (defaults to the cached binary)
        debug: Mirror cloudflared output to our stdout (defaults to DEBUG env)
        connection_slots: Number of connection futures to create

    Returns:
        TunnelProcess with pending url/connection futures

    Raises:
        ProcessSpawnError: If the process cannot be launched
    """
    binary_path = binary_path or config.get_binary_path()
    if debug is None:
        debug = config.debug_enabled()

    args = [binary_path, *build_args(options, extra_args)]

    popen_kwargs = {}
    if os.name == 'nt':
        # CTRL_BREAK_EVENT only reaches processes in their own group
        popen_kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        # keep terminal Ctrl-C away from the child; we interrupt it ourselves
        popen_kwargs['start_new_session'] = True

    try:
        process = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,  # one merged stream for the parser
            **popen_kwargs,
        )
    except OSError as e:
        raise ProcessSpawnError(f"Failed to start cloudflared at {binary_path}: {e}") from e

    logger.info(f"Started cloudflared process (PID: {process.pid})")
    logger.debug(f"cloudflared args: {args[1:]}")

    parser = LogParser(connection_slots=connection_slots)
    return TunnelProcess(process, parser, debug=debug)
