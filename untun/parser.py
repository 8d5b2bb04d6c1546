"""
Turns cloudflared's free-text output into a TunnelState.

Every recognizer runs independently against each buffer handed to
LogParser.feed(); a buffer may hold zero, one or many log lines.
"""

import json
import logging
import re
from concurrent.futures import Future, InvalidStateError
from typing import List, Optional

from . import config
from .exceptions import ConfigParseError, ProcessExitedError
from .models import ConnectionSlot, TunnelState

logger = logging.getLogger(__name__)

URL_RE = re.compile(r'\|\s+(https?://\S+)')
CONN_RE = re.compile(r'connection[ =](?!connIndex)([\da-z-]+)', re.IGNORECASE)
IP_RE = re.compile(r'ip=([\d.]+)')
LOCATION_RE = re.compile(r'location=([A-Za-z\d]+)')
INDEX_RE = re.compile(r'connIndex=(\d+)')
DISCONNECT_RE = re.compile(r'unregistered tunnel connection connindex=(\d+)', re.IGNORECASE)
CONFIG_RE = re.compile(r'config="(.+[^\\])"')
METRICS_RE = re.compile(r'metrics server on ([\d.:]+/metrics)')
TUNNEL_ID_RE = re.compile(r'tunnelid=([\da-z-]+)', re.IGNORECASE)
CONNECTOR_ID_RE = re.compile(r'connector id: ([\da-z-]+)', re.IGNORECASE)

_ESCAPE_RE = re.compile(r'\\(.)')

# an unterminated line longer than this is scanned as-is
MAX_PENDING = 64 * 1024


def _settle(future: Future, value) -> bool:
    """Resolve *future* unless it already is; returns True if this call resolved it."""
    if future.done():
        return False
    try:
        future.set_result(value)
    except InvalidStateError:
        return False
    return True


def parse_config(raw: str) -> dict:
    """
    Parse the value captured from config="...".

    Raises:
        ConfigParseError: If the unescaped text is not a JSON object
    """
    text = _ESCAPE_RE.sub(r'\1', raw)
    try:
        value = json.loads(text)
    except ValueError as e:
        raise ConfigParseError(f"invalid config: {e}") from e
    if not isinstance(value, dict):
        raise ConfigParseError(f"config is not an object: {text[:80]}")
    return value


class LogParser:
    """
    Incremental reducer over cloudflared output.

    Owns the TunnelState and the write-once futures for the tunnel URL
    and each connection slot. Only one thread may call feed().
    """

    def __init__(self, connection_slots: int = config.DEFAULT_CONNECTION_SLOTS,
                 state: Optional[TunnelState] = None):
        self.state = state or TunnelState()
        self.url: Future = Future()
        self.connections: List[Future] = [Future() for _ in range(connection_slots)]
        self.closed = False
        self._pending = ''

    def feed(self, text: str):
        """
        Apply every recognizer to one buffer of output, a line at a time.

        An incomplete trailing line is held back and completed by the next
        buffer, so a line split across two reads is still recognized.
        """
        lines = (self._pending + text).split('\n')
        self._pending = lines.pop()
        for line in lines:
            self._scan(line)
        if len(self._pending) > MAX_PENDING:
            self.flush()

    def flush(self):
        """Scan whatever partial line is still held back."""
        line, self._pending = self._pending, ''
        if line:
            self._scan(line)

    def _scan(self, line: str):
        self._match_url(line)
        self._match_connection(line)
        self._match_disconnect(line)
        self._match_config(line)
        self._match_metrics(line)
        self._match_ids(line)

    def close(self, returncode=None):
        """
        Mark the end of input.

        Futures still pending are failed with ProcessExitedError; resolved
        ones keep their value.
        """
        if self.closed:
            return
        self.flush()
        self.closed = True
        for future in [self.url, *self.connections]:
            if not future.done():
                try:
                    future.set_exception(ProcessExitedError(returncode))
                except InvalidStateError:
                    pass

    def _match_url(self, text: str):
        for match in URL_RE.finditer(text):
            url = match.group(1)
            if _settle(self.url, url):
                self.state.url = url
                logger.info(f"Tunnel URL ready: {url}")

    def _match_connection(self, text: str):
        conn = CONN_RE.search(text)
        ip = IP_RE.search(text)
        location = LOCATION_RE.search(text)
        index = INDEX_RE.search(text)
        if not (conn and ip and location and index):
            return

        idx = int(index.group(1))
        slot = ConnectionSlot(id=conn.group(1), ip=ip.group(1), location=location.group(1))
        self.state.connections[idx] = slot
        logger.debug(f"Connection {idx} registered: {slot.id} {slot.ip} {slot.location}")

        if idx < len(self.connections):
            _settle(self.connections[idx], slot)

    def _match_disconnect(self, text: str):
        match = DISCONNECT_RE.search(text)
        if not match:
            return
        idx = int(match.group(1))
        if idx in self.state.connections:
            self.state.connections[idx] = ConnectionSlot()
            logger.debug(f"Connection {idx} unregistered")

    def _match_config(self, text: str):
        match = CONFIG_RE.search(text)
        if not match:
            return
        try:
            self.state.config = parse_config(match.group(1))
        except ConfigParseError:
            # best-effort: keep the previous config
            if config.debug_enabled():
                logger.debug("log parsing failed", exc_info=True)

    def _match_metrics(self, text: str):
        match = METRICS_RE.search(text)
        if match:
            self.state.metrics = match.group(1)

    def _match_ids(self, text: str):
        match = TUNNEL_ID_RE.search(text)
        if match:
            self.state.tunnel_id = match.group(1)
        match = CONNECTOR_ID_RE.search(text)
        if match:
            self.state.connector_id = match.group(1)


def parse_log(text: str) -> TunnelState:
    """Rebuild a TunnelState from a persisted cloudflared log, line by line."""
    parser = LogParser(connection_slots=0)
    parser.feed(text)
    parser.flush()
    return parser.state
