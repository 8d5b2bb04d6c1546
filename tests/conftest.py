"""Shared fixtures and fakes for the untun test suite."""

import io
import queue
import signal
from unittest.mock import Mock

import pytest
import requests

from untun import cleanup


class FakePopen:
    """Stand-in for subprocess.Popen with a canned output stream."""

    def __init__(self, output=b'', pid=4242, returncode=None, stdout=None):
        self.stdout = stdout if stdout is not None else io.BytesIO(output)
        self.pid = pid
        self.returncode = returncode
        self.signals = []

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        return self.returncode

    def send_signal(self, sig):
        self.signals.append(sig)


class ChunkStream:
    """Blocking byte stream fed chunk by chunk from the test."""

    def __init__(self):
        self._chunks = queue.Queue()

    def push(self, data):
        self._chunks.put(data)

    def end(self):
        self._chunks.put(b'')

    def read1(self, size=-1):
        return self._chunks.get(timeout=5)


def make_response(status=200, body=b'', location=None):
    """Mock requests.Response for streamed downloads."""
    response = Mock()
    response.status_code = status
    response.headers = {'Location': location} if location else {}
    response.iter_content.return_value = [body]
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    else:
        response.raise_for_status.return_value = None
    return response


INTERRUPT = signal.CTRL_BREAK_EVENT if hasattr(signal, 'CTRL_BREAK_EVENT') else signal.SIGINT


@pytest.fixture(autouse=True)
def isolated_cleanup(monkeypatch):
    """Keep tests from installing real signal handlers."""
    monkeypatch.setattr(cleanup, '_installed', True)
    yield
    cleanup._callbacks.clear()


@pytest.fixture
def chunk_stream():
    return ChunkStream()
