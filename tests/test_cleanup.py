"""Tests for the process-wide tunnel cleanup registry."""

import signal
from unittest.mock import Mock

import pytest

from untun import cleanup


class TestRegistry:

    def test_run_callbacks_runs_each_once(self):
        first, second = Mock(), Mock()
        cleanup.register(first)
        cleanup.register(second)

        cleanup.run_callbacks()
        cleanup.run_callbacks()

        first.assert_called_once()
        second.assert_called_once()
        assert cleanup.registered() == 0

    def test_unregister(self):
        callback = Mock()
        token = cleanup.register(callback)
        cleanup.unregister(token)
        cleanup.unregister(token)

        cleanup.run_callbacks()

        callback.assert_not_called()

    def test_failing_callback_does_not_stop_others(self):
        broken = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        cleanup.register(broken)
        cleanup.register(healthy)

        cleanup.run_callbacks()

        healthy.assert_called_once()


class TestSignalHandler:

    def test_chains_to_previous_handler(self, monkeypatch):
        previous = Mock()
        monkeypatch.setitem(cleanup._previous_handlers, signal.SIGTERM, previous)
        callback = Mock()
        cleanup.register(callback)

        cleanup._handle_signal(signal.SIGTERM, None)

        callback.assert_called_once()
        previous.assert_called_once_with(signal.SIGTERM, None)

    def test_sigint_without_previous_raises_keyboard_interrupt(self, monkeypatch):
        monkeypatch.setitem(cleanup._previous_handlers, signal.SIGINT, signal.SIG_DFL)
        callback = Mock()
        cleanup.register(callback)

        with pytest.raises(KeyboardInterrupt):
            cleanup._handle_signal(signal.SIGINT, None)

        callback.assert_called_once()

    def test_sigterm_default_exits(self, monkeypatch):
        monkeypatch.setitem(cleanup._previous_handlers, signal.SIGTERM, signal.SIG_DFL)

        with pytest.raises(SystemExit) as excinfo:
            cleanup._handle_signal(signal.SIGTERM, None)

        assert excinfo.value.code == 128 + signal.SIGTERM

    def test_signal_while_registry_is_locked(self, monkeypatch):
        previous = Mock()
        monkeypatch.setitem(cleanup._previous_handlers, signal.SIGTERM, previous)
        callback = Mock()
        cleanup.register(callback)

        # a signal delivered in the middle of register() or unregister()
        with cleanup._lock:
            cleanup._handle_signal(signal.SIGTERM, None)

        callback.assert_called_once()
        previous.assert_called_once_with(signal.SIGTERM, None)
