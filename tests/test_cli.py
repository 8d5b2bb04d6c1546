"""Tests for the untun command line."""

import json
from unittest.mock import MagicMock

from click.testing import CliRunner

from untun import cli
from untun.exceptions import BinaryDownloadError
from untun.models import TunnelState


class TestTunnelCommand:

    def setup_method(self):
        self.runner = CliRunner()

    def test_not_started(self, monkeypatch):
        monkeypatch.setattr(cli, "start_tunnel", lambda options: None)
        result = self.runner.invoke(cli.cli, ["tunnel"])
        assert result.exit_code == 1
        assert "Tunnel not started." in result.output

    def test_ready(self, monkeypatch):
        seen = {}
        handle = MagicMock()
        handle.__enter__.return_value = handle
        handle.__exit__.return_value = False
        handle.get_url.return_value = "https://abc123.trycloudflare.com"
        handle.wait.return_value = 0

        def fake_start(options):
            seen['options'] = options
            return handle

        monkeypatch.setattr(cli, "start_tunnel", fake_start)
        result = self.runner.invoke(
            cli.cli, ["tunnel", "--hostname", "example.com", "--port", "443", "--protocol", "https"],
        )

        assert result.exit_code == 0
        assert "Tunnel ready at https://abc123.trycloudflare.com" in result.output
        assert seen['options'].target_url() == "https://example.com:443"
        handle.__exit__.assert_called_once()

    def test_download_error_shows_guidance(self, monkeypatch):
        def failing_start(options):
            raise BinaryDownloadError("Failed to download cloudflared binary: timeout")

        monkeypatch.setattr(cli, "start_tunnel", failing_start)
        result = self.runner.invoke(cli.cli, ["tunnel", "http://localhost:8080"])

        assert result.exit_code == 1
        assert "Check your internet connection" in result.output


def test_service_status(monkeypatch):
    state = TunnelState(tunnel_id="0f1e2d3c", metrics="127.0.0.1:20241/metrics")
    monkeypatch.setattr(cli.service, "current", lambda: state)
    monkeypatch.setattr(cli.service, "running", lambda: [42])

    result = CliRunner().invoke(cli.cli, ["service", "status"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["tunnel_id"] == "0f1e2d3c"
    assert data["pids"] == [42]
