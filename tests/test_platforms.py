"""Tests for platform detection and the release artifact table."""

import pytest

from untun.exceptions import UnsupportedPlatformError
from untun.platforms import ARTIFACTS, Platform, current_platform, is_archive, resolve_artifact


class TestResolveArtifact:
    """Test suite for OS/architecture to artifact mapping."""

    @pytest.mark.parametrize("system,machine,expected", [
        ("Linux", "x86_64", "cloudflared-linux-amd64"),
        ("Linux", "aarch64", "cloudflared-linux-arm64"),
        ("Linux", "armv7l", "cloudflared-linux-arm"),
        ("Linux", "i686", "cloudflared-linux-386"),
        ("Darwin", "x86_64", "cloudflared-darwin-amd64.tgz"),
        ("Darwin", "arm64", "cloudflared-darwin-arm64.tgz"),
        ("Windows", "AMD64", "cloudflared-windows-amd64.exe"),
        ("Windows", "x86", "cloudflared-windows-386.exe"),
    ])
    def test_supported_pairs(self, system, machine, expected):
        assert resolve_artifact(system, machine) == expected

    def test_every_table_entry_is_non_empty(self):
        for arches in ARTIFACTS.values():
            for artifact in arches.values():
                assert artifact.startswith("cloudflared-")

    @pytest.mark.parametrize("system,machine", [
        ("FreeBSD", "amd64"),
        ("SunOS", "x86_64"),
        ("Windows", "arm64"),
        ("Darwin", "i386"),
        ("Linux", "riscv64"),
    ])
    def test_unsupported_pairs_raise(self, system, machine):
        with pytest.raises(UnsupportedPlatformError) as excinfo:
            resolve_artifact(system, machine)
        assert system.lower() in str(excinfo.value)
        assert machine.lower() in str(excinfo.value)

    def test_defaults_to_running_platform(self, monkeypatch):
        monkeypatch.setattr("untun.platforms.platform.system", lambda: "Linux")
        monkeypatch.setattr("untun.platforms.platform.machine", lambda: "x86_64")
        assert resolve_artifact() == "cloudflared-linux-amd64"


class TestCurrentPlatform:

    def test_known_systems(self):
        assert current_platform("Darwin") is Platform.MACOS
        assert current_platform("linux") is Platform.LINUX
        assert current_platform("Windows") is Platform.WINDOWS

    def test_unknown_system_has_no_fallback(self):
        with pytest.raises(UnsupportedPlatformError):
            current_platform("AIX")


def test_is_archive():
    assert is_archive("cloudflared-darwin-amd64.tgz")
    assert not is_archive("cloudflared-linux-amd64")
