"""
Platform detection and the cloudflared release artifact table.
"""

import enum
import platform
from typing import Optional

from .exceptions import UnsupportedPlatformError


class Platform(enum.Enum):
    """Operating systems cloudflared ships builds for."""

    MACOS = 'darwin'
    LINUX = 'linux'
    WINDOWS = 'windows'


# map OS names reported by platform.system()
_OS_MAP = {
    'darwin': Platform.MACOS,
    'linux': Platform.LINUX,
    'windows': Platform.WINDOWS,
}

# map architecture names reported by platform.machine()
_ARCH_MAP = {
    'x86_64': 'amd64',
    'amd64': 'amd64',
    'x64': 'amd64',
    'aarch64': 'arm64',
    'arm64': 'arm64',
    'armv7l': 'arm',
    'armv6l': 'arm',
    'arm': 'arm',
    'i386': '386',
    'i686': '386',
    'x86': '386',
    'ia32': '386',
}

ARTIFACTS = {
    Platform.LINUX: {
        'amd64': 'cloudflared-linux-amd64',
        'arm64': 'cloudflared-linux-arm64',
        'arm': 'cloudflared-linux-arm',
        '386': 'cloudflared-linux-386',
    },
    Platform.MACOS: {
        'amd64': 'cloudflared-darwin-amd64.tgz',
        'arm64': 'cloudflared-darwin-arm64.tgz',
    },
    Platform.WINDOWS: {
        'amd64': 'cloudflared-windows-amd64.exe',
        '386': 'cloudflared-windows-386.exe',
    },
}


def current_platform(system: Optional[str] = None) -> Platform:
    """
    Return the Platform for *system* (defaults to the running OS).

    Raises:
        UnsupportedPlatformError: If cloudflared has no builds for this OS
    """
    system = (system or platform.system()).lower()
    try:
        return _OS_MAP[system]
    except KeyError:
        raise UnsupportedPlatformError(system) from None


def resolve_artifact(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """
    Map an OS/architecture pair to a cloudflared release artifact name.

    Args:
        system: OS name as reported by platform.system() (defaults to the running OS)
        machine: CPU architecture as reported by platform.machine() (defaults to the running CPU)

    Returns:
        Artifact file name (e.g., 'cloudflared-linux-amd64')

    Raises:
        UnsupportedPlatformError: If the pair has no known artifact
    """
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()

    os_kind = _OS_MAP.get(system)
    arch = _ARCH_MAP.get(machine)
    artifact = ARTIFACTS[os_kind].get(arch) if os_kind else None

    if not artifact:
        raise UnsupportedPlatformError(system, machine)

    return artifact


def is_archive(artifact: str) -> bool:
    return artifact.endswith('.tgz')
