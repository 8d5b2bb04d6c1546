"""
Custom exceptions for untun operations.
"""


class UntunError(Exception):
    """Base exception for all untun errors."""
    pass


class UnsupportedPlatformError(UntunError):
    """Raised when no cloudflared build exists for this OS/architecture."""

    def __init__(self, system: str, machine: str = ''):
        self.system = system
        self.machine = machine
        target = f"{system} {machine}".strip()
        super().__init__(f"Unsupported platform: {target}")


class BinaryDownloadError(UntunError):
    """Raised when the cloudflared binary cannot be downloaded or written."""
    pass


class ExtractionError(UntunError):
    """Raised when a downloaded cloudflared archive cannot be unpacked."""
    pass


class ProcessSpawnError(UntunError):
    """Raised when the cloudflared process cannot be launched."""
    pass


class ProcessExitedError(UntunError):
    """Set on pending futures when cloudflared exits before resolving them."""

    def __init__(self, returncode=None):
        self.returncode = returncode
        if returncode is None:
            message = "cloudflared exited before the tunnel was ready"
        else:
            message = f"cloudflared exited with code {returncode} before the tunnel was ready"
        super().__init__(message)


class ConfigParseError(UntunError):
    """Raised when an embedded config="..." value is not valid JSON."""
    pass


class ServiceError(UntunError):
    """Raised when a cloudflared service command fails."""
    pass


class AlreadyInstalledError(ServiceError):
    """Raised when the cloudflared service is already installed."""

    def __init__(self):
        super().__init__("service is already installed")


class NotInstalledError(ServiceError):
    """Raised when the cloudflared service is not installed."""

    def __init__(self):
        super().__init__("service is not installed")
