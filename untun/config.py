"""
Centralized configuration for untun.
Override via environment variables for custom installs and tests.
"""
import os
import platform
import tempfile

# cloudflared release to download when none is given; "latest" follows the rolling release.
CLOUDFLARED_VERSION = os.environ.get("CLOUDFLARED_VERSION", "2024.12.2")

# Sentinel version that resolves to the newest published release.
LATEST_VERSION = "latest"

# GitHub release host. Set UNTUN_RELEASE_BASE to use a mirror.
RELEASE_BASE = os.environ.get(
    "UNTUN_RELEASE_BASE", "https://github.com/cloudflare/cloudflared/releases/"
)
if not RELEASE_BASE.endswith("/"):
    RELEASE_BASE += "/"

# Where downloaded binaries are cached, one file per version.
CACHE_DIR = os.environ.get(
    "UNTUN_CACHE_DIR", os.path.join(tempfile.gettempdir(), "untun")
)

# Seconds before a stalled download is abandoned.
try:
    DOWNLOAD_TIMEOUT = int(os.environ.get("UNTUN_DOWNLOAD_TIMEOUT", "300"))
except ValueError:
    DOWNLOAD_TIMEOUT = 300

# Upper bound on HTTP redirect hops while downloading.
MAX_REDIRECTS = 10

# cloudflared opens four HA connections to the edge by default.
DEFAULT_CONNECTION_SLOTS = 4

DEFAULT_TARGET_URL = "http://localhost:3000"

ACCEPT_NOTICE_ENV = "UNTUN_ACCEPT_CLOUDFLARE_NOTICE"

CLOUDFLARED_NOTICE = """
Your installation of cloudflared software constitutes a symbol of your signature
indicating that you accept the terms of the Cloudflare License, Terms and Privacy Policy.

  License:         https://developers.cloudflare.com/cloudflare-one/connections/connect-networks/downloads/license/
  Terms:           https://www.cloudflare.com/terms/
  Privacy Policy:  https://www.cloudflare.com/privacypolicy/
"""

_TRUTHY = {"1", "true", "yes", "on", "y"}


def _env_flag(name):
    return os.environ.get(name, "").strip().lower() in _TRUTHY


def debug_enabled():
    """Mirror cloudflared output and log parser diagnostics when DEBUG is set."""
    return _env_flag("DEBUG")


def notice_accepted():
    return _env_flag(ACCEPT_NOTICE_ENV)


def get_binary_path(version=None):
    """Return the cache path of the cloudflared binary for *version*."""
    version = version or CLOUDFLARED_VERSION
    name = f"cloudflared.{version}"
    if platform.system().lower() == "windows":
        name += ".exe"
    return os.path.join(CACHE_DIR, name)
