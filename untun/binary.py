"""
Cloudflared binary management - platform lookup, download, extraction.
"""

import logging
import os
import platform
import shutil
import stat
import tarfile
import zlib
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import requests

from . import config
from .exceptions import BinaryDownloadError, ExtractionError
from .platforms import is_archive, resolve_artifact

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)


def resolve_download_url(artifact: str, version: Optional[str] = None) -> str:
    """
    Build the release URL for *artifact*.

    github releases use /releases/download/{version}/{artifact}; the
    "latest" sentinel maps to the /releases/latest/download/ alias.
    """
    version = version or config.CLOUDFLARED_VERSION
    if version == config.LATEST_VERSION:
        return f"{config.RELEASE_BASE}latest/download/{artifact}"
    return f"{config.RELEASE_BASE}download/{version}/{artifact}"


def install_cloudflared(to: Optional[str] = None, version: Optional[str] = None) -> str:
    """
    Install cloudflared to the given path.

    An existing file at *to* is trusted as is, without checksum verification.

    Args:
        to: Destination path (defaults to the per-version cache path)
        version: cloudflared release, or "latest"

    Returns:
        Path of the installed binary

    Raises:
        UnsupportedPlatformError: If no artifact exists for this platform
        BinaryDownloadError: If the download or the file write fails
        ExtractionError: If the macOS archive cannot be unpacked
    """
    version = version or config.CLOUDFLARED_VERSION
    to = to or config.get_binary_path(version)

    if os.path.exists(to):
        return to

    artifact = resolve_artifact()
    url = resolve_download_url(artifact, version)

    os.makedirs(os.path.dirname(os.path.abspath(to)), exist_ok=True)

    if is_archive(artifact):
        archive_path = f"{to}.tgz"
        download(url, archive_path)
        logger.debug(f"Extracting to {to}")
        extract_archive(archive_path, to)
    else:
        download(url, to)

    set_executable_permissions(to)
    logger.info(f"Installed cloudflared {version} to {to}")
    return to


acquire_binary = install_cloudflared


def download(url: str, to: str, timeout: Optional[int] = None) -> str:
    """
    Download *url* to *to*, following redirects by hand.

    Each hop's response is closed before the next request, and the
    destination is only opened once the final response arrives, so a
    redirect chain never leaves duplicate or truncated content behind.

    Raises:
        BinaryDownloadError: On network failure, HTTP error, too many
            redirects, or a failed file write
    """
    timeout = timeout or config.DOWNLOAD_TIMEOUT
    logger.info(f"Downloading {url} to {to}")

    for _ in range(config.MAX_REDIRECTS + 1):
        try:
            response = requests.get(url, stream=True, timeout=timeout, allow_redirects=False)
        except requests.RequestException as e:
            _remove_partial(to)
            raise BinaryDownloadError(f"Failed to download cloudflared binary: {e}") from e

        location = response.headers.get('Location')
        if response.status_code in REDIRECT_STATUSES and location:
            response.close()
            url = urljoin(url, location)
            logger.debug(f"Redirecting to {url}")
            continue
        if 300 <= response.status_code < 400:
            response.close()
            _remove_partial(to)
            raise BinaryDownloadError(
                f"Failed to download cloudflared binary: HTTP {response.status_code} without a Location header"
            )

        try:
            _write_response(response, to)
        finally:
            response.close()
        return to

    raise BinaryDownloadError(
        f"Failed to download cloudflared binary: more than {config.MAX_REDIRECTS} redirects"
    )


def _write_response(response, to: str):
    # write to temp file first, then rename (atomic operation)
    temp_path = f"{to}.tmp"
    try:
        response.raise_for_status()
        with open(temp_path, 'wb') as f:
            for chunk in response.iter_content(chunk_size=8192):
                if chunk:
                    f.write(chunk)
        os.replace(temp_path, to)
    except requests.RequestException as e:
        _remove_partial(temp_path)
        raise BinaryDownloadError(f"Failed to download cloudflared binary: {e}") from e
    except OSError as e:
        _remove_partial(temp_path)
        raise BinaryDownloadError(f"Failed to write cloudflared binary: {e}") from e


def _remove_partial(path: str):
    for candidate in (path, f"{path}.tmp"):
        try:
            os.remove(candidate)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning(f"Could not remove partial download {candidate}")


def extract_archive(archive_path: str, to: str) -> str:
    """
    Unpack the cloudflared executable from a .tgz release and move it to *to*.

    The executable is written next to *to* and moved into place once complete.
    The archive is removed on success; on failure it is left in place.

    Raises:
        ExtractionError: If the archive is unreadable or has no cloudflared entry
    """
    partial = f"{to}.tmp"
    try:
        with tarfile.open(archive_path, 'r:gz') as archive:
            member = next(
                (m for m in archive.getmembers()
                 if m.isfile() and os.path.basename(m.name) == 'cloudflared'),
                None,
            )
            if member is None:
                raise ExtractionError(f"No cloudflared executable in {archive_path}")
            source = archive.extractfile(member)
            with source, open(partial, 'wb') as f:
                shutil.copyfileobj(source, f)
        os.replace(partial, to)
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        _remove_partial(partial)
        raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e

    os.remove(archive_path)
    return to


def set_executable_permissions(binary_path: str) -> bool:
    """
    Set executable permissions on Unix systems (Linux, macOS).

    Raises:
        BinaryDownloadError: If setting permissions fails
    """
    # only set permissions on Unix systems
    if platform.system().lower() == 'windows':
        return True

    try:
        # rwxr-xr-x
        current_permissions = os.stat(binary_path).st_mode
        new_permissions = (
            current_permissions
            | stat.S_IRWXU
            | stat.S_IRGRP | stat.S_IXGRP
            | stat.S_IROTH | stat.S_IXOTH
        )
        os.chmod(binary_path, new_permissions)
        return True
    except OSError as e:
        raise BinaryDownloadError(f"Failed to set executable permissions: {e}") from e


class BinaryManager:
    """Manages the cached cloudflared binary for one version."""

    def __init__(self, version: Optional[str] = None, cache_dir: Optional[str] = None):
        """
        Initialize binary manager.

        Args:
            version: cloudflared release (defaults to CLOUDFLARED_VERSION)
            cache_dir: Directory for downloaded binaries (defaults to UNTUN_CACHE_DIR)
        """
        self.version = version or config.CLOUDFLARED_VERSION
        self.cache_dir = Path(cache_dir) if cache_dir else None

    def get_binary_path(self) -> str:
        """Return path to the cloudflared binary (which may not exist yet)."""
        if self.cache_dir is None:
            return config.get_binary_path(self.version)
        return str(self.cache_dir / Path(config.get_binary_path(self.version)).name)

    def is_installed(self) -> bool:
        return os.path.exists(self.get_binary_path())

    def ensure_binary(self) -> str:
        """
        Download cloudflared if it is not already cached.

        Returns:
            Path to the binary
        """
        binary_path = self.get_binary_path()

        if os.path.exists(binary_path):
            # check if file has execute permission
            if platform.system().lower() != 'windows' and not os.access(binary_path, os.X_OK):
                try:
                    set_executable_permissions(binary_path)
                except BinaryDownloadError:
                    # might still work
                    logger.warning("Failed to set executable permissions for existing binary")
            return binary_path

        return install_cloudflared(binary_path, self.version)
