"""
User-friendly error messages for untun.

Maps technical errors to actionable messages with troubleshooting guidance.
"""

from .exceptions import (
    AlreadyInstalledError,
    BinaryDownloadError,
    ExtractionError,
    NotInstalledError,
    ProcessExitedError,
    ProcessSpawnError,
    ServiceError,
    UnsupportedPlatformError,
)


ERROR_MESSAGES = {
    'unsupported_platform': {
        'message': 'cloudflared is not available for this platform',
        'guidance': 'Install cloudflared manually and point CLOUDFLARED_VERSION / UNTUN_CACHE_DIR at it, or use a supported OS (Linux, macOS, Windows).'
    },
    'binary_download_failed': {
        'message': 'Failed to download cloudflared binary',
        'guidance': 'Check your internet connection and try again. If the problem persists, you may need to manually download cloudflared.'
    },
    'extraction_failed': {
        'message': 'Could not unpack the cloudflared archive',
        'guidance': 'Delete the partial files in the untun cache directory and try again.'
    },
    'process_start_failed': {
        'message': 'Could not start tunnel process',
        'guidance': 'Check that the cloudflared binary has execute permissions. Try deleting the cached binary so it is downloaded again.'
    },
    'process_exited': {
        'message': 'Tunnel process stopped unexpectedly',
        'guidance': 'Run again with --debug to see the cloudflared output.'
    },
    'service_already_installed': {
        'message': 'cloudflared service is already installed',
        'guidance': 'Uninstall the existing service first with `untun service uninstall`.'
    },
    'service_not_installed': {
        'message': 'cloudflared service is not installed',
        'guidance': 'Install it with `untun service install <TOKEN>`.'
    },
    'service_failed': {
        'message': 'cloudflared service command failed',
        'guidance': 'Service management usually needs administrator rights. Try again with sudo.'
    },
}

_ERROR_KEYS = (
    (UnsupportedPlatformError, 'unsupported_platform'),
    (BinaryDownloadError, 'binary_download_failed'),
    (ExtractionError, 'extraction_failed'),
    (ProcessSpawnError, 'process_start_failed'),
    (ProcessExitedError, 'process_exited'),
    (AlreadyInstalledError, 'service_already_installed'),
    (NotInstalledError, 'service_not_installed'),
    (ServiceError, 'service_failed'),
)


def get_user_friendly_error(error_key, technical_details=None):
    """
    Get user-friendly error message with guidance.

    Args:
        error_key: Key from ERROR_MESSAGES dict
        technical_details: Optional technical error details

    Returns:
        Dict with message and guidance
    """
    error_info = ERROR_MESSAGES.get(error_key, {
        'message': 'An unexpected error occurred',
        'guidance': 'Try again with --debug and check the logs.'
    })

    result = {
        'message': error_info['message'],
        'guidance': error_info['guidance']
    }

    if technical_details:
        result['_technical'] = technical_details

    return result


def describe_error(error):
    """Return the user-friendly message dict for an untun exception."""
    for error_type, key in _ERROR_KEYS:
        if isinstance(error, error_type):
            return get_user_friendly_error(key, str(error))
    return get_user_friendly_error(None, str(error))
