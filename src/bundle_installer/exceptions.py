"""Installer exceptions.

Every fatal failure surfaces as an InstallError subclass with a human-readable
message; callers render ``message`` and exit. Unsafe symlinks are not errors,
they are counted in MergeStats instead.
"""


class InstallError(Exception):
    """
    Base exception for bundle installation.

    ``message`` is what a front end prints before exiting, hints included.
    ``context`` holds the details behind it for callers that branch on them:
    ``repo``, ``url`` and ``timeout`` for downloads, ``path`` for filesystem
    failures, ``ref`` or ``options`` for rejected configuration.
    """

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(InstallError):
    """Invalid repository locator or install options."""


class FetchError(InstallError):
    """Download of the remote bundle failed."""


class NetworkError(FetchError):
    """Name resolution or connectivity failure during fetch."""


class BundleNotFoundError(FetchError):
    """Remote bundle does not exist or is not accessible."""


class FetchTimeoutError(FetchError):
    """Download did not finish within the configured bound."""


class InstallFilesystemError(InstallError):
    """Staging cleanup, directory creation, copy or link creation failed."""
