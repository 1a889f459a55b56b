"""Staged fetch - download a bundle into a private staging directory.

The staging directory is scoped state: it is named per invocation so that
concurrent installs never share it, and it is removed on every failure path so
a half-written download is never merged.
"""

import asyncio
import logging
import shutil
import socket
import uuid
from pathlib import Path

from .exceptions import BundleNotFoundError
from .exceptions import FetchError
from .exceptions import FetchTimeoutError
from .exceptions import InstallFilesystemError
from .exceptions import NetworkError
from .protocols import FetchSourceProtocol
from .schema import RepoLocator

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".claude-temp-install-"
DEFAULT_TIMEOUT_SECONDS = 60.0
# How long a cancelled fetch gets to unwind before staging is removed
CANCEL_GRACE_SECONDS = 1.0


def new_staging_dir(staging_root: Path) -> Path:
    """Return a unique staging path under ``staging_root`` (not created)."""
    return staging_root / f"{STAGING_PREFIX}{uuid.uuid4().hex}"


def remove_staging_dir(staging_dir: Path) -> None:
    """
    Recursively remove a staging directory, tolerating its absence.

    Raises:
        InstallFilesystemError: If the directory exists but cannot be removed
    """
    try:
        if staging_dir.is_symlink() or staging_dir.is_file():
            staging_dir.unlink()
        elif staging_dir.exists():
            shutil.rmtree(staging_dir)
    except OSError as e:
        raise InstallFilesystemError(
            f"Failed to remove staging directory {staging_dir}: {e}",
            context={"path": str(staging_dir)},
        ) from e


def network_error(locator: RepoLocator) -> NetworkError:
    return NetworkError(
        f"Network error accessing github.com/{locator}\n   Check: internet connection, firewall, proxy settings",
        context={"repo": str(locator)},
    )


def not_found_error(locator: RepoLocator) -> BundleNotFoundError:
    return BundleNotFoundError(
        f"Repository not found: github.com/{locator}\n   Verify the repository exists and is public",
        context={"repo": str(locator)},
    )


def classify_fetch_error(locator: RepoLocator, error: BaseException) -> FetchError:
    """
    Map an arbitrary transport failure onto the fetch error taxonomy.

    Already-classified FetchErrors are returned unchanged so a source can
    report precise failures itself.
    """
    if isinstance(error, FetchError):
        return error

    message = str(error)
    if isinstance(error, (socket.gaierror, ConnectionError)) or "getaddrinfo" in message:
        return network_error(locator)
    if "could not find commit" in message:
        return not_found_error(locator)
    return FetchError(
        f"Download failed for {locator}: {message or type(error).__name__}",
        context={"repo": str(locator)},
    )


def _discard_result(task: asyncio.Task) -> None:
    # Late completions after a timeout are ignored; retrieving the exception
    # keeps asyncio from logging it as never retrieved.
    if not task.cancelled():
        task.exception()


async def fetch_to_staging(
    source: FetchSourceProtocol,
    locator: RepoLocator,
    staging_dir: Path,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Path:
    """
    Fetch a bundle into ``staging_dir`` within ``timeout`` seconds.

    Process:
    1. Remove any stale directory at ``staging_dir``
    2. Race ``source.fetch_to`` against the timer (first completion wins)
    3. On any failure, cancel the fetch, let it unwind, then remove
       ``staging_dir`` before raising

    Args:
        source: Fetch source implementing FetchSourceProtocol
        locator: Validated repository locator
        staging_dir: Process-unique staging path (see new_staging_dir)
        timeout: Wall-clock bound in seconds

    Returns:
        ``staging_dir``, populated with the bundle tree

    Raises:
        FetchTimeoutError: If the timer elapses first
        NetworkError: On name resolution or connectivity failure
        BundleNotFoundError: If the bundle does not exist
        FetchError: On any other transport failure
        InstallFilesystemError: If the stale staging directory cannot be removed
    """
    remove_staging_dir(staging_dir)

    logger.debug(f"Fetching {locator} into {staging_dir} (timeout {timeout}s)")
    fetch_task = asyncio.ensure_future(source.fetch_to(locator, staging_dir))

    try:
        done, _ = await asyncio.wait({fetch_task}, timeout=timeout)
        if fetch_task not in done:
            raise FetchTimeoutError(
                f"Download timed out after {timeout:g} seconds",
                context={"repo": str(locator), "timeout": timeout},
            )

        error = fetch_task.exception()
        if error is not None:
            raise error

        if not staging_dir.is_dir():
            raise FetchError(
                f"Download failed for {locator}: source produced no files",
                context={"repo": str(locator)},
            )

    except BaseException as e:
        if not fetch_task.done():
            fetch_task.cancel()
            fetch_task.add_done_callback(_discard_result)
            await asyncio.wait({fetch_task}, timeout=CANCEL_GRACE_SECONDS)
        _cleanup_after_failure(staging_dir)
        if isinstance(e, FetchError):
            raise
        if isinstance(e, Exception):
            raise classify_fetch_error(locator, e) from e
        raise

    logger.debug(f"Fetched {locator} into {staging_dir}")
    return staging_dir


def _cleanup_after_failure(staging_dir: Path) -> None:
    try:
        remove_staging_dir(staging_dir)
    except InstallFilesystemError as e:
        logger.error(f"Could not clean up after failed download: {e.message}")
