"""Bundled fetch sources.

- GitHubTarballSource: downloads a repository archive over HTTPS (default)
- LocalDirectorySource: copies a local checkout, for development and tests

Both only populate the staging directory. Whatever they write is policed later
by the merge engine, which is why links are kept raw here.
"""

import asyncio
import io
import logging
import os
import re
import shutil
import stat
import tarfile
import threading
from pathlib import Path
from pathlib import PurePosixPath

import httpx

from .exceptions import BundleNotFoundError
from .exceptions import ConfigurationError
from .exceptions import FetchError
from .exceptions import FetchTimeoutError
from .schema import RepoLocator
from .staging import network_error
from .staging import not_found_error

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://github.com"
_REF_PATTERN = re.compile(r"[\w./-]+", re.ASCII)


async def build_in_thread(build, target_dir: Path):
    """
    Run a blocking ``build(partial_dir)`` in a worker thread, then move the result to ``target_dir``.

    ``target_dir`` only ever holds a finished tree. Cancelling the caller cannot
    stop the thread, so an abandoned build removes its partial tree itself once
    the thread returns.
    """
    partial_dir = target_dir.with_name(f"{target_dir.name}.partial")
    shutil.rmtree(partial_dir, ignore_errors=True)
    abandoned = threading.Event()

    def run():
        try:
            return build(partial_dir)
        finally:
            if abandoned.is_set():
                shutil.rmtree(partial_dir, ignore_errors=True)

    try:
        result = await asyncio.to_thread(run)
        os.replace(partial_dir, target_dir)
    except BaseException:
        abandoned.set()
        shutil.rmtree(partial_dir, ignore_errors=True)
        raise
    return result


class GitHubTarballSource:
    """
    Fetch a repository snapshot from its ``.tar.gz`` archive.

    Example:
        >>> source = GitHubTarballSource(ref="main")
        >>> await source.fetch_to(RepoLocator.parse("CloudAI-X/claude-workflow"), Path("/tmp/stage"))
    """

    def __init__(
        self,
        ref: str = "HEAD",
        host: str = DEFAULT_HOST,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize source.

        Args:
            ref: Branch, tag or commit to download
            host: Base URL serving ``/<owner>/<name>/archive/<ref>.tar.gz``
            timeout: Per-request HTTP timeout in seconds
            transport: Optional httpx transport (tests inject MockTransport)
        """
        if not _REF_PATTERN.fullmatch(ref) or ".." in ref.split("/"):
            raise ConfigurationError(f'Invalid ref: "{ref}"', context={"ref": ref})
        self.ref = ref
        self.host = host.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def archive_url(self, locator: RepoLocator) -> str:
        return f"{self.host}/{locator.owner}/{locator.name}/archive/{self.ref}.tar.gz"

    async def fetch_to(self, locator: RepoLocator, target_dir: Path) -> None:
        url = self.archive_url(locator)
        logger.debug(f"Downloading {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self.transport
            ) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    raise not_found_error(locator)
                response.raise_for_status()
                archive = response.content
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Download timed out for {locator}: {e}", context={"repo": str(locator), "url": url}
            ) from e
        except httpx.ConnectError as e:
            raise network_error(locator) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Download failed for {locator}: {e}", context={"repo": str(locator), "url": url}) from e

        try:
            count = await build_in_thread(lambda partial_dir: extract_bundle(archive, partial_dir), target_dir)
        except (tarfile.TarError, EOFError) as e:
            raise FetchError(
                f"Download failed for {locator}: invalid archive ({e})", context={"repo": str(locator)}
            ) from e
        logger.debug(f"Extracted {count} entries from {url}")


def _strip_top_level(member_name: str) -> PurePosixPath | None:
    """Drop the archive's ``<repo>-<ref>/`` prefix; None for unusable names."""
    if member_name.startswith("/"):
        return None
    parts = PurePosixPath(member_name).parts
    if len(parts) < 2 or ".." in parts:
        return None
    return PurePosixPath(*parts[1:])


def extract_bundle(archive: bytes, target_dir: Path) -> int:
    """
    Extract a repository archive into ``target_dir``, stripping the top directory.

    Absolute members, ``..`` members and anything below an extracted link are
    dropped. Hard links, devices and fifos are ignored.

    Returns:
        Number of entries written
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    links: set[PurePosixPath] = set()
    written = 0

    with tarfile.open(fileobj=io.BytesIO(archive), mode="r:*") as tar:
        for member in tar:
            relative = _strip_top_level(member.name)
            if relative is None:
                continue
            if relative in links or any(parent in links for parent in relative.parents):
                logger.debug(f"Ignoring {member.name}: below a symlink")
                continue

            dest = target_dir.joinpath(*relative.parts)
            if member.isdir():
                dest.mkdir(parents=True, exist_ok=True)
            elif member.isfile():
                dest.parent.mkdir(parents=True, exist_ok=True)
                extracted = tar.extractfile(member)
                if extracted is None:
                    continue
                with extracted, open(dest, "wb") as out:
                    shutil.copyfileobj(extracted, out)
                dest.chmod((member.mode & 0o777) | stat.S_IRUSR | stat.S_IWUSR)
            elif member.issym():
                dest.parent.mkdir(parents=True, exist_ok=True)
                if os.path.lexists(dest):
                    continue
                os.symlink(member.linkname, dest)
                links.add(relative)
            else:
                continue
            written += 1

    return written


def _ignore_special_files(directory: str, names: list[str]) -> set[str]:
    ignored = set()
    for name in names:
        mode = os.lstat(os.path.join(directory, name)).st_mode
        if not (stat.S_ISREG(mode) or stat.S_ISDIR(mode) or stat.S_ISLNK(mode)):
            ignored.add(name)
    return ignored


class LocalDirectorySource:
    """Fetch source that copies an existing local directory (links kept as links)."""

    def __init__(self, path: Path):
        self.path = path

    async def fetch_to(self, locator: RepoLocator, target_dir: Path) -> None:
        if not self.path.is_dir():
            raise BundleNotFoundError(
                f"Bundle directory not found: {self.path}", context={"repo": str(locator), "path": str(self.path)}
            )
        logger.debug(f"Copying {self.path} for {locator}")
        await build_in_thread(
            lambda partial_dir: shutil.copytree(self.path, partial_dir, symlinks=True, ignore=_ignore_special_files),
            target_dir,
        )
