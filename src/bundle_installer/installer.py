"""Bundle installation pipeline (protocol-based).

validate → fetch into staging → merge into target → summarize

The library doesn't know HOW bundles are downloaded; apps provide a
FetchSourceProtocol implementation (GitHubTarballSource by default) and may
inject target and staging locations through InstallOptions.

The staging directory is removed on every exit path. Only the merge step
mutates the target, and it only ever adds entries.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .exceptions import InstallError
from .exceptions import InstallFilesystemError
from .merge import MergeStats
from .merge import merge_bundle
from .protocols import FetchSourceProtocol
from .report import ComponentSummary
from .report import summarize_components
from .schema import InstallOptions
from .schema import RepoLocator
from .sources import GitHubTarballSource
from .staging import fetch_to_staging
from .staging import new_staging_dir
from .staging import remove_staging_dir

logger = logging.getLogger(__name__)

DEFAULT_TARGET_NAME = ".claude"


@dataclass(frozen=True)
class InstallResult:
    """Outcome of a successful install."""

    name: str
    repo: str
    target_dir: Path
    stats: MergeStats
    summary: ComponentSummary
    merged_into_existing: bool


def _resolve_options(options: InstallOptions | dict | None) -> InstallOptions:
    if options is None:
        return InstallOptions()
    if isinstance(options, InstallOptions):
        return options
    try:
        return InstallOptions.model_validate(options)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid install options: {e}", context={"options": options}) from e


async def install_bundle(
    repo: str,
    name: str,
    source: FetchSourceProtocol | None = None,
    options: InstallOptions | dict | None = None,
) -> InstallResult:
    """
    Install a bundle from ``repo`` with an additive merge.

    Process:
    1. Validate locator (before any I/O)
    2. Fetch into a unique staging directory (bounded by timeout)
    3. Create target if needed and merge INSTALL_DIRS into it
    4. Remove staging (always)
    5. Count installed components

    Args:
        repo: Repository locator in ``owner/name`` form
        name: Display name for log messages
        source: Fetch source (defaults to GitHubTarballSource)
        options: Target/staging locations and timeout (app policy)

    Returns:
        InstallResult with merge stats and component summary

    Raises:
        ConfigurationError: Invalid locator or options
        FetchError: Download failed (NetworkError, BundleNotFoundError,
            FetchTimeoutError for the specific cases)
        InstallFilesystemError: Target could not be written
        InstallError: Any other failure during install

    Example:
        >>> result = await install_bundle("CloudAI-X/claude-workflow", "claude-workflow-v2")
        >>> print(f"added {result.stats.added}, preserved {result.stats.skipped}")
    """
    locator = RepoLocator.parse(repo)
    opts = _resolve_options(options)

    target_dir = opts.target_dir or Path.cwd() / DEFAULT_TARGET_NAME
    staging_root = opts.staging_root or target_dir.parent
    staging_dir = new_staging_dir(staging_root)
    source = source or GitHubTarballSource()

    merged_into_existing = target_dir.exists()
    if merged_into_existing:
        logger.info(f"Found existing {target_dir} - will merge (nothing deleted)")

    logger.info(f"Installing {name} from {locator}")
    succeeded = False
    try:
        await fetch_to_staging(source, locator, staging_dir, timeout=opts.timeout_seconds)

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallFilesystemError(
                f"Failed to create target directory {target_dir}: {e}",
                context={"path": str(target_dir)},
            ) from e

        stats = merge_bundle(staging_dir, target_dir)
        succeeded = True

    except InstallError:
        raise
    except Exception as e:
        raise InstallError(f"Failed to install {name}: {e}", context={"repo": str(locator)}) from e

    finally:
        try:
            remove_staging_dir(staging_dir)
        except InstallFilesystemError as e:
            if succeeded:
                logger.warning(f"Installed, but could not remove staging directory: {e.message}")
            else:
                logger.error(f"Could not remove staging directory after failure: {e.message}")

    summary = summarize_components(target_dir)
    logger.info(f"Installed {name} to {target_dir}: {stats.added} added, {stats.skipped} skipped")
    return InstallResult(
        name=name,
        repo=locator.full_name,
        target_dir=target_dir,
        stats=stats,
        summary=summary,
        merged_into_existing=merged_into_existing,
    )
