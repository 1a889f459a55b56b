"""bundle-installer - Fetch a remote bundle and merge it into a target directory.

Public API. The merge is additive: existing entries are never overwritten or
deleted, and only INSTALL_DIRS are considered.

Apps inject policy (source, target, staging location, timeout); the library
provides the mechanism.
"""

from .exceptions import BundleNotFoundError
from .exceptions import ConfigurationError
from .exceptions import FetchError
from .exceptions import FetchTimeoutError
from .exceptions import InstallError
from .exceptions import InstallFilesystemError
from .exceptions import NetworkError
from .installer import InstallResult
from .installer import install_bundle
from .merge import INSTALL_DIRS
from .merge import EntryKind
from .merge import MergeStats
from .merge import merge_bundle
from .merge import merge_directories
from .protocols import FetchSourceProtocol
from .report import ComponentSummary
from .report import format_summary
from .report import summarize_components
from .schema import InstallOptions
from .schema import RepoLocator
from .schema import is_valid_repo_locator
from .sources import GitHubTarballSource
from .sources import LocalDirectorySource
from .staging import fetch_to_staging
from .staging import new_staging_dir
from .staging import remove_staging_dir

__all__ = [
    # Input
    "RepoLocator",
    "InstallOptions",
    "is_valid_repo_locator",
    # Fetching
    "FetchSourceProtocol",
    "GitHubTarballSource",
    "LocalDirectorySource",
    "fetch_to_staging",
    "new_staging_dir",
    "remove_staging_dir",
    # Merging
    "INSTALL_DIRS",
    "EntryKind",
    "MergeStats",
    "merge_bundle",
    "merge_directories",
    # Reporting
    "ComponentSummary",
    "summarize_components",
    "format_summary",
    # Installation
    "install_bundle",
    "InstallResult",
    # Exceptions
    "InstallError",
    "ConfigurationError",
    "FetchError",
    "NetworkError",
    "BundleNotFoundError",
    "FetchTimeoutError",
    "InstallFilesystemError",
]

__version__ = "0.1.0"
