"""Protocols for bundle fetch sources.

The installer does not know HOW a bundle is downloaded. Apps provide any
implementation that can materialize a repository tree into a directory.
"""

from pathlib import Path
from typing import Protocol

from .schema import RepoLocator


class FetchSourceProtocol(Protocol):
    """Protocol for bundle fetch sources.

    Example implementations:
    - GitHubTarballSource: GitHub archive download (bundled default)
    - LocalDirectorySource: Copy of a local checkout for development
    """

    async def fetch_to(self, locator: RepoLocator, target_dir: Path) -> None:
        """Download the full bundle tree for ``locator`` into ``target_dir``.

        Args:
            locator: Validated repository locator
            target_dir: Staging directory to populate (created by the source)

        Raises:
            Exception: If the fetch fails. FetchError subclasses are passed
                through as-is; anything else is classified by the caller.
        """
        ...
