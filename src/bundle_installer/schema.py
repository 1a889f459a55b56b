"""Input models - repository locator and install options.

The locator is the one place untrusted input enters the installer. It is later
used to build a download URL, so the character set is restricted up front and
nothing touches the network or disk until it has been validated.
"""

import re
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from .exceptions import ConfigurationError

# owner/name with letters, digits, underscore, hyphen and dot only
_LOCATOR_PATTERN = re.compile(r"[\w.-]+/[\w.-]+", re.ASCII)
_TRAVERSAL_SEGMENTS = {".", ".."}


def is_valid_repo_locator(value: str) -> bool:
    """Check that a locator has the ``owner/name`` shape with safe characters.

    Args:
        value: Candidate locator string

    Returns:
        True if the locator may be used to fetch a bundle

    Examples:
        >>> is_valid_repo_locator("CloudAI-X/claude-workflow")
        True
        >>> is_valid_repo_locator("evil/../../etc")
        False
    """
    if not isinstance(value, str) or not _LOCATOR_PATTERN.fullmatch(value):
        return False
    return not any(segment in _TRAVERSAL_SEGMENTS for segment in value.split("/"))


class RepoLocator(BaseModel):
    """Validated ``owner/name`` repository locator (immutable)."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name

    @classmethod
    def parse(cls, value: str) -> "RepoLocator":
        """
        Validate and split a locator string.

        Args:
            value: Locator in ``owner/name`` form

        Returns:
            RepoLocator instance

        Raises:
            ConfigurationError: If the locator is malformed
        """
        if not is_valid_repo_locator(value):
            raise ConfigurationError(
                f'Invalid repository format: "{value}". Expected: owner/repo',
                context={"repo": value},
            )
        owner, name = value.split("/")
        return cls(owner=owner, name=name)


class InstallOptions(BaseModel):
    """
    App-provided install policy.

    Anything left as None falls back to the conventional layout: target is
    ``<cwd>/.claude`` and staging lives next to the target.
    """

    model_config = ConfigDict(frozen=True)

    target_dir: Path | None = None
    staging_root: Path | None = None
    timeout_seconds: float = Field(default=60.0, gt=0)

    @field_validator("target_dir", "staging_root")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None
