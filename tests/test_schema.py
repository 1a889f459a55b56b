"""Tests for repository locator validation and install options."""

from pathlib import Path

import pytest
from bundle_installer import ConfigurationError
from bundle_installer import InstallOptions
from bundle_installer import RepoLocator
from bundle_installer import is_valid_repo_locator
from pydantic import ValidationError


@pytest.mark.parametrize(
    "value",
    [
        "CloudAI-X/claude-workflow",
        "owner/repo",
        "my_org/my.repo",
        "a/b",
        "a1-b2/c.d_e",
    ],
)
def test_valid_locators(value):
    """Test well-formed owner/name locators are accepted."""
    assert is_valid_repo_locator(value)


@pytest.mark.parametrize(
    "value",
    [
        "evil/../../etc",
        "a/b/c",
        "a b/c",
        "a;rm -rf/b",
        "a/b$(whoami)",
        "../etc",
        "owner/..",
        "./repo",
        "/repo",
        "owner/",
        "owner",
        "",
        "owner/repo\n",
        "ówner/repo",
        "owner\\repo",
    ],
)
def test_invalid_locators(value):
    """Test malformed, traversal and shell-metacharacter locators are rejected."""
    assert not is_valid_repo_locator(value)


def test_non_string_locator_rejected():
    """Test non-string input is rejected instead of raising."""
    assert not is_valid_repo_locator(None)  # type: ignore[arg-type]


def test_parse_splits_owner_and_name():
    """Test parsing produces owner, name and full name."""
    locator = RepoLocator.parse("CloudAI-X/claude-workflow")

    assert locator.owner == "CloudAI-X"
    assert locator.name == "claude-workflow"
    assert locator.full_name == "CloudAI-X/claude-workflow"
    assert str(locator) == "CloudAI-X/claude-workflow"


def test_parse_invalid_raises_configuration_error():
    """Test parse fails fast with an actionable message."""
    with pytest.raises(ConfigurationError, match="Expected: owner/repo") as exc_info:
        RepoLocator.parse("a/b/c")

    assert exc_info.value.context == {"repo": "a/b/c"}


def test_locator_is_immutable():
    """Test locators cannot be changed after validation."""
    locator = RepoLocator.parse("owner/repo")

    with pytest.raises(ValidationError):
        locator.name = "other"  # type: ignore[misc]


def test_install_options_defaults():
    """Test default options leave placement to the installer."""
    options = InstallOptions()

    assert options.target_dir is None
    assert options.staging_root is None
    assert options.timeout_seconds == 60.0


def test_install_options_expand_user():
    """Test home-relative paths are expanded."""
    options = InstallOptions(target_dir=Path("~/project/.claude"))

    assert options.target_dir == Path.home() / "project" / ".claude"


@pytest.mark.parametrize("timeout", [0, -1])
def test_install_options_rejects_non_positive_timeout(timeout):
    """Test timeout must be positive."""
    with pytest.raises(ValidationError):
        InstallOptions(timeout_seconds=timeout)
