"""Post-install summary - count installed components by convention.

Convention over configuration: component kinds are recognized purely by
directory layout, file contents are never read.

- agents/   → agent .md files (not recursive)
- skills/   → one subdirectory per skill
- commands/ → command .md files (not recursive)
- hooks/    → hook .py files (not recursive)
"""

import logging
import os
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .merge import MergeStats

logger = logging.getLogger(__name__)


class ComponentSummary(BaseModel):
    """Installed component counts (immutable data structure)."""

    model_config = ConfigDict(frozen=True)

    agents: int = 0
    skills: int = 0
    commands: int = 0
    hooks: int = 0

    def total(self) -> int:
        return self.agents + self.skills + self.commands + self.hooks


def count_files(directory: Path, suffix: str) -> int:
    """Count non-directory entries ending in ``suffix`` directly in ``directory`` (0 if missing).

    Links count by name and are never followed.
    """
    try:
        if directory.is_symlink() or not directory.is_dir():
            return 0
        with os.scandir(directory) as it:
            return sum(1 for e in it if e.name.endswith(suffix) and not e.is_dir(follow_symlinks=False))
    except OSError as e:
        logger.debug(f"Could not count files in {directory}: {e}")
        return 0


def count_dirs(directory: Path) -> int:
    """Count real subdirectories directly in ``directory`` (0 if missing); links are not followed."""
    try:
        if directory.is_symlink() or not directory.is_dir():
            return 0
        with os.scandir(directory) as it:
            return sum(1 for e in it if e.is_dir(follow_symlinks=False))
    except OSError as e:
        logger.debug(f"Could not count directories in {directory}: {e}")
        return 0


def summarize_components(target_dir: Path) -> ComponentSummary:
    """
    Count installed components under ``target_dir``.

    Never raises; absent or unreadable directories count as zero.

    Example:
        >>> summary = summarize_components(Path(".claude"))
        >>> print(f"{summary.agents} agents")
    """
    return ComponentSummary(
        agents=count_files(target_dir / "agents", ".md"),
        skills=count_dirs(target_dir / "skills"),
        commands=count_files(target_dir / "commands", ".md"),
        hooks=count_files(target_dir / "hooks", ".py"),
    )


def format_summary(summary: ComponentSummary, stats: MergeStats | None = None) -> list[str]:
    """Render a summary (and optional merge stats) as printable lines."""
    lines = [f"{summary.agents} agents | {summary.skills} skills | {summary.commands} commands | {summary.hooks} hooks"]
    if stats is not None:
        if stats.skipped > 0:
            lines.append(f"({stats.skipped} existing files preserved)")
        if stats.unsafe_links:
            lines.append(f"({len(stats.unsafe_links)} unsafe symlinks skipped)")
    return lines
