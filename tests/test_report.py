"""Tests for the post-install component summary."""

import os
import tempfile
from pathlib import Path

from bundle_installer import ComponentSummary
from bundle_installer import MergeStats
from bundle_installer import format_summary
from bundle_installer import summarize_components


def test_summarize_missing_target():
    """Test a missing target counts as empty instead of raising."""
    with tempfile.TemporaryDirectory() as tmpdir:
        summary = summarize_components(Path(tmpdir) / ".claude")

        assert summary == ComponentSummary()
        assert summary.total() == 0


def test_summarize_components():
    """Test components are counted by directory convention only."""
    with tempfile.TemporaryDirectory() as tmpdir:
        target = Path(tmpdir)
        (target / "agents").mkdir()
        (target / "agents" / "reviewer.md").write_text("# Reviewer")
        (target / "agents" / "planner.md").write_text("# Planner")
        (target / "agents" / "notes.txt").write_text("not an agent")
        (target / "agents" / "nested").mkdir()
        (target / "agents" / "nested" / "deep.md").write_text("not counted")

        (target / "skills" / "pdf").mkdir(parents=True)
        (target / "skills" / "docx").mkdir()
        (target / "skills" / "README.md").write_text("not a skill")

        (target / "commands").mkdir()
        (target / "commands" / "start.md").write_text("/start")

        (target / "hooks").mkdir()
        (target / "hooks" / "format.py").write_text("print()")
        (target / "hooks" / "config.json").write_text("{}")

        summary = summarize_components(target)

        assert summary.agents == 2
        assert summary.skills == 2
        assert summary.commands == 1
        assert summary.hooks == 1
        assert summary.total() == 6


def test_summarize_ignores_file_in_place_of_directory():
    """Test a file where a component directory is expected counts as zero."""
    with tempfile.TemporaryDirectory() as tmpdir:
        target = Path(tmpdir)
        (target / "skills").write_text("oops")

        assert summarize_components(target).skills == 0


def test_summarize_does_not_follow_links(tmp_path):
    """Test a link to a directory is not a skill, while links to component files count by name."""
    outside = tmp_path / "outside"
    (outside / "a" / "b").mkdir(parents=True)
    target = tmp_path / ".claude"
    (target / "skills" / "pdf").mkdir(parents=True)
    os.symlink(outside, target / "skills" / "escape")
    (target / "agents").mkdir()
    (target / "agents" / "a.md").write_text("# agent")
    os.symlink("a.md", target / "agents" / "alias.md")
    os.symlink(outside, target / "agents" / "dir.md")

    summary = summarize_components(target)

    assert summary.skills == 1
    assert summary.agents == 3


def test_summarize_ignores_linked_component_directory(tmp_path):
    """Test a component directory that is itself a link is not counted."""
    outside = tmp_path / "outside"
    (outside / "one").mkdir(parents=True)
    (outside / "two").mkdir()
    target = tmp_path / ".claude"
    target.mkdir()
    os.symlink(outside, target / "skills")

    assert summarize_components(target).skills == 0


def test_format_summary():
    """Test summary line layout."""
    summary = ComponentSummary(agents=3, skills=2, commands=5, hooks=1)

    assert format_summary(summary) == ["3 agents | 2 skills | 5 commands | 1 hooks"]


def test_format_summary_with_stats():
    """Test preserved files and rejected links are reported."""
    summary = ComponentSummary(agents=1)
    stats = MergeStats(added=1, skipped=4, unsafe_links=["evil -> /etc"])

    lines = format_summary(summary, stats)

    assert lines == [
        "1 agents | 0 skills | 0 commands | 0 hooks",
        "(4 existing files preserved)",
        "(1 unsafe symlinks skipped)",
    ]


def test_format_summary_nothing_skipped():
    """Test no preserved-files line when nothing was skipped."""
    lines = format_summary(ComponentSummary(), MergeStats(added=3))

    assert len(lines) == 1
