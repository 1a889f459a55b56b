"""Safe merge engine - additive, non-destructive copy of a staged bundle.

Rules:
- Only INSTALL_DIRS at the top of the staging tree are considered
- An entry that already exists in the target is never touched (no overwrite,
  no delete, no content comparison)
- Links are recreated only if they resolve inside the directory they are
  placed in, both lexically and on disk
- Links are never followed, neither in the source nor in the target

Traversal is an explicit work-list instead of recursion so arbitrarily deep
trees cannot exhaust the stack.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path

from .exceptions import InstallFilesystemError

logger = logging.getLogger(__name__)

# Only these directories get installed into the target
INSTALL_DIRS: tuple[str, ...] = ("agents", "commands", "hooks", "skills")


class EntryKind(Enum):
    """Kind of a directory entry, determines the merge policy."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass
class MergeStats:
    """Outcome counters for a single merge (files and links only, not directories)."""

    added: int = 0
    skipped: int = 0
    unsafe_links: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"added": self.added, "skipped": self.skipped, "unsafe_links": list(self.unsafe_links)}


def classify_entry(entry: os.DirEntry) -> EntryKind:
    """Classify a directory entry without following links."""
    if entry.is_symlink():
        return EntryKind.SYMLINK
    if entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    if entry.is_file(follow_symlinks=False):
        return EntryKind.FILE
    return EntryKind.OTHER


def is_within_root(candidate: str, root: str) -> bool:
    """Check that an absolute, normalized path equals ``root`` or lies below it."""
    return candidate == root or candidate.startswith(root.rstrip(os.sep) + os.sep)


def resolve_link_target(link_target: str, dest_dir: Path) -> str:
    """Resolve a raw link target lexically, relative to the directory holding the link."""
    return os.path.normpath(os.path.join(os.path.abspath(dest_dir), link_target))


def is_safe_link(link_target: str, dest_dir: Path) -> bool:
    """Check that a link placed in ``dest_dir`` stays inside ``dest_dir``.

    Both the lexical path and the on-disk path must stay inside; the latter
    follows links already present, including ones this merge just created.
    """
    if not is_within_root(resolve_link_target(link_target, dest_dir), os.path.abspath(dest_dir)):
        return False
    real = os.path.realpath(os.path.join(dest_dir, link_target))
    return is_within_root(real, os.path.realpath(dest_dir))


def _fs_error(action: str, path: Path, error: OSError) -> InstallFilesystemError:
    return InstallFilesystemError(f"Failed to {action} {path}: {error}", context={"path": str(path)})


def _list_entries(directory: Path) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise _fs_error("read directory", directory, e) from e


def _copy_new_file(src: Path, dest: Path) -> bool:
    """Copy ``src`` to ``dest`` only if ``dest`` does not exist.

    Returns:
        True if copied, False if ``dest`` appeared concurrently
    """
    try:
        fsrc = open(src, "rb")
    except OSError as e:
        raise _fs_error("read file", src, e) from e

    with fsrc:
        try:
            fdst = open(dest, "xb")
        except FileExistsError:
            return False
        except OSError as e:
            raise _fs_error("create file", dest, e) from e

        try:
            with fdst:
                shutil.copyfileobj(fsrc, fdst)
            shutil.copystat(src, dest, follow_symlinks=False)
        except OSError as e:
            # dest was created above; drop the truncated copy
            dest.unlink(missing_ok=True)
            raise _fs_error("copy file to", dest, e) from e
    return True


def _merge_symlink(src: Path, dest: Path, dest_dir: Path, stats: MergeStats) -> None:
    try:
        link_target = os.readlink(src)
    except OSError as e:
        raise _fs_error("read link", src, e) from e

    if not is_safe_link(link_target, dest_dir):
        logger.warning(f"Skipping unsafe symlink: {dest.name} -> {link_target}")
        stats.unsafe_links.append(f"{dest.name} -> {link_target}")
        stats.skipped += 1
        return

    try:
        os.symlink(link_target, dest)
    except FileExistsError:
        stats.skipped += 1
        return
    except OSError as e:
        raise _fs_error("create link", dest, e) from e
    logger.debug(f"Linked {dest} -> {link_target}")
    stats.added += 1


def merge_directories(src: Path, dest: Path, stats: MergeStats) -> MergeStats:
    """
    Merge ``src`` into ``dest`` without modifying anything that already exists.

    Args:
        src: Source directory (staging side)
        dest: Destination directory (must already exist)
        stats: Accumulator updated in place

    Returns:
        The same ``stats`` object

    Raises:
        InstallFilesystemError: On the first directory, copy or link failure.
            Entries added before the failure are left in place.
    """
    pending: list[tuple[Path, Path]] = [(src, dest)]

    while pending:
        src_dir, dest_dir = pending.pop()

        for entry in _list_entries(src_dir):
            src_path = src_dir / entry.name
            dest_path = dest_dir / entry.name
            kind = classify_entry(entry)
            exists = os.path.lexists(dest_path)

            if kind is EntryKind.SYMLINK:
                if exists:
                    stats.skipped += 1
                    continue
                _merge_symlink(src_path, dest_path, dest_dir, stats)

            elif kind is EntryKind.DIRECTORY:
                if not exists:
                    try:
                        os.mkdir(dest_path)
                    except FileExistsError:
                        pass
                    except OSError as e:
                        raise _fs_error("create directory", dest_path, e) from e
                if dest_path.is_symlink() or not dest_path.is_dir():
                    logger.warning(f"Skipping {src_path.name}/: {dest_path} exists and is not a directory")
                    stats.skipped += 1
                    continue
                pending.append((src_path, dest_path))

            elif kind is EntryKind.FILE:
                if not exists and _copy_new_file(src_path, dest_path):
                    logger.debug(f"Added {dest_path}")
                    stats.added += 1
                else:
                    stats.skipped += 1

            # sockets, fifos, devices: ignored

    return stats


def merge_bundle(staging_dir: Path, target_dir: Path) -> MergeStats:
    """
    Merge the INSTALL_DIRS of a staged bundle into ``target_dir``.

    Content outside INSTALL_DIRS is never inspected or copied.

    Args:
        staging_dir: Fetched bundle tree
        target_dir: Target root (must already exist)

    Returns:
        MergeStats for the whole bundle
    """
    stats = MergeStats()
    for dir_name in INSTALL_DIRS:
        src_dir = staging_dir / dir_name
        if src_dir.is_symlink() or not src_dir.is_dir():
            continue

        dest_dir = target_dir / dir_name
        if not os.path.lexists(dest_dir):
            try:
                dest_dir.mkdir()
            except FileExistsError:
                pass
            except OSError as e:
                raise _fs_error("create directory", dest_dir, e) from e
        if dest_dir.is_symlink() or not dest_dir.is_dir():
            logger.warning(f"Skipping {dir_name}/: {dest_dir} exists and is not a directory")
            stats.skipped += 1
            continue

        logger.debug(f"Merging {dir_name}/ into {dest_dir}")
        merge_directories(src_dir, dest_dir, stats)

    return stats
