"""Discover local git repositories and their remotes."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .models import ScannedRemote, ScannedRepository

logger = logging.getLogger(__name__)

# Directory names never descended into.
SKIP_DIRS = frozenset(
    {
        "node_modules",
        "target",
        "vendor",
        ".git",
        "__pycache__",
        ".venv",
        "venv",
    }
)


def parse_git_config(text: str) -> list[ScannedRemote]:
    """Extract remote URLs from the text of a ``.git/config`` file, in file order."""
    remotes: list[ScannedRemote] = []
    current_remote: str | None = None

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith('[remote "') and stripped.endswith('"]'):
            current_remote = stripped[len('[remote "') : -len('"]')]
        elif stripped.startswith("["):
            current_remote = None
        elif current_remote is not None:
            key, sep, value = stripped.partition("=")
            if sep and key.strip() == "url":
                remotes.append(ScannedRemote(name=current_remote, url=value.strip()))

    return remotes


def _read_repository(path: Path) -> ScannedRepository | None:
    """Build a ScannedRepository for path if its git config is readable."""
    config_path = path / ".git" / "config"
    try:
        text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("skipping %s: unreadable git config (%s)", path, e)
        return None
    return ScannedRepository(path=path, remotes=tuple(parse_git_config(text)))


def scan_directory(root: Path, max_depth: int) -> list[ScannedRepository]:
    """Scan a directory tree for git repositories, up to ``max_depth`` levels deep.

    The root is depth 0 and is walked even when it is a symbolic link. Links
    below the root are neither followed nor reported, and unreadable
    directories are skipped silently.
    """
    repos: list[ScannedRepository] = []
    root = Path(root)

    if root.name in SKIP_DIRS or not root.is_dir():
        return repos

    stack: list[tuple[Path, int]] = [(root, 0)]
    while stack:
        directory, depth = stack.pop()

        if (directory / ".git").is_dir():
            repo = _read_repository(directory)
            if repo is not None:
                repos.append(repo)

        if depth >= max_depth:
            continue

        try:
            with os.scandir(directory) as entries:
                children = [
                    Path(entry.path)
                    for entry in entries
                    if entry.is_dir(follow_symlinks=False) and entry.name not in SKIP_DIRS
                ]
        except OSError as e:
            logger.debug("skipping %s: %s", directory, e)
            continue

        # Reverse-sorted push keeps the traversal in lexical order.
        for child in sorted(children, reverse=True):
            stack.append((child, depth + 1))

    return repos


def scan_paths(paths: Iterable[Path], max_depth: int) -> list[ScannedRepository]:
    """Scan several roots, ignoring roots that do not exist."""
    repos: list[ScannedRepository] = []
    for path in paths:
        path = Path(path).expanduser()
        if not path.exists():
            logger.debug("scan path %s does not exist", path)
            continue
        repos.extend(scan_directory(path, max_depth))
    return repos
