# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Dependency-manifest discovery and list-valued input parsing."""

from __future__ import annotations

import glob
import json
import os
import re
from collections.abc import Iterable, Sequence
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Final

from .logging import debug

ALWAYS_SKIP_DIRS: Final[frozenset[str]] = frozenset({"node_modules", ".git", ".hg", ".svn"})
RECURSIVE_PREFIX: Final[str] = "**/"
_BULLET_RE: Final[re.Pattern[str]] = re.compile(r"^\s*[-*]\s+")


def parse_list_input(raw: str | None) -> list[str]:
    """Parse a list supplied as a single string.

    Accepted forms are a JSON array, one entry per line with optional ``-`` or
    ``*`` bullets, comma-separated values, or a single item.

    Args:
        raw: Text to split; ``None`` and blank strings give an empty list.

    Returns:
        list[str]: Trimmed, non-empty entries in input order.
    """

    if not raw or not raw.strip():
        return []
    text = raw.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
    if "\n" in text:
        return [entry for line in text.splitlines() if (entry := _BULLET_RE.sub("", line).strip())]
    return [item.strip() for item in text.split(",") if item.strip()]


def _matches(relative: str, pattern: str) -> bool:
    if pattern.startswith(RECURSIVE_PREFIX):
        tail = pattern[len(RECURSIVE_PREFIX) :]
        return fnmatchcase(relative, tail) or fnmatchcase(relative, f"*/{tail}")
    return fnmatchcase(relative, pattern)


def _walk_files(root: Path) -> Iterable[tuple[Path, str]]:
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = sorted(name for name in dirnames if name not in ALWAYS_SKIP_DIRS)
        directory = Path(dirpath)
        for name in filenames:
            path = directory / name
            yield path, path.relative_to(root).as_posix()


def find_manifest_files(patterns: Sequence[str], root: Path) -> list[Path]:
    """Return files under ``root`` matching any of ``patterns``.

    Relative patterns are matched against paths relative to ``root``; a leading
    ``**/`` matches at any depth, including the root itself. Absolute patterns
    are expanded with :func:`glob.glob`. Symlinked directories are not followed
    and dependency trees such as ``node_modules`` are never searched.

    Args:
        patterns: Glob patterns naming lockfiles and other manifests.
        root: Project root the relative patterns are anchored at.

    Returns:
        list[Path]: Deduplicated matches sorted lexically.
    """

    relative_patterns = [pattern for pattern in patterns if not os.path.isabs(pattern)]
    absolute_patterns = [pattern for pattern in patterns if os.path.isabs(pattern)]
    found: set[Path] = set()
    if relative_patterns and root.is_dir():
        for path, relative in _walk_files(root):
            if any(_matches(relative, pattern) for pattern in relative_patterns):
                found.add(path)
    for pattern in absolute_patterns:
        found.update(Path(match) for match in glob.glob(pattern, recursive=True) if Path(match).is_file())
    debug(f"manifest scan root={root} patterns={len(patterns)} matches={len(found)}")
    return sorted(found, key=lambda path: path.as_posix())


__all__ = ["ALWAYS_SKIP_DIRS", "find_manifest_files", "parse_list_input"]
