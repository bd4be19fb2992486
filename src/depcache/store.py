# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Cache store gateway contract and a local directory-backed implementation."""

from __future__ import annotations

import glob
import hashlib
import json
import os
import shutil
import tempfile
import time
from abc import abstractmethod
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from .errors import StoreError
from .logging import debug

SAVE_FAILED: Final[int] = -1
MANIFEST_FILE: Final[str] = "entry.json"
FILES_DIR: Final[str] = "files"
_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")


@runtime_checkable
class CacheStoreGateway(Protocol):
    """Physically restore and save path sets under cache keys."""

    @abstractmethod
    def restore(self, paths: Sequence[str], primary_key: str, restore_keys: Sequence[str]) -> str | None:
        """Restore the best entry for ``primary_key`` or the first matching prefix.

        Args:
            paths: Cache paths the entry must cover.
            primary_key: Key checked for an exact match first.
            restore_keys: Fallback key prefixes, most specific first.

        Returns:
            str | None: Key of the restored entry, or ``None`` on a miss.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, paths: Sequence[str], key: str) -> int:
        """Persist ``paths`` under ``key``.

        Returns:
            int: Identifier of the stored entry, or ``-1`` when nothing was saved.
        """
        raise NotImplementedError


def expand_cache_path(pattern: str, *, cwd: Path | None = None) -> list[Path]:
    """Return existing filesystem entries matched by a cache path or glob pattern."""

    expanded = os.path.expanduser(pattern)
    base = cwd or Path.cwd()
    if not os.path.isabs(expanded):
        expanded = str(base / expanded)
    if not any(char in expanded for char in _GLOB_CHARS):
        candidate = Path(expanded)
        return [candidate] if candidate.exists() else []
    return sorted(Path(match) for match in glob.glob(expanded, recursive=True))


def any_path_exists(paths: Sequence[str], *, cwd: Path | None = None) -> bool:
    """Return ``True`` when at least one cache path matches something on disk."""

    return any(expand_cache_path(path, cwd=cwd) for path in paths)


def entry_id(key: str) -> int:
    """Return a stable positive identifier for ``key``."""

    return int(hashlib.sha256(key.encode("utf-8")).hexdigest()[:8], 16)


class LocalDirectoryStore(CacheStoreGateway):
    """Keep cache entries as plain directory copies beneath ``root``.

    Each entry lives in ``root/<key>/`` with an ``entry.json`` index recording
    where every stored item came from. Entries are written to a temporary
    directory first and renamed into place, so two runs saving the same key
    concurrently leave exactly one complete entry.
    """

    def __init__(self, root: Path, *, cwd: Path | None = None) -> None:
        self._root = root
        self._cwd = cwd

    @property
    def root(self) -> Path:
        return self._root

    def keys(self) -> list[str]:
        """Return the keys of complete entries, newest first."""

        entries = [
            (self._created(path), path.name)
            for path in self._entry_dirs()
        ]
        return [name for _, name in sorted(entries, reverse=True)]

    def restore(self, paths: Sequence[str], primary_key: str, restore_keys: Sequence[str]) -> str | None:
        wanted = set(paths)
        if self._is_complete(self._root / primary_key):
            self._restore_entry(self._root / primary_key, wanted)
            return primary_key
        available = self.keys()
        for prefix in restore_keys:
            for key in available:
                if key.startswith(prefix):
                    self._restore_entry(self._root / key, wanted)
                    return key
        return None

    def save(self, paths: Sequence[str], key: str) -> int:
        target = self._root / key
        if self._is_complete(target):
            debug(f"cache entry already present key={key}")
            return entry_id(key)

        self._root.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=self._root))
        try:
            records = self._copy_into(staging, paths)
            if not records:
                return SAVE_FAILED
            index = {"key": key, "created": time.time(), "entries": records}
            (staging / MANIFEST_FILE).write_text(json.dumps(index, indent=2), encoding="utf-8")
            try:
                staging.rename(target)
            except OSError:
                if self._is_complete(target):
                    return entry_id(key)
                raise StoreError(f"Unable to finalise cache entry {key}") from None
            return entry_id(key)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def _copy_into(self, staging: Path, paths: Sequence[str]) -> list[dict[str, str]]:
        records: list[dict[str, str]] = []
        files_root = staging / FILES_DIR
        for pattern in paths:
            for source in expand_cache_path(pattern, cwd=self._cwd):
                stored = f"{len(records)}"
                destination = files_root / stored
                destination.parent.mkdir(parents=True, exist_ok=True)
                try:
                    if source.is_dir():
                        shutil.copytree(source, destination, symlinks=True)
                    else:
                        shutil.copy2(source, destination)
                except OSError as exc:
                    raise StoreError(f"Failed to copy {source}: {exc}") from exc
                records.append({"pattern": pattern, "source": str(source.resolve()), "stored": stored})
        return records

    def _restore_entry(self, entry: Path, wanted: set[str]) -> None:
        index = self._load_index(entry)
        for record in index.get("entries", []):
            if wanted and record.get("pattern") not in wanted:
                continue
            stored = entry / FILES_DIR / str(record["stored"])
            source = Path(str(record["source"]))
            try:
                if stored.is_dir():
                    shutil.copytree(stored, source, symlinks=True, dirs_exist_ok=True)
                else:
                    source.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(stored, source)
            except OSError as exc:
                raise StoreError(f"Failed to restore {source}: {exc}") from exc

    def _entry_dirs(self) -> Iterator[Path]:
        if not self._root.is_dir():
            return
        for path in self._root.iterdir():
            if path.is_dir() and not path.name.startswith(".") and self._is_complete(path):
                yield path

    @staticmethod
    def _is_complete(entry: Path) -> bool:
        return (entry / MANIFEST_FILE).is_file()

    @staticmethod
    def _load_index(entry: Path) -> dict[str, object]:
        try:
            data = json.loads((entry / MANIFEST_FILE).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Corrupt cache entry {entry.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Corrupt cache entry {entry.name}: index must be an object")
        return data

    def _created(self, entry: Path) -> float:
        try:
            created = self._load_index(entry).get("created")
        except StoreError:
            return 0.0
        return float(created) if isinstance(created, (int, float)) else 0.0


__all__ = [
    "CacheStoreGateway",
    "LocalDirectoryStore",
    "SAVE_FAILED",
    "any_path_exists",
    "entry_id",
    "expand_cache_path",
]
