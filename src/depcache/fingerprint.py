# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Short digests over toolchain versions, branch names and manifest contents."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Final

from .logging import warn

DIGEST_LENGTH: Final[int] = 8
NO_BRANCH_SENTINEL: Final[str] = "null"
_ENCODING: Final[str] = "utf-8"


def _short(hasher: hashlib._Hash) -> str:
    return hasher.hexdigest()[:DIGEST_LENGTH]


def compose_version_hash(
    versions: Mapping[str, str | None],
    ecosystem: str,
    ecosystem_version: str,
    cache_bust: str | None = None,
) -> str:
    """Return the toolchain fingerprint used as the second cache-key segment.

    The bust token, when present, is fed first. Toolchain entries are fed as
    ``name:version`` sorted by name, so the insertion order of ``versions`` never
    affects the digest. Entries without a version contribute nothing. The
    ecosystem identity is fed last.

    Args:
        versions: Mapping of runtime or tool name to resolved version.
        ecosystem: Package manager identity, e.g. ``"pnpm"``.
        ecosystem_version: Version of the package manager.
        cache_bust: Optional token forcing a distinct key namespace.

    Returns:
        str: First eight hex characters of the SHA-256 digest.
    """

    hasher = hashlib.sha256()
    if cache_bust:
        hasher.update(cache_bust.encode(_ENCODING))
    for name, version in sorted(versions.items(), key=lambda item: item[0]):
        if version:
            hasher.update(f"{name}:{version}".encode(_ENCODING))
    hasher.update(f"{ecosystem}:{ecosystem_version}".encode(_ENCODING))
    return _short(hasher)


def hash_branch(branch: str | None) -> str:
    """Return the branch segment of the cache key.

    Branch names may contain ``/`` and ``-`` so they are always hashed. A missing
    branch hashes the ``"null"`` sentinel, keeping keys at four segments.
    """

    hasher = hashlib.sha256((branch or NO_BRANCH_SENTINEL).encode(_ENCODING))
    return _short(hasher)


def hash_files(files: Iterable[Path | str], *, use_emoji: bool = True) -> str:
    """Return a digest over the contents of ``files`` in the order supplied.

    Files are hashed byte for byte, so binary lockfiles such as ``bun.lockb``
    contribute too. Unreadable files are reported with a warning and skipped.
    No files at all still produces a stable digest, the SHA-256 of empty input.

    Args:
        files: Manifest paths, typically sorted lexically by the caller.
        use_emoji: Whether warnings may include emoji glyphs.

    Returns:
        str: First eight hex characters of the SHA-256 digest.
    """

    hasher = hashlib.sha256()
    for entry in files:
        path = Path(entry)
        try:
            content = path.read_bytes()
        except OSError as exc:
            warn(f"Failed to read {path} for hashing: {exc}", use_emoji=use_emoji)
            continue
        hasher.update(content)
    return _short(hasher)


__all__ = [
    "DIGEST_LENGTH",
    "NO_BRANCH_SENTINEL",
    "compose_version_hash",
    "hash_branch",
    "hash_files",
]
