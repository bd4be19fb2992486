# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Primary cache key and restore-chain construction."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

from .fingerprint import compose_version_hash, hash_branch, hash_files
from .models import CacheKey, HitState, KeyPlan


def build_cache_key(
    *,
    platform: str,
    tool_versions: Mapping[str, str | None],
    ecosystem: str,
    ecosystem_version: str,
    branch: str | None,
    manifest_files: Sequence[Path | str],
    cache_bust: str | None = None,
    use_emoji: bool = True,
) -> CacheKey:
    """Combine the platform, fingerprint, branch and manifest digests into a key.

    Args:
        platform: Platform identifier used as the first segment.
        tool_versions: Runtime or tool versions included in the fingerprint.
        ecosystem: Primary package manager identity.
        ecosystem_version: Version of the primary package manager.
        branch: Current branch name; empty or ``None`` hashes a fixed sentinel.
        manifest_files: Manifest files hashed in the order supplied.
        cache_bust: Optional token feeding the fingerprint first.
        use_emoji: Whether read warnings may include emoji glyphs.

    Returns:
        CacheKey: Key whose rendering is ``platform-version-branch-content``.
    """

    return CacheKey(
        platform=platform,
        version_hash=compose_version_hash(tool_versions, ecosystem, ecosystem_version, cache_bust),
        branch_hash=hash_branch(branch),
        content_hash=hash_files(manifest_files, use_emoji=use_emoji),
    )


def build_restore_chain(key: CacheKey, *, cache_bust: str | None = None) -> tuple[str, ...]:
    """Return fallback prefixes, most specific first.

    A bust token requests exact matches only, so the chain is empty.
    """

    if cache_bust:
        return ()
    return (key.branch_prefix(), key.toolchain_prefix())


def build_key_plan(
    *,
    platform: str,
    tool_versions: Mapping[str, str | None],
    ecosystem: str,
    ecosystem_version: str,
    branch: str | None,
    manifest_files: Sequence[Path | str],
    cache_bust: str | None = None,
    use_emoji: bool = True,
) -> KeyPlan:
    """Return the primary key together with its restore chain."""

    key = build_cache_key(
        platform=platform,
        tool_versions=tool_versions,
        ecosystem=ecosystem,
        ecosystem_version=ecosystem_version,
        branch=branch,
        manifest_files=manifest_files,
        cache_bust=cache_bust,
        use_emoji=use_emoji,
    )
    return KeyPlan(key=key, restore_chain=build_restore_chain(key, cache_bust=cache_bust))


def classify_hit(matched_key: str | None, primary_key: str) -> HitState:
    """Classify a store lookup: the primary key is exact, any other match is partial."""

    if not matched_key:
        return HitState.MISS
    if matched_key == primary_key:
        return HitState.EXACT
    return HitState.PARTIAL


__all__ = ["build_cache_key", "build_key_plan", "build_restore_chain", "classify_hit"]
