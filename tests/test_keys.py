# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for cache key and restore-chain construction."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from depcache.keys import build_cache_key, build_key_plan, build_restore_chain, classify_hit
from depcache.models import HitState

KEY_RE = re.compile(r"^linux-[0-9a-f]{8}-[0-9a-f]{8}-[0-9a-f]{8}$")


@pytest.fixture
def lockfile(tmp_path: Path) -> Path:
    path = tmp_path / "pnpm-lock.yaml"
    path.write_text("X", encoding="utf-8")
    return path


def _plan(lockfile: Path, **overrides):
    params = {
        "platform": "linux",
        "tool_versions": {"node": "24.11.0"},
        "ecosystem": "pnpm",
        "ecosystem_version": "10.20.0",
        "branch": "main",
        "manifest_files": [lockfile],
    }
    params.update(overrides)
    return build_key_plan(**params)


def test_primary_key_shape_and_idempotence(lockfile: Path) -> None:
    first = _plan(lockfile)
    second = _plan(lockfile)

    assert KEY_RE.match(first.primary_key)
    assert first.primary_key == second.primary_key
    assert first.restore_chain == second.restore_chain


def test_restore_chain_prefixes_are_most_specific_first(lockfile: Path) -> None:
    plan = _plan(lockfile)
    key = plan.key
    assert plan.restore_chain == (
        f"linux-{key.version_hash}-{key.branch_hash}-",
        f"linux-{key.version_hash}-",
    )
    assert all(plan.primary_key.startswith(prefix) for prefix in plan.restore_chain)
    assert not plan.exact_match_only


def test_bust_token_empties_chain_and_changes_key(lockfile: Path) -> None:
    plain = _plan(lockfile)
    busted = _plan(lockfile, cache_bust="2025-01-01")

    assert busted.restore_chain == ()
    assert busted.exact_match_only
    assert busted.key.version_hash != plain.key.version_hash
    assert busted.key.content_hash == plain.key.content_hash


def test_manifest_edit_changes_only_content_segment(lockfile: Path) -> None:
    before = _plan(lockfile).key
    lockfile.write_text("Y", encoding="utf-8")
    after = _plan(lockfile).key

    assert after.content_hash != before.content_hash
    assert after.branch_prefix() == before.branch_prefix()


def test_missing_branch_keeps_four_segments() -> None:
    key = build_cache_key(
        platform="linux",
        tool_versions={},
        ecosystem="npm",
        ecosystem_version="",
        branch=None,
        manifest_files=[],
    )
    assert KEY_RE.match(str(key))
    assert key.content_hash == "e3b0c442"
    assert build_restore_chain(key, cache_bust="") == (key.branch_prefix(), key.toolchain_prefix())


@pytest.mark.parametrize(
    ("matched", "expected"),
    [
        ("linux-a-b-c", HitState.EXACT),
        ("linux-a-b-d", HitState.PARTIAL),
        ("", HitState.MISS),
        (None, HitState.MISS),
    ],
)
def test_classify_hit(matched: str | None, expected: HitState) -> None:
    assert classify_hit(matched, "linux-a-b-c") is expected
