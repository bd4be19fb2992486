# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for manifest discovery and list-input parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from depcache.manifests import find_manifest_files, parse_list_input


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["~/.cache/a", " /opt/b "]', ["~/.cache/a", "/opt/b"]),
        ("- first\n* second\nthird\n\n", ["first", "second", "third"]),
        ("a, b,,c ", ["a", "b", "c"]),
        ("single", ["single"]),
        ("   ", []),
        (None, []),
        ("[not json", ["[not json"]),
    ],
)
def test_parse_list_input(raw: str | None, expected: list[str]) -> None:
    assert parse_list_input(raw) == expected


def test_find_manifest_files_walks_nested_projects(tmp_path: Path, write_file) -> None:
    root_lock = write_file(tmp_path / "pnpm-lock.yaml", "lockfileVersion: 9")
    nested_lock = write_file(tmp_path / "packages" / "web" / "pnpm-lock.yaml", "lockfileVersion: 9")
    write_file(tmp_path / "node_modules" / "dep" / "pnpm-lock.yaml", "ignored")
    write_file(tmp_path / "README.md", "docs")

    found = find_manifest_files(["**/pnpm-lock.yaml", "**/pnpm-lock.yaml"], tmp_path)

    assert found == [nested_lock, root_lock]


def test_find_manifest_files_supports_absolute_patterns(tmp_path: Path, write_file) -> None:
    lock = write_file(tmp_path / "shared" / "deno.lock", "{}")
    found = find_manifest_files([str(tmp_path / "shared" / "*.lock")], tmp_path / "missing")
    assert found == [lock]


def test_find_manifest_files_without_matches(tmp_path: Path) -> None:
    assert find_manifest_files(["**/yarn.lock"], tmp_path) == []


def test_find_manifest_files_does_not_follow_symlinked_directories(tmp_path: Path, write_file) -> None:
    project = tmp_path / "project"
    own_lock = write_file(project / "yarn.lock", "# yarn lockfile v1")
    write_file(tmp_path / "elsewhere" / "yarn.lock", "# outside the project")
    (project / "linked").symlink_to(tmp_path / "elsewhere", target_is_directory=True)

    found = find_manifest_files(["**/yarn.lock"], project)

    assert found == [own_lock]
