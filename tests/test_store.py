# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the local directory cache store."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from depcache.store import (
    MANIFEST_FILE,
    SAVE_FAILED,
    CacheStoreGateway,
    LocalDirectoryStore,
    any_path_exists,
    entry_id,
    expand_cache_path,
)


@pytest.fixture
def project(tmp_path: Path, write_file) -> Path:
    root = tmp_path / "project"
    write_file(root / "node_modules" / "left-pad" / "index.js", "module.exports = 1;")
    write_file(root / "packages" / "web" / "node_modules" / "dep.js", "nested")
    return root


@pytest.fixture
def store(tmp_path: Path, project: Path) -> LocalDirectoryStore:
    return LocalDirectoryStore(tmp_path / "store", cwd=project)


def test_local_store_satisfies_gateway(store: LocalDirectoryStore) -> None:
    assert isinstance(store, CacheStoreGateway)


def test_expand_cache_path_resolves_relative_and_glob(project: Path) -> None:
    assert expand_cache_path("node_modules", cwd=project) == [project / "node_modules"]
    assert expand_cache_path("**/node_modules", cwd=project) == [
        project / "node_modules",
        project / "packages" / "web" / "node_modules",
    ]
    assert expand_cache_path("missing-dir", cwd=project) == []
    assert any_path_exists(["missing-dir", "node_modules"], cwd=project)
    assert not any_path_exists(["missing-dir"], cwd=project)


def test_save_then_exact_restore_round_trips_files(store: LocalDirectoryStore, project: Path) -> None:
    cache_id = store.save(["node_modules"], "linux-a-b-c")
    assert cache_id == entry_id("linux-a-b-c")
    assert (store.root / "linux-a-b-c" / MANIFEST_FILE).is_file()

    shutil.rmtree(project / "node_modules")
    assert store.restore(["node_modules"], "linux-a-b-c", ["linux-a-b-", "linux-a-"]) == "linux-a-b-c"
    assert (project / "node_modules" / "left-pad" / "index.js").read_text(encoding="utf-8") == "module.exports = 1;"


def test_restore_prefers_most_specific_prefix_then_newest(store: LocalDirectoryStore) -> None:
    store.save(["node_modules"], "linux-a-other-1")
    store.save(["node_modules"], "linux-a-b-old")
    store.save(["node_modules"], "linux-a-b-new")
    index_path = store.root / "linux-a-b-old" / MANIFEST_FILE
    index = json.loads(index_path.read_text(encoding="utf-8"))
    index["created"] = 1.0
    index_path.write_text(json.dumps(index), encoding="utf-8")

    assert store.restore(["node_modules"], "linux-a-b-zzz", ["linux-a-b-", "linux-a-"]) == "linux-a-b-new"
    assert store.restore(["node_modules"], "linux-a-c-zzz", ["linux-a-c-", "linux-a-"]) in store.keys()
    assert store.restore(["node_modules"], "linux-a-c-zzz", []) is None
    assert store.keys()[-1] == "linux-a-b-old"


def test_saving_existing_key_is_a_no_op(store: LocalDirectoryStore, project: Path) -> None:
    first = store.save(["node_modules"], "linux-a-b-c")
    (project / "node_modules" / "extra.js").write_text("new", encoding="utf-8")
    second = store.save(["node_modules"], "linux-a-b-c")

    assert first == second
    assert not (store.root / "linux-a-b-c" / "files" / "0" / "extra.js").exists()


def test_save_without_matches_reports_failure(store: LocalDirectoryStore) -> None:
    assert store.save(["does-not-exist", "~/.definitely-missing-depcache"], "linux-a-b-c") == SAVE_FAILED
    assert store.keys() == []
    assert not any(path.name.startswith(".staging-") for path in store.root.iterdir())
