# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for layered settings resolution."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from depcache.config import (
    DEFAULT_DETECT_TIMEOUT,
    CacheSettings,
    detect_package_manager,
    load_save_settings,
    load_settings,
    parse_version_map,
    resolve_branch,
)
from depcache.errors import ConfigError


def _write_pyproject(root: Path, body: str) -> None:
    (root / "pyproject.toml").write_text(body, encoding="utf-8")


def test_defaults_fall_back_to_npm(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, env={})

    assert settings.ecosystems == ["npm"]
    assert settings.primary_ecosystem == "npm"
    assert settings.detect_timeout == DEFAULT_DETECT_TIMEOUT
    assert settings.root == tmp_path.resolve()
    assert settings.branch is None


def test_package_manager_field_selects_ecosystem(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "web", "packageManager": "pnpm@10.20.0+sha512.deadbeef"}),
        encoding="utf-8",
    )

    settings = load_settings(tmp_path, env={})

    assert settings.ecosystems == ["pnpm"]
    assert settings.ecosystem_version == "10.20.0"
    assert detect_package_manager(tmp_path) == ("pnpm", "10.20.0")


def test_unsupported_package_manager_field_is_ignored(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(json.dumps({"packageManager": "pip@24.0"}), encoding="utf-8")
    assert detect_package_manager(tmp_path) is None
    assert load_settings(tmp_path, env={}).ecosystems == ["npm"]


def test_pyproject_section_with_env_expansion(tmp_path: Path) -> None:
    _write_pyproject(
        tmp_path,
        """
[tool.depcache]
ecosystems = ["yarn", "bun"]
additional-lockfiles = "**/custom.lock"
additional-cache-paths = ["~/.cache/custom"]
tool-versions = { node = "${NODE_VERSION}" }
""",
    )

    settings = load_settings(tmp_path, env={"NODE_VERSION": "24.11.0"})

    assert settings.ecosystems == ["yarn", "bun"]
    assert settings.tool_versions == {"node": "24.11.0"}
    assert settings.additional_manifests == ["**/custom.lock"]
    assert settings.additional_cache_paths == ["~/.cache/custom"]


def test_environment_overrides_pyproject(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[tool.depcache]\necosystems = ["yarn"]\ncache-bust = "v1"\n')
    env = {
        "DEPCACHE_ECOSYSTEMS": "pnpm, bun",
        "DEPCACHE_CACHE_BUST": "v2",
        "DEPCACHE_TOOL_VERSIONS": '{"node": "24.11.0", "bun": ""}',
        "DEPCACHE_DETECT_TIMEOUT": "0",
        "DEPCACHE_EMOJI": "false",
        "RUNNER_TOOL_CACHE": "/hosted",
    }

    settings = load_settings(tmp_path, env=env)

    assert settings.ecosystems == ["pnpm", "bun"]
    assert settings.cache_bust == "v2"
    assert settings.tool_versions == {"node": "24.11.0"}
    assert settings.detect_timeout is None
    assert settings.use_emoji is False
    assert settings.tool_cache_dir == "/hosted"


def test_overrides_win_and_none_values_are_ignored(tmp_path: Path) -> None:
    settings = load_settings(
        tmp_path,
        env={"DEPCACHE_BRANCH": "from-env", "DEPCACHE_DETECT_TIMEOUT": "15"},
        overrides={"branch": "from-cli", "detect_timeout": None, "ecosystems": ["deno"]},
    )
    assert settings.branch == "from-cli"
    assert settings.detect_timeout == 15.0
    assert settings.ecosystems == ["deno"]


@pytest.mark.parametrize(
    ("env", "expected"),
    [
        ({"GITHUB_HEAD_REF": "feature/pr", "GITHUB_REF": "refs/pull/7/merge"}, "feature/pr"),
        ({"GITHUB_REF": "refs/heads/release/1.x"}, "release/1.x"),
        ({"GITHUB_REF": "refs/tags/v1.0.0"}, None),
        ({}, None),
    ],
)
def test_resolve_branch(env: dict[str, str], expected: str | None) -> None:
    assert resolve_branch(env) == expected


def test_ci_branch_feeds_settings(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, env={"GITHUB_REF": "refs/heads/main"})
    assert settings.branch == "main"


@pytest.mark.parametrize(
    "env",
    [
        {"DEPCACHE_ECOSYSTEMS": "pip"},
        {"DEPCACHE_PLATFORM": "solaris"},
        {"DEPCACHE_TOOL_VERSIONS": "node"},
        {"DEPCACHE_DEBUG": "sometimes"},
    ],
)
def test_invalid_values_raise_config_error(tmp_path: Path, env: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path, env=env)


def test_unknown_ecosystem_message_lists_choices(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Unsupported ecosystem 'pip'"):
        load_settings(tmp_path, env={"DEPCACHE_ECOSYSTEMS": "pip"})


def test_malformed_pyproject_raises_config_error(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, "[tool.depcache\n")
    with pytest.raises(ConfigError, match="Unable to parse"):
        load_settings(tmp_path, env={})


def test_unknown_settings_key_is_rejected(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[tool.depcache]\ncompression = "zstd"\n')
    with pytest.raises(ConfigError, match="compression"):
        load_settings(tmp_path, env={})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("node=24.11.0, bun:1.2.3", {"node": "24.11.0", "bun": "1.2.3"}),
        ('{"deno": "2.0.1"}', {"deno": "2.0.1"}),
        ("node=", {}),
        ("", {}),
    ],
)
def test_parse_version_map(raw: str, expected: dict[str, str]) -> None:
    assert parse_version_map(raw) == expected


def test_settings_assignment_is_validated(tmp_path: Path) -> None:
    settings = CacheSettings(root=tmp_path, platform="darwin")
    settings.ecosystems = "yarn\nnpm"
    assert settings.ecosystems == ["yarn", "npm"]
    assert settings.primary_ecosystem == "yarn"
    with pytest.raises(ValueError):
        settings.platform = "plan9"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("0", None), ("0.0", None), ("-5", None), ("none", None), ("", None), ("2.5", 2.5), ("15", 15.0)],
)
def test_detect_timeout_values(raw: str, expected: float | None) -> None:
    settings = CacheSettings(platform="linux", detect_timeout=raw)
    assert settings.detect_timeout == expected


def test_non_numeric_detect_timeout_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="detect_timeout"):
        load_settings(tmp_path, env={"DEPCACHE_DETECT_TIMEOUT": "soon"})


def test_save_settings_read_only_save_fields(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[tool.depcache]\necosystems = ["pip"]\nstore-dir = "${CACHE_ROOT}/store"\n')
    env = {
        "CACHE_ROOT": "/cache",
        "DEPCACHE_PLATFORM": "freebsd",
        "DEPCACHE_TOOL_VERSIONS": "node",
        "DEPCACHE_STATE_FILE": "/tmp/run/state.json",
    }

    settings = load_save_settings(tmp_path, env=env, overrides={"use_emoji": False, "debug": None})

    assert settings.store_dir == Path("/cache/store")
    assert settings.state_file == Path("/tmp/run/state.json")
    assert settings.use_emoji is False
    assert settings.root == tmp_path.resolve()


def test_save_settings_reject_invalid_save_values(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_save_settings(tmp_path, env={"DEPCACHE_EMOJI": "perhaps"})
