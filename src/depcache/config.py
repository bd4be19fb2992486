# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Layered configuration: defaults, ``pyproject.toml``, environment, overrides."""

from __future__ import annotations

import json
import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .ecosystems import Ecosystem, normalize_ecosystems, parse_package_manager_field
from .errors import ConfigError, UnknownEcosystemError
from .logging import debug
from .manifests import parse_list_input
from .platform import SUPPORTED_PLATFORMS, TOOL_CACHE_ENV_VAR, current_platform

PYPROJECT_FILE: Final[str] = "pyproject.toml"
PACKAGE_JSON_FILE: Final[str] = "package.json"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "depcache"
ENV_PREFIX: Final[str] = "DEPCACHE_"
DEFAULT_DETECT_TIMEOUT: Final[float] = 60.0
GITHUB_HEAD_REF_ENV: Final[str] = "GITHUB_HEAD_REF"
GITHUB_REF_ENV: Final[str] = "GITHUB_REF"
BRANCH_REF_PREFIX: Final[str] = "refs/heads/"
_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})
_SAVE_FIELDS: Final[frozenset[str]] = frozenset({"state_file", "store_dir", "use_emoji", "debug"})

# Environment variable suffix -> settings field.
_ENV_FIELDS: Final[dict[str, str]] = {
    "ECOSYSTEMS": "ecosystems",
    "ECOSYSTEM_VERSION": "ecosystem_version",
    "TOOL_VERSIONS": "tool_versions",
    "BRANCH": "branch",
    "CACHE_BUST": "cache_bust",
    "PLATFORM": "platform",
    "ADDITIONAL_CACHE_PATHS": "additional_cache_paths",
    "ADDITIONAL_LOCKFILES": "additional_manifests",
    "STATE_FILE": "state_file",
    "STORE_DIR": "store_dir",
    "DETECT_TIMEOUT": "detect_timeout",
    "EMOJI": "use_emoji",
    "DEBUG": "debug",
}


class CacheSettings(BaseModel):
    """Effective settings for one restore or save invocation."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    ecosystems: list[str] = Field(default_factory=list)
    ecosystem_version: str = ""
    tool_versions: dict[str, str] = Field(default_factory=dict)
    branch: str | None = None
    cache_bust: str | None = None
    platform: str = Field(default_factory=current_platform)
    root: Path = Field(default_factory=Path.cwd)
    additional_cache_paths: list[str] = Field(default_factory=list)
    additional_manifests: list[str] = Field(default_factory=list)
    state_file: Path | None = None
    store_dir: Path | None = None
    tool_cache_dir: str | None = None
    detect_timeout: float | None = DEFAULT_DETECT_TIMEOUT
    use_emoji: bool = True
    debug: bool = False

    @field_validator("ecosystems", mode="before")
    @classmethod
    def _coerce_ecosystems(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            entries = parse_list_input(value)
        elif isinstance(value, (list, tuple)):
            entries = [str(entry) for entry in value]
        else:
            raise ValueError("expected a string or a list of ecosystem names")
        return [kind.value for kind in normalize_ecosystems(entries)]

    @field_validator("additional_cache_paths", "additional_manifests", mode="before")
    @classmethod
    def _coerce_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return parse_list_input(value)
        if isinstance(value, (list, tuple)):
            return [str(entry).strip() for entry in value if str(entry).strip()]
        raise ValueError("expected a string or a list of strings")

    @field_validator("tool_versions", mode="before")
    @classmethod
    def _coerce_versions(cls, value: object) -> dict[str, str]:
        if value is None:
            return {}
        if isinstance(value, str):
            return parse_version_map(value)
        if isinstance(value, Mapping):
            return {str(name): str(version) for name, version in value.items() if version}
        raise ValueError("expected a mapping of tool name to version")

    @field_validator("branch", "cache_bust", "tool_cache_dir", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("platform")
    @classmethod
    def _check_platform(cls, value: str) -> str:
        if value not in SUPPORTED_PLATFORMS:
            raise ValueError(f"platform must be one of: {', '.join(SUPPORTED_PLATFORMS)}")
        return value

    @field_validator("detect_timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, value: object) -> float | None:
        if value is None:
            return None
        if isinstance(value, str):
            text = value.strip().lower()
            if text in {"", "none"}:
                return None
            try:
                value = float(text)
            except ValueError as exc:
                raise ValueError(f"detect timeout must be a number of seconds, got {text!r}") from exc
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("detect timeout must be a number of seconds")
        # Zero or negative disables the limit.
        return float(value) if value > 0 else None

    @property
    def primary_ecosystem(self) -> str:
        """Return the ecosystem whose identity feeds the cache-key fingerprint."""

        return self.ecosystems[0] if self.ecosystems else Ecosystem.NPM.value


class SaveSettings(BaseModel):
    """Settings the post-build save phase needs; restore-only values are not read."""

    model_config = ConfigDict(validate_assignment=True)

    root: Path = Field(default_factory=Path.cwd)
    state_file: Path | None = None
    store_dir: Path | None = None
    use_emoji: bool = True
    debug: bool = False


def parse_version_map(raw: str) -> dict[str, str]:
    """Parse ``node=24.11.0,bun=1.2.0`` or a JSON object into a version mapping."""

    text = raw.strip()
    if not text:
        return {}
    if text.startswith("{"):
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid tool version JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError("tool versions JSON must be an object")
        return {str(name): str(version) for name, version in payload.items() if version}
    versions: dict[str, str] = {}
    for entry in parse_list_input(text):
        name, sep, version = entry.partition("=")
        if not sep:
            name, sep, version = entry.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"tool version entry '{entry}' must look like name=version")
        if version.strip():
            versions[name.strip()] = version.strip()
    return versions


def resolve_branch(env: Mapping[str, str]) -> str | None:
    """Return the branch for the current run from CI environment variables.

    Pull-request runs report the head branch; pushes report ``refs/heads/<name>``.
    Tags and detached refs resolve to ``None``.
    """

    if head_ref := env.get(GITHUB_HEAD_REF_ENV, "").strip():
        return head_ref
    ref = env.get(GITHUB_REF_ENV, "").strip()
    if ref.startswith(BRANCH_REF_PREFIX):
        return ref[len(BRANCH_REF_PREFIX) :]
    return None


def detect_package_manager(root: Path) -> tuple[str, str | None] | None:
    """Read the ``packageManager`` field from ``root/package.json`` when present."""

    path = root / PACKAGE_JSON_FILE
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        debug(f"Could not read {path}: {exc}")
        return None
    field = payload.get("packageManager") if isinstance(payload, dict) else None
    if not isinstance(field, str) or not field.strip():
        return None
    try:
        ecosystem, version = parse_package_manager_field(field)
    except UnknownEcosystemError as exc:
        debug(f"Ignoring packageManager field: {exc}")
        return None
    return ecosystem.value, version


def _expand_env_string(value: str, env: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        return env.get(key, match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _expand_env_string(value, env)
    if isinstance(value, Mapping):
        return {key: _expand_env_value(entry, env) for key, entry in value.items()}
    if isinstance(value, list):
        return [_expand_env_value(entry, env) for entry in value]
    return value


def _pyproject_fragment(root: Path, env: Mapping[str, str]) -> dict[str, Any]:
    path = root / PYPROJECT_FILE
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Unable to parse {path}: {exc}") from exc
    section = document.get(PYPROJECT_TOOL_KEY, {}).get(PYPROJECT_SECTION_KEY, {})
    if not isinstance(section, Mapping):
        raise ConfigError(f"[{PYPROJECT_TOOL_KEY}.{PYPROJECT_SECTION_KEY}] in {path} must be a table")
    fragment = {str(key).replace("-", "_"): value for key, value in section.items()}
    if "additional_lockfiles" in fragment:
        fragment["additional_manifests"] = fragment.pop("additional_lockfiles")
    return _expand_env_value(fragment, env)


def _environment_fragment(env: Mapping[str, str]) -> dict[str, Any]:
    fragment: dict[str, Any] = {}
    for suffix, field in _ENV_FIELDS.items():
        raw = env.get(f"{ENV_PREFIX}{suffix}")
        if raw is None or not raw.strip():
            continue
        if field in {"use_emoji", "debug"}:
            fragment[field] = _parse_bool(raw, f"{ENV_PREFIX}{suffix}")
        else:
            fragment[field] = raw
    if "branch" not in fragment and (branch := resolve_branch(env)):
        fragment["branch"] = branch
    if tool_cache := env.get(TOOL_CACHE_ENV_VAR, "").strip():
        fragment["tool_cache_dir"] = tool_cache
    return fragment


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def load_settings(
    root: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> CacheSettings:
    """Build :class:`CacheSettings` from every configuration source.

    Later sources win: defaults, ``[tool.depcache]`` in ``pyproject.toml``,
    ``DEPCACHE_*`` environment variables, then explicit ``overrides`` (``None``
    values in ``overrides`` are ignored). When no ecosystem is configured the
    ``packageManager`` field of ``package.json`` is consulted, defaulting to npm.

    Raises:
        ConfigError: If any source provides an invalid value.
    """

    environment = os.environ if env is None else env
    project_root = (root or Path.cwd()).resolve()
    merged: dict[str, Any] = {"root": project_root}
    merged.update(_pyproject_fragment(project_root, environment))
    merged.update(_environment_fragment(environment))
    merged.update({key: value for key, value in (overrides or {}).items() if value is not None})

    if not merged.get("ecosystems"):
        detected = detect_package_manager(project_root)
        if detected is not None:
            merged["ecosystems"] = [detected[0]]
            if detected[1] and not merged.get("ecosystem_version"):
                merged["ecosystem_version"] = detected[1]
        else:
            merged["ecosystems"] = [Ecosystem.NPM.value]

    try:
        return CacheSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc


def load_save_settings(
    root: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> SaveSettings:
    """Build :class:`SaveSettings` from the same sources as :func:`load_settings`.

    Only the fields of :class:`SaveSettings` are taken from each source, so an
    invalid restore-only value cannot stop the save phase.

    Raises:
        ConfigError: If a save-phase value itself is invalid.
    """

    environment = os.environ if env is None else env
    project_root = (root or Path.cwd()).resolve()
    sources = (
        _pyproject_fragment(project_root, environment),
        _environment_fragment(environment),
        {key: value for key, value in (overrides or {}).items() if value is not None},
    )
    merged: dict[str, Any] = {"root": project_root}
    for fragment in sources:
        merged.update({key: value for key, value in fragment.items() if key in _SAVE_FIELDS})
    try:
        return SaveSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "settings"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "Invalid depcache configuration: " + "; ".join(problems)


__all__ = [
    "CacheSettings",
    "DEFAULT_DETECT_TIMEOUT",
    "ENV_PREFIX",
    "detect_package_manager",
    "SaveSettings",
    "load_save_settings",
    "load_settings",
    "parse_version_map",
    "resolve_branch",
]
