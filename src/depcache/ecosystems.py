# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Per-ecosystem cache-directory probes, default locations and manifest patterns."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Final, Protocol, cast

from packaging.version import InvalidVersion, Version

from .errors import UnknownEcosystemError
from .platform import is_windows
from .process_utils import CommandRunner

NODE_MODULES_PATTERN: Final[str] = "**/node_modules"
YARN_UNDEFINED: Final[str] = "undefined"


class Ecosystem(Enum):
    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"
    BUN = "bun"
    DENO = "deno"

    @classmethod
    def from_str(cls, value: str) -> Ecosystem:
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnknownEcosystemError(value, tuple(member.value for member in cls))


class EcosystemStrategy(Protocol):
    """Capability interface implemented once per supported ecosystem."""

    kind: Ecosystem
    emoji: str
    auxiliary_paths: tuple[str, ...]
    manifest_patterns: tuple[str, ...]

    def detect(self, runner: CommandRunner) -> str | None: ...

    def default_paths(self, platform: str) -> tuple[str, ...]: ...


def _first_line(text: str) -> str:
    stripped = text.strip()
    return stripped.splitlines()[0].strip() if stripped else ""


def _query(runner: CommandRunner, *args: str) -> str | None:
    result = runner(args)
    if not result.succeeded:
        return None
    return _first_line(result.stdout) or None


class NpmStrategy:
    kind = Ecosystem.NPM
    emoji = "📦"
    auxiliary_paths = (NODE_MODULES_PATTERN,)
    manifest_patterns = ("**/package-lock.json", "**/npm-shrinkwrap.json")

    def detect(self, runner: CommandRunner) -> str | None:
        return _query(runner, "npm", "config", "get", "cache")

    def default_paths(self, platform: str) -> tuple[str, ...]:
        return ("~/AppData/Local/npm-cache",) if is_windows(platform) else ("~/.npm",)


class PnpmStrategy:
    kind = Ecosystem.PNPM
    emoji = "⚡"
    auxiliary_paths = (NODE_MODULES_PATTERN,)
    manifest_patterns = ("**/pnpm-lock.yaml", "**/pnpm-workspace.yaml", "**/.pnpmfile.cjs")

    def detect(self, runner: CommandRunner) -> str | None:
        return _query(runner, "pnpm", "store", "path")

    def default_paths(self, platform: str) -> tuple[str, ...]:
        if is_windows(platform):
            return ("~/AppData/Local/pnpm/store",)
        return ("~/.local/share/pnpm/store",)


class YarnStrategy:
    kind = Ecosystem.YARN
    emoji = "🧶"
    auxiliary_paths = (
        NODE_MODULES_PATTERN,
        "**/.yarn/cache",
        "**/.yarn/unplugged",
        "**/.yarn/install-state.gz",
    )
    manifest_patterns = ("**/yarn.lock", "**/.pnp.cjs", "**/.yarn/install-state.gz")

    def detect(self, runner: CommandRunner) -> str | None:
        # Yarn Berry first, then Yarn Classic.
        berry = _query(runner, "yarn", "config", "get", "cacheFolder")
        if berry and berry != YARN_UNDEFINED:
            return berry
        return _query(runner, "yarn", "cache", "dir")

    def default_paths(self, platform: str) -> tuple[str, ...]:
        if is_windows(platform):
            return ("~/AppData/Local/Yarn/Cache", "~/AppData/Local/Yarn/Berry/cache")
        return ("~/.yarn/cache", "~/.cache/yarn")


class BunStrategy:
    kind = Ecosystem.BUN
    emoji = "🥟"
    auxiliary_paths = (NODE_MODULES_PATTERN,)
    manifest_patterns = ("**/bun.lock", "**/bun.lockb")

    def detect(self, runner: CommandRunner) -> str | None:
        return _query(runner, "bun", "pm", "cache")

    def default_paths(self, platform: str) -> tuple[str, ...]:
        if is_windows(platform):
            return ("~/AppData/Local/bun/install/cache",)
        return ("~/.bun/install/cache",)


class DenoStrategy:
    kind = Ecosystem.DENO
    emoji = "🦕"
    auxiliary_paths: tuple[str, ...] = ()
    manifest_patterns = ("**/deno.lock",)

    def detect(self, runner: CommandRunner) -> str | None:
        result = runner(("deno", "info", "--json"))
        if not result.succeeded or not result.stdout.strip():
            return None
        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError:
            return None
        deno_dir = payload.get("denoDir") if isinstance(payload, dict) else None
        return deno_dir if isinstance(deno_dir, str) and deno_dir else None

    def default_paths(self, platform: str) -> tuple[str, ...]:
        return ("~/AppData/Local/deno",) if is_windows(platform) else ("~/.cache/deno",)


DEFAULT_STRATEGIES: Final[tuple[EcosystemStrategy, ...]] = (
    cast("EcosystemStrategy", NpmStrategy()),
    cast("EcosystemStrategy", PnpmStrategy()),
    cast("EcosystemStrategy", YarnStrategy()),
    cast("EcosystemStrategy", BunStrategy()),
    cast("EcosystemStrategy", DenoStrategy()),
)


class StrategyRegistry:
    """Look up ecosystem strategies by kind or name."""

    def __init__(self, strategies: Iterable[EcosystemStrategy] = DEFAULT_STRATEGIES) -> None:
        self._strategies: Mapping[Ecosystem, EcosystemStrategy] = {
            strategy.kind: strategy for strategy in strategies
        }

    def get(self, ecosystem: Ecosystem | str) -> EcosystemStrategy:
        kind = ecosystem if isinstance(ecosystem, Ecosystem) else Ecosystem.from_str(ecosystem)
        try:
            return self._strategies[kind]
        except KeyError:
            known = tuple(member.value for member in self._strategies)
            raise UnknownEcosystemError(kind.value, known) from None


def strategy_for(ecosystem: Ecosystem | str) -> EcosystemStrategy:
    """Return the default strategy registered for ``ecosystem``."""

    return StrategyRegistry().get(ecosystem)


def normalize_ecosystems(names: Iterable[Ecosystem | str]) -> tuple[Ecosystem, ...]:
    """Return ``names`` as ecosystems with duplicates removed, preserving order."""

    seen: dict[Ecosystem, None] = {}
    for name in names:
        kind = name if isinstance(name, Ecosystem) else Ecosystem.from_str(name)
        seen.setdefault(kind, None)
    return tuple(seen)


def parse_package_manager_field(value: str) -> tuple[Ecosystem, str | None]:
    """Split a ``package.json`` ``packageManager`` field into ecosystem and version.

    ``"pnpm@10.20.0+sha512.abc"`` becomes ``(Ecosystem.PNPM, "10.20.0")``. A
    missing or non-PEP 440 version is returned as ``None``.

    Raises:
        UnknownEcosystemError: If the name part is not a supported ecosystem.
    """

    name, _, raw_version = value.strip().partition("@")
    ecosystem = Ecosystem.from_str(name)
    candidate = raw_version.split("+", 1)[0].strip()
    if not candidate:
        return ecosystem, None
    try:
        Version(candidate)
    except InvalidVersion:
        return ecosystem, None
    return ecosystem, candidate


__all__ = [
    "BunStrategy",
    "DEFAULT_STRATEGIES",
    "DenoStrategy",
    "Ecosystem",
    "EcosystemStrategy",
    "NpmStrategy",
    "PnpmStrategy",
    "StrategyRegistry",
    "YarnStrategy",
    "normalize_ecosystems",
    "parse_package_manager_field",
    "strategy_for",
]
