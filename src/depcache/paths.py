# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Aggregate cache directories across ecosystems into a canonical path set."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Final

from .ecosystems import Ecosystem, StrategyRegistry, normalize_ecosystems
from .logging import debug, info
from .models import AggregatedPaths
from .platform import current_platform, tool_cache_base
from .process_utils import CommandRunner, make_probe_runner
from .results import Degraded, Ok, Outcome, describe_error

GLOB_MARKER: Final[str] = "*"


def is_glob(path: str) -> bool:
    return path.startswith(GLOB_MARKER)


def sort_paths_absolute_first(paths: Iterable[str]) -> tuple[str, ...]:
    """Return ``paths`` deduplicated with concrete paths before glob patterns.

    Each group is sorted lexically so generated lists are stable between runs.
    """

    unique = set(paths)
    concrete = sorted(path for path in unique if not is_glob(path))
    patterns = sorted(path for path in unique if is_glob(path))
    return (*concrete, *patterns)


def tool_cache_paths(tool_versions: Mapping[str, str | None], base: str) -> list[str]:
    """Return install-cache paths for every ``{tool, version}`` pair with a version.

    Each pair contributes the version directory and its architecture subdirectories.
    """

    paths: list[str] = []
    for tool, version in sorted(tool_versions.items()):
        if not version:
            continue
        root = f"{base}/{tool}/{version}"
        paths.extend((root, f"{root}/*"))
    return paths


class PathAggregator:
    """Resolve, merge and deduplicate cache paths for a set of ecosystems."""

    def __init__(
        self,
        *,
        registry: StrategyRegistry | None = None,
        runner: CommandRunner | None = None,
        platform: str | None = None,
        tool_cache_dir: str | None = None,
        use_emoji: bool = True,
    ) -> None:
        self._registry = registry or StrategyRegistry()
        self._runner = runner or make_probe_runner()
        self._platform = platform or current_platform()
        self._tool_cache_dir = tool_cache_base(self._platform, tool_cache_dir)
        self._use_emoji = use_emoji

    @property
    def platform(self) -> str:
        return self._platform

    def detect(self, ecosystem: Ecosystem) -> Outcome[tuple[str, ...]]:
        """Return the ecosystem's global cache directories.

        Detection failures, empty answers and probe exceptions all fall back to
        the platform defaults; exceptions are logged at debug level only.
        """

        strategy = self._registry.get(ecosystem)
        defaults = strategy.default_paths(self._platform)
        try:
            detected = strategy.detect(self._runner)
        except Exception as exc:  # noqa: BLE001 - probe failures fall back to defaults
            reason = f"Failed to detect cache path for {ecosystem.value}: {describe_error(exc)}"
            debug(reason)
            return Degraded(reason=reason, fallback=defaults)
        if not detected:
            debug(f"Using default {ecosystem.value} cache paths: {', '.join(defaults)}")
            return Degraded(reason=f"No cache path reported by {ecosystem.value}", fallback=defaults)
        info(f"Detected {ecosystem.value} cache path: {detected}", use_emoji=self._use_emoji)
        return Ok((detected,))

    def aggregate(
        self,
        ecosystems: Sequence[Ecosystem | str],
        tool_versions: Mapping[str, str | None] | None = None,
        *,
        additional_paths: Sequence[str] = (),
        additional_manifests: Sequence[str] = (),
    ) -> AggregatedPaths:
        """Return the canonical cache path set and manifest patterns.

        Args:
            ecosystems: Ecosystems whose caches should be collected, processed in order.
            tool_versions: Runtime or tool versions contributing install-cache paths.
            additional_paths: User-supplied cache paths merged into the result.
            additional_manifests: User-supplied manifest patterns merged into the result.

        Returns:
            AggregatedPaths: Deduplicated paths and patterns in canonical order.
        """

        cache_paths: set[str] = set()
        manifest_patterns: set[str] = set()
        degraded: list[str] = []
        for ecosystem in normalize_ecosystems(ecosystems):
            strategy = self._registry.get(ecosystem)
            detected = self.detect(ecosystem)
            if isinstance(detected, Degraded):
                degraded.append(detected.reason)
            cache_paths.update(detected.value)
            cache_paths.update(strategy.auxiliary_paths)
            manifest_patterns.update(strategy.manifest_patterns)

        tool_paths = tool_cache_paths(tool_versions or {}, self._tool_cache_dir)
        cache_paths.update(tool_paths)
        if tool_paths:
            info(f"Tool cache paths: {', '.join(tool_paths)}", use_emoji=self._use_emoji)
        if additional_manifests:
            manifest_patterns.update(additional_manifests)
            info(f"Additional lockfile patterns: {', '.join(additional_manifests)}", use_emoji=self._use_emoji)
        if additional_paths:
            cache_paths.update(additional_paths)
            info(f"Additional cache paths: {', '.join(additional_paths)}", use_emoji=self._use_emoji)

        return AggregatedPaths(
            cache_paths=sort_paths_absolute_first(cache_paths),
            manifest_patterns=sort_paths_absolute_first(manifest_patterns),
            degraded=tuple(degraded),
        )


__all__ = [
    "PathAggregator",
    "is_glob",
    "sort_paths_absolute_first",
    "tool_cache_paths",
]
