# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Platform identifiers and platform-keyed default locations."""

from __future__ import annotations

import sys
from typing import Final, Literal

PlatformName = Literal["linux", "darwin", "win32"]

WINDOWS: Final[PlatformName] = "win32"
SUPPORTED_PLATFORMS: Final[tuple[PlatformName, ...]] = ("linux", "darwin", "win32")

POSIX_TOOL_CACHE: Final[str] = "/opt/hostedtoolcache"
WINDOWS_TOOL_CACHE: Final[str] = "C:\\hostedtoolcache"
TOOL_CACHE_ENV_VAR: Final[str] = "RUNNER_TOOL_CACHE"


def current_platform() -> PlatformName:
    """Return the identifier used as the first cache-key segment for this host."""

    if sys.platform.startswith("win"):
        return "win32"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def is_windows(platform: str) -> bool:
    return platform == WINDOWS


def tool_cache_base(platform: str, override: str | None = None) -> str:
    """Return the hosted tool-cache directory for ``platform``.

    Args:
        platform: Platform identifier.
        override: Configured base, typically from ``RUNNER_TOOL_CACHE``; trailing
            separators are dropped.

    Returns:
        str: Base directory under which installed runtimes are cached.
    """

    if override and override.strip():
        return override.strip().rstrip("/\\")
    return WINDOWS_TOOL_CACHE if is_windows(platform) else POSIX_TOOL_CACHE


__all__ = [
    "POSIX_TOOL_CACHE",
    "PlatformName",
    "SUPPORTED_PLATFORMS",
    "TOOL_CACHE_ENV_VAR",
    "WINDOWS",
    "WINDOWS_TOOL_CACHE",
    "current_platform",
    "is_windows",
    "tool_cache_base",
]
