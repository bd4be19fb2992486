# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""User-facing logging helpers with optional colour and emoji support."""

from __future__ import annotations

import os
from typing import Final

from rich.rule import Rule
from rich.text import Text

from .console import detect_tty, get_console_manager

DEBUG_ENV_VAR: Final[str] = "DEPCACHE_DEBUG"
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})

_debug_override: bool | None = None


def set_debug(enabled: bool | None) -> None:
    """Force debug output on or off; ``None`` restores environment detection.

    Args:
        enabled: Explicit debug preference, or ``None`` to defer to ``DEPCACHE_DEBUG``.
    """

    global _debug_override
    _debug_override = enabled


def debug_enabled() -> bool:
    """Return ``True`` when debug messages should be rendered."""

    if _debug_override is not None:
        return _debug_override
    return os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in _TRUTHY


def emoji(symbol: str, enable: bool) -> str:
    """Select an emoji symbol based on the caller's preference.

    Args:
        symbol: Emoji text to include in the output.
        enable: Flag indicating whether emoji output is desired.

    Returns:
        str: Emoji symbol when enabled, otherwise an empty string.
    """

    return symbol if enable else ""


def _print_line(
    msg: str,
    *,
    style: str | None,
    use_emoji: bool,
    use_color: bool | None = None,
) -> None:
    """Render ``msg`` to the console using shared styling helpers.

    Args:
        msg: Message text to print to the console.
        style: Rich style name to apply when colour output is active.
        use_emoji: Flag indicating whether emoji output is desired.
        use_color: Optional explicit colour flag overriding TTY detection.
    """

    color_enabled = detect_tty() if use_color is None else use_color
    console = get_console_manager().get(color=color_enabled, emoji=use_emoji)
    text = Text(msg)
    if style and color_enabled:
        text.stylize(style)
    console.print(text)


def section(title: str, *, use_color: bool | None = None) -> None:
    """Render a section header to delineate console output blocks.

    Args:
        title: Section title displayed to the user.
        use_color: Flag indicating whether ANSI colour support is desired.
    """

    color_enabled = detect_tty() if use_color is None else use_color
    console = get_console_manager().get(color=color_enabled, emoji=True)
    if color_enabled:
        console.print()
        console.print(Rule(title))
    else:
        console.print(f"\n--- {title} ---")


def info(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit an informational message."""

    prefix = emoji("ℹ️ ", use_emoji)
    _print_line(f"{prefix}{msg}", style="cyan", use_emoji=use_emoji, use_color=use_color)


def ok(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit a success message."""

    prefix = emoji("✅ ", use_emoji)
    _print_line(f"{prefix}{msg}", style="green", use_emoji=use_emoji, use_color=use_color)


def warn(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit a warning message.

    Warnings mark recoverable conditions: the caller has already fallen back and
    keeps going.
    """

    prefix = emoji("⚠️ ", use_emoji)
    _print_line(f"{prefix}{msg}", style="yellow", use_emoji=use_emoji, use_color=use_color)


def fail(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit an error message."""

    prefix = emoji("❌ ", use_emoji)
    _print_line(f"{prefix}{msg}", style="red", use_emoji=use_emoji, use_color=use_color)


def debug(msg: str, *, use_color: bool | None = None) -> None:
    """Emit a debug message when debug output is enabled.

    Args:
        msg: Debug payload.
        use_color: Optional explicit colour flag overriding TTY detection.
    """

    if not debug_enabled():
        return
    _print_line(f"[debug] {msg}", style="dim", use_emoji=False, use_color=use_color)


__all__ = [
    "DEBUG_ENV_VAR",
    "debug",
    "debug_enabled",
    "emoji",
    "fail",
    "info",
    "ok",
    "section",
    "set_debug",
    "warn",
]
