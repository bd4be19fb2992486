# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for console logging helpers and best-effort results."""

from __future__ import annotations

import pytest

from depcache.logging import debug, debug_enabled, fail, info, section, set_debug, warn
from depcache.results import Degraded, Ok, attempt, describe_error


def test_messages_include_emoji_only_when_enabled(capsys: pytest.CaptureFixture[str]) -> None:
    info("probing caches", use_emoji=True, use_color=False)
    warn("falling back", use_emoji=False, use_color=False)
    fail("bad input", use_emoji=True, use_color=False)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("ℹ️") and lines[0].endswith("probing caches")
    assert lines[1] == "falling back"
    assert lines[2].startswith("❌")


def test_section_without_colour_uses_plain_marker(capsys: pytest.CaptureFixture[str]) -> None:
    section("Restoring cache", use_color=False)
    assert "--- Restoring cache ---" in capsys.readouterr().out


def test_debug_is_gated_by_environment(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    debug("hidden", use_color=False)
    assert capsys.readouterr().out == ""

    monkeypatch.setenv("DEPCACHE_DEBUG", "1")
    assert debug_enabled()
    debug("shown", use_color=False)
    assert capsys.readouterr().out.strip() == "[debug] shown"

    set_debug(False)
    assert not debug_enabled()


def test_attempt_converts_exceptions() -> None:
    def explode() -> int:
        raise OSError("disk full")

    assert attempt(lambda: 3, fallback=0, context="count") == Ok(3)
    degraded = attempt(explode, fallback=0, context="count")
    assert isinstance(degraded, Degraded)
    assert degraded.degraded
    assert degraded.value == 0
    assert degraded.reason == "count: disk full"
    assert describe_error(KeyError()) == "KeyError"
