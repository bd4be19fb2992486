# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from depcache.logging import set_debug
from depcache.process_utils import ProbeResult


@dataclass
class FakeRunner:
    """Probe runner answering from a table of canned results."""

    responses: dict[tuple[str, ...], ProbeResult] = field(default_factory=dict)
    error: Exception | None = None
    calls: list[tuple[str, ...]] = field(default_factory=list)

    def __call__(self, args: Sequence[str]) -> ProbeResult:
        command = tuple(args)
        self.calls.append(command)
        if self.error is not None:
            raise self.error
        return self.responses.get(command, ProbeResult(returncode=1, stdout=""))


@dataclass
class RecordingStore:
    """Cache store gateway double recording every call."""

    restore_result: str | None = None
    save_result: int = 1
    restore_error: Exception | None = None
    save_error: Exception | None = None
    restores: list[tuple[list[str], str, list[str]]] = field(default_factory=list)
    saves: list[tuple[list[str], str]] = field(default_factory=list)

    def restore(self, paths: Sequence[str], primary_key: str, restore_keys: Sequence[str]) -> str | None:
        self.restores.append((list(paths), primary_key, list(restore_keys)))
        if self.restore_error is not None:
            raise self.restore_error
        if self.restore_result == "<primary>":
            return primary_key
        return self.restore_result

    def save(self, paths: Sequence[str], key: str) -> int:
        self.saves.append((list(paths), key))
        if self.save_error is not None:
            raise self.save_error
        return self.save_result


@pytest.fixture(autouse=True)
def _reset_debug(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("DEPCACHE_DEBUG", raising=False)
    set_debug(None)
    yield
    set_debug(None)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def probe_result() -> type[ProbeResult]:
    return ProbeResult


@pytest.fixture
def write_file():
    """Return a helper writing ``content`` to ``path`` and creating parents."""

    def _write(path: Path, content: str = "") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
