# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Persistence for the restore-to-save lifecycle handoff record.

The record belongs to one pipeline run. The restore phase owns it: each restore
replaces whatever an earlier run left behind, and the save phase ignores a
record stamped with a different run id.
"""

from __future__ import annotations

import os
import tempfile
from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Final, Protocol

from pydantic import ValidationError

from .errors import StateAlreadyWrittenError
from .logging import debug, warn
from .models import LifecycleState

STATE_FILE_NAME: Final[str] = "depcache-state.json"
STATE_ENV_VAR: Final[str] = "DEPCACHE_STATE_FILE"
RUN_ID_ENV_VAR: Final[str] = "DEPCACHE_RUN_ID"
GITHUB_RUN_ID_ENV_VAR: Final[str] = "GITHUB_RUN_ID"
GITHUB_RUN_ATTEMPT_ENV_VAR: Final[str] = "GITHUB_RUN_ATTEMPT"
RUNNER_TEMP_ENV_VAR: Final[str] = "RUNNER_TEMP"


class StateStore(Protocol):
    """Single-writer, single-reader storage for :class:`LifecycleState`."""

    @abstractmethod
    def write(self, state: LifecycleState) -> None:
        """Record ``state`` for this run; a second write in the same run is rejected."""
        raise NotImplementedError

    @abstractmethod
    def consume(self) -> LifecycleState | None:
        """Return this run's recorded state and discard it, or ``None`` when absent."""
        raise NotImplementedError

    @abstractmethod
    def discard(self) -> None:
        """Drop any recorded state so a later save finds nothing."""
        raise NotImplementedError


class MemoryStateStore(StateStore):
    """Hold the handoff record in memory for in-process restore/save pairs."""

    def __init__(self) -> None:
        self._state: LifecycleState | None = None
        self._written = False

    def write(self, state: LifecycleState) -> None:
        if self._written:
            raise StateAlreadyWrittenError("Lifecycle state was already written for this run")
        self._state = state.model_copy(deep=True)
        self._written = True

    def consume(self) -> LifecycleState | None:
        state, self._state = self._state, None
        return state

    def discard(self) -> None:
        self._state = None


class FileStateStore(StateStore):
    """Persist the handoff record as JSON at a run-scoped path.

    Args:
        path: Location of the record.
        run_id: Identifier of the current pipeline run. When known, it is
            stamped into every record; a record from another run is replaced
            on write and ignored on consume.
        use_emoji: Whether warnings may include emoji glyphs.
    """

    def __init__(self, path: Path, *, run_id: str | None = None, use_emoji: bool = True) -> None:
        self._path = path
        self._run_id = run_id or None
        self._use_emoji = use_emoji

    @property
    def path(self) -> Path:
        return self._path

    @property
    def run_id(self) -> str | None:
        return self._run_id

    def write(self, state: LifecycleState) -> None:
        if self._run_id is not None:
            existing = self._peek()
            if existing is not None and existing.run_id == self._run_id:
                raise StateAlreadyWrittenError(f"Lifecycle state for run {self._run_id} already exists at {self._path}")
            state = state.model_copy(update={"run_id": self._run_id})
        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle, staging = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(state.model_dump_json(indent=2))
            # Atomic: a reader sees the previous record or this one, never a mix.
            os.replace(staging, self._path)
        finally:
            Path(staging).unlink(missing_ok=True)

    def consume(self) -> LifecycleState | None:
        try:
            payload = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            warn(f"Unable to read lifecycle state {self._path}: {exc}", use_emoji=self._use_emoji)
            return None
        finally:
            self._path.unlink(missing_ok=True)
        try:
            state = LifecycleState.model_validate_json(payload)
        except ValidationError as exc:
            warn(f"Ignoring malformed lifecycle state {self._path}: {exc}", use_emoji=self._use_emoji)
            return None
        if self._run_id is not None and state.run_id != self._run_id:
            warn(
                f"Ignoring lifecycle state from run {state.run_id or 'unknown'} (current run {self._run_id})",
                use_emoji=self._use_emoji,
            )
            return None
        return state

    def discard(self) -> None:
        self._path.unlink(missing_ok=True)

    def _peek(self) -> LifecycleState | None:
        try:
            return LifecycleState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as exc:
            debug(f"replacing unreadable lifecycle state {self._path}: {exc}")
            return None


def default_run_id(env: Mapping[str, str] | None = None) -> str | None:
    """Return an identifier for the current pipeline run, if the environment provides one.

    ``DEPCACHE_RUN_ID`` wins; otherwise GitHub Actions' run id and attempt are
    combined as ``<run>-<attempt>``.
    """

    environment = os.environ if env is None else env
    if explicit := environment.get(RUN_ID_ENV_VAR, "").strip():
        return explicit
    run = environment.get(GITHUB_RUN_ID_ENV_VAR, "").strip()
    if not run:
        return None
    attempt = environment.get(GITHUB_RUN_ATTEMPT_ENV_VAR, "").strip() or "1"
    return f"{run}-{attempt}"


def default_state_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the run-scoped state file location.

    ``DEPCACHE_STATE_FILE`` wins, then ``$RUNNER_TEMP``, then the working directory.
    """

    environment = os.environ if env is None else env
    if explicit := environment.get(STATE_ENV_VAR, "").strip():
        return Path(explicit).expanduser()
    if runner_temp := environment.get(RUNNER_TEMP_ENV_VAR, "").strip():
        return Path(runner_temp) / STATE_FILE_NAME
    return Path.cwd() / ".depcache" / STATE_FILE_NAME


__all__ = [
    "FileStateStore",
    "MemoryStateStore",
    "RUN_ID_ENV_VAR",
    "STATE_ENV_VAR",
    "STATE_FILE_NAME",
    "StateStore",
    "default_run_id",
    "default_state_path",
]
