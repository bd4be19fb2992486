# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution used by cache-path probes."""

from __future__ import annotations

import shutil

# Bandit: subprocess usage is intentional; probes run fixed argument lists
# without ``shell=True``.
import subprocess  # nosec B404
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

TIMEOUT_RETURNCODE: Final[int] = 124


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of a short-lived probe command."""

    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


CommandRunner = Callable[[Sequence[str]], ProbeResult]


def _normalize_args(args: Sequence[str]) -> list[str]:
    if not args:
        msg = "subprocess command requires at least one argument"
        raise ValueError(msg)

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        msg = f"Executable '{head}' was not found on PATH"
        raise FileNotFoundError(msg)
    return [resolved, *rest]


def _ensure_text(value: str | bytes | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.decode(errors="ignore")


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture_output: bool = False,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Execute *args* after normalising the executable path.

    Non-zero exits are returned to the caller. A timeout is reported as a
    completed process with return code ``124`` rather than an exception.
    """

    normalized = _normalize_args(args)
    try:
        # Bandit: argument lists are fixed by the caller, no shell expansion.
        completed: subprocess.CompletedProcess[str] = subprocess.run(  # nosec B603
            normalized,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            check=False,
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as exc:
        stderr = _ensure_text(exc.stderr)
        timeout_msg = f"Command timed out after {timeout:.1f}s" if timeout is not None else "Command timed out"
        completed = subprocess.CompletedProcess(
            args=list(normalized),
            returncode=TIMEOUT_RETURNCODE,
            stdout=_ensure_text(exc.stdout) or "",
            stderr=f"{stderr}\n{timeout_msg}" if stderr else timeout_msg,
        )

    return completed


def make_probe_runner(*, timeout: float | None = None, cwd: Path | None = None) -> CommandRunner:
    """Return a :data:`CommandRunner` that captures output without raising on exit codes.

    Args:
        timeout: Optional upper bound in seconds for each probe.
        cwd: Working directory for the probe, defaults to the current directory.

    Returns:
        CommandRunner: Callable executing a probe and returning its captured output.
    """

    def _run(args: Sequence[str]) -> ProbeResult:
        completed = run_command(args, cwd=cwd, capture_output=True, timeout=timeout)
        return ProbeResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    return _run


__all__ = [
    "CommandRunner",
    "ProbeResult",
    "TIMEOUT_RETURNCODE",
    "make_probe_runner",
    "run_command",
]
