# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typed results for best-effort operations that must not fail the build."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

ValueT = TypeVar("ValueT")


@dataclass(frozen=True, slots=True)
class Ok(Generic[ValueT]):
    """Successful best-effort operation carrying its value."""

    value: ValueT

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Degraded(Generic[ValueT]):
    """Best-effort operation that fell back after a recoverable failure.

    Attributes:
        reason: Human-readable description of what went wrong.
        fallback: Value the caller should continue with.
    """

    reason: str
    fallback: ValueT

    @property
    def degraded(self) -> bool:
        return True

    @property
    def value(self) -> ValueT:
        return self.fallback


Outcome = Ok[ValueT] | Degraded[ValueT]


def attempt(action: Callable[[], ValueT], *, fallback: ValueT, context: str) -> Outcome[ValueT]:
    """Run ``action`` and convert any exception into :class:`Degraded`.

    Args:
        action: Zero-argument callable performing the best-effort work.
        fallback: Value returned inside :class:`Degraded` when ``action`` raises.
        context: Short description prefixed to the failure reason.

    Returns:
        Outcome[ValueT]: ``Ok`` with the action's value, or ``Degraded`` with ``fallback``.
    """

    try:
        return Ok(action())
    except Exception as exc:  # noqa: BLE001 - caching must never fail the build
        return Degraded(reason=f"{context}: {describe_error(exc)}", fallback=fallback)


def describe_error(exc: BaseException) -> str:
    """Return ``exc`` rendered as ``message`` or its type name when the message is blank."""

    message = str(exc).strip()
    return message or type(exc).__name__


__all__ = ["Degraded", "Ok", "Outcome", "attempt", "describe_error"]
