# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared across depcache modules."""

from __future__ import annotations


class DepcacheError(RuntimeError):
    """Base class for errors raised by depcache."""


class ConfigError(DepcacheError):
    """Raised when configuration sources contain invalid values."""


class UnknownEcosystemError(DepcacheError, ValueError):
    """Raised when an ecosystem name has no registered strategy."""

    def __init__(self, name: str, known: tuple[str, ...]) -> None:
        super().__init__(f"Unsupported ecosystem '{name}'. Must be one of: {' | '.join(known)}")
        self.name = name
        self.known = known


class StoreError(DepcacheError):
    """Raised by cache store gateways when a restore or save cannot complete."""


class StateAlreadyWrittenError(DepcacheError):
    """Raised when the lifecycle handoff record is written twice for one run."""


__all__ = [
    "ConfigError",
    "DepcacheError",
    "StateAlreadyWrittenError",
    "StoreError",
    "UnknownEcosystemError",
]
