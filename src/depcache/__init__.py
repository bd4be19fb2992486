# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Deterministic dependency-cache keys and a restore/save lifecycle for CI pipelines."""

from __future__ import annotations

from .config import CacheSettings, load_settings
from .errors import ConfigError, DepcacheError, StoreError, UnknownEcosystemError
from .keys import build_cache_key, build_key_plan, build_restore_chain, classify_hit
from .lifecycle import LifecycleCoordinator, RestorePlan
from .models import CacheKey, HitState, KeyPlan, LifecycleState, RestoreOutcome, SaveOutcome
from .paths import PathAggregator

__all__ = [
    "CacheKey",
    "CacheSettings",
    "ConfigError",
    "DepcacheError",
    "HitState",
    "KeyPlan",
    "LifecycleCoordinator",
    "LifecycleState",
    "PathAggregator",
    "RestoreOutcome",
    "RestorePlan",
    "SaveOutcome",
    "StoreError",
    "UnknownEcosystemError",
    "build_cache_key",
    "build_key_plan",
    "build_restore_chain",
    "classify_hit",
    "load_settings",
]
