# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Data models shared by the key builder, the lifecycle coordinator and the CLI."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

KEY_SEPARATOR = "-"


class HitState(str, Enum):
    """Classification of a restore lookup relative to the primary key."""

    EXACT = "exact"
    PARTIAL = "partial"
    MISS = "miss"


class CacheKey(BaseModel):
    """Four-segment cache key ``platform-version-branch-content``."""

    model_config = ConfigDict(frozen=True)

    platform: str
    version_hash: str
    branch_hash: str
    content_hash: str

    def render(self) -> str:
        return KEY_SEPARATOR.join((self.platform, self.version_hash, self.branch_hash, self.content_hash))

    def branch_prefix(self) -> str:
        """Return the prefix matching any manifest content on the same branch."""

        return KEY_SEPARATOR.join((self.platform, self.version_hash, self.branch_hash)) + KEY_SEPARATOR

    def toolchain_prefix(self) -> str:
        """Return the prefix matching any branch and manifest content."""

        return KEY_SEPARATOR.join((self.platform, self.version_hash)) + KEY_SEPARATOR

    def __str__(self) -> str:
        return self.render()


class KeyPlan(BaseModel):
    """Primary key plus the ordered fallback prefixes offered to the store."""

    model_config = ConfigDict(frozen=True)

    key: CacheKey
    restore_chain: tuple[str, ...] = ()

    @property
    def primary_key(self) -> str:
        return self.key.render()

    @property
    def exact_match_only(self) -> bool:
        return not self.restore_chain


class AggregatedPaths(BaseModel):
    """Cache paths and manifest patterns gathered across ecosystems."""

    model_config = ConfigDict(frozen=True)

    cache_paths: tuple[str, ...] = ()
    manifest_patterns: tuple[str, ...] = ()
    degraded: tuple[str, ...] = Field(default_factory=tuple)


class LifecycleState(BaseModel):
    """Handoff record written by the restore phase and consumed by the save phase."""

    model_config = ConfigDict(validate_assignment=True)

    resolved_key: str | None = None
    primary_key: str = ""
    cache_paths: list[str] = Field(default_factory=list)
    ecosystems: list[str] = Field(default_factory=list)
    run_id: str | None = None

    @field_validator("resolved_key", "run_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def initialized(self) -> bool:
        return bool(self.primary_key)

    @property
    def exact_hit(self) -> bool:
        return self.resolved_key is not None and self.resolved_key == self.primary_key


class RestoreOutcome(BaseModel):
    """Result of the restore phase, reported to the surrounding pipeline."""

    model_config = ConfigDict(validate_assignment=True)

    hit: HitState = HitState.MISS
    matched_key: str | None = None
    primary_key: str | None = None
    restore_chain: list[str] = Field(default_factory=list)
    cache_paths: list[str] = Field(default_factory=list)
    manifest_files: list[Path] = Field(default_factory=list)
    ecosystems: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def outputs(self) -> dict[str, str]:
        """Return the flat string outputs consumed by the reporting layer."""

        hit_value = {HitState.EXACT: "true", HitState.PARTIAL: "partial", HitState.MISS: "false"}[self.hit]
        return {
            "cache-hit": hit_value,
            "cache-paths": ",".join(self.cache_paths),
            "lockfiles": ",".join(str(path) for path in self.manifest_files),
        }


SaveStatus = Literal["saved", "skipped", "failed"]
SkipReason = Literal["not-initialized", "exact-hit", "no-paths"]


class SaveOutcome(BaseModel):
    """Result of the save phase."""

    model_config = ConfigDict(validate_assignment=True)

    status: SaveStatus
    key: str | None = None
    cache_id: int | None = None
    reason: SkipReason | None = None
    message: str | None = None


__all__ = [
    "AggregatedPaths",
    "CacheKey",
    "HitState",
    "KEY_SEPARATOR",
    "KeyPlan",
    "LifecycleState",
    "RestoreOutcome",
    "SaveOutcome",
    "SaveStatus",
    "SkipReason",
]
