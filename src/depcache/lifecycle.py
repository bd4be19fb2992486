# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Two-phase restore/save coordination around a cache store gateway.

The coordinator is the isolation boundary between caching and the build: every
store call, state access and planning step runs through :func:`attempt`, so a
failure degrades the phase to a miss or to "nothing saved" instead of raising.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .config import CacheSettings
from .ecosystems import StrategyRegistry
from .errors import UnknownEcosystemError
from .keys import build_key_plan, classify_hit
from .logging import emoji, info, ok, section, warn
from .manifests import find_manifest_files
from .models import AggregatedPaths, HitState, KeyPlan, LifecycleState, RestoreOutcome, SaveOutcome
from .paths import PathAggregator
from .process_utils import make_probe_runner
from .results import Degraded, attempt
from .state import StateStore
from .store import SAVE_FAILED, CacheStoreGateway, any_path_exists


@dataclass(frozen=True, slots=True)
class RestorePlan:
    """Everything the restore phase computes before contacting the store."""

    paths: AggregatedPaths
    manifest_files: tuple[Path, ...]
    keys: KeyPlan
    ecosystems: tuple[str, ...]

    @property
    def primary_key(self) -> str:
        return self.keys.primary_key


class LifecycleCoordinator:
    """Drive the pre-build restore and post-build save phases of one pipeline run."""

    def __init__(
        self,
        store: CacheStoreGateway,
        state_store: StateStore,
        *,
        aggregator: PathAggregator | None = None,
        registry: StrategyRegistry | None = None,
        root: Path | None = None,
        use_emoji: bool = True,
    ) -> None:
        self._store = store
        self._state_store = state_store
        self._aggregator = aggregator
        self._registry = registry or StrategyRegistry()
        self._root = root
        self._use_emoji = use_emoji

    def plan(self, settings: CacheSettings) -> RestorePlan:
        """Compute the cache path set, manifest files and key plan for ``settings``.

        The key's platform segment always comes from ``settings.platform``.

        Raises:
            DepcacheError: If ``settings`` names an unsupported ecosystem.
        """

        aggregator = self._aggregator or PathAggregator(
            registry=self._registry,
            runner=make_probe_runner(timeout=settings.detect_timeout, cwd=settings.root),
            platform=settings.platform,
            tool_cache_dir=settings.tool_cache_dir,
            use_emoji=settings.use_emoji,
        )
        paths = aggregator.aggregate(
            settings.ecosystems,
            settings.tool_versions,
            additional_paths=settings.additional_cache_paths,
            additional_manifests=settings.additional_manifests,
        )
        manifests = tuple(find_manifest_files(paths.manifest_patterns, settings.root))
        keys = build_key_plan(
            platform=settings.platform,
            tool_versions=settings.tool_versions,
            ecosystem=settings.primary_ecosystem,
            ecosystem_version=settings.ecosystem_version,
            branch=settings.branch,
            manifest_files=manifests,
            cache_bust=settings.cache_bust,
            use_emoji=settings.use_emoji,
        )
        return RestorePlan(
            paths=paths,
            manifest_files=manifests,
            keys=keys,
            ecosystems=tuple(settings.ecosystems),
        )

    def restore(self, settings: CacheSettings) -> RestoreOutcome:
        """Run the restore phase and record the handoff state for :meth:`save`.

        Returns:
            RestoreOutcome: Hit classification plus the computed keys and paths.
            Failures are reported in ``warnings`` with a ``miss`` classification.
        """

        use_emoji = settings.use_emoji
        label = self._format_ecosystems(settings.ecosystems, use_emoji)
        section(f"{emoji('💾 ', use_emoji)}Restoring cache for {label}")
        outcome = RestoreOutcome(ecosystems=list(settings.ecosystems))

        planned = attempt(lambda: self.plan(settings), fallback=None, context="Failed to restore cache")
        if isinstance(planned, Degraded):
            self._degrade(outcome, planned.reason, use_emoji=use_emoji)
            return outcome
        plan = planned.value
        self._report_plan(plan, label, use_emoji)
        outcome.primary_key = plan.primary_key
        outcome.restore_chain = list(plan.keys.restore_chain)
        outcome.cache_paths = list(plan.paths.cache_paths)
        outcome.manifest_files = list(plan.manifest_files)
        outcome.diagnostics = list(plan.paths.degraded)

        lookup = attempt(
            lambda: self._store.restore(list(plan.paths.cache_paths), plan.primary_key, list(plan.keys.restore_chain)),
            fallback=None,
            context="Failed to restore cache",
        )
        if isinstance(lookup, Degraded):
            self._degrade(outcome, lookup.reason, use_emoji=use_emoji)
        matched = lookup.value or None
        outcome.matched_key = matched
        outcome.hit = classify_hit(matched, plan.primary_key)
        if outcome.hit is HitState.MISS:
            info("Cache not found", use_emoji=use_emoji)
        else:
            ok(f"Cache restored from key: {matched} ({outcome.hit.value} hit)", use_emoji=use_emoji)

        state = LifecycleState(
            resolved_key=matched,
            primary_key=plan.primary_key,
            cache_paths=list(plan.paths.cache_paths),
            ecosystems=list(plan.ecosystems),
        )
        recorded = attempt(
            lambda: self._state_store.write(state),
            fallback=None,
            context="Failed to record cache state",
        )
        if isinstance(recorded, Degraded):
            self._degrade(outcome, recorded.reason, use_emoji=use_emoji, classify=False)
            # A record this phase could not write must not feed the save phase.
            dropped = attempt(self._state_store.discard, fallback=None, context="Failed to discard cache state")
            if isinstance(dropped, Degraded):
                self._degrade(outcome, dropped.reason, use_emoji=use_emoji, classify=False)
        return outcome

    def save(self) -> SaveOutcome:
        """Run the save phase using the state recorded by :meth:`restore`.

        Returns:
            SaveOutcome: ``saved`` with the store identifier, ``skipped`` with the
            reason, or ``failed`` when the store could not persist the entry.
        """

        use_emoji = self._use_emoji
        section(f"{emoji('💾 ', use_emoji)}Saving cache for dependencies")
        consumed = attempt(self._state_store.consume, fallback=None, context="Failed to read cache state")
        if isinstance(consumed, Degraded):
            warn(consumed.reason, use_emoji=use_emoji)
        state = consumed.value
        if state is None or not state.initialized:
            info("No primary key found, skipping cache save", use_emoji=use_emoji)
            return SaveOutcome(status="skipped", reason="not-initialized")

        key = state.primary_key
        if state.exact_hit:
            info(f"Cache hit occurred on primary key {key}, not saving cache", use_emoji=use_emoji)
            return SaveOutcome(status="skipped", key=key, reason="exact-hit")

        managers = ", ".join(state.ecosystems) if state.ecosystems else "unknown"
        info(f"Package managers: {managers}", use_emoji=use_emoji)
        info(f"Cache key: {key}", use_emoji=use_emoji)
        info(f"Cache paths ({len(state.cache_paths)} total):", use_emoji=use_emoji)
        for path in state.cache_paths:
            info(f"  - {path}", use_emoji=False)

        present = attempt(
            lambda: any_path_exists(state.cache_paths, cwd=self._root),
            fallback=False,
            context="Failed to inspect cache paths",
        )
        if isinstance(present, Degraded):
            warn(present.reason, use_emoji=use_emoji)
        if not present.value:
            info("No cache paths exist, skipping cache save", use_emoji=use_emoji)
            return SaveOutcome(status="skipped", key=key, reason="no-paths")

        saved = attempt(
            lambda: self._store.save(list(state.cache_paths), key),
            fallback=SAVE_FAILED,
            context="Failed to save cache",
        )
        if isinstance(saved, Degraded):
            warn(saved.reason, use_emoji=use_emoji)
            return SaveOutcome(status="failed", key=key, message=saved.reason)
        if saved.value == SAVE_FAILED:
            warn("Cache save failed", use_emoji=use_emoji)
            return SaveOutcome(status="failed", key=key, message="Cache save failed")
        ok(f"Cache saved successfully with key: {key}", use_emoji=use_emoji)
        return SaveOutcome(status="saved", key=key, cache_id=saved.value)

    def _report_plan(self, plan: RestorePlan, label: str, use_emoji: bool) -> None:
        if plan.manifest_files:
            info(f"Found lock files: {', '.join(str(path) for path in plan.manifest_files)}", use_emoji=use_emoji)
        else:
            info(f"No lock files found for {label}, caching without lockfile hash", use_emoji=use_emoji)
        info(
            f"Cache paths ({len(plan.paths.cache_paths)} total): {', '.join(plan.paths.cache_paths)}",
            use_emoji=use_emoji,
        )
        info(f"Primary key: {plan.primary_key}", use_emoji=use_emoji)
        chain = ", ".join(plan.keys.restore_chain) if plan.keys.restore_chain else "(none - exact match only)"
        info(f"Restore keys: {chain}", use_emoji=use_emoji)

    def _degrade(self, outcome: RestoreOutcome, reason: str, *, use_emoji: bool, classify: bool = True) -> None:
        warn(reason, use_emoji=use_emoji)
        outcome.warnings = [*outcome.warnings, reason]
        if classify:
            outcome.hit = HitState.MISS
            outcome.matched_key = None

    def _format_ecosystems(self, ecosystems: Sequence[str], use_emoji: bool) -> str:
        labels = []
        for name in ecosystems:
            try:
                strategy = self._registry.get(name)
            except UnknownEcosystemError:
                labels.append(name)
                continue
            labels.append(f"{emoji(strategy.emoji + ' ', use_emoji)}{name}")
        return ", ".join(labels) or "dependencies"


__all__ = ["LifecycleCoordinator", "RestorePlan"]
