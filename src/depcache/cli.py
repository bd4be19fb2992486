# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Command-line entry points for the restore, save and key commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Final, Optional

import typer

from .config import CacheSettings, SaveSettings, load_save_settings, load_settings, parse_version_map
from .errors import ConfigError, DepcacheError
from .lifecycle import LifecycleCoordinator
from .logging import fail, info, set_debug, warn
from .state import FileStateStore, default_run_id, default_state_path
from .store import LocalDirectoryStore

DEFAULT_STORE_DIR: Final[Path] = Path("~/.cache/depcache/store")

app = typer.Typer(
    name="depcache",
    help="Restore and save CI dependency caches keyed by toolchain and lockfiles.",
    no_args_is_help=True,
    add_completion=False,
)

RootOption = Annotated[
    Path,
    typer.Option("--root", help="Project root searched for lockfiles.", file_okay=False, resolve_path=True),
]
EcosystemOption = Annotated[
    Optional[list[str]],
    typer.Option("--ecosystem", "-e", help="Package manager to cache; repeat for several."),
]
EcosystemVersionOption = Annotated[
    Optional[str],
    typer.Option("--package-manager-version", help="Version of the primary package manager."),
]
ToolVersionOption = Annotated[
    Optional[list[str]],
    typer.Option("--tool-version", "-t", help="Runtime version as name=version; repeat for several."),
]
BranchOption = Annotated[Optional[str], typer.Option("--branch", help="Branch name for the cache key.")]
CacheBustOption = Annotated[
    Optional[str],
    typer.Option("--cache-bust", help="Token forcing exact-match-only lookups."),
]
CachePathsOption = Annotated[
    Optional[str],
    typer.Option("--additional-cache-paths", help="Extra cache paths (JSON, newline or comma list)."),
]
LockfilesOption = Annotated[
    Optional[str],
    typer.Option("--additional-lockfiles", help="Extra lockfile patterns (JSON, newline or comma list)."),
]
PlatformOption = Annotated[Optional[str], typer.Option("--platform", help="Override the platform key segment.")]
TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--detect-timeout", help="Seconds allowed per cache-path probe; 0 disables the limit."),
]
StoreOption = Annotated[Optional[Path], typer.Option("--store-dir", help="Directory backing the local cache store.")]
StateOption = Annotated[Optional[Path], typer.Option("--state-file", help="Location of the restore/save handoff file.")]
EmojiOption = Annotated[Optional[bool], typer.Option("--emoji/--no-emoji", help="Toggle emoji in output.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Print debug diagnostics.")]
JsonOption = Annotated[bool, typer.Option("--json", help="Print the outcome as JSON.")]


def _load(root: Path, overrides: dict[str, Any]) -> CacheSettings:
    try:
        settings = load_settings(root, overrides=overrides)
    except ConfigError as exc:
        fail(str(exc), use_emoji=overrides.get("use_emoji") is not False)
        raise typer.Exit(code=1) from exc
    set_debug(settings.debug or None)
    return settings


def _restore_overrides(
    *,
    ecosystems: list[str] | None,
    ecosystem_version: str | None,
    tool_versions: list[str] | None,
    branch: str | None,
    cache_bust: str | None,
    additional_cache_paths: str | None,
    additional_lockfiles: str | None,
    platform: str | None,
    detect_timeout: float | None,
    store_dir: Path | None,
    state_file: Path | None,
    use_emoji: bool | None,
    debug: bool,
) -> dict[str, Any]:
    versions: dict[str, str] | None = None
    if tool_versions:
        try:
            versions = parse_version_map(",".join(tool_versions))
        except ValueError as exc:
            fail(str(exc), use_emoji=use_emoji is not False)
            raise typer.Exit(code=1) from exc
    return {
        "ecosystems": ecosystems or None,
        "ecosystem_version": ecosystem_version,
        "tool_versions": versions,
        "branch": branch,
        "cache_bust": cache_bust,
        "additional_cache_paths": additional_cache_paths,
        "additional_manifests": additional_lockfiles,
        "platform": platform,
        "detect_timeout": detect_timeout,
        "store_dir": store_dir,
        "state_file": state_file,
        "use_emoji": use_emoji,
        "debug": debug or None,
    }


def _coordinator(settings: CacheSettings | SaveSettings) -> LifecycleCoordinator:
    store_dir = (settings.store_dir or DEFAULT_STORE_DIR).expanduser()
    state_path = settings.state_file or default_state_path()
    return LifecycleCoordinator(
        LocalDirectoryStore(store_dir, cwd=settings.root),
        FileStateStore(state_path, run_id=default_run_id(), use_emoji=settings.use_emoji),
        root=settings.root,
        use_emoji=settings.use_emoji,
    )


@app.command()
def restore(
    root: RootOption = Path("."),
    ecosystems: EcosystemOption = None,
    ecosystem_version: EcosystemVersionOption = None,
    tool_versions: ToolVersionOption = None,
    branch: BranchOption = None,
    cache_bust: CacheBustOption = None,
    additional_cache_paths: CachePathsOption = None,
    additional_lockfiles: LockfilesOption = None,
    platform: PlatformOption = None,
    detect_timeout: TimeoutOption = None,
    store_dir: StoreOption = None,
    state_file: StateOption = None,
    use_emoji: EmojiOption = None,
    debug: DebugOption = False,
    as_json: JsonOption = False,
) -> None:
    """Restore the dependency cache before the build and record state for ``save``."""

    overrides = _restore_overrides(
        ecosystems=ecosystems,
        ecosystem_version=ecosystem_version,
        tool_versions=tool_versions,
        branch=branch,
        cache_bust=cache_bust,
        additional_cache_paths=additional_cache_paths,
        additional_lockfiles=additional_lockfiles,
        platform=platform,
        detect_timeout=detect_timeout,
        store_dir=store_dir,
        state_file=state_file,
        use_emoji=use_emoji,
        debug=debug,
    )
    settings = _load(root, overrides)
    outcome = _coordinator(settings).restore(settings)
    if as_json:
        payload = {**outcome.model_dump(mode="json"), "outputs": outcome.outputs()}
        typer.echo(json.dumps(payload, indent=2))
        return
    for name, value in outcome.outputs().items():
        info(f"{name}={value}", use_emoji=False)


@app.command()
def save(
    root: RootOption = Path("."),
    store_dir: StoreOption = None,
    state_file: StateOption = None,
    use_emoji: EmojiOption = None,
    debug: DebugOption = False,
    as_json: JsonOption = False,
) -> None:
    """Save the dependency cache after the build unless the restore was an exact hit.

    Configuration problems never fail this command: they are reported and the
    save continues with default locations.
    """

    overrides = {
        "store_dir": store_dir,
        "state_file": state_file,
        "use_emoji": use_emoji,
        "debug": debug or None,
    }
    try:
        settings = load_save_settings(root, overrides=overrides)
    except ConfigError as exc:
        warn(f"{exc}; continuing with default save settings", use_emoji=use_emoji is not False)
        settings = SaveSettings(
            root=root,
            state_file=state_file,
            store_dir=store_dir,
            use_emoji=use_emoji is not False,
            debug=debug,
        )
    set_debug(settings.debug or None)
    outcome = _coordinator(settings).save()
    if as_json:
        typer.echo(outcome.model_dump_json(indent=2))


@app.command()
def key(
    root: RootOption = Path("."),
    ecosystems: EcosystemOption = None,
    ecosystem_version: EcosystemVersionOption = None,
    tool_versions: ToolVersionOption = None,
    branch: BranchOption = None,
    cache_bust: CacheBustOption = None,
    additional_cache_paths: CachePathsOption = None,
    additional_lockfiles: LockfilesOption = None,
    platform: PlatformOption = None,
    detect_timeout: TimeoutOption = None,
    use_emoji: EmojiOption = None,
    debug: DebugOption = False,
    as_json: JsonOption = False,
) -> None:
    """Print the primary key and restore chain without touching the store."""

    overrides = _restore_overrides(
        ecosystems=ecosystems,
        ecosystem_version=ecosystem_version,
        tool_versions=tool_versions,
        branch=branch,
        cache_bust=cache_bust,
        additional_cache_paths=additional_cache_paths,
        additional_lockfiles=additional_lockfiles,
        platform=platform,
        detect_timeout=detect_timeout,
        store_dir=None,
        state_file=None,
        use_emoji=use_emoji,
        debug=debug,
    )
    settings = _load(root, overrides)
    try:
        plan = _coordinator(settings).plan(settings)
    except DepcacheError as exc:
        fail(str(exc), use_emoji=settings.use_emoji)
        raise typer.Exit(code=1) from exc
    if as_json:
        payload = {
            "primary_key": plan.primary_key,
            "restore_chain": list(plan.keys.restore_chain),
            "cache_paths": list(plan.paths.cache_paths),
            "lockfiles": [str(path) for path in plan.manifest_files],
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    typer.echo(plan.primary_key)
    for prefix in plan.keys.restore_chain:
        typer.echo(prefix)


def main() -> None:
    """Console-script entry point."""

    app()


__all__ = ["app", "main"]
