"""Controllers for the vertical-tabs CLI commands."""

from __future__ import annotations

import asyncio
import base64
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from vertical_tabs.config import Settings
from vertical_tabs.favicon.cache import FaviconCache
from vertical_tabs.favicon.tiers import build_tiers
from vertical_tabs.host.memory import InMemoryPanelChannel, InMemoryTabHost
from vertical_tabs.http.fetcher import AsyncHttpFetcher
from vertical_tabs.models import CacheState, IconKind, TabSnapshot, WorkItemView
from vertical_tabs.preferences import PreferenceStore, Preferences
from vertical_tabs.service import TabSyncService
from vertical_tabs.urls import origin_of


@dataclass(slots=True)
class FaviconResolveCommand:
    """CLI inputs for favicon resolve command."""

    urls: tuple[str, ...]


@dataclass(slots=True)
class SnapshotCommand:
    """CLI inputs for snapshot command."""

    tabs_path: Path
    resolve: bool


@dataclass(slots=True)
class MoveCommand:
    """CLI inputs for move command."""

    tabs_path: Path
    tab_id: int
    index: int
    pin: bool | None


@dataclass(slots=True)
class PrefsShowCommand:
    preferences_path: Path | None
    hostname: str | None


@dataclass(slots=True)
class PrefsSetCommand:
    preferences_path: Path | None
    hostname: str | None
    enabled: bool | None
    mode: str | None


class TabsCliController:
    """Coordinates CLI command execution against an in-memory host."""

    def resolve_favicons(self, command: FaviconResolveCommand) -> list[str]:
        settings = _settings()
        return asyncio.run(self._resolve_favicons(settings, command))

    def snapshot(self, command: SnapshotCommand) -> list[str]:
        settings = _settings(offline=not command.resolve)
        return asyncio.run(self._snapshot(settings, command))

    def move(self, command: MoveCommand) -> list[str]:
        settings = _settings(offline=True)
        return asyncio.run(self._move(settings, command))

    def show_prefs(self, command: PrefsShowCommand) -> list[str]:
        settings = Settings.from_env(preferences_path=command.preferences_path)
        preferences = PreferenceStore(settings.preferences_path).load()
        return _preference_lines(preferences, command.hostname)

    def set_prefs(self, command: PrefsSetCommand) -> list[str]:
        settings = Settings.from_env(preferences_path=command.preferences_path)
        preferences = PreferenceStore(settings.preferences_path).update(
            hostname=command.hostname,
            enabled=command.enabled,
            mode=command.mode,
        )
        return [
            f"Saved preferences to {settings.preferences_path}",
            *_preference_lines(preferences, command.hostname),
        ]

    async def _resolve_favicons(
        self,
        settings: Settings,
        command: FaviconResolveCommand,
    ) -> list[str]:
        origins = list(dict.fromkeys(origin_of(url) for url in command.urls))
        lines: list[str] = []
        async with AsyncHttpFetcher(
            timeout_seconds=settings.favicon.request_timeout_seconds,
            max_retries=settings.favicon.max_retries,
        ) as fetcher:
            cache = FaviconCache(tiers=build_tiers(settings.favicon, fetcher), fetcher=fetcher)
            await cache.resolve_many(origins)
            for url in command.urls:
                origin = origin_of(url)
                if not origin:
                    lines.append(f"{url}: not a network URL")
                    continue
                entry = cache.entry(origin)
                if entry.state is CacheState.RESOLVED and entry.data:
                    lines.append(f"{origin}: resolved {_describe_icon(entry.data)}")
                else:
                    lines.append(f"{origin}: {entry.state.value}")
        return lines

    async def _snapshot(self, settings: Settings, command: SnapshotCommand) -> list[str]:
        host = InMemoryTabHost.from_json_file(command.tabs_path)
        async with _running_service(settings, host) as service:
            await service.start(check_surfaces=False, prewarm=command.resolve)
            await service.drain()
            counters = service.broadcaster.counters
            lines = _snapshot_lines(service.broadcaster.last_snapshot)
        lines.append(
            "Sync: "
            f"cycles={counters.cycles} "
            f"deliveries={counters.deliveries} "
            f"resolution_passes={counters.resolution_passes}",
        )
        return lines

    async def _move(self, settings: Settings, command: MoveCommand) -> list[str]:
        host = InMemoryTabHost.from_json_file(command.tabs_path)
        if host.get(command.tab_id) is None:
            raise ValueError(f"No tab with id {command.tab_id} in {command.tabs_path}")
        payload: dict[str, object] = {
            "type": "MOVE_TAB",
            "tabId": command.tab_id,
            "newIndex": command.index,
        }
        if command.pin is not None:
            payload["pin"] = command.pin
        async with _running_service(settings, host) as service:
            await service.handle_message(payload)
            await service.drain()
            moves = [call for call in host.calls if call[0] == "move"]
            lines = _snapshot_lines(service.broadcaster.last_snapshot)
        if moves:
            lines.insert(0, f"Moved tab {command.tab_id} to absolute position {moves[-1][2]}")
        return lines


@asynccontextmanager
async def _running_service(
    settings: Settings,
    host: InMemoryTabHost,
) -> AsyncIterator[TabSyncService]:
    service = TabSyncService.from_settings(
        settings,
        host=host,
        channel=InMemoryPanelChannel(all_ready=True),
    )
    host.subscribe(service.handle_host_event)
    try:
        yield service
    finally:
        await service.close()


def _settings(*, offline: bool = False) -> Settings:
    settings = Settings.from_env()
    settings.validate()
    if offline:
        settings.favicon = replace(settings.favicon, direct_enabled=False, lookup_enabled=False)
    return settings


def _snapshot_lines(snapshot: TabSnapshot | None) -> list[str]:
    if snapshot is None:
        return ["No snapshot was pushed."]
    lines = [f"Pinned ({len(snapshot.pinned)}):"]
    lines.extend(_view_line(view) for view in snapshot.pinned)
    lines.append(f"Regular ({len(snapshot.regular)}):")
    lines.extend(_view_line(view) for view in snapshot.regular)
    return lines


def _view_line(view: WorkItemView) -> str:
    marker = "*" if view.active else " "
    if view.icon.kind is IconKind.RESOLVED and view.icon.data:
        icon = f"resolved {_describe_icon(view.icon.data)}"
    else:
        glyph = view.glyph
        icon = f"{view.icon.kind.value} glyph={glyph.letter}" if glyph else view.icon.kind.value
    return f" {marker} [{view.id}] {view.title} <{view.url}> icon={icon}"


def _describe_icon(data: str) -> str:
    if not data.startswith("data:") or ";base64," not in data:
        return f"url={data}"
    header, payload = data.split(";base64,", 1)
    size = len(base64.b64decode(payload, validate=False))
    return f"{header[len('data:'):]} {size} bytes"


def _preference_lines(preferences: Preferences, hostname: str | None) -> list[str]:
    lines = [
        f"Global: enabled={preferences.enabled} mode={preferences.mode}",
    ]
    for site_host, site in sorted(preferences.sites.items()):
        lines.append(f"Site {site_host}: enabled={site.enabled} mode={site.mode}")
    if hostname:
        effective = preferences.effective(hostname)
        lines.append(
            f"Effective for {hostname}: enabled={effective.enabled} mode={effective.mode or '-'}",
        )
    return lines
