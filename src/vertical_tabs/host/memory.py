"""In-process host and panel channel used by the CLI and the test-suite."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from vertical_tabs.host.base import DeliveryError, StaleTabError
from vertical_tabs.models import HostEvent, HostEventKind, WorkItem

HostListener = Callable[[HostEvent], None]


class InMemoryTabHost:
    """Ordered tab list with browser-like pinning and move semantics.

    Pinned tabs always precede regular tabs inside a window: pinning moves a
    tab to the end of the pinned block, unpinning to the start of the regular
    block, and moves are clamped to the tab's own partition.
    """

    def __init__(self, items: Iterable[WorkItem] = (), *, current_window_id: int = 1) -> None:
        self._items: list[WorkItem] = []
        self._listeners: list[HostListener] = []
        self._current_window_id = current_window_id
        self.calls: list[tuple[str, int, object]] = []
        self.reloaded: list[int] = []
        for item in items:
            self._insert(item)

    @classmethod
    def from_json_file(cls, path: Path) -> InMemoryTabHost:
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("tabs", [])
        if not isinstance(payload, list):
            raise ValueError(f"Expected a list of tabs in {path}")
        return cls(WorkItem.from_dict(entry) for entry in payload)

    def subscribe(self, listener: HostListener) -> None:
        self._listeners.append(listener)

    def get(self, tab_id: int) -> WorkItem | None:
        return next((item for item in self._items if item.id == tab_id), None)

    def add(self, item: WorkItem) -> WorkItem:
        self._insert(item)
        self._emit(HostEvent(HostEventKind.CREATED, tab_id=item.id, item=item))
        return item

    def update(self, tab_id: int, **changes: Any) -> WorkItem:
        """Apply host-side changes (title, url, favIconUrl, status) and notify."""

        current = self._require(tab_id)
        fields = {
            "title": changes.get("title", current.title),
            "url": changes.get("url", current.url),
            "fav_icon_url": changes.get("favIconUrl", current.fav_icon_url),
            "status": changes.get("status", current.status),
        }
        updated = replace(current, **fields)
        self._replace(updated)
        self._emit(HostEvent(HostEventKind.UPDATED, tab_id=tab_id, changes=changes, item=updated))
        return updated

    async def list_work_items(self, window_id: int | None = None) -> list[WorkItem]:
        if window_id is None:
            return list(self._items)
        return [item for item in self._items if item.window_id == window_id]

    async def current_window_id(self) -> int:
        return self._current_window_id

    async def activate(self, tab_id: int) -> None:
        target = self._require(tab_id)
        self.calls.append(("activate", tab_id, True))
        self._items = [
            replace(item, active=item.id == tab_id)
            if item.window_id == target.window_id
            else item
            for item in self._items
        ]
        self._emit(HostEvent(HostEventKind.ACTIVATED, tab_id=tab_id))

    async def set_pinned(self, tab_id: int, pinned: bool) -> None:
        current = self._require(tab_id)
        self.calls.append(("set_pinned", tab_id, pinned))
        if current.pinned == pinned:
            return
        self._items.remove(current)
        self._insert(replace(current, pinned=pinned), at_partition_start=not pinned)
        self._emit(
            HostEvent(HostEventKind.UPDATED, tab_id=tab_id, changes={"pinned": pinned}),
        )

    async def close(self, tab_id: int) -> None:
        current = self._require(tab_id)
        self.calls.append(("close", tab_id, None))
        self._items.remove(current)
        self._emit(HostEvent(HostEventKind.REMOVED, tab_id=tab_id))

    async def move(self, tab_id: int, index: int) -> None:
        current = self._require(tab_id)
        self.calls.append(("move", tab_id, index))
        window = [item for item in self._items if item.window_id == current.window_id]
        pinned_count = sum(1 for item in window if item.pinned)
        window.remove(current)
        if current.pinned:
            low, high = 0, pinned_count - 1
        else:
            low, high = pinned_count, len(window)
        window.insert(max(low, min(index, high)), current)
        others = [item for item in self._items if item.window_id != current.window_id]
        self._items = others + window
        self._emit(HostEvent(HostEventKind.MOVED, tab_id=tab_id))

    async def reload(self, tab_id: int) -> None:
        self._require(tab_id)
        self.calls.append(("reload", tab_id, None))
        self.reloaded.append(tab_id)

    def _require(self, tab_id: int) -> WorkItem:
        item = self.get(tab_id)
        if item is None:
            raise StaleTabError(f"No tab with id: {tab_id}", tab_id=tab_id)
        return item

    def _insert(self, item: WorkItem, *, at_partition_start: bool = False) -> None:
        window_positions = [
            position for position, other in enumerate(self._items)
            if other.window_id == item.window_id
        ]
        pinned_positions = [
            position for position in window_positions if self._items[position].pinned
        ]
        if not window_positions:
            position = len(self._items)
        elif item.pinned or at_partition_start:
            position = pinned_positions[-1] + 1 if pinned_positions else window_positions[0]
        else:
            position = window_positions[-1] + 1
        self._items.insert(position, item)

    def _replace(self, updated: WorkItem) -> None:
        self._items = [updated if item.id == updated.id else item for item in self._items]

    def _emit(self, event: HostEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


class InMemoryPanelChannel:
    """Records pushed messages per tab and answers ``PING`` for ready surfaces."""

    def __init__(self, ready: Iterable[int] = (), *, all_ready: bool = False) -> None:
        self.ready: set[int] = set(ready)
        self.all_ready = all_ready
        self.delivered: dict[int, list[dict[str, Any]]] = {}

    async def send(self, tab_id: int, message: dict[str, Any]) -> dict[str, Any] | None:
        if not self.all_ready and tab_id not in self.ready:
            raise DeliveryError(tab_id)
        if message.get("type") == "PING":
            return {"pong": True}
        self.delivered.setdefault(tab_id, []).append(message)
        return None

    def pushes(self, tab_id: int) -> list[dict[str, Any]]:
        return [
            message for message in self.delivered.get(tab_id, [])
            if message.get("type") == "UPDATE_TABS"
        ]

    def last_snapshot(self, tab_id: int) -> dict[str, Any] | None:
        pushes = self.pushes(tab_id)
        return pushes[-1]["data"] if pushes else None
