"""Domain models for tab snapshots, icon states and host events."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from vertical_tabs.urls import hostname_of, origin_of

UNTITLED = "Untitled"
GLYPH_COLORS: tuple[str, ...] = (
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#FFA07A",
    "#98D8C8",
    "#F7DC6F",
    "#BB8FCE",
    "#85C1E2",
)


class IconKind(str, Enum):
    """How the panel should paint the icon of one item."""

    DEFAULT = "default"
    PENDING = "pending"
    UNAVAILABLE = "unavailable"
    RESOLVED = "resolved"


class CacheState(str, Enum):
    """Favicon cache entry lifecycle states."""

    UNRESOLVED = "unresolved"
    IN_FLIGHT = "in_flight"
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"


class HostEventKind(str, Enum):
    """Change notifications delivered by the host."""

    CREATED = "created"
    REMOVED = "removed"
    UPDATED = "updated"
    ACTIVATED = "activated"
    MOVED = "moved"


@dataclass(slots=True, frozen=True)
class IconState:
    """Resolved icon state of a work-item view."""

    kind: IconKind
    data: str | None = None

    @classmethod
    def default(cls) -> IconState:
        return cls(IconKind.DEFAULT)

    @classmethod
    def pending(cls) -> IconState:
        return cls(IconKind.PENDING)

    @classmethod
    def unavailable(cls) -> IconState:
        return cls(IconKind.UNAVAILABLE)

    @classmethod
    def resolved(cls, data: str) -> IconState:
        return cls(IconKind.RESOLVED, data)

    def to_wire(self) -> str:
        """Single string the panel understands: image data or the state name."""

        if self.kind is IconKind.RESOLVED and self.data:
            return self.data
        return self.kind.value


@dataclass(slots=True, frozen=True)
class FaviconCacheEntry:
    """Cached favicon state for one origin."""

    state: CacheState = CacheState.UNRESOLVED
    data: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in {CacheState.RESOLVED, CacheState.UNAVAILABLE}


@dataclass(slots=True, frozen=True)
class WorkItem:
    """Read-only copy of one host work-item (browser tab)."""

    id: int
    title: str
    url: str
    pinned: bool = False
    active: bool = False
    fav_icon_url: str | None = None
    window_id: int = 1
    status: str | None = None

    @property
    def origin(self) -> str:
        return origin_of(self.url)

    @property
    def hostname(self) -> str:
        return hostname_of(self.url)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> WorkItem:
        """Build an item from the host's camelCase tab payload."""

        return cls(
            id=int(payload["id"]),
            title=str(payload.get("title") or ""),
            url=str(payload.get("url") or ""),
            pinned=bool(payload.get("pinned", False)),
            active=bool(payload.get("active", False)),
            fav_icon_url=payload.get("favIconUrl") or None,
            window_id=int(payload.get("windowId") or 1),
            status=payload.get("status"),
        )


@dataclass(slots=True, frozen=True)
class Glyph:
    """Generated letter icon used when no image is available."""

    letter: str
    color: str


def placeholder_glyph(title: str) -> Glyph:
    letter = (title or "?")[0].upper()
    return Glyph(letter=letter, color=GLYPH_COLORS[ord(letter) % len(GLYPH_COLORS)])


@dataclass(slots=True, frozen=True)
class WorkItemView:
    """Work-item as pushed to observers, with its resolved icon state."""

    id: int
    title: str
    url: str
    origin: str
    pinned: bool
    active: bool
    icon: IconState

    @classmethod
    def from_item(cls, item: WorkItem, icon: IconState) -> WorkItemView:
        return cls(
            id=item.id,
            title=item.title or UNTITLED,
            url=item.url,
            origin=item.origin,
            pinned=item.pinned,
            active=item.active,
            icon=icon,
        )

    @property
    def glyph(self) -> Glyph | None:
        if self.icon.kind is IconKind.RESOLVED:
            return None
        return placeholder_glyph(self.title)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "favIconUrl": self.icon.to_wire(),
            "active": self.active,
            "pinned": self.pinned,
        }
        glyph = self.glyph
        if glyph is not None:
            payload["glyph"] = {"letter": glyph.letter, "color": glyph.color}
        return payload


@dataclass(slots=True, frozen=True)
class TabSnapshot:
    """Ordered pinned/regular partitions, rebuilt on every sync cycle."""

    pinned: tuple[WorkItemView, ...] = ()
    regular: tuple[WorkItemView, ...] = ()

    @property
    def items(self) -> tuple[WorkItemView, ...]:
        return self.pinned + self.regular

    def pending_origins(self) -> set[str]:
        return {
            view.origin
            for view in self.items
            if view.icon.kind is IconKind.PENDING and view.origin
        }

    def to_dict(self) -> dict[str, list[dict[str, object]]]:
        return {
            "pinned": [view.to_dict() for view in self.pinned],
            "regular": [view.to_dict() for view in self.regular],
        }


@dataclass(slots=True, frozen=True)
class HostEvent:
    """One change notification from the host."""

    kind: HostEventKind
    tab_id: int | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    item: WorkItem | None = None

    @property
    def fav_icon_url(self) -> str | None:
        value = self.changes.get("favIconUrl")
        return str(value) if value else None

    @property
    def load_complete(self) -> bool:
        return self.changes.get("status") == "complete"
