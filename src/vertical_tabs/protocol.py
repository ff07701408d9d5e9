"""Wire messages exchanged with the panel surfaces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from vertical_tabs.models import TabSnapshot

UPDATE_TABS = "UPDATE_TABS"
PING = "PING"
PONG = "PONG"


class ProtocolError(ValueError):
    """Panel message is unknown or misses required fields."""


@dataclass(slots=True, frozen=True)
class UpdateTabs:
    """Snapshot push delivered to every panel surface."""

    data: TabSnapshot

    def to_message(self) -> dict[str, Any]:
        return {"type": UPDATE_TABS, "data": self.data.to_dict()}


@dataclass(slots=True, frozen=True)
class SwitchTab:
    tab_id: int
    url: str | None = None


@dataclass(slots=True, frozen=True)
class PinTab:
    tab_id: int
    pin: bool


@dataclass(slots=True, frozen=True)
class CloseTab:
    tab_id: int


@dataclass(slots=True, frozen=True)
class MoveTab:
    """Reorder request; ``pin`` set means "change pinned state first"."""

    tab_id: int
    new_index: int | None = None
    pin: bool | None = None


@dataclass(slots=True, frozen=True)
class ReloadSite:
    hostname: str


@dataclass(slots=True, frozen=True)
class Ping:
    pass


@dataclass(slots=True, frozen=True)
class FetchFavicon:
    """Legacy request: look a hostname up in the icon service only."""

    hostname: str


Command = SwitchTab | PinTab | CloseTab | MoveTab | ReloadSite | Ping | FetchFavicon


def pong() -> dict[str, Any]:
    return {"type": PONG, "pong": True}


def parse_command(payload: dict[str, Any]) -> Command:
    """Turn a camelCase panel message into a typed command."""

    kind = payload.get("type")
    if kind == PING:
        return Ping()
    if kind == "SWITCH_TAB":
        url = payload.get("url")
        return SwitchTab(tab_id=_tab_id(payload), url=str(url) if url else None)
    if kind == "PIN_TAB":
        return PinTab(tab_id=_tab_id(payload), pin=bool(payload.get("pin")))
    if kind == "CLOSE_TAB":
        return CloseTab(tab_id=_tab_id(payload))
    if kind == "MOVE_TAB":
        pin = payload.get("pin")
        return MoveTab(
            tab_id=_tab_id(payload),
            new_index=_optional_int(payload, "newIndex"),
            pin=pin if isinstance(pin, bool) else None,
        )
    if kind == "RELOAD_SITE":
        return ReloadSite(hostname=_required_str(payload, "hostname"))
    if kind == "FETCH_FAVICON":
        return FetchFavicon(hostname=_required_str(payload, "hostname"))
    raise ProtocolError(f"Unknown message type: {kind!r}")


def _tab_id(payload: dict[str, Any]) -> int:
    value = payload.get("tabId")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(
            f"Message {payload.get('type')!r} requires integer tabId, got {value!r}",
        )
    return value


def _optional_int(payload: dict[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ProtocolError(f"Invalid {key}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise ProtocolError(f"Invalid {key}: {value!r}") from error


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ProtocolError(f"Message {payload.get('type')!r} requires non-empty {key}")
    return value.strip()
