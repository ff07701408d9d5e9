"""Contracts for the host tab service and the panel delivery channel."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from vertical_tabs.models import WorkItem


@dataclass(slots=True)
class HostError(Exception):
    """Base error raised by host tab-service calls."""

    message: str
    code: str = "host_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class StaleTabError(HostError):
    """Host rejected a call because the tab no longer exists."""

    tab_id: int | None = None
    code: str = "stale_tab"


@dataclass(slots=True)
class DeliveryError(Exception):
    """Panel surface in a tab did not accept a message."""

    tab_id: int
    message: str = "observer not ready"

    def __str__(self) -> str:
        return f"{self.message} (tab {self.tab_id})"


class TabHost(Protocol):
    """Host tab-management service consumed by the sync engine."""

    async def list_work_items(self, window_id: int | None = None) -> list[WorkItem]:
        """Return items in host order; all windows when ``window_id`` is None."""
        raise NotImplementedError

    async def current_window_id(self) -> int:
        """Return the id of the window the user is focused on."""
        raise NotImplementedError

    async def activate(self, tab_id: int) -> None:
        raise NotImplementedError

    async def set_pinned(self, tab_id: int, pinned: bool) -> None:
        raise NotImplementedError

    async def close(self, tab_id: int) -> None:
        raise NotImplementedError

    async def move(self, tab_id: int, index: int) -> None:
        """Move the tab to an absolute position inside its window."""
        raise NotImplementedError

    async def reload(self, tab_id: int) -> None:
        raise NotImplementedError


class PanelChannel(Protocol):
    """Message channel to the panel surface injected into each tab."""

    async def send(self, tab_id: int, message: dict[str, Any]) -> dict[str, Any] | None:
        """Deliver a message; raise ``DeliveryError`` when the surface is not ready."""
        raise NotImplementedError
