"""Debounced snapshot broadcasting with post-push favicon resolution.

A sync cycle is a two-phase pipeline. Phase one snapshots the host and pushes
``UPDATE_TABS`` to every surface. Phase two runs in the background: it
resolves the origins that were ``pending`` in that snapshot, pushes again and
repeats only for origins it has not attempted yet. Cache entries never leave
a terminal state and exhausted origins classify as ``unavailable``, so a
burst costs at most two pushes unless new tabs keep appearing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from vertical_tabs.aggregator import build_snapshot
from vertical_tabs.favicon.cache import FaviconCache
from vertical_tabs.host.base import DeliveryError, HostError, PanelChannel, TabHost
from vertical_tabs.models import TabSnapshot
from vertical_tabs.protocol import UpdateTabs

logger = logging.getLogger(__name__)


class CoalescerState(str, Enum):
    IDLE = "idle"
    TIMER_ARMED = "timer_armed"


@dataclass(slots=True)
class BroadcastCounters:
    """Running totals, reported by the CLI."""

    cycles: int = 0
    deliveries: int = 0
    delivery_failures: int = 0
    resolution_passes: int = 0


class Broadcaster:
    """Coalesces host events into snapshot pushes to every panel surface."""

    def __init__(
        self,
        *,
        host: TabHost,
        channel: PanelChannel,
        cache: FaviconCache,
        debounce_seconds: float = 0.1,
        follow_up_delays: Sequence[float] = (1.0, 3.5),
    ) -> None:
        self.host = host
        self.channel = channel
        self.cache = cache
        self.debounce_seconds = debounce_seconds
        self.follow_up_delays = tuple(follow_up_delays)
        self.counters = BroadcastCounters()
        self.last_snapshot: TabSnapshot | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._follow_ups: list[asyncio.TimerHandle] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def state(self) -> CoalescerState:
        if self._timer is None:
            return CoalescerState.IDLE
        return CoalescerState.TIMER_ARMED

    def schedule_broadcast(self) -> None:
        """Arm the debounce timer, replacing any timer already armed."""

        if self._closed:
            return
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)

    def schedule_follow_ups(self, delays: Sequence[float] | None = None) -> None:
        """Queue delayed re-broadcasts for icons the host reports late."""

        if self._closed:
            return
        loop = asyncio.get_running_loop()
        now = loop.time()
        self._follow_ups = [handle for handle in self._follow_ups if handle.when() > now]
        for delay in self.follow_up_delays if delays is None else delays:
            self._follow_ups.append(loop.call_later(delay, self.schedule_broadcast))

    def broadcast_soon(self) -> None:
        """Run an immediate cycle without waiting for it."""

        self._spawn(self.broadcast_now())

    async def broadcast_now(self) -> TabSnapshot | None:
        """Phase one now; phase two is left running in the background."""

        current = await self._push_snapshot()
        if current is not None:
            pending = current.pending_origins()
            if pending:
                self._spawn(self._resolve_and_repush(pending))
        return current

    async def drain(self) -> None:
        """Wait until no broadcast task or favicon upgrade is running."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.cache.drain()

    def close(self) -> None:
        """Cancel armed timers; later schedule calls are ignored."""

        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for handle in self._follow_ups:
            handle.cancel()
        self._follow_ups.clear()

    def _on_timer(self) -> None:
        self._timer = None
        self._spawn(self.broadcast_now())

    async def _push_snapshot(self) -> TabSnapshot | None:
        try:
            items = await self.host.list_work_items()
        except HostError as exc:
            logger.warning("Skipping sync cycle, host query failed: %s", exc)
            return None

        current = build_snapshot(items, self.cache)
        self.last_snapshot = current
        self.counters.cycles += 1
        message = UpdateTabs(current).to_message()
        results = await asyncio.gather(
            *(self._deliver(item.id, message) for item in items),
            return_exceptions=True,
        )
        for item, result in zip(items, results, strict=True):
            if isinstance(result, Exception):
                self.counters.delivery_failures += 1
                logger.warning("Delivery to tab %s failed: %s", item.id, result)
        return current

    async def _deliver(self, tab_id: int, message: dict[str, Any]) -> None:
        try:
            await self.channel.send(tab_id, message)
        except DeliveryError:
            # Surface not injected yet; the next cycle reaches it.
            self.counters.delivery_failures += 1
            logger.debug("Tab %s not ready for UPDATE_TABS", tab_id)
            return
        self.counters.deliveries += 1

    async def _resolve_and_repush(self, origins: set[str]) -> None:
        attempted: set[str] = set()
        while origins:
            attempted |= origins
            self.counters.resolution_passes += 1
            await self.cache.resolve_many(origins)
            current = await self._push_snapshot()
            if current is None:
                return
            origins = current.pending_origins() - attempted

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Broadcast task failed", exc_info=exc)
