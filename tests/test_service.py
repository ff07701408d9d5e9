from __future__ import annotations

import asyncio

import allure

from vertical_tabs.broadcast import CoalescerState
from vertical_tabs.config import BroadcastSettings, FaviconSettings, Settings
from vertical_tabs.host.base import HostError
from vertical_tabs.host.memory import InMemoryPanelChannel, InMemoryTabHost
from vertical_tabs.http.fetcher import AsyncHttpFetcher
from vertical_tabs.models import CacheState, HostEvent, HostEventKind, WorkItem
from vertical_tabs.service import TabSyncService

pytestmark = [
    allure.epic("Sync Engine"),
    allure.feature("Service Wiring"),
]


def _settings(lookup_template: str, **broadcast) -> Settings:
    return Settings(
        favicon=FaviconSettings(lookup_url_template=lookup_template),
        broadcast=BroadcastSettings(**broadcast),
    )


def _service(icon_server, lookup_template, host, channel, **broadcast) -> TabSyncService:
    service = TabSyncService.from_settings(
        _settings(lookup_template, **broadcast),
        host=host,
        channel=channel,
        fetcher=AsyncHttpFetcher(transport=icon_server.transport()),
    )
    host.subscribe(service.handle_host_event)
    return service


def test_start_prewarms_pushes_and_reinjects_dead_surfaces(icon_server, lookup_url) -> None:
    icon_server.icon("https://a.test/favicon.ico")
    icon_server.icon("https://cdn.test/b.png")
    host = InMemoryTabHost(
        [
            WorkItem(id=1, title="A", url="https://a.test/"),
            WorkItem(id=2, title="Settings", url="chrome://settings"),
            WorkItem(id=3, title="B", url="https://b.test/", fav_icon_url="https://cdn.test/b.png"),
        ],
    )
    channel = InMemoryPanelChannel(ready={1})

    async def scenario() -> TabSyncService:
        service = _service(
            icon_server,
            lookup_url("{hostname}"),
            host,
            channel,
            debounce_seconds=0.01,
            surface_check_delay_seconds=0.02,
        )
        await service.start()
        await asyncio.sleep(0.1)
        await service.drain()
        await service.close()
        return service

    service = asyncio.run(scenario())

    assert host.reloaded == [3]
    assert service.cache.resolved_data("https://a.test").startswith("data:image/png")
    assert service.cache.resolved_data("https://b.test").startswith("data:image/png")
    final = channel.last_snapshot(1)
    assert final is not None
    assert all(view["favIconUrl"] != "pending" for view in final["regular"])
    assert service.broadcaster.counters.cycles >= 2


def test_structural_events_are_debounced(icon_server, lookup_url) -> None:
    host = InMemoryTabHost([WorkItem(id=1, title="Settings", url="chrome://settings")])
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> tuple[list[CoalescerState], TabSyncService]:
        service = _service(icon_server, lookup_url("{hostname}"), host, channel)
        states = [service.broadcaster.state]
        for kind in (HostEventKind.CREATED, HostEventKind.MOVED, HostEventKind.ACTIVATED):
            service.handle_host_event(HostEvent(kind, tab_id=1))
        states.append(service.broadcaster.state)
        await asyncio.sleep(0.2)
        await service.close()
        return states, service

    states, service = asyncio.run(scenario())

    assert states == [CoalescerState.IDLE, CoalescerState.TIMER_ARMED]
    assert service.broadcaster.counters.cycles == 1


def test_favicon_arrival_bypasses_debounce(icon_server, lookup_url) -> None:
    icon_server.delay = 0.05
    icon_server.icon("https://cdn.test/icon.png")
    host = InMemoryTabHost([WorkItem(id=1, title="Site", url="https://site.test/")])
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> tuple[int, CoalescerState, TabSyncService]:
        service = _service(
            icon_server,
            lookup_url("{hostname}"),
            host,
            channel,
            debounce_seconds=0.3,
            follow_up_delays=(0.05,),
        )
        host.update(1, favIconUrl="https://cdn.test/icon.png")
        await service.drain()
        immediate_cycles = service.broadcaster.counters.cycles
        await asyncio.sleep(0.1)
        armed = service.broadcaster.state
        await service.close()
        return immediate_cycles, armed, service

    immediate_cycles, armed, service = asyncio.run(scenario())

    assert immediate_cycles == 1
    assert armed is CoalescerState.TIMER_ARMED
    entry = service.cache.entry("https://site.test")
    assert entry.state is CacheState.RESOLVED
    assert entry.data is not None
    assert entry.data.startswith("data:image/png;base64,")
    first_push = channel.pushes(1)[0]["data"]["regular"][0]
    assert first_push["favIconUrl"] == "https://cdn.test/icon.png"


def test_load_complete_schedules_follow_ups(icon_server, lookup_url) -> None:
    host = InMemoryTabHost([WorkItem(id=1, title="Settings", url="chrome://settings")])
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> TabSyncService:
        service = _service(
            icon_server,
            lookup_url("{hostname}"),
            host,
            channel,
            debounce_seconds=0.01,
            follow_up_delays=(0.08, 0.16),
        )
        host.update(1, status="complete")
        await asyncio.sleep(0.3)
        await service.close()
        return service

    service = asyncio.run(scenario())

    assert service.broadcaster.counters.cycles == 3


def test_host_mutations_reach_panels_through_subscription(icon_server, lookup_url) -> None:
    host = InMemoryTabHost([WorkItem(id=1, title="Settings", url="chrome://settings")])
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> TabSyncService:
        service = _service(icon_server, lookup_url("{hostname}"), host, channel)
        host.add(WorkItem(id=2, title="Flags", url="chrome://flags", pinned=True))
        await asyncio.sleep(0.2)
        await service.close()
        return service

    asyncio.run(scenario())

    snapshot = channel.last_snapshot(1)
    assert snapshot is not None
    assert [view["id"] for view in snapshot["pinned"]] == [2]
    assert [view["id"] for view in snapshot["regular"]] == [1]


def test_handle_message_parses_and_dispatches(icon_server, lookup_url) -> None:
    host = InMemoryTabHost(
        [
            WorkItem(id=1, title="A", url="chrome://a", pinned=True),
            WorkItem(id=2, title="B", url="chrome://b", pinned=True),
            WorkItem(id=3, title="C", url="chrome://c"),
            WorkItem(id=4, title="D", url="chrome://d"),
        ],
    )
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> list[object]:
        service = _service(icon_server, lookup_url("{hostname}"), host, channel)
        messages = [
            {"type": "PING"},
            {"type": "MOVE_TAB", "tabId": 4, "newIndex": 0, "pin": False},
            {"type": "NOT_A_COMMAND"},
            {"type": "CLOSE_TAB"},
        ]
        replies = [await service.handle_message(message) for message in messages]
        await service.close()
        return replies

    replies = asyncio.run(scenario())

    assert replies == [{"type": "PONG", "pong": True}, None, None, None]
    assert [item.id for item in asyncio.run(host.list_work_items())] == [1, 2, 4, 3]


def test_host_failures_during_commands_are_not_fatal(icon_server, lookup_url) -> None:
    class FlakyHost(InMemoryTabHost):
        async def set_pinned(self, tab_id: int, pinned: bool) -> None:
            raise HostError("tabs API unavailable")

        async def current_window_id(self) -> int:
            raise HostError("tabs API unavailable")

    host = FlakyHost([WorkItem(id=1, title="News", url="https://news.test/")])
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> list[object]:
        service = _service(icon_server, lookup_url("{hostname}"), host, channel)
        messages = [
            {"type": "PIN_TAB", "tabId": 1, "pin": True},
            {"type": "RELOAD_SITE", "hostname": "news.test"},
            {"type": "MOVE_TAB", "tabId": 1, "newIndex": 0, "pin": True},
            {"type": "MOVE_TAB", "tabId": 1, "newIndex": 0},
            {"type": "SWITCH_TAB", "tabId": 99, "url": "https://news.test/"},
            {"type": "PING"},
        ]
        replies = [await service.handle_message(message) for message in messages]
        await service.close()
        return replies

    replies = asyncio.run(scenario())

    assert replies == [None, None, None, None, None, {"type": "PONG", "pong": True}]
    assert host.reloaded == []
    assert [call for call in host.calls if call[0] == "move"] == []
    assert channel.delivered == {}


def test_close_leaves_no_timer_armed_by_late_icon_upgrade(icon_server, lookup_url) -> None:
    icon_server.delay = 0.05
    icon_server.icon("https://cdn.test/icon.png")
    host = InMemoryTabHost([WorkItem(id=1, title="Site", url="https://site.test/")])
    channel = InMemoryPanelChannel(all_ready=True)

    async def scenario() -> tuple[CoalescerState, TabSyncService]:
        service = _service(icon_server, lookup_url("{hostname}"), host, channel)
        service.cache.prewarm("https://site.test", "https://cdn.test/icon.png")
        await service.close()
        state = service.broadcaster.state
        service.broadcaster.schedule_broadcast()
        service.broadcaster.schedule_follow_ups()
        await asyncio.sleep(0.2)
        return state, service

    state, service = asyncio.run(scenario())

    assert state is CoalescerState.IDLE
    assert service.broadcaster.state is CoalescerState.IDLE
    assert service.broadcaster.counters.cycles == 0
    upgraded = service.cache.resolved_data("https://site.test")
    assert upgraded is not None
    assert upgraded.startswith("data:image/png;base64,")
