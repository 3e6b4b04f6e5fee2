from __future__ import annotations

import concurrent.futures
import json

from src.core.bridge import SecureBridge
from src.core.clients import ClientRegistry, WindowClient
from src.core.sync import BackgroundSync
from src.foreground.page import ForegroundPage
from src.foreground.storage import DurableStorage
from src.models.messages import StorageValue

from conftest import ORIGIN, FakeBackend


def _wait(page: ForegroundPage) -> None:
    concurrent.futures.wait(list(page.acks), timeout=5)


def test_offline_sessions_are_synced_through_the_page(active_agent) -> None:
    backend = FakeBackend()
    page = ForegroundPage(active_agent, storage=DurableStorage(), backend=backend, user_id="user-1")
    first = page.queue_offline_session({"duration": 60})
    second = page.queue_offline_session({"duration": 90})

    sent = active_agent.sync_event()
    _wait(page)

    assert sent == 2
    assert [s["duration"] for s in backend.sessions] == [60, 90]
    assert all(s["user_id"] == "user-1" for s in backend.sessions)
    stored = {s["id"]: s["synced"] for s in page.offline_sessions()}
    assert stored == {first["id"]: True, second["id"]: True}


def test_already_synced_sessions_are_not_resent(active_agent) -> None:
    backend = FakeBackend()
    page = ForegroundPage(active_agent, backend=backend, user_id="user-1")
    page.storage.set_item("offline_workout_sessions", json.dumps([{"id": "a", "synced": True}]))

    assert active_agent.sync_event() == 0
    assert backend.sessions == []


def test_failed_save_leaves_session_unsynced(active_agent) -> None:
    backend = FakeBackend()
    backend.fail_sessions = True
    page = ForegroundPage(active_agent, backend=backend, user_id="user-1")
    page.queue_offline_session({"duration": 30})

    assert active_agent.sync_event() == 1
    _wait(page)

    assert [s["synced"] for s in page.offline_sessions()] == [False]
    assert page.client.messages_of_type("SET_STORAGE") == []


def test_page_without_user_reports_failure(active_agent) -> None:
    page = ForegroundPage(active_agent)
    page.queue_offline_session({"duration": 30})

    active_agent.sync_event()
    _wait(page)

    assert [s["synced"] for s in page.offline_sessions()] == [False]
    assert [a.result() for a in page.acks] == [False]


def test_sync_without_open_page_is_a_no_op(active_agent) -> None:
    assert active_agent.sync_event() == 0


def test_unknown_sync_tag_is_ignored(active_agent) -> None:
    assert active_agent.sync_event("sync-something-else") == 0


def _sync_with_reply(value) -> BackgroundSync:
    clients = ClientRegistry(ORIGIN)
    bridge = SecureBridge(clients)

    def answer(message):
        if message["type"] == "GET_STORAGE":
            bridge.handle_response(StorageValue(key=message["key"], value=value, request_id=message["requestId"]))

    clients.add(WindowClient(f"{ORIGIN}/", on_message=answer))
    return BackgroundSync(bridge, read_timeout=1)


def test_corrupt_session_store_is_logged_not_raised() -> None:
    sync = _sync_with_reply("{not json")
    assert sync.sync_sessions() == 0
    assert sync.mark_session_synced("a") is False


def test_unanswered_read_times_out() -> None:
    clients = ClientRegistry(ORIGIN)
    clients.add(WindowClient(f"{ORIGIN}/"))
    sync = BackgroundSync(SecureBridge(clients), read_timeout=0.05)

    assert sync.sync_sessions() == 0


def test_mark_unknown_session_leaves_store_untouched() -> None:
    sync = _sync_with_reply(json.dumps([{"id": "a", "synced": False}]))
    assert sync.mark_session_synced("b") is False
    assert sync.mark_session_synced("a") is True
