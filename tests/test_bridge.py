from __future__ import annotations

import threading

import pytest

from src.core.bridge import UNAVAILABLE, SecureBridge
from src.core.clients import ClientRegistry, WindowClient
from src.models.exceptions import BridgeException
from src.models.messages import StorageValue

ORIGIN = "https://plankcoach.app"


def _bridge():
    clients = ClientRegistry(ORIGIN)
    return SecureBridge(clients), clients


def test_read_without_open_client_resolves_unavailable_immediately() -> None:
    bridge, _ = _bridge()

    fut = bridge.get_storage("offline_workout_sessions")

    assert fut.done()
    assert fut.result() is UNAVAILABLE
    assert not fut.result()
    assert bridge.pending_count == 0


def test_late_reply_resolves_once_and_duplicates_are_ignored() -> None:
    bridge, clients = _bridge()
    page = clients.add(WindowClient(f"{ORIGIN}/"))

    fut = bridge.get_storage("K")
    request = page.messages_of_type("GET_STORAGE")[0]
    assert request["key"] == "K"
    assert bridge.pending_count == 1

    reply = StorageValue(key="K", value="V", request_id=request["requestId"])
    timer = threading.Timer(0.05, bridge.handle_response, args=(reply,))
    timer.start()
    try:
        assert fut.result(timeout=5) == "V"
    finally:
        timer.join()

    assert bridge.handle_response(reply) is False
    assert bridge.pending_count == 0


def test_concurrent_reads_of_the_same_key_are_correlated_by_request_id() -> None:
    bridge, clients = _bridge()
    page = clients.add(WindowClient(f"{ORIGIN}/"))

    first = bridge.get_storage("K")
    second = bridge.get_storage("K")
    ids = [m["requestId"] for m in page.messages_of_type("GET_STORAGE")]
    assert len(set(ids)) == 2

    assert bridge.handle_response(StorageValue(key="K", value="two", request_id=ids[1])) is True
    assert bridge.handle_response(StorageValue(key="K", value="one", request_id=ids[0])) is True

    assert first.result(timeout=1) == "one"
    assert second.result(timeout=1) == "two"


def test_reply_without_request_id_resolves_oldest_read_for_key() -> None:
    bridge, clients = _bridge()
    clients.add(WindowClient(f"{ORIGIN}/"))

    a = bridge.get_storage("A")
    first_b = bridge.get_storage("B")
    second_b = bridge.get_storage("B")

    assert bridge.handle_response(StorageValue(key="B", value="x")) is True

    assert first_b.result(timeout=1) == "x"
    assert not second_b.done()
    assert not a.done()
    assert bridge.pending_count == 2


def test_reply_with_mismatched_key_is_ignored() -> None:
    bridge, clients = _bridge()
    page = clients.add(WindowClient(f"{ORIGIN}/"))

    fut = bridge.get_storage("A")
    rid = page.messages_of_type("GET_STORAGE")[0]["requestId"]

    assert bridge.handle_response(StorageValue(key="B", value="x", request_id=rid)) is False
    assert not fut.done()
    assert bridge.handle_response(StorageValue(key="A", value="y", request_id=rid)) is True
    assert fut.result(timeout=1) == "y"


def test_page_can_answer_synchronously_from_its_handler() -> None:
    bridge, clients = _bridge()

    def answer(message):
        bridge.handle_response(StorageValue(key=message["key"], value="[]", request_id=message["requestId"]))

    clients.add(WindowClient(f"{ORIGIN}/", on_message=answer))

    assert bridge.get_storage("K").result(timeout=1) == "[]"
    assert bridge.pending_count == 0


def test_post_failure_fails_the_read() -> None:
    bridge, clients = _bridge()

    def broken(message):
        raise RuntimeError("port closed")

    clients.add(WindowClient(f"{ORIGIN}/", on_message=broken))

    fut = bridge.get_storage("K")
    with pytest.raises(BridgeException):
        fut.result(timeout=1)
    assert bridge.pending_count == 0


def test_writes_go_to_first_client_and_are_dropped_without_one() -> None:
    bridge, clients = _bridge()
    assert bridge.set_storage("K", "V") is False
    assert bridge.log_interaction({"action": "click"}) is False

    first = clients.add(WindowClient(f"{ORIGIN}/"))
    second = clients.add(WindowClient(f"{ORIGIN}/?tab=stats"))

    assert bridge.set_storage("K", "V") is True
    assert bridge.save_offline_session({"id": "s1"}) is True

    assert first.messages_of_type("SET_STORAGE") == [{"type": "SET_STORAGE", "key": "K", "value": "V"}]
    assert first.messages_of_type("SAVE_OFFLINE_SESSION")[0]["data"] == {"id": "s1"}
    assert second.inbox == []
