from __future__ import annotations

import time

import pytest

from src.foreground.reconciler import SubscriptionReconciler, url_base64_to_bytes
from src.models.exceptions import PermissionDeniedException, SubscriptionException
from src.models.subscription import PushSubscription, SubscriptionRow, SubscriptionState

from conftest import FakeBackend, FakePushManager

USER = "user-1"


def _row(endpoint: str, user_id: str = USER) -> SubscriptionRow:
    return SubscriptionRow(user_id=user_id, endpoint=endpoint, p256dh_key="k", auth_key="a")


def _reconciler(push_manager=None, backend=None, **kw) -> SubscriptionReconciler:
    kw.setdefault("propagation_delay", 0)
    return SubscriptionReconciler(push_manager or FakePushManager(), backend or FakeBackend(), USER, **kw)


def test_server_only_drift_is_repaired() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old")])
    push = FakePushManager()
    rec = _reconciler(push, backend)

    assert rec.reconcile() is True

    assert list(rec.history) == [SubscriptionState.SERVER_ONLY, SubscriptionState.SYNCED]
    assert len(backend.rows) == 1
    assert backend.rows[0].endpoint == push.subscription.endpoint
    assert push.last_key == bytes(range(65))


def test_browser_only_and_mismatch_are_drift() -> None:
    push = FakePushManager(subscription=PushSubscription("https://push.example.net/send/a"))
    assert _reconciler(push, FakeBackend()).check().state is SubscriptionState.BROWSER_ONLY

    backend = FakeBackend(rows=[_row("https://push.example.net/send/b")])
    rec = _reconciler(push, backend)
    assert rec.check().state is SubscriptionState.ENDPOINT_MISMATCH

    assert rec.reconcile() is True
    assert push.unsubscribe_calls == 1
    assert [r.endpoint for r in backend.rows] == [push.subscription.endpoint]


def test_repair_is_idempotent() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old")])
    push = FakePushManager()
    rec = _reconciler(push, backend)

    assert rec.repair() is True
    assert rec.repair() is True

    status = rec.check()
    assert status.synced
    assert len(backend.rows) == 1


def test_repair_only_touches_this_users_rows() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old"), _row("https://x/other", "user-2")])
    rec = _reconciler(FakePushManager(), backend)

    rec.repair()

    assert sorted(r.user_id for r in backend.rows) == ["user-1", "user-2"]


def test_repair_waits_for_propagation() -> None:
    slept = []
    rec = _reconciler(sleep=slept.append, propagation_delay=1.0)

    rec.repair()

    assert slept == [1.0]


def test_synced_state_needs_no_repair() -> None:
    push = FakePushManager(subscription=PushSubscription("https://push.example.net/send/a"))
    backend = FakeBackend(rows=[_row("https://push.example.net/send/a")])
    rec = _reconciler(push, backend)

    assert rec.reconcile() is True
    assert push.subscribe_calls == 0


def test_unsubscribed_is_left_alone_unless_wanted() -> None:
    push = FakePushManager()
    backend = FakeBackend()
    rec = _reconciler(push, backend)

    assert rec.reconcile() is True
    assert push.subscribe_calls == 0

    assert rec.reconcile(want_subscription=True) is True
    assert push.subscribe_calls == 1
    assert len(backend.rows) == 1


def test_denied_permission_fails_repair() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old")])
    push = FakePushManager(permission="denied")
    rec = _reconciler(push, backend)

    with pytest.raises(PermissionDeniedException):
        rec.ensure_permission()
    assert rec.reconcile() is False
    assert push.subscribe_calls == 0


def test_default_permission_is_requested() -> None:
    push = FakePushManager(permission="default")
    rec = _reconciler(push)
    rec.ensure_permission()
    assert push.permission_requests == 1

    refused = FakePushManager(permission="default", grant_on_request=False)
    with pytest.raises(PermissionDeniedException):
        _reconciler(refused).ensure_permission()


def test_missing_vapid_key_fails_repair() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old")], vapid_key="")
    assert _reconciler(FakePushManager(), backend).repair() is False


def test_upsert_failure_fails_repair() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old")])
    backend.fail_upsert = True
    assert _reconciler(FakePushManager(), backend).reconcile() is False


def test_url_base64_to_bytes() -> None:
    assert url_base64_to_bytes("AQID") == b"\x01\x02\x03"
    assert url_base64_to_bytes("_-8") == b"\xff\xef"
    with pytest.raises(SubscriptionException):
        url_base64_to_bytes("abcde")


def test_periodic_reconcile_runs_until_stopped() -> None:
    backend = FakeBackend(rows=[_row("https://push.example.net/send/old")])
    rec = _reconciler(FakePushManager(), backend)

    rec.start_periodic(interval=0.01)
    deadline = time.time() + 5
    while len(rec.history) < 2 and time.time() < deadline:
        time.sleep(0.01)
    rec.stop(timeout=5)

    assert SubscriptionState.SYNCED in rec.history
    assert len(backend.rows) == 1


class UnreachablePushManager(FakePushManager):
    def __init__(self, failing: str, **kw):
        super().__init__(**kw)
        self.failing = failing

    def _fail(self, name: str) -> None:
        if name == self.failing:
            raise RuntimeError("push service unreachable")

    def get_subscription(self):
        self._fail("get_subscription")
        return super().get_subscription()

    def unsubscribe(self):
        self._fail("unsubscribe")
        return super().unsubscribe()

    def subscribe(self, application_server_key: bytes):
        self._fail("subscribe")
        return super().subscribe(application_server_key)

    def request_permission(self):
        self._fail("request_permission")
        return super().request_permission()


@pytest.mark.parametrize(
    "failing, permission",
    [("unsubscribe", "granted"), ("subscribe", "granted"), ("request_permission", "default")],
)
def test_push_manager_errors_fail_repair_without_raising(failing: str, permission: str) -> None:
    push = UnreachablePushManager(
        failing, permission=permission, subscription=PushSubscription("https://push.example.net/send/a")
    )
    backend = FakeBackend(rows=[_row("https://push.example.net/send/b")])
    rec = _reconciler(push, backend)

    assert rec.repair() is False
    assert rec.reconcile(want_subscription=True) is False


def test_push_manager_errors_surface_as_subscription_exceptions() -> None:
    rec = _reconciler(UnreachablePushManager("get_subscription"))
    with pytest.raises(SubscriptionException) as exc:
        rec.check()
    assert exc.value.context["user_id"] == USER
    assert rec.reconcile() is False


def test_periodic_reconcile_survives_push_manager_errors() -> None:
    push = UnreachablePushManager("unsubscribe", subscription=PushSubscription("https://push.example.net/send/a"))
    rec = _reconciler(push, FakeBackend())

    rec.start_periodic(interval=0.01)
    deadline = time.time() + 5
    while len(rec.history) < 3 and time.time() < deadline:
        time.sleep(0.01)
    alive = rec._thread.is_alive()
    rec.stop(timeout=5)

    assert len(rec.history) >= 3
    assert alive is True


def test_history_is_capped() -> None:
    rec = _reconciler(history_size=5)
    for _ in range(20):
        rec.check()
    assert len(rec.history) == 5
    assert list(rec.history) == [SubscriptionState.UNSUBSCRIBED] * 5
