from __future__ import annotations

import base64
import threading
from typing import Any, Dict, List, Optional

import pytest

from src.core.agent import ServiceWorkerAgent
from src.core.cache_store import CacheStorage
from src.core.clients import ClientRegistry
from src.core.notifications import NotificationCenter
from src.models.config import AgentConfig
from src.models.exceptions import NetworkException, SubscriptionException
from src.models.http import Response
from src.models.subscription import PushSubscription, SubscriptionRow

ORIGIN = "https://plankcoach.app"
BACKEND = "https://plankcoach.supabase.co"
VAPID_KEY = base64.urlsafe_b64encode(bytes(range(65))).rstrip(b"=").decode("ascii")


class FakeFetcher:
    """Serves canned responses; unknown URLs get a 200 echoing the URL."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[tuple] = []
        self.offline = False
        self.failing: set = set()
        self._lock = threading.Lock()

    def fetch(self, request):
        with self._lock:
            self.calls.append((request.method, request.url))
        if self.offline or request.url in self.failing:
            raise NetworkException("offline", url=request.url)
        canned = self.routes.get(request.url)
        if isinstance(canned, Exception):
            raise canned
        if canned is None:
            return Response(
                status=200,
                headers={"Content-Type": "text/plain"},
                body=f"body of {request.url}".encode("utf-8"),
                url=request.url,
            )
        return canned.clone()

    def calls_for(self, url: str) -> int:
        with self._lock:
            return sum(1 for _, u in self.calls if u == url)

    def close(self):
        pass


class FakePushManager:
    def __init__(self, permission: str = "granted", subscription: Optional[PushSubscription] = None,
                 grant_on_request: bool = True):
        self.permission = permission
        self.subscription = subscription
        self.grant_on_request = grant_on_request
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.permission_requests = 0
        self.last_key: Optional[bytes] = None

    def get_subscription(self):
        return self.subscription

    def subscribe(self, application_server_key: bytes):
        self.subscribe_calls += 1
        self.last_key = application_server_key
        self.subscription = PushSubscription(
            endpoint=f"https://push.example.net/send/ep-{self.subscribe_calls}",
            p256dh="p256dh-key",
            auth="auth-key",
        )
        return self.subscription

    def unsubscribe(self):
        self.unsubscribe_calls += 1
        had = self.subscription is not None
        self.subscription = None
        return had

    def permission_state(self):
        return self.permission

    def request_permission(self):
        self.permission_requests += 1
        self.permission = "granted" if self.grant_on_request else "denied"
        return self.permission


class FakeBackend:
    """In-memory stand-in for BackendClient with upsert-on-(user_id, endpoint) semantics."""

    def __init__(self, rows: Optional[List[SubscriptionRow]] = None, vapid_key: str = VAPID_KEY):
        self.rows: List[SubscriptionRow] = list(rows or [])
        self.vapid_key = vapid_key
        self.interactions: List[Dict[str, Any]] = []
        self.sessions: List[Dict[str, Any]] = []
        self.fail_sessions = False
        self.fail_upsert = False

    def list_active_subscriptions(self, user_id):
        return [r for r in self.rows if r.user_id == user_id and r.is_active]

    def delete_subscriptions(self, user_id):
        before = len(self.rows)
        self.rows = [r for r in self.rows if r.user_id != user_id]
        return before - len(self.rows)

    def upsert_subscription(self, row):
        if self.fail_upsert:
            raise NetworkException("Backend returned HTTP 500", status_code=500)
        self.rows = [r for r in self.rows if (r.user_id, r.endpoint) != (row.user_id, row.endpoint)]
        self.rows.append(row)
        return row

    def fetch_vapid_public_key(self):
        if not self.vapid_key:
            raise SubscriptionException("Backend returned no VAPID public key")
        return self.vapid_key

    def log_notification_interaction(self, user_id, interaction):
        self.interactions.append({"user_id": user_id, **interaction})

    def save_workout_session(self, user_id, session_data):
        if self.fail_sessions:
            raise NetworkException("Backend returned HTTP 503", status_code=503)
        self.sessions.append({"user_id": user_id, **session_data})


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def storage() -> CacheStorage:
    return CacheStorage()


@pytest.fixture
def agent(config, fetcher, storage):
    a = ServiceWorkerAgent(
        config=config,
        fetcher=fetcher,
        cache_storage=storage,
        clients=ClientRegistry(config.origin),
        notifications=NotificationCenter(),
    )
    yield a
    a.shutdown()


@pytest.fixture
def active_agent(agent):
    agent.start()
    return agent
