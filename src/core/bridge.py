import concurrent.futures
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any, Dict, Optional

from .clients import ClientRegistry, WindowClient
from ..models.exceptions import BridgeException
from ..models.messages import (
    GetStorage,
    LogNotificationInteraction,
    Navigate,
    SaveOfflineSession,
    SetStorage,
    ShareAchievement,
    StorageValue,
)

logger = logging.getLogger(__name__)


class _Unavailable:
    """Result of a bridge read when no page is open to answer it."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = _Unavailable()


class _PendingRead:
    __slots__ = ("request_id", "key", "future")

    def __init__(self, request_id: str, key: str):
        self.request_id = request_id
        self.key = key
        self.future: concurrent.futures.Future = concurrent.futures.Future()


class SecureBridge:
    """Credential-free RPC to the open page over message passing.

    Reads are correlated by a per-request id and removed on the first matching
    reply. Writes and logs are fire-and-forget with no acknowledgement.
    """

    def __init__(self, clients: ClientRegistry):
        self.clients = clients
        self._pending: "OrderedDict[str, _PendingRead]" = OrderedDict()
        self._lock = threading.Lock()

    def first_client(self) -> Optional[WindowClient]:
        found = self.clients.match_all()
        return found[0] if found else None

    def get_storage(self, key: str) -> concurrent.futures.Future:
        client = self.first_client()
        if client is None:
            logger.debug(f"No open client for GET_STORAGE {key}, resolving unavailable")
            fut: concurrent.futures.Future = concurrent.futures.Future()
            fut.set_result(UNAVAILABLE)
            return fut

        pending = _PendingRead(uuid.uuid4().hex, key)
        with self._lock:
            self._pending[pending.request_id] = pending

        try:
            client.post_message(GetStorage(key=key, request_id=pending.request_id).to_dict())
        except Exception as e:
            with self._lock:
                self._pending.pop(pending.request_id, None)
            pending.future.set_exception(BridgeException(f"Failed to post GET_STORAGE: {e}", message_type=GetStorage.TYPE))
        return pending.future

    def handle_response(self, message: StorageValue) -> bool:
        with self._lock:
            pending = None
            if message.request_id:
                candidate = self._pending.get(message.request_id)
                if candidate is not None and candidate.key == message.key:
                    pending = self._pending.pop(message.request_id)
            else:
                for rid, p in self._pending.items():
                    if p.key == message.key:
                        pending = self._pending.pop(rid)
                        break

        if pending is None:
            logger.debug(f"Unmatched STORAGE_VALUE for key {message.key}")
            return False

        pending.future.set_result(message.value)
        return True

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def post_to_first_client(self, message: Dict[str, Any]) -> bool:
        client = self.first_client()
        if client is None:
            logger.debug(f"No open client for {message.get('type')}, dropped")
            return False
        client.post_message(message)
        return True

    def set_storage(self, key: str, value: Any) -> bool:
        return self.post_to_first_client(SetStorage(key=key, value=value).to_dict())

    def log_interaction(self, data: Dict[str, Any]) -> bool:
        return self.post_to_first_client(LogNotificationInteraction(data=data).to_dict())

    def save_offline_session(self, session: Dict[str, Any]) -> bool:
        return self.post_to_first_client(SaveOfflineSession(data=session).to_dict())

    def share(self, client: WindowClient, data: Dict[str, Any]) -> None:
        client.post_message(ShareAchievement(data=data).to_dict())

    def navigate(self, client: WindowClient, url: str) -> None:
        client.post_message(Navigate(url=url).to_dict())
