import concurrent.futures
import json
import logging
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from config.constants import OFFLINE_SESSIONS_KEY, SHARE_FALLBACK_URL, SYNC_SESSIONS_TAG
from .backend import BackendClient
from .storage import DurableStorage
from ..core.agent import ServiceWorkerAgent
from ..core.clients import WindowClient
from ..core.normalizer import url_normalizer
from ..models.events import SyncEvent
from ..models.exceptions import AgentException
from ..models.messages import (
    GetStorage,
    LogNotificationInteraction,
    Navigate,
    SaveOfflineSession,
    SetStorage,
    ShareAchievement,
    StorageValue,
    SyncFailed,
    SyncSuccess,
    UnrecognizedMessage,
    parse_message,
)

logger = logging.getLogger(__name__)

ALLOWED_STORAGE_KEYS = frozenset({OFFLINE_SESSIONS_KEY})


class ForegroundPage:
    """The open page: answers the agent's bridge requests with the user's session."""

    def __init__(
        self,
        agent: ServiceWorkerAgent,
        url: str = "/",
        storage: Optional[DurableStorage] = None,
        backend: Optional[BackendClient] = None,
        user_id: Optional[str] = None,
    ):
        self.agent = agent
        self.origin = agent.config.origin
        self.storage = storage or DurableStorage()
        self.backend = backend
        self.user_id = user_id
        self.active_tab: Optional[str] = None
        self.shared: List[Dict[str, Any]] = []
        self.interactions: List[Dict[str, Any]] = []
        self.acks: List[concurrent.futures.Future] = []
        self.client = WindowClient(
            url_normalizer.normalize_url(url, base_url=self.origin),
            on_message=self.handle_message,
        )
        agent.clients.add(self.client)

    def close(self) -> None:
        self.agent.clients.remove(self.client)

    def reply(self, message: Dict[str, Any]) -> None:
        fut = self.agent.receive_message(message, source=self.client)
        if fut is not None:
            self.acks.append(fut)

    def handle_message(self, raw: Dict[str, Any]) -> None:
        message = parse_message(raw)
        logger.debug(f"Page {self.client.id} received {type(message).__name__}")

        if isinstance(message, GetStorage):
            value = self.storage.get_item(message.key) if message.key in ALLOWED_STORAGE_KEYS else None
            self.reply(StorageValue(key=message.key, value=value, request_id=message.request_id).to_dict())
        elif isinstance(message, SetStorage):
            if message.key in ALLOWED_STORAGE_KEYS and isinstance(message.value, str):
                self.storage.set_item(message.key, message.value)
            else:
                logger.warning(f"Rejected SET_STORAGE for key {message.key}")
        elif isinstance(message, LogNotificationInteraction):
            self._log_interaction(message.data)
        elif isinstance(message, SaveOfflineSession):
            self._save_session(message.data)
        elif isinstance(message, ShareAchievement):
            self.shared.append(message.data)
            logger.info(f"Share requested for {message.data.get('achievement') or 'notification'}")
            if message.data.get("achievement"):
                self._apply_navigation(SHARE_FALLBACK_URL)
        elif isinstance(message, Navigate):
            self._apply_navigation(message.url)
        elif isinstance(message, UnrecognizedMessage):
            logger.warning(f"Page ignored message: {message.reason}")
        else:
            logger.debug(f"Page ignored {message.TYPE}")

    def _apply_navigation(self, url: str) -> bool:
        dest = url_normalizer.normalize_url(url, base_url=self.origin)
        if not url_normalizer.same_origin(dest, self.origin):
            logger.warning(f"Refusing cross-origin navigation to {dest}")
            return False
        tab = parse_qs(urlparse(dest).query).get("tab")
        if tab:
            self.active_tab = tab[0]
        self.client.set_url(dest)
        logger.info(f"Page navigated to {url_normalizer.path_with_query(dest)}")
        return True

    def _log_interaction(self, data: Dict[str, Any]) -> None:
        self.interactions.append(data)
        if self.backend is None or not self.user_id:
            logger.debug("No authenticated backend, interaction kept locally")
            return
        try:
            self.backend.log_notification_interaction(self.user_id, data)
        except AgentException as e:
            logger.warning(f"Failed to persist notification interaction: {e}")

    def _save_session(self, data: Dict[str, Any]) -> None:
        session_id = data.get("id")
        if self.backend is None or not self.user_id:
            self.reply(SyncFailed(error="not authenticated", session_id=session_id).to_dict())
            return
        try:
            self.backend.save_workout_session(self.user_id, data)
        except AgentException as e:
            logger.warning(f"Failed to save offline session {session_id}: {e}")
            self.reply(SyncFailed(error=e.message, session_id=session_id).to_dict())
            return
        self.reply(SyncSuccess(session_id=session_id).to_dict())

    def offline_sessions(self) -> List[Dict[str, Any]]:
        raw = self.storage.get_item(OFFLINE_SESSIONS_KEY)
        if not raw:
            return []
        try:
            sessions = json.loads(raw)
        except ValueError:
            logger.warning("Offline session store is corrupt, starting fresh")
            return []
        return [s for s in sessions if isinstance(s, dict)] if isinstance(sessions, list) else []

    def queue_offline_session(self, session: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(session)
        record.setdefault("id", uuid.uuid4().hex)
        record["synced"] = False
        sessions = self.offline_sessions()
        sessions.append(record)
        self.storage.set_item(OFFLINE_SESSIONS_KEY, json.dumps(sessions))
        return record

    def request_sync(self) -> concurrent.futures.Future:
        return self.agent.dispatch(SyncEvent(SYNC_SESSIONS_TAG))
