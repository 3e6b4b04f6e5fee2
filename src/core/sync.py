import concurrent.futures
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from config.constants import OFFLINE_SESSIONS_KEY
from .bridge import UNAVAILABLE, SecureBridge
from ..models.exceptions import BridgeException

logger = logging.getLogger(__name__)


def _decode_sessions(raw: Any) -> List[Dict[str, Any]]:
    if isinstance(raw, str):
        raw = json.loads(raw)
    if not isinstance(raw, list):
        raise ValueError(f"expected a list of sessions, got {type(raw).__name__}")
    return [s for s in raw if isinstance(s, dict)]


class BackgroundSync:
    """Pushes unsynced offline sessions to the page, which owns the authenticated write."""

    def __init__(self, bridge: SecureBridge, storage_key: str = OFFLINE_SESSIONS_KEY,
                 read_timeout: Optional[float] = None):
        self.bridge = bridge
        self.storage_key = storage_key
        self.read_timeout = read_timeout
        self._mark_lock = threading.Lock()

    def _read_sessions(self) -> Optional[List[Dict[str, Any]]]:
        value = self.bridge.get_storage(self.storage_key).result(timeout=self.read_timeout)
        if value is UNAVAILABLE or value is None or value == "":
            return None
        return _decode_sessions(value)

    def sync_sessions(self) -> int:
        try:
            logger.info("Starting offline session sync")
            sessions = self._read_sessions()
            if not sessions:
                logger.info("No offline sessions to sync")
                return 0

            unsynced = [s for s in sessions if not s.get("synced")]
            if not unsynced:
                logger.info("All offline sessions already synced")
                return 0

            logger.info(f"Requesting sync for {len(unsynced)} session(s)")
            sent = 0
            for session in unsynced:
                if not self.bridge.save_offline_session(session):
                    logger.warning("No open client to sync sessions through")
                    break
                sent += 1
            return sent
        except (BridgeException, ValueError, concurrent.futures.TimeoutError) as e:
            logger.error(f"Offline session sync failed: {e}")
            return 0

    def mark_session_synced(self, session_id: Any) -> bool:
        with self._mark_lock:
            return self._mark_session_synced(session_id)

    def _mark_session_synced(self, session_id: Any) -> bool:
        try:
            sessions = self._read_sessions()
            if not sessions:
                logger.warning(f"Cannot mark session {session_id} synced: no sessions available")
                return False

            matched = False
            for s in sessions:
                if s.get("id") == session_id:
                    s["synced"] = True
                    matched = True
            if not matched:
                logger.warning(f"Session {session_id} not found in offline sessions")
                return False

            self.bridge.set_storage(self.storage_key, json.dumps(sessions))
            logger.info(f"Session {session_id} marked synced")
            return True
        except (BridgeException, ValueError, concurrent.futures.TimeoutError) as e:
            logger.error(f"Failed to mark session {session_id} synced: {e}")
            return False
