import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional

from .normalizer import url_normalizer

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], None]


class WindowClient:
    """An open page as seen from the agent: a URL, focus, and a message port."""

    def __init__(self, url: str, client_id: Optional[str] = None, on_message: Optional[MessageHandler] = None):
        self.id = client_id or uuid.uuid4().hex[:12]
        self.url = url
        self.focused = False
        self.controller: Optional[str] = None
        self.on_message = on_message
        self.inbox: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def post_message(self, message: Dict[str, Any]) -> None:
        with self._lock:
            self.inbox.append(message)
            handler = self.on_message
        if handler is not None:
            handler(message)

    def focus(self) -> "WindowClient":
        self.focused = True
        return self

    def set_url(self, url: str) -> None:
        self.url = url

    def messages_of_type(self, mtype: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [m for m in self.inbox if isinstance(m, dict) and m.get("type") == mtype]

    def __repr__(self) -> str:
        return f"WindowClient(id={self.id!r}, url={self.url!r}, focused={self.focused})"


class ClientRegistry:
    def __init__(self, origin: str, window_opener: Optional[Callable[[str], WindowClient]] = None):
        self.origin = origin
        self.window_opener = window_opener
        self._clients: List[WindowClient] = []
        self._lock = threading.Lock()

    def add(self, client: WindowClient) -> WindowClient:
        with self._lock:
            if client not in self._clients:
                self._clients.append(client)
        return client

    def remove(self, client: WindowClient) -> None:
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)

    def match_all(self, include_uncontrolled: bool = True, controller: Optional[str] = None) -> List[WindowClient]:
        with self._lock:
            clients = list(self._clients)
        if include_uncontrolled:
            return clients
        return [c for c in clients if c.controller is not None and (controller is None or c.controller == controller)]

    def open_window(self, url: str) -> WindowClient:
        absolute = url_normalizer.normalize_url(url, base_url=self.origin)
        client = self.window_opener(absolute) if self.window_opener else WindowClient(absolute)
        self.add(client)
        client.focus()
        logger.info(f"Opened window {client.id} at {absolute}")
        return client

    def claim(self, controller: str) -> int:
        with self._lock:
            for c in self._clients:
                c.controller = controller
            return len(self._clients)
