from __future__ import annotations

import concurrent.futures
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .http import Request, Response
from .notification import NotificationDescriptor


class ExtendableEvent:
    """Base for platform events whose lifetime can be extended with ``wait_until``."""

    type = "extendable"

    def __init__(self):
        self.id = uuid.uuid4().hex[:12]
        self._lock = threading.Lock()
        self._extensions: List[concurrent.futures.Future] = []

    def wait_until(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._extensions.append(future)

    @property
    def extensions(self) -> List[concurrent.futures.Future]:
        with self._lock:
            return list(self._extensions)

    def settle(self, timeout: Optional[float] = None) -> List[BaseException]:
        """Block until every extension has settled. Returns the errors they raised."""
        errors: List[BaseException] = []
        seen = 0
        while True:
            pending = self.extensions[seen:]
            if not pending:
                return errors
            seen += len(pending)
            done, not_done = concurrent.futures.wait(pending, timeout=timeout)
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    errors.append(exc)
            if not_done:
                errors.append(TimeoutError(f"{len(not_done)} extension(s) still pending"))
                return errors


class InstallEvent(ExtendableEvent):
    type = "install"


class ActivateEvent(ExtendableEvent):
    type = "activate"


class FetchEvent(ExtendableEvent):
    type = "fetch"

    def __init__(self, request: Request, client_id: Optional[str] = None):
        super().__init__()
        self.request = request
        self.client_id = client_id
        self.response: Optional[Response] = None
        self.handled = False

    def respond_with(self, response: Response) -> None:
        self.response = response
        self.handled = True


class PushEvent(ExtendableEvent):
    type = "push"

    def __init__(self, data: Any = None):
        super().__init__()
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.data: Optional[bytes] = data

    def text(self) -> Optional[str]:
        if self.data is None:
            return None
        return self.data.decode("utf-8", errors="replace")


@dataclass
class Notification:
    descriptor: NotificationDescriptor
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    closed: bool = False

    @property
    def title(self) -> str:
        return self.descriptor.title

    @property
    def tag(self) -> str:
        return self.descriptor.tag

    @property
    def data(self) -> dict:
        return self.descriptor.data

    def close(self) -> None:
        self.closed = True


class NotificationClickEvent(ExtendableEvent):
    type = "notificationclick"

    def __init__(self, notification: Notification, action: Optional[str] = None):
        super().__init__()
        self.notification = notification
        self.action = action or ""


class MessageEvent(ExtendableEvent):
    type = "message"

    def __init__(self, data: Any, source: Any = None):
        super().__init__()
        self.data = data
        self.source = source


class SyncEvent(ExtendableEvent):
    type = "sync"

    def __init__(self, tag: str):
        super().__init__()
        self.tag = tag
