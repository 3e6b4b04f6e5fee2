import logging
import threading
from typing import List, Optional

from ..models.events import Notification
from ..models.exceptions import NotificationDisplayException
from ..models.notification import NotificationDescriptor

logger = logging.getLogger(__name__)

PERMISSION_STATES = ("granted", "denied", "default")


class NotificationCenter:
    """Displayed notifications; a new notification replaces any open one with the same tag."""

    def __init__(self, permission: str = "granted"):
        if permission not in PERMISSION_STATES:
            raise ValueError(f"Unknown permission state: {permission}")
        self.permission = permission
        self._shown: List[Notification] = []
        self._lock = threading.Lock()

    def show_notification(self, descriptor: NotificationDescriptor) -> Notification:
        if self.permission != "granted":
            raise NotificationDisplayException(
                "Notification permission not granted",
                context={"permission": self.permission, "tag": descriptor.tag},
            )
        notification = Notification(descriptor=descriptor)
        with self._lock:
            if descriptor.tag:
                for n in self._shown:
                    if n.tag == descriptor.tag and not n.closed:
                        n.close()
                        logger.debug(f"Notification {n.id} replaced by tag {descriptor.tag}")
            self._shown = [n for n in self._shown if not n.closed]
            self._shown.append(notification)
        return notification

    def get_notifications(self, tag: Optional[str] = None) -> List[Notification]:
        with self._lock:
            return [n for n in self._shown if not n.closed and (tag is None or n.tag == tag)]

    def close(self, notification: Notification) -> None:
        notification.close()
        with self._lock:
            self._shown = [n for n in self._shown if n is not notification]

    def __len__(self) -> int:
        with self._lock:
            return len(self._shown)
