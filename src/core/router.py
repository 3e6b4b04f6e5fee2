import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config.constants import (
    ACTION_ROUTES,
    CATEGORY_ROUTES,
    DEFAULT_ROUTE,
    DISMISS_ACTION,
    NOTIFICATION_DEFAULTS,
    SHARE_ACTION,
    SHARE_FALLBACK_URL,
)
from .bridge import SecureBridge
from .clients import ClientRegistry, WindowClient
from .normalizer import url_normalizer
from ..models.events import NotificationClickEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteTarget:
    kind: str
    url: Optional[str] = None

    URL = "url"
    SHARE = "share"
    NONE = "none"

    @property
    def base_path(self) -> Optional[str]:
        return url_normalizer.base_path(self.url) if self.url else None


def resolve(action: Optional[str], category: Optional[str]) -> RouteTarget:
    if action == SHARE_ACTION:
        return RouteTarget(RouteTarget.SHARE)
    if action == DISMISS_ACTION:
        return RouteTarget(RouteTarget.NONE)
    if action and action in ACTION_ROUTES:
        return RouteTarget(RouteTarget.URL, ACTION_ROUTES[action])
    category = category or NOTIFICATION_DEFAULTS['category']
    return RouteTarget(RouteTarget.URL, CATEGORY_ROUTES.get(category, DEFAULT_ROUTE))


def interaction_payload(action: Optional[str], category: str, data: Dict[str, Any]) -> Dict[str, Any]:
    data = data or {}
    return {
        "notification_type": data.get("notification_type") or "unknown",
        "category": category or "unknown",
        "action": action or "click",
        "data": {
            "pushId": data.get("pushId") or "unknown",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data,
        },
    }


class NotificationRouter:
    def __init__(self, clients: ClientRegistry, bridge: SecureBridge):
        self.clients = clients
        self.bridge = bridge

    def handle_click(self, event: NotificationClickEvent) -> Dict[str, Any]:
        notification = event.notification
        data = dict(notification.data or {})
        push_id = data.get("pushId") or "unknown"
        category = data.get("category") or NOTIFICATION_DEFAULTS['category']
        action = event.action or None

        logger.info(f"Notification {push_id} clicked: action={action or 'click'} category={category}")
        notification.close()

        target = resolve(action, category)
        self._log_interaction(push_id, action, category, data)

        if target.kind == RouteTarget.NONE:
            logger.info(f"Notification {push_id} dismissed")
            return {"outcome": "dismissed"}

        if target.kind == RouteTarget.SHARE:
            return self._share(push_id, data)

        return self._focus_or_open(push_id, target)

    def _log_interaction(self, push_id: str, action: Optional[str], category: str, data: Dict[str, Any]) -> None:
        try:
            self.bridge.log_interaction(interaction_payload(action, category, data))
        except Exception as e:
            logger.error(f"Notification {push_id}: failed to request interaction log: {e}")

    def _share(self, push_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        found = self.clients.match_all()
        if found:
            client = found[0]
            self.bridge.share(client, data)
            client.focus()
            logger.info(f"Notification {push_id}: share handed to client {client.id}")
            return {"outcome": "shared", "client": client.id}
        client = self.clients.open_window(SHARE_FALLBACK_URL)
        logger.info(f"Notification {push_id}: no open client, opened share page")
        return {"outcome": "opened", "client": client.id, "url": client.url}

    def _focus_or_open(self, push_id: str, target: RouteTarget) -> Dict[str, Any]:
        found = self.clients.match_all()
        logger.debug(f"Notification {push_id}: {len(found)} open client(s)")
        wanted = url_normalizer.path_with_query(target.url)

        for client in found:
            if url_normalizer.base_path(client.url) != target.base_path:
                continue
            client.focus()
            if url_normalizer.path_with_query(client.url) == wanted:
                logger.info(f"Notification {push_id}: focused client {client.id} already at {target.url}")
                return {"outcome": "focused", "client": client.id}
            self.bridge.navigate(client, target.url)
            logger.info(f"Notification {push_id}: focused client {client.id} and navigated to {target.url}")
            return {"outcome": "navigated", "client": client.id, "url": target.url}

        client = self.clients.open_window(target.url)
        logger.info(f"Notification {push_id}: opened new window at {target.url}")
        return {"outcome": "opened", "client": client.id, "url": client.url}
