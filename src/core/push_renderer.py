"""Turns untrusted push payloads into displayable notification descriptors."""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.constants import (
    CATEGORY_ACTIONS,
    DEFAULT_CONFIG,
    DEFAULT_NOTIFICATION_ICON,
    DEFAULT_VIBRATION,
    NOTIFICATION_DEFAULTS,
    NOTIFICATION_ICONS,
    VIBRATION_PATTERNS,
)
from .notifications import NotificationCenter
from ..models.events import Notification, PushEvent
from ..models.exceptions import NotificationDisplayException, PayloadException
from ..models.notification import NotificationAction, NotificationDescriptor

logger = logging.getLogger(__name__)


def notification_icon(notification_type: str, category: str) -> str:
    return NOTIFICATION_ICONS.get(category or notification_type, DEFAULT_NOTIFICATION_ICON)


def vibration_pattern(category: str) -> List[int]:
    return list(VIBRATION_PATTERNS.get(category, DEFAULT_VIBRATION))


def curated_actions(category: str) -> Optional[List[NotificationAction]]:
    table = CATEGORY_ACTIONS.get(category)
    if table is None:
        return None
    return [NotificationAction(a['action'], a['title']) for a in table]


def default_descriptor(push_id: Optional[str] = None, timestamp: Optional[str] = None) -> NotificationDescriptor:
    d = NOTIFICATION_DEFAULTS
    return NotificationDescriptor(
        title=d['title'],
        body=d['body'],
        icon=d['icon'],
        badge=d['badge'],
        vibrate=list(d['vibrate']),
        tag=d['tag'],
        actions=[NotificationAction(a['action'], a['title']) for a in d['actions']],
        data={
            "pushId": push_id or uuid.uuid4().hex[:9],
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "category": d['category'],
        },
        require_interaction=d['require_interaction'],
    )


def parse_payload(raw: Optional[str]) -> Dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise PayloadException(f"Push payload is not JSON: {e}", payload_sample=raw)
    if not isinstance(payload, dict):
        raise PayloadException(
            f"Push payload must be a JSON object, got {type(payload).__name__}",
            payload_sample=raw,
        )
    return payload


class PushRenderer:
    def __init__(self, notifications: NotificationCenter,
                 max_actions: int = DEFAULT_CONFIG['max_notification_actions']):
        self.notifications = notifications
        self.max_actions = max_actions
        self.stats = {"rendered": 0, "malformed": 0, "display_failures": 0}

    def build_descriptor(self, raw: Optional[str], push_id: Optional[str] = None) -> NotificationDescriptor:
        """Never raises for payload problems; malformed input keeps the defaults."""
        descriptor = default_descriptor(push_id)
        push_id = descriptor.push_id

        try:
            payload = parse_payload(raw)
        except PayloadException as e:
            self.stats["malformed"] += 1
            logger.warning(f"Push {push_id}: {e}")
            payload = {}

        if payload:
            self._overlay(descriptor, payload)

        descriptor.actions = descriptor.actions[: self.max_actions]
        return descriptor

    def _overlay(self, descriptor: NotificationDescriptor, payload: Dict[str, Any]) -> None:
        nested = payload.get("data") if isinstance(payload.get("data"), dict) else None

        if isinstance(payload.get("title"), str) and payload["title"]:
            descriptor.title = payload["title"]
        if isinstance(payload.get("body"), str) and payload["body"]:
            descriptor.body = payload["body"]

        notification_type = (
            _str_or_none(payload.get("notification_type"))
            or _str_or_none(nested.get("notification_type") if nested else None)
            or NOTIFICATION_DEFAULTS['category']
        )
        category = _str_or_none(nested.get("category") if nested else None) or notification_type

        icon = notification_icon(notification_type, category)
        descriptor.icon = icon
        descriptor.badge = icon
        descriptor.vibrate = vibration_pattern(category)

        if isinstance(payload.get("tag"), str) and payload["tag"]:
            descriptor.tag = payload["tag"]

        if isinstance(payload.get("actions"), list):
            actions = [a for a in (NotificationAction.from_dict(x) for x in payload["actions"]) if a]
            descriptor.actions = actions

        if nested:
            descriptor.data = {**descriptor.data, **nested}
        descriptor.data["category"] = category

        if isinstance(payload.get("requireInteraction"), bool):
            descriptor.require_interaction = payload["requireInteraction"]

        curated = curated_actions(category)
        if curated is not None:
            descriptor.actions = curated

    def render(self, event: PushEvent) -> Optional[Notification]:
        descriptor = self.build_descriptor(event.text())
        push_id = descriptor.push_id
        logger.info(f"Push {push_id}: showing '{descriptor.title}' category={descriptor.category}")
        try:
            notification = self.notifications.show_notification(descriptor)
        except NotificationDisplayException as e:
            self.stats["display_failures"] += 1
            logger.error(f"Push {push_id}: failed to display notification: {e}")
            return None
        self.stats["rendered"] += 1
        logger.info(f"Push {push_id}: notification displayed")
        return notification


def _str_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
