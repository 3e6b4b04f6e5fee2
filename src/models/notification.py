from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class NotificationAction:
    action: str
    title: str

    def to_dict(self) -> Dict[str, str]:
        return {"action": self.action, "title": self.title}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["NotificationAction"]:
        if not isinstance(data, dict):
            return None
        action = data.get("action")
        title = data.get("title")
        if not isinstance(action, str) or not action.strip():
            return None
        if not isinstance(title, str):
            title = action
        return cls(action=action.strip(), title=title)


@dataclass
class NotificationDescriptor:
    title: str
    body: str
    icon: str
    badge: str
    vibrate: List[int] = field(default_factory=list)
    tag: str = ""
    actions: List[NotificationAction] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = True

    @property
    def category(self) -> str:
        return str(self.data.get("category") or "reminder")

    @property
    def push_id(self) -> str:
        return str(self.data.get("pushId") or "unknown")

    @property
    def action_ids(self) -> List[str]:
        return [a.action for a in self.actions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "vibrate": list(self.vibrate),
            "tag": self.tag,
            "actions": [a.to_dict() for a in self.actions],
            "data": dict(self.data),
            "requireInteraction": self.require_interaction,
        }
