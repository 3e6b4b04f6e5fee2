from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import time


class SubscriptionState(Enum):
    SYNCED = "SYNCED"
    UNSUBSCRIBED = "UNSUBSCRIBED"
    SERVER_ONLY = "SERVER_ONLY"
    BROWSER_ONLY = "BROWSER_ONLY"
    ENDPOINT_MISMATCH = "ENDPOINT_MISMATCH"


@dataclass
class PushSubscription:
    endpoint: str
    p256dh: str = ""
    auth: str = ""
    expiration_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "expirationTime": self.expiration_time,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


@dataclass
class SubscriptionRow:
    user_id: str
    endpoint: str
    p256dh_key: str = ""
    auth_key: str = ""
    user_agent: str = ""
    is_active: bool = True
    id: Optional[str] = None

    @classmethod
    def from_subscription(cls, user_id: str, sub: PushSubscription, user_agent: str = "") -> "SubscriptionRow":
        return cls(
            user_id=user_id,
            endpoint=sub.endpoint,
            p256dh_key=sub.p256dh,
            auth_key=sub.auth,
            user_agent=user_agent,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionRow":
        return cls(
            user_id=str(data.get("user_id") or ""),
            endpoint=str(data.get("endpoint") or ""),
            p256dh_key=str(data.get("p256dh_key") or ""),
            auth_key=str(data.get("auth_key") or ""),
            user_agent=str(data.get("user_agent") or ""),
            is_active=bool(data.get("is_active", True)),
            id=str(data["id"]) if data.get("id") is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "user_id": self.user_id,
            "endpoint": self.endpoint,
            "p256dh_key": self.p256dh_key,
            "auth_key": self.auth_key,
            "user_agent": self.user_agent,
            "is_active": self.is_active,
        }
        if self.id is not None:
            out["id"] = self.id
        return out


@dataclass
class SubscriptionStatus:
    browser_subscription: Optional[PushSubscription]
    server_rows: List[SubscriptionRow] = field(default_factory=list)
    checked_at: float = field(default_factory=time.time)

    @property
    def synced(self) -> bool:
        return self.state is SubscriptionState.SYNCED

    @property
    def state(self) -> SubscriptionState:
        has_rows = len(self.server_rows) > 0
        has_browser = self.browser_subscription is not None
        if not has_rows and not has_browser:
            return SubscriptionState.UNSUBSCRIBED
        if has_rows and not has_browser:
            return SubscriptionState.SERVER_ONLY
        if has_browser and not has_rows:
            return SubscriptionState.BROWSER_ONLY
        endpoints = {r.endpoint for r in self.server_rows}
        if self.browser_subscription.endpoint not in endpoints:
            return SubscriptionState.ENDPOINT_MISMATCH
        return SubscriptionState.SYNCED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "synced": self.synced,
            "browser_subscribed": self.browser_subscription is not None,
            "server_rows": len(self.server_rows),
            "checked_at": self.checked_at,
        }
