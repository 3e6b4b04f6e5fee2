from .config import AgentConfig
from .http import Request, Response
from .notification import NotificationAction, NotificationDescriptor
from .subscription import PushSubscription, SubscriptionRow, SubscriptionState, SubscriptionStatus
from .events import (
    ExtendableEvent,
    InstallEvent,
    ActivateEvent,
    FetchEvent,
    PushEvent,
    Notification,
    NotificationClickEvent,
    MessageEvent,
    SyncEvent,
)
from .messages import parse_message, UnrecognizedMessage
from .exceptions import (
    AgentException,
    NetworkException,
    CacheStorageException,
    CacheQuotaException,
    InstallationException,
    PayloadException,
    NotificationDisplayException,
    BridgeException,
    SubscriptionException,
    PermissionDeniedException,
    ConfigurationException,
    ValidationException,
)

__all__ = [
    "AgentConfig",
    "Request",
    "Response",
    "NotificationAction",
    "NotificationDescriptor",
    "PushSubscription",
    "SubscriptionRow",
    "SubscriptionState",
    "SubscriptionStatus",
    "ExtendableEvent",
    "InstallEvent",
    "ActivateEvent",
    "FetchEvent",
    "PushEvent",
    "Notification",
    "NotificationClickEvent",
    "MessageEvent",
    "SyncEvent",
    "parse_message",
    "UnrecognizedMessage",
    "AgentException",
    "NetworkException",
    "CacheStorageException",
    "CacheQuotaException",
    "InstallationException",
    "PayloadException",
    "NotificationDisplayException",
    "BridgeException",
    "SubscriptionException",
    "PermissionDeniedException",
    "ConfigurationException",
    "ValidationException",
]
