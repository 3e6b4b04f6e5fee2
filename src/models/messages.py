"""Message shapes exchanged between the agent and open pages.

Every message is a JSON-compatible dict with a ``type`` field. ``parse_message``
turns such a dict into one of the dataclasses below; anything it cannot map
becomes an ``UnrecognizedMessage`` so callers can log it instead of dropping it.
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Type, Union


@dataclass
class GetStorage:
    TYPE: ClassVar[str] = "GET_STORAGE"
    key: str
    request_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.TYPE, "key": self.key}
        if self.request_id:
            out["requestId"] = self.request_id
        return out


@dataclass
class StorageValue:
    TYPE: ClassVar[str] = "STORAGE_VALUE"
    key: str
    value: Any = None
    request_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.TYPE, "key": self.key, "value": self.value}
        if self.request_id:
            out["requestId"] = self.request_id
        return out


@dataclass
class SetStorage:
    TYPE: ClassVar[str] = "SET_STORAGE"
    key: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "key": self.key, "value": self.value}


@dataclass
class LogNotificationInteraction:
    TYPE: ClassVar[str] = "LOG_NOTIFICATION_INTERACTION"
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "data": self.data}


@dataclass
class ShareAchievement:
    TYPE: ClassVar[str] = "SHARE_ACHIEVEMENT"
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "data": self.data}


@dataclass
class Navigate:
    TYPE: ClassVar[str] = "NAVIGATE"
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "url": self.url}


@dataclass
class SaveOfflineSession:
    TYPE: ClassVar[str] = "SAVE_OFFLINE_SESSION"
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "data": self.data}


@dataclass
class SyncSuccess:
    TYPE: ClassVar[str] = "SYNC_SUCCESS"
    session_id: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "sessionId": self.session_id}


@dataclass
class SyncFailed:
    TYPE: ClassVar[str] = "SYNC_FAILED"
    error: str = ""
    session_id: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.TYPE, "error": self.error}
        if self.session_id is not None:
            out["sessionId"] = self.session_id
        return out


@dataclass
class UnrecognizedMessage:
    TYPE: ClassVar[str] = "UNRECOGNIZED"
    raw: Any = None
    reason: str = ""

    @property
    def declared_type(self) -> Optional[str]:
        if isinstance(self.raw, dict) and isinstance(self.raw.get("type"), str):
            return self.raw["type"]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "raw": self.raw, "reason": self.reason}


BridgeMessage = Union[
    GetStorage,
    StorageValue,
    SetStorage,
    LogNotificationInteraction,
    ShareAchievement,
    Navigate,
    SaveOfflineSession,
    SyncSuccess,
    SyncFailed,
    UnrecognizedMessage,
]

MESSAGE_TYPES: Dict[str, Type] = {
    cls.TYPE: cls
    for cls in (
        GetStorage,
        StorageValue,
        SetStorage,
        LogNotificationInteraction,
        ShareAchievement,
        Navigate,
        SaveOfflineSession,
        SyncSuccess,
        SyncFailed,
    )
}


def _str_field(raw: Dict[str, Any], name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str) or not value:
        raise ValueError(f"missing or invalid '{name}'")
    return value


def _dict_field(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be an object")
    return value


def parse_message(raw: Any) -> BridgeMessage:
    if not isinstance(raw, dict):
        return UnrecognizedMessage(raw=raw, reason="message is not an object")

    mtype = raw.get("type")
    if mtype not in MESSAGE_TYPES:
        return UnrecognizedMessage(raw=raw, reason=f"unknown type {mtype!r}")

    request_id = raw.get("requestId") if isinstance(raw.get("requestId"), str) else None
    try:
        if mtype == GetStorage.TYPE:
            return GetStorage(key=_str_field(raw, "key"), request_id=request_id)
        if mtype == StorageValue.TYPE:
            return StorageValue(key=_str_field(raw, "key"), value=raw.get("value"), request_id=request_id)
        if mtype == SetStorage.TYPE:
            return SetStorage(key=_str_field(raw, "key"), value=raw.get("value"))
        if mtype == LogNotificationInteraction.TYPE:
            return LogNotificationInteraction(data=_dict_field(raw, "data"))
        if mtype == ShareAchievement.TYPE:
            return ShareAchievement(data=_dict_field(raw, "data"))
        if mtype == Navigate.TYPE:
            return Navigate(url=_str_field(raw, "url"))
        if mtype == SaveOfflineSession.TYPE:
            return SaveOfflineSession(data=_dict_field(raw, "data"))
        if mtype == SyncSuccess.TYPE:
            return SyncSuccess(session_id=raw.get("sessionId"))
        if mtype == SyncFailed.TYPE:
            return SyncFailed(error=str(raw.get("error") or ""), session_id=raw.get("sessionId"))
    except ValueError as e:
        return UnrecognizedMessage(raw=raw, reason=f"malformed {mtype}: {e}")

    return UnrecognizedMessage(raw=raw, reason=f"unhandled type {mtype!r}")
