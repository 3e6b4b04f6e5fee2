from typing import Any, Dict, Optional

class AgentException(Exception):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        context_str = f" - Context: {self.context}" if self.context else ""
        return f"{self.__class__.__name__}: {self.message}{context_str}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


class NetworkException(AgentException):
    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if url:
            ctx["url"] = url
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message, ctx)


class CacheStorageException(AgentException):
    def __init__(
        self,
        message: str,
        generation: Optional[str] = None,
        url: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if generation:
            ctx["generation"] = generation
        if url:
            ctx["url"] = url
        super().__init__(message, ctx)


class InstallationException(AgentException):
    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if resource:
            ctx["resource"] = resource
        super().__init__(message, ctx)


class PayloadException(AgentException):
    def __init__(
        self,
        message: str,
        payload_sample: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if payload_sample:
            ctx["payload_sample"] = payload_sample[:100]
        super().__init__(message, ctx)


class BridgeException(AgentException):
    def __init__(
        self,
        message: str,
        message_type: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if message_type:
            ctx["message_type"] = message_type
        super().__init__(message, ctx)


class SubscriptionException(AgentException):
    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        endpoint: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if user_id:
            ctx["user_id"] = user_id
        if endpoint:
            ctx["endpoint"] = endpoint[:50]
        super().__init__(message, ctx)


class ConfigurationException(AgentException):

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if config_key:
            ctx["config_key"] = config_key
        if config_value is not None:
            ctx["config_value"] = config_value
        super().__init__(message, ctx)


class ValidationException(AgentException):
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if field:
            ctx["field"] = field
        if value is not None:
            ctx["value"] = value
        super().__init__(message, ctx)


class CacheQuotaException(CacheStorageException):
    """Generation entry or size quota exceeded"""
    pass


class NotificationDisplayException(AgentException):
    """Platform refused to display a notification"""
    pass


class PermissionDeniedException(SubscriptionException):
    """Notification permission is denied"""
    pass
