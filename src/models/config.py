from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse
import os

from config.constants import (
    DEFAULT_CONFIG,
    ENV_VARS,
    ESSENTIAL_RESOURCES,
    cache_generation_name,
    is_valid_parallel_count,
    is_valid_timeout,
)
from .exceptions import ConfigurationException

STRATEGY_NAMES = ("network-only", "cache-first", "network-first", "stale-while-revalidate-on-miss")


@dataclass
class AgentConfig:
    origin: str = DEFAULT_CONFIG['origin']
    backend_url: str = DEFAULT_CONFIG['backend_url']
    backend_host_suffix: str = DEFAULT_CONFIG['backend_host_suffix']
    auth_path_prefix: str = DEFAULT_CONFIG['auth_path_prefix']
    cache_prefix: str = DEFAULT_CONFIG['cache_prefix']
    cache_version: str = DEFAULT_CONFIG['cache_version']
    cache_dir: Optional[str] = None
    offline_url: str = DEFAULT_CONFIG['offline_url']
    essential_resources: List[str] = field(default_factory=lambda: list(ESSENTIAL_RESOURCES))
    parallel_workers: int = DEFAULT_CONFIG['parallel_workers']
    request_timeout: int = DEFAULT_CONFIG['request_timeout']
    max_notification_actions: int = DEFAULT_CONFIG['max_notification_actions']
    static_strategy: str = DEFAULT_CONFIG['static_strategy']
    user_agent: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def cache_name(self) -> str:
        return cache_generation_name(self.cache_prefix, self.cache_version)

    def absolute_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return self.origin.rstrip("/") + "/" + path.lstrip("/")

    def validate(self):
        errors = []

        for name in ("origin", "backend_url"):
            parsed = urlparse(getattr(self, name) or "")
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"{name} must be an absolute http(s) URL")

        if not self.cache_prefix or "/" in self.cache_prefix:
            errors.append("cache_prefix must be a non-empty name without '/'")

        if not str(self.cache_version).strip():
            errors.append("cache_version must not be empty")

        if not self.offline_url.startswith("/"):
            errors.append("offline_url must be an absolute path")

        if self.offline_url not in self.essential_resources:
            errors.append("offline_url must be part of essential_resources")

        if not self.auth_path_prefix.startswith("/"):
            errors.append("auth_path_prefix must be an absolute path")

        if not is_valid_parallel_count(self.parallel_workers):
            errors.append("parallel_workers must be between 1 and 64")

        if not is_valid_timeout(self.request_timeout):
            errors.append("request_timeout must be between 1 and 300 seconds")

        if not (1 <= self.max_notification_actions <= 10):
            errors.append("max_notification_actions must be between 1 and 10")

        if self.static_strategy not in STRATEGY_NAMES:
            errors.append(f"static_strategy must be one of {', '.join(STRATEGY_NAMES)}")

        if errors:
            raise ConfigurationException(
                "Configuration validation failed",
                context={"errors": errors, "config": self.to_dict()},
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": self.origin,
            "backend_url": self.backend_url,
            "backend_host_suffix": self.backend_host_suffix,
            "auth_path_prefix": self.auth_path_prefix,
            "cache_prefix": self.cache_prefix,
            "cache_version": self.cache_version,
            "cache_name": self.cache_name,
            "cache_dir": self.cache_dir,
            "offline_url": self.offline_url,
            "essential_resources": list(self.essential_resources),
            "parallel_workers": self.parallel_workers,
            "request_timeout": self.request_timeout,
            "max_notification_actions": self.max_notification_actions,
            "static_strategy": self.static_strategy,
            "user_agent": self.user_agent,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "AgentConfig":
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for var, attr in ENV_VARS.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            if attr in ("parallel_workers", "request_timeout"):
                try:
                    values[attr] = int(raw)
                except ValueError:
                    raise ConfigurationException(
                        f"{var} must be an integer", config_key=var, config_value=raw
                    )
            else:
                values[attr] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        config.validate()
        return config
