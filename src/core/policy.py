import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from config.constants import STATIC_DESTINATIONS
from config.patterns import (
    BACKEND_PATH_PATTERNS_COMPILED,
    CREDENTIAL_HEADERS,
    STATIC_EXTENSION_PATTERNS_COMPILED,
)
from ..models.config import AgentConfig
from ..models.http import Request

logger = logging.getLogger(__name__)


class CacheStrategy(Enum):
    NETWORK_ONLY = "network-only"
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    STALE_WHILE_REVALIDATE_ON_MISS = "stale-while-revalidate-on-miss"


@dataclass(frozen=True)
class CachePolicyRule:
    name: str
    strategy: CacheStrategy
    predicate: Callable[[Request], bool]
    store_response: bool = False
    offline_fallback: bool = False
    fallback_to_cache: bool = True

    def matches(self, request: Request) -> bool:
        return bool(self.predicate(request))

    def to_dict(self) -> Dict[str, object]:
        return {
            "rule": self.name,
            "strategy": self.strategy.value,
            "store_response": self.store_response,
            "offline_fallback": self.offline_fallback,
            "fallback_to_cache": self.fallback_to_cache,
        }


def has_credentials(request: Request) -> bool:
    return any(request.has_header(h) for h in CREDENTIAL_HEADERS)


def is_auth_path(request: Request, prefix: str) -> bool:
    prefix = prefix.rstrip("/").lower()
    path = request.path.lower()
    return path == prefix or path.startswith(prefix + "/")


def is_static_request(request: Request) -> bool:
    if request.destination:
        return request.destination in STATIC_DESTINATIONS
    path = request.path
    return any(rx.search(path) for rx in STATIC_EXTENSION_PATTERNS_COMPILED.values())


class CachePolicy:
    """Ordered rule table; the first matching rule decides, no match means pass through.

    The auth rule sits ahead of every rule that stores responses, so a request
    carrying credentials or targeting an auth path can never reach a storing rule.
    """

    def __init__(self, rules: List[CachePolicyRule]):
        self.rules = list(rules)

    def classify(self, request: Request) -> Optional[CachePolicyRule]:
        for rule in self.rules:
            if rule.matches(request):
                return rule
        return None

    @classmethod
    def default(cls, config: AgentConfig) -> "CachePolicy":
        suffix = config.backend_host_suffix.lower()
        auth_prefix = config.auth_path_prefix.rstrip("/")

        def is_backend_read(request: Request) -> bool:
            return request.method == "GET" and request.hostname.endswith(suffix)

        def auth_path(request: Request) -> bool:
            return is_auth_path(request, auth_prefix)

        def path_matches(name: str) -> Callable[[Request], bool]:
            rx = BACKEND_PATH_PATTERNS_COMPILED[name]
            return lambda request: bool(rx.search(request.path))

        catalog = path_matches('public_catalog')
        storage = path_matches('public_storage')

        static_strategy = CacheStrategy(config.static_strategy)

        rules = [
            CachePolicyRule(
                name="navigation",
                strategy=CacheStrategy.NETWORK_ONLY,
                predicate=lambda r: r.is_navigation,
                offline_fallback=True,
                fallback_to_cache=False,
            ),
            CachePolicyRule(
                name="authenticated-api",
                strategy=CacheStrategy.NETWORK_ONLY,
                predicate=lambda r: is_backend_read(r) and (has_credentials(r) or auth_path(r)),
                fallback_to_cache=False,
            ),
            CachePolicyRule(
                name="public-catalog",
                strategy=CacheStrategy.NETWORK_FIRST,
                predicate=lambda r: is_backend_read(r) and catalog(r),
                store_response=True,
            ),
            CachePolicyRule(
                name="public-storage",
                strategy=CacheStrategy.CACHE_FIRST,
                predicate=lambda r: is_backend_read(r) and storage(r),
                store_response=True,
            ),
            CachePolicyRule(
                name="backend-api",
                strategy=CacheStrategy.NETWORK_FIRST,
                predicate=is_backend_read,
                store_response=False,
            ),
            CachePolicyRule(
                name="static-asset",
                strategy=static_strategy,
                predicate=lambda r: r.method == "GET" and not has_credentials(r) and is_static_request(r),
                store_response=True,
            ),
        ]
        return cls(rules)
