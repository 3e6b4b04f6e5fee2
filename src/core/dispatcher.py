import concurrent.futures
import logging
from typing import Optional

from .cache_store import CacheStorage
from .fetcher import NetworkFetcher
from .policy import CachePolicy, CachePolicyRule, CacheStrategy, has_credentials, is_auth_path
from ..models.config import AgentConfig
from ..models.events import FetchEvent
from ..models.exceptions import CacheStorageException, NetworkException
from ..models.http import Request, Response

logger = logging.getLogger(__name__)

OFFLINE_BODY = b"<!doctype html><title>Offline</title><p>You are offline.</p>"


class CacheStrategyDispatcher:
    def __init__(
        self,
        config: AgentConfig,
        cache_storage: CacheStorage,
        fetcher: NetworkFetcher,
        policy: Optional[CachePolicy] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        self.config = config
        self.cache_storage = cache_storage
        self.fetcher = fetcher
        self.policy = policy or CachePolicy.default(config)
        self.executor = executor
        self.stats = {"handled": 0, "passed_through": 0, "cache_hits": 0, "stored": 0, "cache_errors": 0}

    def handle(self, event: FetchEvent) -> Optional[Response]:
        request = event.request
        rule = self.policy.classify(request)
        if rule is None:
            self.stats["passed_through"] += 1
            logger.debug(f"Pass through {request.method} {request.url}")
            return None

        self.stats["handled"] += 1
        logger.debug(f"{request.method} {request.url} -> rule={rule.name} strategy={rule.strategy.value}")

        if rule.strategy is CacheStrategy.NETWORK_ONLY:
            response = self._network_only(event, rule)
        elif rule.strategy is CacheStrategy.NETWORK_FIRST:
            response = self._network_first(event, rule)
        elif rule.strategy is CacheStrategy.CACHE_FIRST:
            response = self._cache_first(event, rule)
        else:
            response = self._stale_while_revalidate_on_miss(event, rule)

        event.respond_with(response)
        return response

    def _network_only(self, event: FetchEvent, rule: CachePolicyRule) -> Response:
        try:
            return self.fetcher.fetch(event.request)
        except NetworkException:
            if not rule.offline_fallback:
                raise
            logger.info(f"Network unavailable, serving offline page for {event.request.url}")
            return self._offline_response()

    def _network_first(self, event: FetchEvent, rule: CachePolicyRule) -> Response:
        request = event.request
        try:
            response = self.fetcher.fetch(request)
        except NetworkException:
            cached = self._match(request) if rule.fallback_to_cache else None
            if cached is None:
                raise
            logger.info(f"Network unavailable, serving cached copy of {request.url}")
            return cached

        if response.ok and rule.store_response:
            self._store(event, request, response)
        return response

    def _cache_first(self, event: FetchEvent, rule: CachePolicyRule) -> Response:
        request = event.request
        cached = self._match(request)
        if cached is not None:
            return cached

        response = self.fetcher.fetch(request)
        if response.ok and rule.store_response:
            self._store(event, request, response)
        return response

    def _stale_while_revalidate_on_miss(self, event: FetchEvent, rule: CachePolicyRule) -> Response:
        request = event.request
        cached = self._match(request)
        if cached is None:
            return self._cache_first(event, rule)

        if rule.store_response:
            self._background(event, self._revalidate, request)
        return cached

    def _revalidate(self, request: Request) -> None:
        try:
            response = self.fetcher.fetch(request)
        except NetworkException as e:
            logger.debug(f"Revalidation of {request.url} failed: {e}")
            return
        if response.ok:
            self._put(request, response)

    def _match(self, request: Request) -> Optional[Response]:
        try:
            hit = self.cache_storage.match(request, generation=self.config.cache_name)
        except CacheStorageException as e:
            self.stats["cache_errors"] += 1
            logger.warning(f"Cache read failed for {request.url}, treating as miss: {e}")
            return None
        if hit is not None:
            self.stats["cache_hits"] += 1
        return hit

    def may_store(self, request: Request) -> bool:
        return not has_credentials(request) and not is_auth_path(request, self.config.auth_path_prefix)

    def _store(self, event: FetchEvent, request: Request, response: Response) -> None:
        if not self.may_store(request):
            logger.warning(f"Refusing to cache credential-bearing request {request.url}")
            return
        self._background(event, self._put, request, response.clone())

    def _put(self, request: Request, response: Response) -> None:
        if not self.may_store(request):
            return
        try:
            self.cache_storage.open(self.config.cache_name).put(request, response)
            self.stats["stored"] += 1
        except CacheStorageException as e:
            self.stats["cache_errors"] += 1
            logger.warning(f"Cache write failed for {request.url}: {e}")

    def _background(self, event: FetchEvent, fn, *args) -> None:
        if self.executor is None:
            fn(*args)
            return
        event.wait_until(self.executor.submit(fn, *args))

    def _offline_response(self) -> Response:
        offline = Request(self.config.absolute_url(self.config.offline_url))
        cached = self._match(offline)
        if cached is not None:
            return cached
        logger.warning("Offline page missing from cache")
        return Response(status=503, headers={"Content-Type": "text/html; charset=utf-8"}, body=OFFLINE_BODY)
