import logging
import threading
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .cache_store import CacheStorage
from .clients import ClientRegistry
from .fetcher import NetworkFetcher
from ..models.config import AgentConfig
from ..models.exceptions import CacheStorageException, InstallationException, NetworkException
from ..models.http import Request, Response

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


def evict_stale_generations(cache_storage: CacheStorage, current: str) -> Tuple[List[str], List[str]]:
    """Delete every generation except ``current``. Failures are logged, never raised."""
    evicted: List[str] = []
    failed: List[str] = []
    try:
        names = cache_storage.list_generations()
    except CacheStorageException as e:
        logger.warning(f"Could not list cache generations: {e}")
        return evicted, failed

    for name in names:
        if name == current:
            continue
        try:
            if cache_storage.delete(name):
                evicted.append(name)
                logger.info(f"Evicted stale cache generation {name}")
        except CacheStorageException as e:
            failed.append(name)
            logger.warning(f"Failed to evict cache generation {name}: {e}")
    return evicted, failed


class LifecycleManager:
    """install -> installed(waiting) -> activating -> activated.

    Install pre-caches the essential resource manifest into the current
    generation and is fatal on any failure. Activate evicts every other
    generation (best effort) and claims open clients.
    """

    def __init__(
        self,
        config: AgentConfig,
        cache_storage: CacheStorage,
        fetcher: NetworkFetcher,
        clients: ClientRegistry,
        agent_id: Optional[str] = None,
    ):
        self.config = config
        self.cache_storage = cache_storage
        self.fetcher = fetcher
        self.clients = clients
        self.agent_id = agent_id or config.cache_name
        self.state = LifecycleState.PARSED
        self.skip_waiting = False
        self.evicted: List[str] = []
        self._lock = threading.Lock()

    def _transition(self, state: LifecycleState) -> None:
        with self._lock:
            previous = self.state
            self.state = state
        logger.info(f"Lifecycle {previous.value} -> {state.value} ({self.config.cache_name})")

    @property
    def is_active(self) -> bool:
        return self.state is LifecycleState.ACTIVATED

    def install(self) -> int:
        self._transition(LifecycleState.INSTALLING)
        try:
            generation = self.cache_storage.open(self.config.cache_name)
            fetched = [self._fetch_essential(path) for path in self.config.essential_resources]
            for request, response in fetched:
                generation.put(request, response)
        except (InstallationException, CacheStorageException) as e:
            self._transition(LifecycleState.REDUNDANT)
            if isinstance(e, InstallationException):
                raise
            raise InstallationException(f"Failed to store essential resources: {e.message}", context=e.context)

        logger.info(f"Pre-cached {len(fetched)} essential resources into {generation.name}")
        self._transition(LifecycleState.INSTALLED)
        self.skip_waiting = True
        return len(fetched)

    def _fetch_essential(self, path: str) -> Tuple[Request, Response]:
        request = Request(self.config.absolute_url(path))
        try:
            response = self.fetcher.fetch(request)
        except NetworkException as e:
            raise InstallationException(f"Could not fetch essential resource: {e.message}", resource=path)
        if not response.ok:
            raise InstallationException(
                f"Essential resource returned HTTP {response.status}",
                resource=path,
                context={"status_code": response.status},
            )
        return request, response

    def activate(self) -> Dict[str, object]:
        if self.state is not LifecycleState.INSTALLED:
            raise InstallationException(
                "Cannot activate before a successful install",
                context={"state": self.state.value},
            )
        self._transition(LifecycleState.ACTIVATING)

        current = self.config.cache_name
        evicted, failed = evict_stale_generations(self.cache_storage, current)
        self.evicted.extend(evicted)

        claimed = self.clients.claim(self.agent_id)
        logger.info(f"Claimed {claimed} open client(s)")
        self._transition(LifecycleState.ACTIVATED)
        return {"current": current, "evicted": list(self.evicted), "failed": failed, "claimed": claimed}
