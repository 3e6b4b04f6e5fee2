"""The background agent: owns the event loop and wires every handler together."""
import concurrent.futures
import logging
from typing import Any, Callable, Dict, Optional

from config.constants import SYNC_SESSIONS_TAG
from .bridge import SecureBridge
from .cache_store import CacheStorage
from .clients import ClientRegistry, WindowClient
from .dispatcher import CacheStrategyDispatcher
from .fetcher import NetworkFetcher
from .lifecycle import LifecycleManager
from .notifications import NotificationCenter
from .push_renderer import PushRenderer
from .router import NotificationRouter
from .sync import BackgroundSync
from ..models.config import AgentConfig
from ..models.events import (
    ActivateEvent,
    ExtendableEvent,
    FetchEvent,
    InstallEvent,
    MessageEvent,
    NotificationClickEvent,
    PushEvent,
    SyncEvent,
)
from ..models.messages import (
    StorageValue,
    SyncFailed,
    SyncSuccess,
    UnrecognizedMessage,
    parse_message,
)

logger = logging.getLogger(__name__)


class ServiceWorkerAgent:
    """Handles lifecycle, fetch, push, click, message and sync events.

    Each event runs as its own task on a thread pool; a task finishes only when
    every future registered through ``wait_until`` has settled.
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        fetcher: Optional[NetworkFetcher] = None,
        cache_storage: Optional[CacheStorage] = None,
        clients: Optional[ClientRegistry] = None,
        notifications: Optional[NotificationCenter] = None,
        executor: Optional[concurrent.futures.ThreadPoolExecutor] = None,
    ):
        self.config = config or AgentConfig()
        self.fetcher = fetcher or NetworkFetcher(
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
        )
        self.cache_storage = cache_storage or CacheStorage(self.config.cache_dir)
        self.clients = clients or ClientRegistry(self.config.origin)
        self.notifications = notifications or NotificationCenter()
        self._owns_executor = executor is None
        self.executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=self.config.parallel_workers,
            thread_name_prefix="plankworker",
        )
        # wait_until work never shares the event pool
        self.background = concurrent.futures.ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="plankworker-bg"
        )

        self.lifecycle = LifecycleManager(self.config, self.cache_storage, self.fetcher, self.clients)
        self.dispatcher = CacheStrategyDispatcher(
            self.config, self.cache_storage, self.fetcher, executor=self.background
        )
        self.bridge = SecureBridge(self.clients)
        self.renderer = PushRenderer(self.notifications, self.config.max_notification_actions)
        self.router = NotificationRouter(self.clients, self.bridge)
        self.sync = BackgroundSync(self.bridge)

        self._handlers: Dict[type, Callable[[Any], Any]] = {
            InstallEvent: self._on_install,
            ActivateEvent: self._on_activate,
            FetchEvent: self._on_fetch,
            PushEvent: self._on_push,
            NotificationClickEvent: self._on_notification_click,
            MessageEvent: self._on_message,
            SyncEvent: self._on_sync,
        }

    def dispatch(self, event: ExtendableEvent) -> concurrent.futures.Future:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No handler for event type {type(event).__name__}")
        return self.executor.submit(self._run, handler, event)

    def _run(self, handler: Callable[[Any], Any], event: ExtendableEvent) -> Any:
        result = handler(event)
        for err in event.settle():
            logger.warning(f"{event.type} event {event.id}: extension failed: {err}")
        return result

    def start(self) -> Dict[str, object]:
        """Install then activate; raises InstallationException if pre-caching fails."""
        self.dispatch(InstallEvent()).result()
        return self.dispatch(ActivateEvent()).result()

    def fetch(self, event: FetchEvent):
        return self.dispatch(event).result()

    def push(self, data: Any = None):
        return self.dispatch(PushEvent(data)).result()

    def click(self, notification, action: Optional[str] = None) -> Dict[str, Any]:
        return self.dispatch(NotificationClickEvent(notification, action)).result()

    def sync_event(self, tag: str = SYNC_SESSIONS_TAG):
        return self.dispatch(SyncEvent(tag)).result()

    def receive_message(self, data: Any, source: Optional[WindowClient] = None) -> Optional[concurrent.futures.Future]:
        """Entry point for page -> agent messages.

        Storage replies resolve pending bridge reads immediately; those reads
        may be blocking a pool thread, so they never wait behind the pool.
        """
        message = parse_message(data)
        if isinstance(message, StorageValue):
            self.bridge.handle_response(message)
            return None
        return self.dispatch(MessageEvent(message, source))

    def _on_install(self, event: InstallEvent) -> int:
        return self.lifecycle.install()

    def _on_activate(self, event: ActivateEvent) -> Dict[str, object]:
        return self.lifecycle.activate()

    def _on_fetch(self, event: FetchEvent):
        if not self.lifecycle.is_active:
            logger.debug(f"Not active, passing through {event.request.url}")
            return None
        return self.dispatcher.handle(event)

    def _on_push(self, event: PushEvent):
        return self.renderer.render(event)

    def _on_notification_click(self, event: NotificationClickEvent) -> Dict[str, Any]:
        return self.router.handle_click(event)

    def _on_message(self, event: MessageEvent) -> Any:
        message = event.data
        if not hasattr(message, "TYPE"):
            message = parse_message(message)

        if isinstance(message, SyncSuccess):
            logger.info(f"Session {message.session_id} synced by client")
            return self.sync.mark_session_synced(message.session_id)
        if isinstance(message, SyncFailed):
            logger.error(f"Client failed to sync session {message.session_id}: {message.error}")
            return False
        if isinstance(message, StorageValue):
            return self.bridge.handle_response(message)
        if isinstance(message, UnrecognizedMessage):
            logger.warning(f"Unrecognized message ({message.reason}): {message.declared_type}")
            return None

        logger.debug(f"Ignoring {message.TYPE} message addressed to a page")
        return None

    def _on_sync(self, event: SyncEvent) -> int:
        logger.info(f"Background sync triggered: {event.tag}")
        if event.tag != SYNC_SESSIONS_TAG:
            logger.warning(f"Unknown sync tag {event.tag}")
            return 0
        return self.sync.sync_sessions()

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait)
        self.background.shutdown(wait=wait)
        self.fetcher.close()
