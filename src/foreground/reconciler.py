"""Keeps the browser push subscription and the server's subscription rows in agreement.

Either both exist and share an endpoint, or neither exists. Anything else is
drift, repaired by clearing both sides and subscribing afresh.
"""
import base64
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Optional, Protocol

from config.constants import DEFAULT_CONFIG
from .backend import BackendClient
from ..models.exceptions import AgentException, PermissionDeniedException, SubscriptionException
from ..models.subscription import PushSubscription, SubscriptionRow, SubscriptionState, SubscriptionStatus

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


class PushManager(Protocol):
    def get_subscription(self) -> Optional[PushSubscription]: ...

    def subscribe(self, application_server_key: bytes) -> PushSubscription: ...

    def unsubscribe(self) -> bool: ...

    def permission_state(self) -> str: ...

    def request_permission(self) -> str: ...


def url_base64_to_bytes(value: str) -> bytes:
    padding = "=" * ((4 - len(value) % 4) % 4)
    try:
        return base64.urlsafe_b64decode(value + padding)
    except (ValueError, TypeError) as e:
        raise SubscriptionException(f"Invalid VAPID key format: {e}")


class SubscriptionReconciler:
    def __init__(
        self,
        push_manager: PushManager,
        backend: BackendClient,
        user_id: str,
        user_agent: str = "",
        propagation_delay: float = DEFAULT_CONFIG['subscription_propagation_delay'],
        sleep: Callable[[float], None] = time.sleep,
        history_size: int = HISTORY_LIMIT,
    ):
        self.push_manager = push_manager
        self.backend = backend
        self.user_id = user_id
        self.user_agent = user_agent or DEFAULT_CONFIG['user_agent']
        self.propagation_delay = propagation_delay
        self.sleep = sleep
        self.last_status: Optional[SubscriptionStatus] = None
        self.history: Deque[SubscriptionState] = deque(maxlen=history_size)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _push(self, operation: str, *args: Any) -> Any:
        """Call the browser push manager, surfacing its failures as SubscriptionException."""
        try:
            return getattr(self.push_manager, operation)(*args)
        except AgentException:
            raise
        except Exception as e:
            raise SubscriptionException(f"Push manager {operation} failed: {e}", user_id=self.user_id) from e

    def check(self) -> SubscriptionStatus:
        status = SubscriptionStatus(
            browser_subscription=self._push("get_subscription"),
            server_rows=self.backend.list_active_subscriptions(self.user_id),
        )
        self.last_status = status
        self.history.append(status.state)
        logger.info(
            f"Subscription state for {self.user_id}: {status.state.value} "
            f"(browser={'yes' if status.browser_subscription else 'no'}, rows={len(status.server_rows)})"
        )
        return status

    def ensure_permission(self) -> None:
        state = self._push("permission_state")
        if state == "default":
            state = self._push("request_permission")
        if state != "granted":
            raise PermissionDeniedException(f"Notification permission is {state}", user_id=self.user_id)

    def subscribe(self) -> SubscriptionRow:
        self.ensure_permission()
        key = url_base64_to_bytes(self.backend.fetch_vapid_public_key())
        subscription = self._push("subscribe", key)
        row = SubscriptionRow.from_subscription(self.user_id, subscription, self.user_agent)
        saved = self.backend.upsert_subscription(row)
        logger.info(f"Subscribed {self.user_id} at {subscription.endpoint[:50]}")
        return saved

    def repair(self) -> bool:
        """Clear both sides then subscribe again. Safe to re-run; False on any failure."""
        with self._lock:
            try:
                removed = self.backend.delete_subscriptions(self.user_id)
                existing = self._push("get_subscription")
                if existing is not None:
                    self._push("unsubscribe")
                    logger.info("Unsubscribed stale browser subscription")
                else:
                    logger.debug("No browser subscription to remove")
                logger.debug(f"Removed {removed} server row(s), waiting {self.propagation_delay}s")
                if self.propagation_delay > 0:
                    self.sleep(self.propagation_delay)
                self.subscribe()
            except AgentException as e:
                logger.error(f"Subscription repair failed for {self.user_id}: {e}")
                return False
        return True

    def reconcile(self, want_subscription: bool = False) -> bool:
        try:
            status = self.check()
        except AgentException as e:
            logger.error(f"Subscription check failed for {self.user_id}: {e}")
            return False

        if status.synced:
            return True
        if status.state is SubscriptionState.UNSUBSCRIBED and not want_subscription:
            return True

        logger.warning(f"Subscription drift detected: {status.state.value}, repairing")
        if not self.repair():
            return False
        try:
            return self.check().synced
        except AgentException as e:
            logger.error(f"Post-repair check failed for {self.user_id}: {e}")
            return False

    def start_periodic(self, interval: float = DEFAULT_CONFIG['reconcile_interval']) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()

        def run():
            while not self._stop.is_set():
                try:
                    self.reconcile()
                except Exception as e:
                    logger.error(f"Periodic reconcile failed for {self.user_id}: {e}")
                self._stop.wait(interval)

        self._thread = threading.Thread(target=run, name="subscription-reconciler", daemon=True)
        self._thread.start()
        logger.info(f"Subscription reconciler running every {interval}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
