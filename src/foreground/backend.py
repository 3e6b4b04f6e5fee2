"""Authenticated client for the hosted REST backend; only the page holds the session token."""
import logging
from typing import Any, Dict, List, Optional

import requests

from config.constants import BACKEND_PATHS, DEFAULT_CONFIG
from ..core.fetcher import create_session
from ..models.exceptions import NetworkException, SubscriptionException
from ..models.subscription import SubscriptionRow

logger = logging.getLogger(__name__)


class BackendClient:
    def __init__(
        self,
        base_url: str = DEFAULT_CONFIG['backend_url'],
        api_key: str = "",
        access_token: Optional[str] = None,
        timeout: int = DEFAULT_CONFIG['request_timeout'],
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or create_session()

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        token = self.access_token or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkException(f"Backend request failed: {e}", url=url)

        if resp.status_code >= 400:
            raise NetworkException(
                f"Backend returned HTTP {resp.status_code}",
                url=url,
                status_code=resp.status_code,
                context={"body": (resp.text or "")[:200]},
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def list_active_subscriptions(self, user_id: str) -> List[SubscriptionRow]:
        rows = self._request(
            "GET",
            BACKEND_PATHS['push_subscriptions'],
            params={"select": "*", "user_id": f"eq.{user_id}", "is_active": "eq.true"},
        )
        return [SubscriptionRow.from_dict(r) for r in (rows or []) if isinstance(r, dict)]

    def delete_subscriptions(self, user_id: str) -> int:
        rows = self._request(
            "DELETE",
            BACKEND_PATHS['push_subscriptions'],
            params={"user_id": f"eq.{user_id}"},
            headers={"Prefer": "return=representation"},
        )
        count = len(rows) if isinstance(rows, list) else 0
        logger.info(f"Deleted {count} subscription row(s) for user {user_id}")
        return count

    def upsert_subscription(self, row: SubscriptionRow) -> SubscriptionRow:
        rows = self._request(
            "POST",
            BACKEND_PATHS['push_subscriptions'],
            params={"on_conflict": "user_id,endpoint"},
            json_body=row.to_dict(),
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return SubscriptionRow.from_dict(rows[0])
        return row

    def fetch_vapid_public_key(self) -> str:
        data = self._request("POST", BACKEND_PATHS['vapid_public_key'], json_body={})
        key = data.get("publicKey") if isinstance(data, dict) else None
        if not isinstance(key, str) or not key:
            raise SubscriptionException("Backend returned no VAPID public key")
        return key

    def log_notification_interaction(self, user_id: Optional[str], interaction: Dict[str, Any]) -> None:
        body = {
            "user_id": user_id,
            "notification_type": interaction.get("notification_type") or "unknown",
            "category": interaction.get("category") or "unknown",
            "action": interaction.get("action") or "click",
            "data": interaction.get("data") or {},
        }
        self._request("POST", BACKEND_PATHS['notification_interactions'], json_body=body)

    def save_workout_session(self, user_id: Optional[str], session_data: Dict[str, Any]) -> None:
        body = {k: v for k, v in session_data.items() if k not in ("id", "synced")}
        body["user_id"] = user_id
        self._request("POST", BACKEND_PATHS['workout_sessions'], json_body=body)

    def close(self) -> None:
        self.session.close()
