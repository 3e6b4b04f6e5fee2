from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse
import base64
import time

from requests.structures import CaseInsensitiveDict

from .exceptions import ValidationException

NAVIGATE_MODE = "navigate"


def _headers(value: Optional[Mapping[str, str]]) -> CaseInsensitiveDict:
    if isinstance(value, CaseInsensitiveDict):
        return value.copy()
    return CaseInsensitiveDict(dict(value or {}))


@dataclass
class Request:
    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    mode: str = "cors"
    destination: str = ""

    def __post_init__(self):
        if not self.url or not isinstance(self.url, str):
            raise ValidationException("Request URL must be a non-empty string", field="url", value=self.url)
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationException("Request URL must be absolute http(s)", field="url", value=self.url)
        self.method = (self.method or "GET").upper()
        self.headers = _headers(self.headers)

    @property
    def hostname(self) -> str:
        return (urlparse(self.url).hostname or "").lower()

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    @property
    def is_navigation(self) -> bool:
        return self.mode == NAVIGATE_MODE

    def has_header(self, name: str) -> bool:
        return name in self.headers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "mode": self.mode,
            "destination": self.destination,
        }


@dataclass
class Response:
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    url: str = ""
    from_cache: bool = False
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        self.headers = _headers(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @property
    def ok(self) -> bool:
        return 200 <= int(self.status) <= 299

    @property
    def vary(self) -> list:
        raw = self.headers.get("Vary", "") or ""
        return [h.strip() for h in raw.split(",") if h.strip()]

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")

    def clone(self) -> "Response":
        return Response(
            status=self.status,
            headers=self.headers.copy(),
            body=bytes(self.body),
            url=self.url,
            from_cache=self.from_cache,
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "headers": dict(self.headers),
            "body": base64.b64encode(self.body).decode("ascii"),
            "url": self.url,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Response":
        return cls(
            status=int(data.get("status", 0)),
            headers=data.get("headers") or {},
            body=base64.b64decode(data.get("body") or ""),
            url=data.get("url", ""),
            from_cache=True,
            created_at=float(data.get("created_at") or time.time()),
        )

    @classmethod
    def from_requests(cls, resp: Any) -> "Response":
        return cls(
            status=int(resp.status_code),
            headers=dict(resp.headers),
            body=resp.content or b"",
            url=str(resp.url or ""),
        )
