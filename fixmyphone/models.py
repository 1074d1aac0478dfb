"""Data models for intercepted requests, responses, and offline work."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse


def _find_header(headers: dict[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class RequestKind(Enum):
    """Classification of an intercepted request, evaluated in this order."""

    HTML = "html"
    STATIC = "static"
    API = "api"
    GENERIC = "generic"


@dataclass(frozen=True)
class Request:
    """An outgoing request as seen by the offline cache controller.

    Attributes:
        url: Absolute URL of the resource.
        method: HTTP method, upper-case.
        headers: Request headers (lookups through header() are case-insensitive).
        mode: Request mode; "navigate" marks a top-level page navigation.
        body: Raw request body for non-GET requests.
    """

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    mode: str = "cors"
    body: bytes | None = None

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "Request":
        return cls(url=url, **kwargs)

    def header(self, name: str) -> str | None:
        return _find_header(self.headers, name)

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    @property
    def hostname(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def origin(self) -> str:
        parsed = urlparse(self.url)
        return f"{parsed.scheme}://{parsed.netloc}"


@dataclass
class Response:
    """A response produced by the network, the cache, or synthesized offline.

    Attributes:
        status: HTTP status code.
        headers: Response headers.
        body: Raw body bytes.
        status_text: HTTP reason phrase, may be empty.
    """

    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    status_text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299

    def header(self, name: str) -> str | None:
        return _find_header(self.headers, name)

    def clone(self) -> "Response":
        """Return an independent copy safe to store while the original is served."""
        return Response(
            status=self.status,
            headers=dict(self.headers),
            body=bytes(self.body),
            status_text=self.status_text,
        )

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


@dataclass(frozen=True)
class QueuedSubmission:
    """A repair submission that failed while offline and waits for sync.

    Attributes:
        id: Queue identifier, increasing in submission order.
        data: JSON payload to POST to the repair-request endpoint.
        queued_at: When the submission was queued.
    """

    id: int
    data: dict[str, Any]
    queued_at: datetime


@dataclass
class SyncReport:
    """Outcome of one background sync pass."""

    synced: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.synced) + len(self.failed)


@dataclass(frozen=True)
class NotificationAction:
    """A button shown on a system notification."""

    action: str
    title: str
    icon: str | None = None


@dataclass(frozen=True)
class Notification:
    """A system notification ready to be displayed."""

    title: str
    body: str
    icon: str
    badge: str
    vibrate: tuple[int, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)
    actions: tuple[NotificationAction, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "vibrate": list(self.vibrate),
            "data": dict(self.data),
            "actions": [
                {"action": a.action, "title": a.title, "icon": a.icon} for a in self.actions
            ],
        }
