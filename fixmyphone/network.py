"""Network access for the offline cache controller."""

import logging

import requests

from .models import Request, Response

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "FixMyPhone-Offline/1.0"

# Hop-by-hop headers must not be forwarded between connections.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)


class NetworkError(Exception):
    """Raised when a request cannot reach the network or times out."""

    pass


def _forwardable(headers: dict[str, str]) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}


class RequestsFetcher:
    """Fetch requests over HTTP with a bounded timeout.

    Every fetch is capped at `timeout` seconds so a stalled upstream turns
    into a NetworkError and the caller can fall back to its cache.
    """

    def __init__(self, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", DEFAULT_USER_AGENT)

    def __call__(self, request: Request) -> Response:
        return self.fetch(request)

    def fetch(self, request: Request) -> Response:
        """Perform the request and return the full response.

        Raises:
            NetworkError: On connection failures and timeouts.
        """
        try:
            resp = self._session.request(
                request.method,
                request.url,
                headers=_forwardable(request.headers),
                data=request.body,
                timeout=self._timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            logger.debug("Network fetch failed for %s %s: %s", request.method, request.url, e)
            raise NetworkError(f"{request.method} {request.url} failed: {e}") from e

        # requests has already decoded any Content-Encoding
        headers = {
            k: v for k, v in resp.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS | {"content-encoding"}
        }
        return Response(
            status=resp.status_code,
            headers=headers,
            body=resp.content,
            status_text=resp.reason or "",
        )

    def close(self) -> None:
        self._session.close()
