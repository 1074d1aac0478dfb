"""Request classification and event routing for the offline cache controller.

Everything here is a pure function of its arguments so routing decisions
can be tested without a running proxy.

Fetch routing (first match wins):
- HTML navigation: Accept header contains text/html -> network-first with offline fallback
- Static asset: path ends in a style/script/image/font extension -> cache-first
- API call: path under the API prefix or backend hostname -> network-first with cache fallback
- Generic: anything else -> network with cache fallback, never written to cache
"""

import re

from .config import CacheConfig
from .models import Request, RequestKind

STATIC_ASSET_PATTERN = re.compile(r"\.(css|js|png|jpg|jpeg|gif|svg|ico|woff|woff2|ttf|eot)$", re.IGNORECASE)
IMAGE_PATTERN = re.compile(r"\.(png|jpg|jpeg|gif|svg)$", re.IGNORECASE)

FETCH_HANDLERS = {
    RequestKind.HTML: "handle_html",
    RequestKind.STATIC: "handle_static",
    RequestKind.API: "handle_api",
    RequestKind.GENERIC: "handle_generic",
}

EVENT_HANDLERS = {
    "install": "install",
    "activate": "activate",
    "sync": "handle_sync",
    "push": "handle_push",
    "notificationclick": "handle_notification_click",
}


def is_html_request(request: Request) -> bool:
    accept = request.header("Accept") or ""
    return "text/html" in accept


def is_static_asset(request: Request) -> bool:
    return STATIC_ASSET_PATTERN.search(request.path) is not None


def is_image_request(request: Request) -> bool:
    return IMAGE_PATTERN.search(request.path) is not None


def is_api_request(request: Request, config: CacheConfig) -> bool:
    return request.path.startswith(config.api_prefix) or (
        bool(config.backend_host) and config.backend_host in request.hostname
    )


def is_allowed_external(request: Request, config: CacheConfig) -> bool:
    hostname = request.hostname
    return any(domain in hostname for domain in config.allowed_hosts)


def should_intercept(request: Request, origin: str, config: CacheConfig) -> bool:
    """Decide whether the controller handles a request at all.

    Only GET requests are intercepted, and only same-origin ones plus the
    allow-listed cross-origin hosts. Everything else goes straight to the
    network untouched.
    """
    if request.method.upper() != "GET":
        return False
    if request.origin == origin.rstrip("/"):
        return True
    return is_allowed_external(request, config)


def classify(request: Request, config: CacheConfig) -> RequestKind:
    if is_html_request(request):
        return RequestKind.HTML
    if is_static_asset(request):
        return RequestKind.STATIC
    if is_api_request(request, config):
        return RequestKind.API
    return RequestKind.GENERIC


def route(event_type: str, request: Request | None, origin: str, config: CacheConfig) -> str | None:
    """Map an event (and its request, for fetches) to a controller method name.

    Returns:
        The handler name, or None when the event is not handled and default
        behavior applies.
    """
    if event_type == "fetch":
        if request is None or not should_intercept(request, origin, config):
            return None
        return FETCH_HANDLERS[classify(request, config)]
    return EVENT_HANDLERS.get(event_type)
