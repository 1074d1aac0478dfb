"""Tests for request classification and event routing."""

import pytest

from fixmyphone.config import CacheConfig
from fixmyphone.models import Request, RequestKind
from fixmyphone.router import classify, is_allowed_external, is_api_request, route, should_intercept

from .conftest import ORIGIN

CONFIG = CacheConfig()


def get(url: str, accept: str = "*/*") -> Request:
    return Request.from_url(url, headers={"Accept": accept})


class TestClassify:
    """Tests for request classification precedence."""

    @pytest.mark.parametrize(
        "path",
        ["/style.css", "/app.js", "/logo.PNG", "/fonts/inter.woff2", "/favicon.ico", "/hero.svg"],
    )
    def test_static_extensions(self, path: str) -> None:
        """Style, script, image and font paths are static assets."""
        assert classify(get(ORIGIN + path), CONFIG) is RequestKind.STATIC

    def test_html_accept_wins_over_extension(self) -> None:
        """An HTML navigation to a .js URL is still treated as HTML."""
        request = get(f"{ORIGIN}/app.js", accept="text/html,application/xhtml+xml")
        assert classify(request, CONFIG) is RequestKind.HTML

    def test_html_accept_wins_over_api_prefix(self) -> None:
        """HTML is checked before the API prefix."""
        assert classify(get(f"{ORIGIN}/api/docs", accept="text/html"), CONFIG) is RequestKind.HTML

    def test_static_wins_over_api_prefix(self) -> None:
        """A static extension under /api/ is still a static asset."""
        assert classify(get(f"{ORIGIN}/api/avatar.png"), CONFIG) is RequestKind.STATIC

    def test_api_prefix(self) -> None:
        """Paths under /api/ are API calls."""
        assert classify(get(f"{ORIGIN}/api/repair-requests"), CONFIG) is RequestKind.API

    def test_backend_hostname(self) -> None:
        """Requests to the backend provider are API calls."""
        assert classify(get("https://xyz.supabase.co/rest/v1/bookings"), CONFIG) is RequestKind.API

    def test_generic_fallback(self) -> None:
        """Anything else is generic."""
        assert classify(get(f"{ORIGIN}/manifest.json"), CONFIG) is RequestKind.GENERIC

    def test_query_string_does_not_hide_extension(self) -> None:
        """The extension check looks at the path only."""
        assert classify(get(f"{ORIGIN}/style.css?v=3"), CONFIG) is RequestKind.STATIC


class TestPredicates:
    """Tests for the individual routing predicates."""

    def test_custom_api_prefix(self) -> None:
        """The API prefix comes from configuration."""
        config = CacheConfig(api_prefix="/rest/")
        assert is_api_request(get(f"{ORIGIN}/rest/items"), config) is True
        assert is_api_request(get(f"{ORIGIN}/api/items"), config) is False

    def test_allowed_external(self) -> None:
        """Allow-listed font hosts are recognized; others are not."""
        assert is_allowed_external(get("https://fonts.googleapis.com/css2?family=Inter"), CONFIG) is True
        assert is_allowed_external(get("https://evil.example/x.js"), CONFIG) is False


class TestShouldIntercept:
    """Tests for interception decisions."""

    def test_same_origin_get(self) -> None:
        """Same-origin GETs are intercepted."""
        assert should_intercept(get(f"{ORIGIN}/"), ORIGIN, CONFIG) is True

    def test_trailing_slash_origin(self) -> None:
        """The origin comparison ignores a trailing slash."""
        assert should_intercept(get(f"{ORIGIN}/"), ORIGIN + "/", CONFIG) is True

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "HEAD"])
    def test_non_get_methods(self, method: str) -> None:
        """Only GET requests are intercepted."""
        request = Request.from_url(f"{ORIGIN}/api/repair-requests", method=method)
        assert should_intercept(request, ORIGIN, CONFIG) is False

    def test_foreign_origin(self) -> None:
        """Unlisted cross-origin requests pass through."""
        assert should_intercept(get("https://analytics.example/collect"), ORIGIN, CONFIG) is False

    def test_other_port_is_foreign(self) -> None:
        """A different port is a different origin."""
        assert should_intercept(get("https://fixmyphone.test:8443/"), ORIGIN, CONFIG) is False


class TestRoute:
    """Tests for event routing."""

    def test_fetch_routes_by_kind(self) -> None:
        """Fetch events map to the strategy for the request kind."""
        assert route("fetch", get(f"{ORIGIN}/", accept="text/html"), ORIGIN, CONFIG) == "handle_html"
        assert route("fetch", get(f"{ORIGIN}/app.js"), ORIGIN, CONFIG) == "handle_static"
        assert route("fetch", get(f"{ORIGIN}/api/x"), ORIGIN, CONFIG) == "handle_api"
        assert route("fetch", get(f"{ORIGIN}/robots.txt"), ORIGIN, CONFIG) == "handle_generic"

    def test_fetch_not_intercepted(self) -> None:
        """Non-intercepted fetches route to nothing."""
        post = Request.from_url(f"{ORIGIN}/api/x", method="POST")
        assert route("fetch", post, ORIGIN, CONFIG) is None
        assert route("fetch", None, ORIGIN, CONFIG) is None

    @pytest.mark.parametrize(
        "event,handler",
        [
            ("install", "install"),
            ("activate", "activate"),
            ("sync", "handle_sync"),
            ("push", "handle_push"),
            ("notificationclick", "handle_notification_click"),
        ],
    )
    def test_lifecycle_and_side_channel_events(self, event: str, handler: str) -> None:
        """Non-fetch events map to their handlers."""
        assert route(event, None, ORIGIN, CONFIG) == handler

    def test_unknown_event(self) -> None:
        """Unknown events are not handled."""
        assert route("message", None, ORIGIN, CONFIG) is None
