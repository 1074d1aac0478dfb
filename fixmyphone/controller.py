"""Offline cache controller: versioned precache, per-request strategies, side channels.

Lifecycle:
- install: fetch the critical resources into a fresh cache store, all or nothing
- activate: purge every cache store except the current version's, then claim clients
- fetch: answer intercepted requests by strategy (see router)

Strategies:
- HTML: network-first, falling back to cache, the offline page, then inline HTML
- Static assets: cache-first, image requests get an SVG placeholder when offline
- API: network-first with cache fallback for GET, otherwise a JSON 503
- Generic: network with cache fallback, never written to cache
"""

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol
from urllib.parse import urljoin

from ._offline import image_placeholder_response, offline_api_response, offline_html_response
from .cache import Cache, CacheError, CacheStorage
from .config import CacheConfig, NotificationConfig, SyncConfig
from .database import DatabaseError
from .models import Notification, NotificationAction, Request, Response, SyncReport
from .network import NetworkError
from .router import is_image_request, route
from .sync import SubmissionQueue, SubmissionSyncer

logger = logging.getLogger(__name__)

Fetch = Callable[[Request], Response]


class InstallError(Exception):
    """Raised when the critical resources cannot be cached at install time."""

    pass


class LifecycleError(Exception):
    """Raised when a lifecycle step is run out of order."""

    pass


class WorkerState(Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class Notifier(Protocol):
    def show(self, notification: Notification) -> bool: ...


class Clients(Protocol):
    def claim(self) -> None: ...

    def open_window(self, path: str) -> bool: ...


class OfflineCacheController:
    """Serves an origin's requests from network and cache for one cache version."""

    def __init__(
        self,
        config: CacheConfig,
        storage: CacheStorage,
        fetch: Fetch,
        origin: str,
        submissions: SubmissionQueue | None = None,
        notifier: Notifier | None = None,
        clients: Clients | None = None,
        notification_config: NotificationConfig | None = None,
        sync_config: SyncConfig | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            config: Cache configuration; the version decides the cache store name.
            storage: Cache storage shared by every version of this origin.
            fetch: Callable performing a network request, raising NetworkError on failure.
            origin: Origin of the app, e.g. "https://fixmyphone.example".
            submissions: Offline submission queue drained on background sync.
            notifier: Displays push notifications.
            clients: Open app windows, claimed on activation.
            notification_config: Notification defaults.
            sync_config: Background sync tag and endpoint.
        """
        self._config = config
        self._storage = storage
        self._fetch = fetch
        self._origin = origin.rstrip("/")
        self._submissions = submissions
        self._notifier = notifier
        self._clients = clients
        self._notification_config = notification_config or NotificationConfig()
        self._sync_config = sync_config or SyncConfig()
        self._syncer = SubmissionSyncer(self._absolute(self._sync_config.endpoint), self._sync_config.timeout)
        self._lock = threading.Lock()
        self._state = WorkerState.PARSED

    @property
    def cache_name(self) -> str:
        return self._config.cache_name

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def origin(self) -> str:
        return self._origin

    def _set_state(self, state: WorkerState) -> None:
        with self._lock:
            self._state = state

    def _absolute(self, path: str) -> str:
        return urljoin(self._origin + "/", path)

    def _cache(self) -> Cache:
        return self._storage.open(self.cache_name)

    def _store(self, request: Request, response: Response) -> None:
        try:
            self._cache().put(request, response.clone())
        except DatabaseError as e:
            logger.error("Could not cache %s: %s", request.url, e)

    # Lifecycle

    def install(self) -> None:
        """Precache the critical resources into this version's cache store.

        A new version never waits for old clients to go away: callers run
        activate() right after a successful install.

        Raises:
            InstallError: If any critical resource cannot be fetched or the
                cache database fails. A store created by this attempt is
                removed so it is never served from.
        """
        self._set_state(WorkerState.INSTALLING)
        logger.info("Installing version %s", self._config.version)

        critical = [Request.from_url(self._absolute(path)) for path in self._config.critical_resources]
        # Unknown until the lookup succeeds; never delete a store we did not create
        existed = True

        try:
            existed = self._storage.has(self.cache_name)
            self._cache().add_all(critical, self._fetch)
        except (CacheError, DatabaseError) as e:
            logger.error("Install of %s failed: %s", self.cache_name, e)
            if not existed:
                try:
                    self._storage.delete(self.cache_name)
                except DatabaseError as cleanup_error:
                    logger.error("Could not remove partial cache %s: %s", self.cache_name, cleanup_error)
            self._set_state(WorkerState.REDUNDANT)
            raise InstallError(f"Failed to cache critical resources for {self.cache_name}: {e}") from e

        logger.info("Cached %d critical resources in %s", len(critical), self.cache_name)
        self._set_state(WorkerState.INSTALLED)

    def activate(self) -> None:
        """Delete stale cache stores and take control of open clients.

        Cleanup failures are logged and do not prevent activation. Activating
        an already active controller is a no-op apart from repeating cleanup.

        Raises:
            LifecycleError: If the controller was never installed successfully.
        """
        if self._state not in (WorkerState.INSTALLED, WorkerState.ACTIVATED):
            raise LifecycleError(f"Cannot activate from state '{self._state.value}'")

        self._set_state(WorkerState.ACTIVATING)
        logger.info("Activating version %s", self._config.version)

        try:
            names = self._storage.keys()
        except DatabaseError as e:
            logger.error("Could not list cache stores: %s", e)
            names = []

        for name in names:
            if name == self.cache_name:
                continue
            try:
                if self._storage.delete(name):
                    logger.info("Deleted old cache %s", name)
            except DatabaseError as e:
                logger.error("Could not delete old cache %s: %s", name, e)

        if self._clients is not None:
            self._clients.claim()

        self._set_state(WorkerState.ACTIVATED)
        logger.info("Version %s activated", self._config.version)

    # Event dispatch

    def dispatch(self, event_type: str, *args: Any, **kwargs: Any) -> Any:
        """Run the handler the router selects for an event."""
        if event_type == "fetch":
            return self.handle_fetch(*args, **kwargs)

        handler = route(event_type, None, self._origin, self._config)
        if handler is None:
            logger.debug("Ignoring '%s' event", event_type)
            return None
        return getattr(self, handler)(*args, **kwargs)

    def handle_fetch(self, request: Request) -> Response | None:
        """Answer an intercepted request.

        Returns:
            The response to serve, or None if the request is not intercepted
            and should go to the network unchanged.

        Raises:
            NetworkError: For static non-image and generic requests that fail
                with nothing cached.
        """
        if self._state is not WorkerState.ACTIVATED:
            return None

        handler = route("fetch", request, self._origin, self._config)
        if handler is None:
            return None

        logger.debug("%s %s -> %s", request.method, request.url, handler)
        return getattr(self, handler)(request)

    # Fetch strategies

    def handle_html(self, request: Request) -> Response:
        """Network-first; never fails, so the page always renders something."""
        try:
            response = self._fetch(request)
            if response.ok:
                self._store(request, response)
                return response
            logger.warning("HTML request %s returned %d, falling back", request.url, response.status)
        except NetworkError as e:
            logger.warning("HTML request %s failed, falling back: %s", request.url, e)

        try:
            cached = self._storage.match(request)
            if cached is not None:
                return cached

            if request.mode == "navigate":
                offline_page = self._storage.match(Request.from_url(self._absolute(self._config.offline_url)))
                if offline_page is not None:
                    logger.info("Serving offline page for %s", request.url)
                    return offline_page
        except DatabaseError as e:
            logger.error("Cache lookup failed for %s: %s", request.url, e)

        return offline_html_response()

    def handle_static(self, request: Request) -> Response:
        """Cache-first; image misses fall back to a placeholder when offline."""
        cached = self._storage.match(request)
        if cached is not None:
            logger.debug("Serving %s from cache", request.url)
            return cached

        try:
            response = self._fetch(request)
        except NetworkError as e:
            if is_image_request(request):
                logger.warning("Image %s unavailable, serving placeholder: %s", request.url, e)
                return image_placeholder_response()
            logger.error("Static asset %s unavailable: %s", request.url, e)
            raise

        if response.ok:
            self._store(request, response)
        return response

    def handle_api(self, request: Request) -> Response:
        """Network-first; GET responses are cached and served when offline."""
        is_get = request.method.upper() == "GET"

        try:
            response = self._fetch(request)
        except NetworkError as e:
            logger.warning("API request %s failed: %s", request.url, e)
            if is_get:
                cached = self._storage.match(request)
                if cached is not None:
                    return cached
            return offline_api_response()

        if response.ok and is_get:
            self._store(request, response)
        return response

    def handle_generic(self, request: Request) -> Response:
        """Network with cache fallback. Responses are never written to cache."""
        try:
            return self._fetch(request)
        except NetworkError:
            cached = self._storage.match(request)
            if cached is not None:
                return cached
            raise

    # Side channels

    def handle_sync(self, tag: str) -> SyncReport | None:
        """Drain the offline submission queue for the repair-submission tag.

        Returns:
            The sync report, or None for tags this controller does not handle.
        """
        logger.info("Background sync triggered: %s", tag)
        if tag != self._sync_config.tag:
            return None

        if self._submissions is None:
            logger.warning("No offline submission queue configured, nothing to sync")
            return SyncReport()

        try:
            return self._syncer.sync(self._submissions)
        except DatabaseError as e:
            logger.error("Background sync failed: %s", e)
            return SyncReport()

    def build_notification(self, payload: str | bytes | None) -> Notification:
        config = self._notification_config
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")

        return Notification(
            title=config.title,
            body=payload or config.default_body,
            icon=config.icon,
            badge=config.badge,
            vibrate=config.vibrate,
            data={"dateOfArrival": int(time.time() * 1000), "primaryKey": 1},
            actions=(
                NotificationAction("explore", "View Details", "/icons/action-view.png"),
                NotificationAction("close", "Close", "/icons/action-close.png"),
            ),
        )

    def handle_push(self, payload: str | bytes | None = None) -> Notification:
        """Show a notification for a push message."""
        logger.info("Push message received")
        notification = self.build_notification(payload)
        if self._notifier is not None:
            self._notifier.show(notification)
        return notification

    def handle_notification_click(self, action: str = "") -> str | None:
        """Open the window matching a notification action.

        Returns:
            The path that was opened, or None when the action only dismisses.
        """
        if action == "close":
            return None

        path = self._notification_config.dashboard_route if action == "explore" else "/"
        if self._clients is not None:
            self._clients.open_window(path)
        return path
