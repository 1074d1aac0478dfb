"""Connectivity and install state for the installable app.

Turns platform signals (install availability, successful install, online and
offline transitions) into a small state snapshot plus a few actions the UI can
call without touching platform APIs itself. Every action reports failure
through its return value; missing platform capabilities are normal.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from .config import NotificationConfig, ShareConfig

logger = logging.getLogger(__name__)


class InstallPrompt(Protocol):
    """One-shot platform handle that shows the "add to home screen" dialog."""

    def prompt(self) -> str:
        """Show the dialog and return the user's choice ("accepted" or "dismissed")."""
        ...


class NotificationHandle(Protocol):
    def close(self) -> None: ...


class Platform(Protocol):
    """Platform capabilities the state manager depends on."""

    def is_standalone(self) -> bool: ...

    def is_online(self) -> bool: ...

    def origin(self) -> str: ...

    def supports_share(self) -> bool: ...

    def share(self, data: dict[str, str]) -> None: ...

    def write_clipboard(self, text: str) -> None: ...

    def notification_permission(self) -> str | None:
        """Current permission ("granted", "denied", "default"), or None if unsupported."""
        ...

    def request_notification_permission(self) -> str: ...

    def create_notification(self, title: str, options: dict[str, Any]) -> NotificationHandle: ...

    def register_controller(self) -> None: ...


class InstallPromptSlot:
    """Holds at most one install prompt; take() hands it out exactly once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handle: InstallPrompt | None = None

    def hold(self, handle: InstallPrompt) -> None:
        with self._lock:
            self._handle = handle

    def take(self) -> InstallPrompt | None:
        """Return the held prompt and clear the slot in one step."""
        with self._lock:
            handle, self._handle = self._handle, None
            return handle

    @property
    def is_held(self) -> bool:
        with self._lock:
            return self._handle is not None


@dataclass(frozen=True)
class PWAState:
    """Snapshot of connectivity and install state.

    Attributes:
        is_installable: An install prompt is available.
        is_installed: The app runs (or was just installed) as an installed app.
        is_offline: The platform last reported no connectivity.
        has_install_prompt: A prompt handle is held and install_app() can use it.
    """

    is_installable: bool = False
    is_installed: bool = False
    is_offline: bool = False
    has_install_prompt: bool = False


TimerFactory = Callable[[float, Callable[[], None]], Any]


class PWAStateManager:
    """Tracks PWA runtime state and exposes install/share/notification actions."""

    def __init__(
        self,
        platform: Platform,
        share_defaults: ShareConfig | None = None,
        notification_defaults: NotificationConfig | None = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._platform = platform
        self._share_defaults = share_defaults or ShareConfig()
        self._notification_defaults = notification_defaults or NotificationConfig()
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._prompt = InstallPromptSlot()
        self._is_installable = False
        self._is_installed = False
        self._is_offline = False
        self._mounted = False
        self._subscribers: list[Callable[[PWAState], None]] = []
        self.registration: threading.Thread | None = None

    @property
    def state(self) -> PWAState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> PWAState:
        return PWAState(
            is_installable=self._is_installable,
            is_installed=self._is_installed,
            is_offline=self._is_offline,
            has_install_prompt=self._prompt.is_held,
        )

    def subscribe(self, callback: Callable[[PWAState], None]) -> Callable[[], None]:
        """Call `callback` with every new state snapshot.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        with self._lock:
            snapshot = self._snapshot()
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(snapshot)

    def mount(self) -> None:
        """Read initial state from the platform and register the cache controller.

        Registration runs in the background; its outcome never blocks or
        fails mounting.
        """
        is_installed = bool(self._platform.is_standalone())
        is_offline = not self._platform.is_online()

        with self._lock:
            self._is_installed = is_installed
            self._is_offline = is_offline
            self._mounted = True

        self.registration = threading.Thread(
            target=self._register_controller,
            name="controller-registration",
            daemon=True,
        )
        self.registration.start()
        self._publish()

    def unmount(self) -> None:
        """Stop reacting to platform events."""
        with self._lock:
            self._mounted = False

    def _register_controller(self) -> None:
        try:
            self._platform.register_controller()
            logger.info("Offline cache controller registered")
        except Exception as e:
            logger.error("Offline cache controller registration failed: %s", e)

    def _update(self, **changes: bool) -> None:
        with self._lock:
            if not self._mounted:
                return
            for name, value in changes.items():
                setattr(self, f"_{name}", value)
        self._publish()

    # Platform events

    def on_install_available(self, handle: InstallPrompt) -> None:
        logger.info("Install prompt available")
        with self._lock:
            if not self._mounted:
                return
            self._prompt.hold(handle)
            self._is_installable = True
        self._publish()

    def on_app_installed(self) -> None:
        logger.info("App installed successfully")
        with self._lock:
            if not self._mounted:
                return
            self._prompt.take()
        self._update(is_installable=False, is_installed=True)

    def on_online(self) -> None:
        logger.info("Connection restored")
        self._update(is_offline=False)

    def on_offline(self) -> None:
        logger.info("Connection lost")
        self._update(is_offline=True)

    # Actions

    def install_app(self) -> bool:
        """Show the install prompt once.

        Returns:
            True if the user accepted; False if no prompt was available, the
            user dismissed it, or the prompt failed.
        """
        handle = self._prompt.take()
        if handle is None:
            logger.info("No install prompt available")
            return False

        # The handle is single-use whatever the outcome
        self._update(is_installable=False)

        try:
            outcome = handle.prompt()
        except Exception as e:
            logger.error("Install prompt failed: %s", e)
            return False

        logger.info("Install prompt outcome: %s", outcome)
        return outcome == "accepted"

    def share_app(self, data: dict[str, str] | None = None) -> bool:
        """Share the app natively, or copy its URL to the clipboard."""
        data = data or {}
        defaults = self._share_defaults
        share_data = {
            "title": data.get("title") or defaults.title,
            "text": data.get("text") or defaults.text,
            "url": data.get("url") or defaults.url or self._platform.origin(),
        }

        try:
            if self._platform.supports_share():
                self._platform.share(share_data)
                logger.info("Content shared successfully")
            else:
                self._platform.write_clipboard(share_data["url"])
                logger.info("URL copied to clipboard")
            return True
        except Exception as e:
            logger.error("Share failed: %s", e)
            return False

    def request_notification_permission(self) -> bool:
        """Ask for notification permission unless it was already decided."""
        permission = self._platform.notification_permission()
        if permission is None:
            logger.info("Notifications not supported")
            return False
        if permission == "granted":
            return True
        if permission == "denied":
            logger.info("Notification permission denied")
            return False

        try:
            result = self._platform.request_notification_permission()
        except Exception as e:
            logger.error("Notification permission request failed: %s", e)
            return False

        logger.info("Notification permission: %s", result)
        return result == "granted"

    def show_notification(self, title: str, options: dict[str, Any] | None = None) -> NotificationHandle | None:
        """Show a notification that closes itself after a short delay.

        Returns:
            The notification, or None when permission is not granted.
        """
        if self._platform.notification_permission() != "granted":
            return None

        defaults = self._notification_defaults
        merged = {"icon": defaults.icon, "badge": defaults.badge, **(options or {})}

        try:
            notification = self._platform.create_notification(title, merged)
        except Exception as e:
            logger.error("Showing notification failed: %s", e)
            return None

        timer = self._timer_factory(defaults.auto_close_seconds, notification.close)
        timer.daemon = True
        timer.start()
        return notification
