"""Push notification delivery and notification click handling."""

import logging
import time
import webbrowser
from urllib.parse import urljoin

import requests

from .config import NotificationConfig
from .models import Notification

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Delivers notifications as JSON to the configured webhooks (with retries).

    With no webhooks configured, notifications are written to the log.
    """

    def __init__(self, config: NotificationConfig) -> None:
        """Initialize notifier with configuration.

        Args:
            config: Notification configuration with webhooks and retry policy.
        """
        self._config = config

    def show(self, notification: Notification) -> bool:
        """Display a notification.

        Returns:
            True if every webhook accepted the notification (or none are configured).
        """
        if not self._config.webhooks:
            logger.info("Notification: %s - %s", notification.title, notification.body)
            return True

        payload = {"event": "notification", "notification": notification.to_dict()}
        results = [self._post(url, payload) for url in self._config.webhooks]
        return all(results)

    def _post(self, url: str, payload: dict) -> bool:
        """POST a payload to one webhook, retrying with exponential backoff."""
        retry_count = 0
        max_retries = self._config.max_retries

        while retry_count <= max_retries:
            try:
                response = requests.post(url, json=payload, timeout=10)
                response.raise_for_status()
                logger.info("Notification delivered to %s", url)
                return True
            except requests.RequestException as e:
                retry_count += 1
                if retry_count <= max_retries:
                    delay = self._config.retry_delay * (2 ** (retry_count - 1))
                    logger.warning(
                        "Notification delivery to %s failed (attempt %d/%d, retrying in %ds): %s",
                        url,
                        retry_count,
                        max_retries + 1,
                        delay,
                        e,
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "Notification delivery to %s failed after %d attempts: %s",
                        url,
                        retry_count,
                        e,
                    )
        return False


class BrowserClients:
    """Opens app windows in the local web browser."""

    def __init__(self, origin: str) -> None:
        self._origin = origin.rstrip("/") + "/"

    def claim(self) -> None:
        logger.debug("Controller now controls clients of %s", self._origin)

    def open_window(self, path: str) -> bool:
        url = urljoin(self._origin, path)
        logger.info("Opening %s", url)
        return webbrowser.open(url)
