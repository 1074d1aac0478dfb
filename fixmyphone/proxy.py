"""HTTP proxy that puts the offline cache controller in front of the web app."""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional

from .config import ProxyConfig
from .controller import Fetch, InstallError, LifecycleError, OfflineCacheController
from .models import Request, Response
from .network import HOP_BY_HOP_HEADERS, NetworkError

logger = logging.getLogger(__name__)


class ProxyError(Exception):
    """Raised when the proxy cannot start."""

    pass


class ProxyHandler(BaseHTTPRequestHandler):
    """Routes GET requests through the controller and forwards everything else."""

    # Class-level references set by factory
    controller: Optional[OfflineCacheController] = None
    fetch: Optional[Fetch] = None
    origin: str = ""

    def log_message(self, format: str, *args: Any) -> None:
        """Override to use Python logging instead of stderr."""
        logger.debug("Proxy %s - %s", self.address_string(), format % args)

    def _build_request(self) -> Request:
        # Absolute-form targets come from clients using us as a forward proxy
        if self.path.startswith(("http://", "https://")):
            url = self.path
        else:
            url = self.origin + self.path

        body = None
        length = int(self.headers.get("Content-Length") or 0)
        if length > 0:
            body = self.rfile.read(length)

        return Request(
            url=url,
            method=self.command,
            headers=dict(self.headers.items()),
            mode=self.headers.get("Sec-Fetch-Mode", "cors"),
            body=body,
        )

    def _send_response(self, response: Response) -> None:
        self.send_response(response.status, response.status_text or None)
        for name, value in response.headers.items():
            if name.lower() not in HOP_BY_HOP_HEADERS:
                self.send_header(name, value)
        self.send_header("Content-Length", str(len(response.body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(response.body)

    def _send_error_json(self, code: int, message: str) -> None:
        """Send a JSON error response."""
        body = json.dumps({"error": message}).encode("utf-8")
        self._send_response(Response(status=code, headers={"Content-Type": "application/json"}, body=body))

    def do_GET(self) -> None:
        """Handle GET requests through the offline cache controller."""
        request = self._build_request()
        try:
            response = self.controller.handle_fetch(request) if self.controller else None
            if response is None:
                response = self.fetch(request)
        except NetworkError as e:
            logger.warning("Upstream unavailable for %s: %s", request.url, e)
            self._send_error_json(502, "Upstream unavailable")
            return
        except Exception as e:
            logger.exception("Error handling request: %s", e)
            self._send_error_json(500, "Internal server error")
            return

        self._send_response(response)

    def _forward(self) -> None:
        """Pass a request through to the upstream unchanged."""
        request = self._build_request()
        try:
            response = self.fetch(request)
        except NetworkError as e:
            logger.warning("Upstream unavailable for %s %s: %s", request.method, request.url, e)
            self._send_error_json(502, "Upstream unavailable")
            return
        except Exception as e:
            logger.exception("Error forwarding %s request: %s", request.method, e)
            self._send_error_json(500, "Internal server error")
            return

        self._send_response(response)

    do_HEAD = _forward
    do_POST = _forward
    do_PUT = _forward
    do_PATCH = _forward
    do_DELETE = _forward
    do_OPTIONS = _forward


def _create_handler_class(controller: OfflineCacheController, fetch: Fetch, origin: str) -> type:
    """Create a handler class with the controller and upstream bound."""

    class BoundProxyHandler(ProxyHandler):
        pass

    BoundProxyHandler.controller = controller
    BoundProxyHandler.fetch = staticmethod(fetch)
    BoundProxyHandler.origin = origin.rstrip("/")
    return BoundProxyHandler


class OfflineProxyServer:
    """Threaded HTTP proxy serving the app through the offline cache controller.

    Each request is handled on its own thread, so a stalled upstream fetch
    only holds up the request waiting on it.
    """

    def __init__(
        self,
        config: ProxyConfig,
        controller: OfflineCacheController,
        fetch: Fetch,
    ) -> None:
        """Initialize the proxy.

        Args:
            config: Proxy configuration (upstream origin, bind address).
            controller: Controller answering intercepted requests.
            fetch: Network fetch used for requests the controller passes through.
        """
        self.config = config
        self.controller = controller
        self.fetch = fetch
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Install and activate the controller, then serve in a background thread.

        Raises:
            ProxyError: If the install fails or the server cannot bind.
        """
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Proxy is already running")
            return

        try:
            self.controller.install()
            self.controller.activate()
        except (InstallError, LifecycleError) as e:
            raise ProxyError(f"Offline cache controller failed to start: {e}")

        try:
            handler_class = _create_handler_class(self.controller, self.fetch, self.config.origin_url)
            self._server = ThreadingHTTPServer((self.config.host, self.config.port), handler_class)
            self._server.daemon_threads = True
        except OSError as e:
            # Provide specific guidance based on error type
            if e.errno == 98 or e.errno == 48:  # EADDRINUSE (Linux=98, macOS=48)
                raise ProxyError(
                    f"Port {self.config.port} is already in use. "
                    f"Another process may be using this port, or fixmyphone is already running."
                )
            elif e.errno == 13:  # EACCES - Permission denied
                raise ProxyError(
                    f"Permission denied for port {self.config.port}. "
                    f"Ports below 1024 require root privileges. "
                    f"Use a port >= 1024 or run with elevated permissions."
                )
            else:
                raise ProxyError(f"Failed to start proxy on port {self.config.port}: {e}")

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.5},
            name="offline-proxy",
            daemon=True,
        )
        self._thread.start()
        logger.info("Offline proxy for %s listening on port %d", self.config.origin_url, self.port)

    @property
    def port(self) -> int:
        """Bound port (differs from the configured one when it is 0)."""
        if self._server is None:
            return self.config.port
        return self._server.server_address[1]

    def stop(self) -> None:
        """Stop the proxy gracefully."""
        if self._thread is None:
            return

        logger.info("Stopping offline proxy...")
        if self._server:
            self._server.shutdown()
            self._server.server_close()

        if self._thread.is_alive():
            self._thread.join(timeout=5.0)

        self._server = None
        self._thread = None
        logger.info("Offline proxy stopped")

    @property
    def is_running(self) -> bool:
        """Check if the proxy is running."""
        return self._thread is not None and self._thread.is_alive()
