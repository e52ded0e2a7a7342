"""HTTP liveness endpoint reporting Telegram connectivity."""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, Optional

from .config import HealthConfig
from .notifier import NotificationError, TelegramNotifier

logger = logging.getLogger(__name__)


class HealthServerError(Exception):
    """Raised when the health server cannot be started."""

    pass


class HealthHandler(BaseHTTPRequestHandler):
    """Request handler for GET /health."""

    # Class-level reference set by factory
    notifier: Optional[TelegramNotifier] = None

    def log_message(self, format: str, *args: Any) -> None:
        """Override to use Python logging instead of stderr."""
        logger.debug("Health %s - %s", self.address_string(), format % args)

    def _send_json(self, code: int, data: Dict[str, Any]) -> None:
        """Send a JSON response with the given status code."""
        body = json.dumps(data).encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:
        """Handle GET requests."""
        if self.path != "/health":
            self._send_json(404, {"error": "Not found"})
            return

        if self.notifier is None:
            self._send_json(503, {"status": "error", "telegram": "notifier not configured"})
            return

        try:
            self.notifier.get_me()
        except NotificationError as e:
            logger.warning("Health check failed: %s", e)
            self._send_json(503, {"status": "error", "telegram": str(e)})
            return

        self._send_json(200, {"status": "ok"})


def _create_handler_class(notifier: TelegramNotifier) -> type:
    """Create a handler class with the notifier bound."""

    class BoundHealthHandler(HealthHandler):
        pass

    BoundHealthHandler.notifier = notifier
    return BoundHealthHandler


class HealthServer:
    """Threaded HTTP server exposing the liveness endpoint."""

    def __init__(self, config: HealthConfig, notifier: TelegramNotifier, host: str = "") -> None:
        self.config = config
        self.notifier = notifier
        self.host = host
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._shutdown_event = threading.Event()

    def start(self) -> None:
        """Start the server in a background thread.

        Raises:
            HealthServerError: If the port cannot be bound.
        """
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Health server is already running")
            return

        try:
            self._server = HTTPServer((self.host, self.config.port), _create_handler_class(self.notifier))
        except OSError as e:
            raise HealthServerError(f"Failed to start health server on port {self.config.port}: {e}")
        self._server.timeout = 1.0  # Allow periodic shutdown checks

        self._shutdown_event.clear()
        self._thread = threading.Thread(target=self._serve_forever, name="health-server", daemon=True)
        self._thread.start()
        logger.info("Health check server started on port %d", self.config.port)

    def _serve_forever(self) -> None:
        """Server loop that checks for shutdown."""
        while not self._shutdown_event.is_set():
            if self._server:
                self._server.handle_request()

    def stop(self) -> None:
        """Stop the server gracefully."""
        if self._thread is None:
            return

        logger.info("Shutting down health check server")
        self._shutdown_event.set()

        if self._thread.is_alive():
            self._thread.join(timeout=5.0)

        if self._server:
            self._server.server_close()

        self._server = None
        self._thread = None

    @property
    def is_running(self) -> bool:
        """Check if the server is running."""
        return self._thread is not None and self._thread.is_alive()
