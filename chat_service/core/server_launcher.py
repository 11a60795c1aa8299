"""
HTTP server lifecycle management for the chat service.

Handles server initialization, backend verification, startup and signal handling.
"""

import signal
import sys
from typing import Optional

import uvicorn

from chat_service.api.server import ChatServer
from chat_service.monitoring.service_monitor import ServiceMonitor
from chat_service.utils.config import Config
from chat_service.utils.error_handler import ConnectivityError, RetryManager
from chat_service.utils.logger import get_logger

logger = get_logger(__name__)


class ServerLauncher:
    """
    Manages chat server lifecycle.

    Handles graceful startup and shutdown.
    """

    def __init__(self, config: Optional[Config] = None, monitor: Optional[ServiceMonitor] = None):
        """
        Initialize launcher.

        Args:
            config: Configuration instance (creates new if None)
            monitor: Service monitor shared with the monitoring server
        """
        self.config = config or Config()
        self.monitor = monitor
        self.server: Optional[ChatServer] = None

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info(f"ServerLauncher initialized (provider: {self.config.llm_provider})")

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating shutdown...")
        sys.exit(0)

    def create_server(self) -> ChatServer:
        """Create the chat server if it does not exist yet."""
        if self.server is None:
            self.server = ChatServer(self.config, monitor=self.monitor)
        return self.server

    def _verify_connection(self) -> bool:
        """Verify the backend answers, retrying with backoff while it starts up."""

        def probe():
            if not self.server.gateway.check_connection_sync():
                raise ConnectivityError(f"Backend at {self.config.ollama_base_url} is not reachable")
            return True

        try:
            RetryManager.retry_with_backoff(
                probe,
                max_attempts=self.config.startup_retries,
                retriable_exceptions=(ConnectivityError,),
            )
        except ConnectivityError:
            logger.error("Failed to connect to Ollama. Please ensure Ollama is running.")
            return False

        logger.info("Backend connection verified")
        return True

    def start(self):
        """Start the HTTP server."""
        logger.info(f"Starting chat server (provider: {self.config.llm_provider})...")

        self.create_server()

        if not self._verify_connection():
            sys.exit(1)

        logger.info(f"Server starting on {self.config.host}:{self.config.port}")
        logger.info(f"Model: {self.config.model_name}")
        logger.info(f"Context window: {self.config.context_window_size} turns")

        try:
            uvicorn.run(
                self.server.app,
                host=self.config.host,
                port=self.config.port,
                log_level=self.config.log_level.lower(),
                access_log=True,
            )
        except Exception as e:
            logger.error(f"Server error: {e}", exc_info=True)
            sys.exit(1)
