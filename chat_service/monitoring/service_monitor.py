"""
Monitoring and health check service for the chat service.

Provides Flask-based health check endpoints and metrics.
"""

import time
import psutil
import logging
from typing import Callable, Dict, Any, Optional
from threading import Lock, Thread

from flask import Flask, jsonify

logger = logging.getLogger(__name__)


class ServiceMonitor:
    """Tracks service metrics and health."""

    def __init__(self):
        """Initialize service monitor."""
        self.start_time = time.time()
        self.request_count = 0
        self.exchange_count = 0
        self.error_count = 0
        self.timeout_count = 0
        self.degraded_decode_count = 0
        self.total_processing_time = 0.0
        self._lock = Lock()

    def record_request(self):
        """Record an inbound chat request."""
        with self._lock:
            self.request_count += 1

    def record_exchange(self, processing_time: float):
        """Record a completed exchange."""
        with self._lock:
            self.exchange_count += 1
            self.total_processing_time += processing_time

    def record_error(self, timeout: bool = False):
        """Record a failed exchange."""
        with self._lock:
            self.error_count += 1
            if timeout:
                self.timeout_count += 1

    def record_degraded_decode(self):
        """Record a backend reply that needed line recovery or lacked a done marker."""
        with self._lock:
            self.degraded_decode_count += 1

    def get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self.start_time

    def get_metrics(self) -> Dict[str, Any]:
        """Get service metrics."""
        with self._lock:
            avg_processing_time = (
                self.total_processing_time / self.exchange_count if self.exchange_count > 0 else 0.0
            )

            return {
                "uptime_seconds": self.get_uptime(),
                "requests": self.request_count,
                "exchanges": self.exchange_count,
                "errors": self.error_count,
                "timeouts": self.timeout_count,
                "degraded_decodes": self.degraded_decode_count,
                "avg_processing_time_seconds": avg_processing_time,
            }


class MonitoringServer:
    """Flask-based monitoring server."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 9092,
        monitor: Optional[ServiceMonitor] = None,
        history_size: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize monitoring server.

        Args:
            host: Server host
            port: Server port
            monitor: Shared monitor (a new one is created when omitted)
            history_size: Callable returning the conversation log size
        """
        self.host = host
        self.port = port
        self.monitor = monitor or ServiceMonitor()
        self.history_size = history_size
        self.app = Flask(__name__)

        self._register_routes()

        logger.info(f"MonitoringServer initialized on {host}:{port}")

    def _register_routes(self):
        """Register Flask routes."""

        @self.app.route("/health", methods=["GET"])
        def health():
            """Full health check."""
            cpu_percent = psutil.cpu_percent(interval=None)
            memory = psutil.virtual_memory()

            health_data = {
                "status": "healthy",
                "uptime_seconds": self.monitor.get_uptime(),
                "system": {
                    "cpu_percent": cpu_percent,
                    "memory_percent": memory.percent,
                    "memory_available_gb": memory.available / (1024 ** 3),
                },
                "metrics": self.monitor.get_metrics(),
            }

            if cpu_percent > 90:
                health_data.setdefault("warnings", []).append("High CPU usage")
            if memory.percent > 90:
                health_data.setdefault("warnings", []).append("High memory usage")

            return jsonify(health_data)

        @self.app.route("/health/ready", methods=["GET"])
        def ready():
            """Readiness probe."""
            return jsonify({"status": "ready"})

        @self.app.route("/health/live", methods=["GET"])
        def live():
            """Liveness probe."""
            return jsonify({"status": "live"})

        @self.app.route("/metrics", methods=["GET"])
        def metrics():
            """Service metrics."""
            data = self.monitor.get_metrics()
            if self.history_size is not None:
                data["history_size"] = self.history_size()
            return jsonify(data)

        @self.app.route("/info", methods=["GET"])
        def info():
            """Service information."""
            return jsonify({
                "service": "chat-service",
                "version": "1.0.0",
                "uptime_seconds": self.monitor.get_uptime(),
            })

    def start(self):
        """Start monitoring server in background thread."""
        thread = Thread(target=self._run_server, daemon=True)
        thread.start()
        logger.info(f"Monitoring server started on {self.host}:{self.port}")

    def _run_server(self):
        """Run Flask server."""
        self.app.run(host=self.host, port=self.port, debug=False, use_reloader=False)
