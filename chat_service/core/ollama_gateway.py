"""
Ollama gateway for the chat service.

Sends chat and model-listing requests to the Ollama API and turns transport
failures into the service's error kinds.
"""

import time
import uuid
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx
import requests
from pydantic import BaseModel, ValidationError

from chat_service.core import stream_decoder
from chat_service.utils.error_handler import (
    BackendError,
    ConnectivityError,
    ErrorCategory,
    ErrorSeverity,
    ExchangeTimeoutError,
    LLMServiceError,
)
from chat_service.utils.logger import get_logger

if TYPE_CHECKING:
    from chat_service.monitoring.service_monitor import ServiceMonitor

logger = get_logger(__name__)


class ModelInfo(BaseModel):
    name: str
    model: Optional[str] = None


class ModelsResponse(BaseModel):
    models: List[ModelInfo]


class OllamaGateway:
    """
    Handles communication with the Ollama backend.

    Chat replies are requested with ``stream: false`` and decoded once the
    whole body has arrived.
    """

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 30.0,
        read_timeout: float = 300.0,
        keep_alive: Optional[str] = None,
        monitor: Optional["ServiceMonitor"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Ollama gateway.

        Args:
            base_url: Base URL for Ollama API (e.g., "http://localhost:11434")
            connect_timeout: Seconds allowed to establish a connection
            read_timeout: Seconds allowed between bytes on an open connection
            keep_alive: How long Ollama keeps the model loaded (e.g., "5m"), omitted when empty
            monitor: Optional monitor notified about degraded decodes
            transport: Optional httpx transport (tests inject a mock one)
        """
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.keep_alive = keep_alive or None
        self.monitor = monitor

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            transport=transport,
        )

        logger.info(
            f"OllamaGateway initialized: base_url={self.base_url}, "
            f"connect_timeout={connect_timeout}s, read_timeout={read_timeout}s"
        )

    async def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Ask the backend for a complete reply.

        Args:
            model: Model name (e.g., "llama3.1:8b")
            messages: Conversation messages, each with role and content
            system_prompt: Optional system prompt

        Returns:
            Assembled reply text

        Raises:
            BackendError: Backend answered with a non-200 status
            ConnectivityError: Backend unreachable or connect timed out
            ExchangeTimeoutError: Read timed out on an established connection
        """
        req_id = f"ollama-{uuid.uuid4()}"
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "stream": False,
            "system": system_prompt,
        }
        if self.keep_alive:
            payload["keep_alive"] = self.keep_alive

        logger.info(f"[{req_id}] Sending chat request (model: {model}, messages: {len(messages)})")
        start_time = time.time()

        response = await self._send(req_id, "POST", "/api/chat", json=payload)
        if response.status_code != 200:
            logger.error(f"[{req_id}] Ollama returned {response.status_code}: {response.text[:200]}")
            raise BackendError(response.status_code, response.text, operation="chat")

        decoded = stream_decoder.decode(response.text)
        logger.log_decode(
            completed=decoded.completed,
            lines_parsed=decoded.lines_parsed,
            lines_recovered=decoded.lines_recovered,
            lines_skipped=decoded.lines_skipped,
        )
        if decoded.degraded and self.monitor is not None:
            self.monitor.record_degraded_decode()

        logger.info(f"[{req_id}] Chat completed in {time.time() - start_time:.2f}s")
        return decoded.text

    async def list_models(self) -> List[str]:
        """
        List the models installed on the backend.

        Returns:
            Model names

        Raises:
            BackendError: Backend answered with a non-200 status
            ConnectivityError: Backend unreachable
            LLMServiceError: Listing body could not be decoded
        """
        req_id = f"ollama-{uuid.uuid4()}"
        response = await self._send(req_id, "GET", "/api/tags")
        if response.status_code != 200:
            raise BackendError(response.status_code, response.text, operation="model listing")

        try:
            models = ModelsResponse.model_validate_json(response.text)
        except ValidationError as e:
            raise LLMServiceError(
                f"Invalid model listing from Ollama: {e}",
                category=ErrorCategory.PROCESSING,
                severity=ErrorSeverity.MEDIUM,
            ) from e

        names = [info.name for info in models.models]
        logger.debug(f"[{req_id}] Found {len(names)} models")
        return names

    async def check_connection(self) -> bool:
        """
        Check if the Ollama server is accessible.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = await self.client.get("/", timeout=5.0)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to connect to Ollama at {self.base_url}: {e}")
            return False

    def check_connection_sync(self) -> bool:
        """Blocking variant of ``check_connection`` for use before the event loop starts."""
        try:
            response = requests.get(f"{self.base_url}/", timeout=5.0)
            response.raise_for_status()
            logger.info(f"Successfully connected to Ollama at {self.base_url}")
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to connect to Ollama at {self.base_url}: {e}")
            return False

    async def _send(self, req_id: str, method: str, path: str, **kwargs) -> httpx.Response:
        """Issue one request, mapping transport failures to service errors."""
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.ConnectTimeout as e:
            logger.error(f"[{req_id}] Connect timeout: {e}")
            raise ConnectivityError(
                f"Timed out connecting to Ollama at {self.base_url} after {self.connect_timeout}s"
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"[{req_id}] Timeout error: {e}")
            raise ExchangeTimeoutError(
                f"Ollama did not answer within {self.read_timeout}s",
                timeout=self.read_timeout,
            ) from e
        except httpx.TransportError as e:
            logger.error(f"[{req_id}] Connection error: {e}")
            raise ConnectivityError(f"Cannot reach Ollama at {self.base_url}: {e}") from e

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
        logger.info("OllamaGateway closed")
