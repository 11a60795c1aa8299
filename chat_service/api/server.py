"""
FastAPI HTTP server for the chat service.

Receives chat requests, runs them through the orchestrator under a deadline
and maps failures to HTTP status codes.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chat_service.api.schemas import ChatRequest, ChatResponse, ErrorResponse, MemoryResponse
from chat_service.core.conversation_log import ConversationLog
from chat_service.core.gateway import EchoGateway, InferenceGateway
from chat_service.core.ollama_gateway import OllamaGateway
from chat_service.core.orchestrator import ConversationOrchestrator
from chat_service.monitoring.service_monitor import ServiceMonitor
from chat_service.utils.config import Config
from chat_service.utils.error_handler import (
    BackendError,
    ConnectivityError,
    ErrorHandler,
    ExchangeTimeoutError,
    LLMServiceError,
    ValidationError,
)
from chat_service.utils.logger import get_logger, request_context
from chat_service.utils.validation import validate_message, validate_model_name

logger = get_logger(__name__)

ERROR_STATUS = (
    (ValidationError, 400),
    (BackendError, 502),
    (ConnectivityError, 503),
    (ExchangeTimeoutError, 504),
)


def status_for(error: Exception) -> int:
    """HTTP status code for an error raised while serving a request."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def create_gateway(config: Config, monitor: Optional[ServiceMonitor] = None) -> InferenceGateway:
    """Build the gateway selected by ``config.llm_provider``."""
    if config.llm_provider == "echo":
        return EchoGateway(models=[config.model_name])
    return OllamaGateway(
        base_url=config.ollama_base_url,
        connect_timeout=config.ollama_connect_timeout,
        read_timeout=config.ollama_read_timeout,
        keep_alive=config.ollama_keep_alive,
        monitor=monitor,
    )


class ChatServer:
    """
    FastAPI server for the chat endpoint.

    Owns the conversation log, gateway and orchestrator for one process.
    """

    def __init__(
        self,
        config: Config,
        gateway: Optional[InferenceGateway] = None,
        conversation_log: Optional[ConversationLog] = None,
        monitor: Optional[ServiceMonitor] = None,
    ):
        """
        Initialize the server.

        Args:
            config: Configuration instance
            gateway: Backend gateway (built from config when omitted)
            conversation_log: Conversation memory (a new one when omitted)
            monitor: Service monitor (a new one when omitted)
        """
        self.config = config
        self.monitor = monitor or ServiceMonitor()
        self.error_handler = ErrorHandler()
        self.gateway = gateway or create_gateway(config, self.monitor)
        self.conversation_log = conversation_log or ConversationLog(max_turns=config.max_stored_turns)
        self.orchestrator = ConversationOrchestrator(
            gateway=self.gateway,
            conversation_log=self.conversation_log,
            system_prompt=config.system_prompt,
            context_window_size=config.context_window_size,
            request_timeout=config.request_timeout,
            monitor=self.monitor,
        )

        self.app = FastAPI(
            title="Chat Service",
            description="Chat endpoint backed by a local Ollama server",
            version="1.0.0",
            lifespan=self._lifespan,
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._register_handlers()
        self._register_routes()

        logger.info(f"ChatServer initialized (provider: {config.llm_provider})")

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await self.gateway.close()

    def _error_response(self, error: Exception, context: dict) -> JSONResponse:
        error_info = self.error_handler.handle_error(error, context)
        headers = {"Retry-After": str(int(error_info.retry_after))} if error_info.retry_after else None
        return JSONResponse(
            content=ErrorResponse(error=error_info.message).model_dump(),
            status_code=status_for(error),
            headers=headers,
        )

    def _register_handlers(self):
        """Register middleware and exception handlers."""

        @self.app.middleware("http")
        async def assign_request_id(request: Request, call_next):
            request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
            token = request_context.set(request_id)
            try:
                response = await call_next(request)
            finally:
                request_context.reset(token)
            response.headers["x-request-id"] = request_id
            return response

        @self.app.exception_handler(RequestValidationError)
        async def invalid_body(request: Request, exc: RequestValidationError):
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            logger.warning(f"Rejected request body: {details}")
            return self._error_response(
                ValidationError(f"Invalid request: {details}"),
                {"path": request.url.path},
            )

    def _register_routes(self):
        """Register HTTP routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint with service information."""
            return {
                "service": "Chat Service",
                "status": "ready",
                "provider": self.config.llm_provider,
                "model": self.config.model_name,
                "version": "1.0.0",
            }

        @self.app.get("/health")
        async def health():
            """Health check endpoint."""
            backend_ok = await self.gateway.check_connection()
            return JSONResponse(
                content={
                    "status": "healthy" if backend_ok else "degraded",
                    "provider": self.config.llm_provider,
                    "model": self.config.model_name,
                    "backend_connection": backend_ok,
                    "history_size": self.orchestrator.history_size(),
                },
                status_code=200 if backend_ok else 503,
            )

        @self.app.get("/stats")
        async def stats():
            """Statistics endpoint."""
            return {
                "service": self.monitor.get_metrics(),
                "errors": self.error_handler.get_error_stats(),
                "memory": {
                    "size": self.orchestrator.history_size(),
                    "context_window": self.config.context_window_size,
                    "max_stored_turns": self.config.max_stored_turns or None,
                },
            }

        @self.app.post("/api/chat", response_model=ChatResponse)
        async def chat(request: ChatRequest):
            """Send one message and wait for the complete reply."""
            self.monitor.record_request()
            model = request.resolved_model(self.config.model_name)
            try:
                validate_message(request.message, self.config.max_message_length)
                validate_model_name(model)
                reply = await self.orchestrator.send_message(
                    request.message,
                    model,
                    timeout=self.config.request_timeout,
                )
            except LLMServiceError as e:
                return self._error_response(e, {"endpoint": "chat", "model": model})
            except Exception as e:
                logger.error(f"Error processing chat: {e}", exc_info=True)
                return self._error_response(e, {"endpoint": "chat", "model": model})

            return ChatResponse(response=reply, model=model)

        @self.app.get("/api/models")
        async def list_models():
            """List models available on the backend."""
            try:
                return await self.gateway.list_models()
            except LLMServiceError as e:
                return self._error_response(e, {"endpoint": "models"})
            except Exception as e:
                logger.error(f"Error listing models: {e}", exc_info=True)
                return self._error_response(e, {"endpoint": "models"})

        @self.app.get("/api/memory", response_model=MemoryResponse)
        async def memory_size():
            """Number of stored conversation turns."""
            return MemoryResponse(size=self.orchestrator.history_size())

        @self.app.delete("/api/memory", response_model=MemoryResponse)
        async def clear_memory():
            """Forget the conversation."""
            self.orchestrator.clear()
            return MemoryResponse(size=self.orchestrator.history_size())
