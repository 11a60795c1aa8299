"""
Conversation orchestration for the chat service.

Runs one exchange: read context, ask the backend, record both turns.
"""

import asyncio
import time
from typing import List, Optional, TYPE_CHECKING

from chat_service.core.conversation_log import ConversationLog, Role, Turn
from chat_service.core.gateway import InferenceGateway
from chat_service.utils.error_handler import ExchangeTimeoutError
from chat_service.utils.logger import get_logger

if TYPE_CHECKING:
    from chat_service.monitoring.service_monitor import ServiceMonitor

logger = get_logger(__name__)


class ConversationOrchestrator:
    """
    Per-request chat use case.

    Holds no state of its own between calls; the conversation lives in the
    injected ConversationLog. An exchange either appends the user and
    assistant turns together or appends nothing.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        conversation_log: ConversationLog,
        system_prompt: Optional[str] = None,
        context_window_size: int = 10,
        request_timeout: float = 300.0,
        monitor: Optional["ServiceMonitor"] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            gateway: Backend used to generate replies
            conversation_log: Shared conversation memory
            system_prompt: System prompt sent with every exchange
            context_window_size: Number of recent turns sent as context
            request_timeout: Default deadline for one exchange, in seconds
            monitor: Optional service monitor
        """
        self.gateway = gateway
        self.conversation_log = conversation_log
        self.system_prompt = system_prompt
        self.context_window_size = context_window_size
        self.request_timeout = request_timeout
        self.monitor = monitor

        logger.info(
            f"ConversationOrchestrator initialized (context_window: {context_window_size}, "
            f"timeout: {request_timeout}s)"
        )

    async def send_message(
        self,
        user_text: str,
        model: str,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Send a user message and return the assistant reply.

        Args:
            user_text: Message from the user
            model: Model name to generate with
            timeout: Deadline in seconds, defaults to ``request_timeout``

        Returns:
            Assistant reply text

        Raises:
            ExchangeTimeoutError: Deadline expired before the backend answered
            LLMServiceError: Backend or connectivity failure from the gateway
        """
        deadline = timeout if timeout is not None else self.request_timeout
        user_turn = Turn(role=Role.USER, content=user_text, model=model)

        context = self.conversation_log.recent(self.context_window_size)
        messages = [turn.to_message() for turn in context]
        messages.append(user_turn.to_message())

        logger.debug(f"Sending {len(messages)} messages to model {model} ({len(context)} context turns)")

        start_time = time.time()
        try:
            reply = await asyncio.wait_for(
                self.gateway.chat(model, messages, self.system_prompt),
                timeout=deadline,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Exchange exceeded its {deadline}s deadline (model: {model})")
            if self.monitor is not None:
                self.monitor.record_error(timeout=True)
            raise ExchangeTimeoutError(
                f"Request timeout after {deadline}s", timeout=deadline
            ) from e
        except Exception as e:
            if self.monitor is not None:
                self.monitor.record_error(timeout=isinstance(e, ExchangeTimeoutError))
            raise

        processing_time = time.time() - start_time
        self.conversation_log.extend([
            user_turn,
            Turn(role=Role.ASSISTANT, content=reply, model=model),
        ])

        if self.monitor is not None:
            self.monitor.record_exchange(processing_time)
        logger.log_exchange(
            message=user_text,
            reply_length=len(reply),
            processing_time=processing_time,
            model=model,
            history_size=len(self.conversation_log),
        )
        return reply

    def history(self) -> List[Turn]:
        """Get the full conversation history."""
        return self.conversation_log.all()

    def history_size(self) -> int:
        """Get the number of stored turns."""
        return len(self.conversation_log)

    def clear(self):
        """Forget the whole conversation."""
        self.conversation_log.clear()
