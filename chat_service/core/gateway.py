"""
Inference gateway interface and an in-memory implementation.

The orchestrator depends only on ``InferenceGateway``; ``OllamaGateway``
talks to a real backend and ``EchoGateway`` answers locally for offline
runs and tests.
"""

import asyncio
from typing import Dict, List, Optional, Protocol, Sequence, Union

from chat_service.utils.logger import get_logger

logger = get_logger(__name__)


class InferenceGateway(Protocol):
    """Capabilities the conversation pipeline needs from a backend."""

    async def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> str:
        ...

    async def list_models(self) -> List[str]:
        ...

    async def check_connection(self) -> bool:
        ...

    def check_connection_sync(self) -> bool:
        ...

    async def close(self) -> None:
        ...


class EchoGateway:
    """
    Gateway that never leaves the process.

    Replies come from ``replies`` in order when given, otherwise the last user
    message is echoed back. ``error`` is raised on every call when set and
    ``delay`` simulates slow inference.
    """

    def __init__(
        self,
        replies: Optional[Sequence[str]] = None,
        models: Optional[Sequence[str]] = None,
        delay: float = 0.0,
        error: Optional[Union[Exception, type]] = None,
    ):
        self.replies = list(replies or [])
        self.models = list(models or ["echo"])
        self.delay = delay
        self.error = error
        self.calls: List[Dict[str, object]] = []
        self.closed = False

    async def chat(
        self,
        model: str,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> str:
        self.calls.append({
            "model": model,
            "messages": [dict(m) for m in messages],
            "system_prompt": system_prompt,
        })

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        if self.replies:
            return self.replies.pop(0)

        last_user = next(
            (m["content"] for m in reversed(messages) if m.get("role") == "user"),
            "",
        )
        return f"Echo: {last_user}"

    async def list_models(self) -> List[str]:
        if self.error is not None:
            raise self.error
        return list(self.models)

    async def check_connection(self) -> bool:
        return self.error is None

    def check_connection_sync(self) -> bool:
        return self.error is None

    async def close(self) -> None:
        self.closed = True
        logger.debug("EchoGateway closed")
