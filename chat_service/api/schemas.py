"""
Request and response bodies for the HTTP API.
"""

from typing import Optional

from pydantic import BaseModel

from chat_service.utils.config import DEFAULT_MODEL


class ChatRequest(BaseModel):
    message: str
    model: Optional[str] = None

    def resolved_model(self, default: str = DEFAULT_MODEL) -> str:
        return self.model or default


class ChatResponse(BaseModel):
    response: str
    model: str


class ErrorResponse(BaseModel):
    error: str


class MemoryResponse(BaseModel):
    size: int
