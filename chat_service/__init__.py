"""
Chat Service
============

An HTTP chat endpoint backed by a locally hosted Ollama server.

Architecture:
- FastAPI boundary with per-request deadlines and error mapping
- Ollama gateway with a tolerant NDJSON reply decoder
- Thread-safe in-memory conversation log feeding the context window
- Health monitoring and metrics
"""

__version__ = "1.0.0"

from chat_service.utils.config import Config
from chat_service.utils.logger import StructuredLogger

__all__ = ["Config", "StructuredLogger"]
