"""
Utility modules for configuration, logging, validation and error handling.
"""

from chat_service.utils.config import Config
from chat_service.utils.logger import StructuredLogger
from chat_service.utils.error_handler import (
    LLMServiceError,
    ValidationError,
    BackendError,
    ConnectivityError,
    ExchangeTimeoutError,
    ErrorCategory,
    ErrorSeverity,
    RetryManager,
    ErrorHandler,
)

__all__ = [
    "Config",
    "StructuredLogger",
    "LLMServiceError",
    "ValidationError",
    "BackendError",
    "ConnectivityError",
    "ExchangeTimeoutError",
    "ErrorCategory",
    "ErrorSeverity",
    "RetryManager",
    "ErrorHandler",
]
