"""
Error handling for the chat service.

Defines the error kinds raised while serving an exchange, the retry helper
used at startup and the handler that counts errors for ``/stats``.
"""

import asyncio
import time
import logging
from enum import Enum
from typing import Optional, Dict, Any, Callable, Tuple
from dataclasses import dataclass, field
from collections import deque
from threading import Lock

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification."""
    CONNECTION = "connection"
    PROCESSING = "processing"
    CONFIGURATION = "configuration"
    SYSTEM = "system"
    TIMEOUT = "timeout"
    VALIDATION = "validation"


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorInfo:
    """One handled error, as kept in the handler's history."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    recoverable: bool
    timestamp: float = field(default_factory=time.time)
    retry_after: Optional[float] = None
    context: Optional[Dict[str, Any]] = None


class LLMServiceError(Exception):
    """Base exception for chat service errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        recoverable: bool = True,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.recoverable = recoverable
        self.retry_after = retry_after


class ValidationError(LLMServiceError):
    """Malformed or missing request fields."""

    def __init__(self, message: str):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            recoverable=False,
        )


class BackendError(LLMServiceError):
    """The inference backend answered with a non-success status."""

    def __init__(self, status_code: int, body: str, operation: str = "chat"):
        super().__init__(
            f"Ollama {operation} failed: {status_code} - {body}",
            category=ErrorCategory.PROCESSING,
            severity=ErrorSeverity.HIGH,
            recoverable=status_code >= 500,
        )
        self.status_code = status_code
        self.body = body


class ConnectivityError(LLMServiceError):
    """The inference backend could not be reached."""

    def __init__(self, message: str):
        super().__init__(
            message,
            category=ErrorCategory.CONNECTION,
            severity=ErrorSeverity.HIGH,
            retry_after=30.0,
        )


class ExchangeTimeoutError(LLMServiceError):
    """The exchange did not finish before its deadline."""

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(
            message,
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.MEDIUM,
            retry_after=30.0,
        )
        self.timeout = timeout


# Built-in exceptions that can escape the pipeline without being wrapped
_BUILTIN_CATEGORIES = (
    ((asyncio.TimeoutError, TimeoutError), ErrorCategory.TIMEOUT, ErrorSeverity.MEDIUM, True),
    (ConnectionError, ErrorCategory.CONNECTION, ErrorSeverity.HIGH, True),
    ((ValueError, TypeError), ErrorCategory.VALIDATION, ErrorSeverity.LOW, False),
)


class RetryManager:
    """
    Manages retry logic with exponential backoff.
    """

    @staticmethod
    def retry_with_backoff(
        func: Callable,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        backoff_factor: float = 2.0,
        retriable_exceptions: tuple = (Exception,),
    ) -> Any:
        """
        Call ``func`` until it succeeds, sleeping longer after each failure.

        Args:
            func: Zero-argument callable
            max_attempts: Maximum number of attempts
            base_delay: Delay after the first failure, in seconds
            max_delay: Upper bound for the delay
            backoff_factor: Delay multiplier per attempt
            retriable_exceptions: Exceptions that trigger another attempt

        Returns:
            Whatever ``func`` returns

        Raises:
            The last retriable exception once attempts run out; any other
            exception immediately
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        delay = base_delay
        for attempt in range(1, max_attempts + 1):
            try:
                return func()
            except retriable_exceptions as e:
                if attempt == max_attempts:
                    logger.error(f"All {max_attempts} attempts failed: {e}")
                    raise
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.1f}s...")
                time.sleep(delay)
                delay = min(delay * backoff_factor, max_delay)


class ErrorHandler:
    """
    Classifies errors returned to clients and keeps per-category counts.
    """

    def __init__(self, max_error_history: int = 1000):
        self.error_history: deque = deque(maxlen=max_error_history)
        self.error_counts: Dict[ErrorCategory, int] = {cat: 0 for cat in ErrorCategory}
        self._lock = Lock()

    @staticmethod
    def classify(error: Exception) -> Tuple[ErrorCategory, ErrorSeverity, bool]:
        """Category, severity and recoverability of ``error``."""
        if isinstance(error, LLMServiceError):
            return error.category, error.severity, error.recoverable
        for error_types, category, severity, recoverable in _BUILTIN_CATEGORIES:
            if isinstance(error, error_types):
                return category, severity, recoverable
        return ErrorCategory.SYSTEM, ErrorSeverity.CRITICAL, False

    def handle_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorInfo:
        """
        Record an error and log it at a level matching its severity.

        Args:
            error: Exception that occurred
            context: Where it happened (endpoint, model, ...)

        Returns:
            ErrorInfo whose ``message`` is safe to send to the client
        """
        category, severity, recoverable = self.classify(error)
        message = error.message if isinstance(error, LLMServiceError) else str(error)

        error_info = ErrorInfo(
            category=category,
            severity=severity,
            message=message,
            recoverable=recoverable,
            retry_after=getattr(error, "retry_after", None),
            context=context,
        )

        with self._lock:
            self.error_history.append(error_info)
            self.error_counts[category] += 1

        log_method = logger.error if severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL) else logger.warning
        log_method(
            f"Error handled: [{category.value}] {message}",
            extra={
                "category": category.value,
                "severity": severity.value,
                "recoverable": recoverable,
                "context": context,
            },
        )

        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Error totals, per-category counts and the size of the recent history."""
        with self._lock:
            return {
                "total_errors": sum(self.error_counts.values()),
                "by_category": {cat.value: count for cat, count in self.error_counts.items()},
                "recent_errors": len(self.error_history),
            }

    def reset(self):
        """Reset error tracking."""
        with self._lock:
            self.error_history.clear()
            self.error_counts = {cat: 0 for cat in ErrorCategory}
            logger.info("Error handler reset")
