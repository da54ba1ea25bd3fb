from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

from ..errors import BulkheadTimeoutError, OperationTimeoutError


class ErrorSeverity(str, Enum):
    """Error severity levels used to pick a recovery strategy"""

    TRANSIENT = "transient"  # Likely to clear on its own within moments
    RECOVERABLE = "recoverable"  # May clear with time or a retry
    PERMANENT = "permanent"  # Will not clear without intervention
    CRITICAL = "critical"  # Indicates a broken system


_BASE_DELAY_SECONDS: Dict[ErrorSeverity, float] = {
    ErrorSeverity.TRANSIENT: 0.1,
    ErrorSeverity.RECOVERABLE: 1.0,
    ErrorSeverity.PERMANENT: 0.0,
    ErrorSeverity.CRITICAL: 0.0,
}


class ErrorClassifier(ABC):
    """Maps an error onto an ErrorSeverity and derives retry behaviour from it."""

    @abstractmethod
    def classify(self, error: Any) -> ErrorSeverity:
        ...

    def is_retryable(self, error: Any) -> bool:
        return self.classify(error) in (
            ErrorSeverity.TRANSIENT,
            ErrorSeverity.RECOVERABLE,
        )

    def should_trigger_circuit_breaker(self, error: Any) -> bool:
        return self.classify(error) in (
            ErrorSeverity.RECOVERABLE,
            ErrorSeverity.CRITICAL,
        )

    def get_retry_delay(self, error: Any, attempt_number: int) -> float:
        """Exponential delay in seconds from a per-severity base."""
        base = _BASE_DELAY_SECONDS[self.classify(error)]
        return base * 2 ** (attempt_number - 1)


class DefaultErrorClassifier(ErrorClassifier):
    """Classifies Python exceptions by type; unknown errors are recoverable."""

    def classify(self, error: Any) -> ErrorSeverity:
        if isinstance(
            error,
            (asyncio.TimeoutError, OperationTimeoutError, BulkheadTimeoutError),
        ):
            return ErrorSeverity.TRANSIENT
        if isinstance(error, (ConnectionError, OSError)):
            return ErrorSeverity.RECOVERABLE
        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorSeverity.PERMANENT
        if isinstance(error, (RuntimeError, AssertionError, MemoryError)):
            return ErrorSeverity.CRITICAL
        return ErrorSeverity.RECOVERABLE
