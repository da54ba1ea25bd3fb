from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Type


class ResilienceErrorKind(str, Enum):
    """Closed set of errors produced by the resilience layers themselves."""

    CIRCUIT_OPEN = "circuit_open"
    BULKHEAD_TIMEOUT = "bulkhead_timeout"
    OPERATION_TIMEOUT = "operation_timeout"


class ResilienceError(Exception):
    """Base class for errors produced by a resilience layer.

    Implementers are exactly CircuitOpenError, BulkheadTimeoutError and
    OperationTimeoutError; dispatch on `kind`.
    """

    kind: ResilienceErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CircuitOpenError(ResilienceError):
    """The circuit breaker rejected the call without running it."""

    kind = ResilienceErrorKind.CIRCUIT_OPEN

    def __init__(self, circuit: str, remaining_seconds: float = 0.0) -> None:
        self.circuit = circuit
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Circuit '{circuit}' is OPEN")


class BulkheadTimeoutError(ResilienceError):
    """A queued call waited longer than the bulkhead allows."""

    kind = ResilienceErrorKind.BULKHEAD_TIMEOUT

    def __init__(self, bulkhead: str, waited_seconds: float) -> None:
        self.bulkhead = bulkhead
        self.waited_seconds = waited_seconds
        super().__init__(
            f"Bulkhead '{bulkhead}' wait timed out after {waited_seconds:.3f}s"
        )


class OperationTimeoutError(ResilienceError):
    """The wrapped call exceeded its deadline."""

    kind = ResilienceErrorKind.OPERATION_TIMEOUT

    def __init__(self, after_seconds: float) -> None:
        self.after_seconds = after_seconds
        super().__init__(f"Operation timed out after {after_seconds:.3f}s")


def ensure_error_type(
    error_type: Type[Any], produced: Iterable[Type[ResilienceError]], owner: str
) -> None:
    """Fail at construction when `error_type` cannot hold what `owner` produces."""
    if not isinstance(error_type, type):
        raise TypeError(f"{owner}: error_type must be a class, got {error_type!r}")
    for err_cls in produced:
        if not issubclass(err_cls, error_type):
            raise TypeError(
                f"{owner}: error type {error_type.__name__} cannot represent "
                f"{err_cls.__name__}. Use a common supertype for your errors."
            )
