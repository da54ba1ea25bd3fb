"""
Resilience utilities: retries, circuit breakers, bulkheads, fallbacks and
adaptive recovery.

Every layer takes a zero-argument operation returning an Outcome and gives
back an Outcome: failures travel as values, never as raised exceptions.
All modules are async-first, structured-logging enabled, and export
Prometheus metrics.

Layers are configured explicitly or from `recoverkit.core.config.Settings`
through their `from_settings` factories.
"""

from .adaptive.classifier import DefaultErrorClassifier, ErrorClassifier, ErrorSeverity
from .adaptive.recovery import AdaptiveRecovery
from .bulkhead.isolator import Bulkhead
from .circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from .errors import (
    BulkheadTimeoutError,
    CircuitOpenError,
    OperationTimeoutError,
    ResilienceError,
    ResilienceErrorKind,
)
from .fallback.chain import FallbackChain
from .monitoring import AlertManager, ResilienceHealthChecker
from .orchestrator import RecoveryOrchestrator
from .retry.decorators import retry
from .retry.strategies import RetryPolicies, RetryPolicy
from .safe import Safe, safe, safe_async

__all__ = [
    "AdaptiveRecovery",
    "AlertManager",
    "Bulkhead",
    "BulkheadTimeoutError",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
    "DefaultErrorClassifier",
    "ErrorClassifier",
    "ErrorSeverity",
    "FallbackChain",
    "OperationTimeoutError",
    "RecoveryOrchestrator",
    "ResilienceError",
    "ResilienceErrorKind",
    "ResilienceHealthChecker",
    "RetryPolicies",
    "RetryPolicy",
    "Safe",
    "retry",
    "safe",
    "safe_async",
]
