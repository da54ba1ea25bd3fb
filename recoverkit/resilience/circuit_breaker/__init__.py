from .breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from .monitoring import circuit_metrics
from .policies import ErrorWindowPolicy

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "ErrorWindowPolicy",
    "circuit_metrics",
]
