from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from recoverkit.core.outcome import Outcome
from recoverkit.utils.logger import get_logger

from .adaptive.recovery import AdaptiveRecovery
from .bulkhead.isolator import Bulkhead
from .circuit_breaker.breaker import CircuitBreaker
from .execution import Operation, run_operation
from .fallback.chain import FallbackChain

T = TypeVar("T")
E = TypeVar("E")

logger = get_logger(__name__)


class RecoveryOrchestrator(Generic[T, E]):
    """
    Composes the recovery layers around one operation.

    Order, outermost first:

        FallbackChain( AdaptiveRecovery( CircuitBreaker( Bulkhead( operation ))))

    The bulkhead gates admission before anything runs, the breaker counts
    real call attempts only, adaptive recovery retries while the breaker
    still lets calls through, and fallbacks run once everything inside has
    given up. Layers left as None are skipped.
    """

    def __init__(
        self,
        *,
        circuit_breaker: Optional[CircuitBreaker] = None,
        fallback_chain: Optional[FallbackChain[T, E]] = None,
        adaptive_recovery: Optional[AdaptiveRecovery[T, E]] = None,
        bulkhead: Optional[Bulkhead] = None,
        max_attempts: int = 3,
        max_delay: Optional[float] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.circuit_breaker = circuit_breaker
        self.fallback_chain = fallback_chain
        self.adaptive_recovery = adaptive_recovery
        self.bulkhead = bulkhead
        self.max_attempts = max_attempts
        self.max_delay = max_delay

    @property
    def layers(self) -> list[str]:
        """Names of the configured layers, outermost first."""
        names = []
        if self.fallback_chain is not None:
            names.append("fallback_chain")
        if self.adaptive_recovery is not None:
            names.append("adaptive_recovery")
        if self.circuit_breaker is not None:
            names.append("circuit_breaker")
        if self.bulkhead is not None:
            names.append("bulkhead")
        return names

    def _wrap(self, operation: Operation) -> Callable[[], Awaitable[Outcome[Any, Any]]]:
        async def raw() -> Outcome[Any, Any]:
            return await run_operation(operation)

        wrapped = raw

        if self.bulkhead is not None:
            bulkhead, inner_b = self.bulkhead, wrapped

            async def through_bulkhead() -> Outcome[Any, Any]:
                return await bulkhead.execute(inner_b)

            wrapped = through_bulkhead

        if self.circuit_breaker is not None:
            breaker, inner_c = self.circuit_breaker, wrapped

            async def through_breaker() -> Outcome[Any, Any]:
                return await breaker.execute(inner_c)

            wrapped = through_breaker

        if self.adaptive_recovery is not None:
            recovery, inner_a = self.adaptive_recovery, wrapped

            async def through_recovery() -> Outcome[Any, Any]:
                return await recovery.execute(
                    inner_a, max_attempts=self.max_attempts, max_delay=self.max_delay
                )

            wrapped = through_recovery

        return wrapped

    async def execute(self, operation: Operation) -> Outcome[T, E]:
        """Run `operation` through every configured layer."""
        wrapped = self._wrap(operation)
        if self.fallback_chain is not None:
            outcome = await self.fallback_chain.execute(wrapped)
        else:
            outcome = await wrapped()
        if outcome.is_failure:
            logger.warning(
                "orchestrated_call_failed",
                layers=self.layers,
                error_type=type(outcome.error).__name__,
                error=str(outcome.error),
            )
        return outcome

    def decorate(self, func: Callable[..., Any]):
        """Decorator form of `execute` for functions returning an Outcome."""

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Outcome[T, E]:
            return await self.execute(lambda: func(*args, **kwargs))

        return wrapper
