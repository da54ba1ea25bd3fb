from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Tuple,
    Type,
)

from recoverkit.core.outcome import Failure, Outcome
from recoverkit.utils.logger import get_logger

from ..errors import CircuitOpenError, ensure_error_type
from ..execution import Operation, run_operation
from ..safe import safe_async
from .monitoring import circuit_metrics
from .policies import ErrorWindowPolicy

if TYPE_CHECKING:
    from recoverkit.core.config import Settings

    from ..adaptive.classifier import ErrorClassifier

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """
    failure_threshold: failures inside `time_window` that open the circuit.
    timeout: seconds OPEN before the next call is let through as a probe.
    success_threshold: HALF_OPEN successes needed to close again.
    half_open_max_calls: concurrent probes allowed while HALF_OPEN.
    """

    failure_threshold: int = 5
    timeout: float = 60.0
    success_threshold: int = 3
    time_window: float = 60.0
    half_open_max_calls: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be at least 1")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")
        if self.timeout < 0 or self.time_window <= 0:
            raise ValueError("timeout must be >= 0 and time_window > 0")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CircuitBreakerConfig":
        return cls(
            failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            timeout=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS,
            success_threshold=settings.CIRCUIT_BREAKER_HALF_OPEN_SUCCESS_THRESHOLD,
            time_window=settings.CIRCUIT_BREAKER_TIME_WINDOW_SECONDS,
            half_open_max_calls=settings.CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS,
        )


@dataclass
class CircuitBreaker:
    """
    Async-first circuit breaker with HALF-OPEN probe window and metrics.

    - CLOSED: calls pass through; failures inside `time_window` are counted
      and reaching `failure_threshold` opens the circuit. A success resets.
    - OPEN: calls return `Failure(CircuitOpenError)` without running until
      `timeout` elapses; the first call after that becomes the probe.
    - HALF_OPEN: up to `half_open_max_calls` concurrent probes; on
      `success_threshold` successes -> CLOSED; on any failure -> OPEN.

    Operations return an Outcome; exceptions they raise count as failures and
    come back as `Failure(exc)`. A result that arrives after the state it
    was admitted under has changed is ignored. All state changes happen
    under one lock.
    """

    name: str = "default"
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    ignored_exceptions: Tuple[Type[BaseException], ...] = ()
    classifier: Optional["ErrorClassifier"] = None
    on_state_change: Optional[Callable[[CircuitState, CircuitState], None]] = None
    error_type: Type[Any] = Exception
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _success_count: int = field(default=0, init=False)
    _half_open_calls: int = field(default=0, init=False)
    # Bumped on every transition; results from an older generation are stale
    _generation: int = field(default=0, init=False)
    _state_change_time: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        ensure_error_type(self.error_type, (CircuitOpenError,), "CircuitBreaker")
        self._window = ErrorWindowPolicy(
            window_seconds=self.config.time_window,
            max_failures=self.config.failure_threshold,
            clock=self.clock,
        )
        self._state_change_time = self.clock()
        circuit_metrics.set_state(self.name, self._state)

    @classmethod
    def from_settings(
        cls, name: str, settings: "Settings", **kwargs: Any
    ) -> "CircuitBreaker":
        return cls(
            name=name, config=CircuitBreakerConfig.from_settings(settings), **kwargs
        )

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    @property
    def state_change_time(self) -> float:
        return self._state_change_time

    def _transition(self, new_state: CircuitState) -> None:
        if self._state == new_state:
            return
        prev = self._state
        self._state = new_state
        self._generation += 1
        self._state_change_time = self.clock()
        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._success_count = 0
            self._window.reset()
        elif new_state == CircuitState.HALF_OPEN:
            self._success_count = 0
        logger.warning(
            "circuit_state_change",
            circuit=self.name,
            from_state=prev.value,
            to_state=new_state.value,
            failure_count=self._failure_count,
        )
        circuit_metrics.record_transition(self.name, prev, new_state)
        if self.on_state_change is not None:
            self.on_state_change(prev, new_state)

    def _admit(self) -> Tuple[Optional[CircuitOpenError], bool]:
        """Decide whether a call may run. Returns (rejection, is_probe)."""
        if self._state == CircuitState.OPEN:
            elapsed = self.clock() - self._state_change_time
            if elapsed < self.config.timeout:
                return CircuitOpenError(self.name, self.config.timeout - elapsed), False
            # The call that notices the timeout is itself the probe
            self._transition(CircuitState.HALF_OPEN)

        if self._state == CircuitState.HALF_OPEN:
            if self._half_open_calls >= self.config.half_open_max_calls:
                return CircuitOpenError(self.name), False
            self._half_open_calls += 1
            return None, True

        return None, False

    def _counts_as_failure(self, error: Any) -> bool:
        if isinstance(error, tuple(self.ignored_exceptions)):
            return False
        if self.classifier is not None:
            return self.classifier.should_trigger_circuit_breaker(error)
        return True

    def _on_success(self) -> None:
        circuit_metrics.inc_success(self.name)
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._transition(CircuitState.CLOSED)
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0
            self._window.reset()

    def _on_failure(self) -> None:
        circuit_metrics.inc_failure(self.name)
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN:
            # Any failure in HALF_OPEN flips back to OPEN immediately
            self._transition(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED:
            self._window.record_failure()
            if self._window.should_open():
                self._transition(CircuitState.OPEN)

    async def execute(self, operation: Operation) -> Outcome[Any, Any]:
        """Run `operation` through the circuit breaker."""
        async with self._lock:
            rejection, probe = self._admit()
            generation = self._generation
        if rejection is not None:
            circuit_metrics.inc_blocked(self.name)
            logger.debug("circuit_rejected", circuit=self.name, state=self._state.value)
            return Failure(rejection)

        try:
            outcome = await run_operation(operation)
        finally:
            if probe:
                async with self._lock:
                    self._half_open_calls -= 1

        async with self._lock:
            if generation != self._generation:
                # Admitted under an earlier state; only the probe may decide HALF_OPEN
                logger.debug(
                    "circuit_stale_result",
                    circuit=self.name,
                    state=self._state.value,
                    success=outcome.is_success,
                )
            elif outcome.is_success:
                self._on_success()
            elif self._counts_as_failure(outcome.error):
                self._on_failure()
        return outcome

    async def execute_safe(self, fn: Callable[[], Any]) -> Outcome[Any, Exception]:
        """Run a raw throwing callable, capturing its exception as the error."""
        return await self.execute(lambda: safe_async(fn))

    async def __call__(self, operation: Operation) -> Outcome[Any, Any]:
        return await self.execute(operation)

    def decorate(self, func: Callable[..., Awaitable[Outcome[Any, Any]]]):
        """Decorator for async call-sites returning an Outcome."""

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Outcome[Any, Any]:
            return await self.execute(lambda: func(*args, **kwargs))

        return wrapper

    def reset(self) -> None:
        """Force CLOSED with zero counters (administrative/test use)."""
        if self._state == CircuitState.CLOSED:
            self._generation += 1
            self._failure_count = 0
            self._window.reset()
        else:
            self._transition(CircuitState.CLOSED)
        logger.info("circuit_reset", circuit=self.name)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "half_open_calls": self._half_open_calls,
        }
