"""
Safe execution of arbitrary throwing callables.

`safe` / `safe_async` capture a single call into an Outcome. `Safe` adds a
per-attempt timeout, a RetryPolicy, error mapping and logging hooks:

    executor = Safe(
        timeout=5.0,
        retry_policy=RetryPolicy.exponential_backoff(max_attempts=3, initial_delay=0.1),
        error_logger=lambda error, attempt: print(f"attempt {attempt} failed: {error}"),
    )
    outcome = await executor.call(fetch_profile)

This is the boundary where exceptions are turned into values: nothing past
`call` raises, except a final error that cannot be represented as
`error_type`, which is a programming error and raised as TypeError.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple, Type

from recoverkit.core.outcome import Failure, Outcome, Success
from recoverkit.utils.logger import add_error_context, get_logger

from .errors import OperationTimeoutError, ensure_error_type
from .retry.monitoring import retry_metrics
from .retry.strategies import RetryPolicies, RetryPolicy

if TYPE_CHECKING:
    from recoverkit.core.config import Settings

logger = get_logger(__name__)

ErrorLogger = Callable[[BaseException, int], None]
RetryCallback = Callable[[BaseException, int, float], None]


def safe(fn: Callable[[], Any]) -> Outcome[Any, Exception]:
    """Call `fn` and capture its result or raised exception."""
    try:
        return Success(fn())
    except Exception as exc:  # noqa: BLE001 - captured into the Outcome
        return Failure(exc)


async def safe_async(fn: Callable[[], Any]) -> Outcome[Any, Exception]:
    """Like `safe`, awaiting the result when `fn` returns an awaitable."""
    try:
        value = fn()
        if inspect.isawaitable(value):
            value = await value
        return Success(value)
    except Exception as exc:  # noqa: BLE001 - captured into the Outcome
        return Failure(exc)


@dataclass(frozen=True)
class Safe:
    """
    Retry/timeout loop around a callable that may raise.

    - timeout: seconds allowed per attempt (async callables only).
    - retry_policy: attempts and delays; defaults to a single attempt.
    - retry_on: exception classes worth retrying; others fail at once.
    - error_mapper: converts the final raw error into the caller's type.
    - error_type: what the final error must be an instance of.
    - error_logger(error, attempt): called for every failed attempt.
    - on_retry(error, attempt, delay): called before each retry sleep.
    - slow_call_threshold: attempts slower than this are logged.
    """

    timeout: Optional[float] = None
    retry_policy: RetryPolicy = RetryPolicies.NONE
    error_mapper: Optional[Callable[[BaseException], Any]] = None
    error_logger: Optional[ErrorLogger] = None
    on_retry: Optional[RetryCallback] = None
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    error_type: Type[Any] = Exception
    slow_call_threshold: Optional[float] = None

    def __post_init__(self) -> None:
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be greater than zero")
        if not isinstance(self.retry_on, tuple):
            object.__setattr__(self, "retry_on", tuple(self.retry_on))
        if self.error_mapper is None:
            if self.timeout is not None:
                ensure_error_type(self.error_type, (OperationTimeoutError,), "Safe")
            else:
                ensure_error_type(self.error_type, (), "Safe")

    @classmethod
    def network(cls, **overrides: Any) -> "Safe":
        """30s per attempt, exponential backoff with jitter."""
        overrides.setdefault("timeout", 30.0)
        overrides.setdefault("retry_policy", RetryPolicies.NETWORK)
        return cls(**overrides)

    @classmethod
    def database(cls, **overrides: Any) -> "Safe":
        """10s per attempt, conservative linear backoff."""
        overrides.setdefault("timeout", 10.0)
        overrides.setdefault("retry_policy", RetryPolicies.CONSERVATIVE)
        return cls(**overrides)

    @classmethod
    def critical(cls, **overrides: Any) -> "Safe":
        """60s per attempt, aggressive exponential backoff."""
        overrides.setdefault("timeout", 60.0)
        overrides.setdefault("retry_policy", RetryPolicies.AGGRESSIVE)
        return cls(**overrides)

    @classmethod
    def from_settings(cls, settings: "Settings", **overrides: Any) -> "Safe":
        overrides.setdefault("timeout", settings.SAFE_DEFAULT_TIMEOUT_SECONDS)
        overrides.setdefault("retry_policy", RetryPolicy.from_settings(settings))
        overrides.setdefault("slow_call_threshold", settings.SLOW_CALL_THRESHOLD_SECONDS)
        return cls(**overrides)

    def copy_with(self, **changes: Any) -> "Safe":
        return dataclasses.replace(self, **changes)

    @staticmethod
    async def execute_with(fn: Callable[[], Any], **config: Any) -> Outcome[Any, Any]:
        """One-off execution without keeping a Safe instance around."""
        return await Safe(**config).call(fn)

    async def _invoke(self, fn: Callable[[], Any]) -> Any:
        value = fn()
        if not inspect.isawaitable(value):
            return value
        try:
            async with asyncio.timeout(self.timeout) as deadline:
                return await value
        except TimeoutError:
            if deadline.expired():
                raise OperationTimeoutError(self.timeout or 0.0) from None
            raise

    def _map_error(self, error: BaseException) -> Any:
        mapped = self.error_mapper(error) if self.error_mapper else error
        if not isinstance(mapped, self.error_type):
            raise TypeError(
                f"Error {type(mapped).__name__} is not an instance of "
                f"{self.error_type.__name__}; configure an error_mapper"
            ) from error
        return mapped

    def _check_slow(self, name: str, started: float) -> None:
        if self.slow_call_threshold is None:
            return
        elapsed = time.monotonic() - started
        if elapsed > self.slow_call_threshold:
            logger.warning(
                "slow_operation",
                function=name,
                elapsed_s=round(elapsed, 3),
                threshold_s=self.slow_call_threshold,
            )

    async def call(
        self, fn: Callable[[], Any], *, name: Optional[str] = None
    ) -> Outcome[Any, Any]:
        """Run `fn` (sync or async) under the configured policy."""
        name = name or getattr(fn, "__name__", "operation")
        attempt = 1
        while True:
            started = time.monotonic()
            try:
                value = await self._invoke(fn)
            except Exception as exc:  # noqa: BLE001 - converted into the error channel
                error: BaseException = exc
            else:
                self._check_slow(name, started)
                return Success(value)

            if self.error_logger is not None:
                self.error_logger(error, attempt)

            retryable = isinstance(error, self.retry_on)
            if retryable and self.retry_policy.should_retry(attempt):
                delay = self.retry_policy.get_delay(attempt)
                logger.warning(
                    "retry_attempt",
                    function=name,
                    next_delay_s=round(delay, 3),
                    **add_error_context(error, attempt),
                )
                retry_metrics.inc_attempt(name)
                if self.on_retry is not None:
                    self.on_retry(error, attempt, delay)
                if delay > 0:
                    await asyncio.sleep(delay)
                attempt += 1
                continue

            if retryable:
                logger.error(
                    "retry_exhausted",
                    function=name,
                    attempts=attempt,
                    error=str(error),
                )
                retry_metrics.inc_exhausted(name, "exhausted")
            else:
                logger.error(
                    "retry_skipped_non_retryable",
                    function=name,
                    attempts=attempt,
                    error_type=type(error).__name__,
                    error=str(error),
                )
                retry_metrics.inc_exhausted(name, "non_retryable")
            return Failure(self._map_error(error))
