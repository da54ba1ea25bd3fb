from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, TypeVar

from recoverkit.core.outcome import Outcome
from recoverkit.utils.logger import get_logger

from ..errors import CircuitOpenError
from ..execution import Operation, run_operation
from .classifier import DefaultErrorClassifier, ErrorClassifier

T = TypeVar("T")
E = TypeVar("E")

logger = get_logger(__name__)

DECAY_FACTOR = 0.9
FREQUENCY_WEIGHT = 0.1
# Counters below this are dropped; they would round to zero anyway
NEGLIGIBLE_COUNT = 0.5


def error_kind(error: Any) -> str:
    return type(error).__name__


class AdaptiveRecovery(Generic[T, E]):
    """
    Retry loop whose delays grow with how often an error kind has been seen.

    Each retry waits `classifier.get_retry_delay(error, attempt)` scaled by
    `1 + error_counts[kind] * 0.1`. Counters grow when a call finally fails
    and decay geometrically on every success.
    """

    def __init__(self, classifier: Optional[ErrorClassifier] = None) -> None:
        self._classifier = classifier or DefaultErrorClassifier()
        self._error_counts: Dict[str, float] = {}
        self._last_error_times: Dict[str, datetime] = {}
        self._adaptive_delays: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    async def execute(
        self,
        operation: Operation,
        max_attempts: int = 3,
        max_delay: Optional[float] = None,
    ) -> Outcome[T, E]:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        attempt = 1
        while True:
            outcome = await run_operation(operation)

            if outcome.is_success:
                await self._on_success()
                return outcome

            error = outcome.error
            kind = error_kind(error)

            if isinstance(error, CircuitOpenError):
                # Rejected calls never reached the resource
                return outcome

            if not self._classifier.is_retryable(error) or attempt >= max_attempts:
                await self._record_error(kind)
                logger.warning(
                    "adaptive_recovery_gave_up",
                    error_type=kind,
                    attempt=attempt,
                    retryable=self._classifier.is_retryable(error),
                )
                return outcome

            delay = await self._adaptive_delay(error, kind, attempt)
            if max_delay is not None and delay > max_delay:
                await self._record_error(kind)
                logger.warning(
                    "adaptive_recovery_delay_exceeded",
                    error_type=kind,
                    attempt=attempt,
                    delay_s=round(delay, 3),
                    max_delay_s=max_delay,
                )
                return outcome

            logger.info(
                "adaptive_retry",
                error_type=kind,
                attempt=attempt,
                next_delay_s=round(delay, 3),
            )
            await asyncio.sleep(delay)
            attempt += 1

    async def _adaptive_delay(self, error: Any, kind: str, attempt: int) -> float:
        base = self._classifier.get_retry_delay(error, attempt)
        async with self._lock:
            factor = 1.0 + self._error_counts.get(kind, 0.0) * FREQUENCY_WEIGHT
            delay = base * factor
            self._adaptive_delays[kind] = delay
        return delay

    async def _record_error(self, kind: str) -> None:
        async with self._lock:
            self._error_counts[kind] = self._error_counts.get(kind, 0.0) + 1
            self._last_error_times[kind] = datetime.now(timezone.utc)

    async def _on_success(self) -> None:
        async with self._lock:
            for kind in list(self._error_counts):
                decayed = self._error_counts[kind] * DECAY_FACTOR
                if decayed < NEGLIGIBLE_COUNT:
                    del self._error_counts[kind]
                    self._last_error_times.pop(kind, None)
                    self._adaptive_delays.pop(kind, None)
                else:
                    self._error_counts[kind] = decayed

    def error_count(self, kind: str) -> float:
        return self._error_counts.get(kind, 0.0)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "error_counts": {k: round(v, 3) for k, v in self._error_counts.items()},
            "last_error_times": {
                k: v.isoformat() for k, v in self._last_error_times.items()
            },
            "adaptive_delays": {
                k: round(v, 3) for k, v in self._adaptive_delays.items()
            },
        }
