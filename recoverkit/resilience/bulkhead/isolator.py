from __future__ import annotations

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Deque, Dict, Optional, Type

from prometheus_client import Counter, Gauge

from recoverkit.core.outcome import Failure, Outcome
from recoverkit.utils.logger import get_logger

from ..errors import BulkheadTimeoutError, OperationTimeoutError, ensure_error_type
from ..execution import Operation, run_operation

if TYPE_CHECKING:
    from recoverkit.core.config import Settings

logger = get_logger(__name__)


class _BulkheadMetrics:
    def __init__(self) -> None:
        self.inflight = Gauge(
            "recoverkit_bulkhead_inflight",
            "In-flight operations under bulkhead",
            ["bulkhead"],
        )
        self.queued = Gauge(
            "recoverkit_bulkhead_queued",
            "Callers waiting for a bulkhead slot",
            ["bulkhead"],
        )
        self.rejected_total = Counter(
            "recoverkit_bulkhead_rejected_total",
            "Callers that timed out waiting for a slot",
            ["bulkhead"],
        )

    def observe(self, bulkhead: "Bulkhead") -> None:
        self.inflight.labels(bulkhead=bulkhead.name).set(bulkhead.current_operations)
        self.queued.labels(bulkhead=bulkhead.name).set(bulkhead.queue_length)

    def inc_rejected(self, bulkhead: str) -> None:
        self.rejected_total.labels(bulkhead=bulkhead).inc()


bulkhead_metrics = _BulkheadMetrics()


class Bulkhead:
    """
    Concurrency isolator with a strict FIFO wait queue.

    At most `max_concurrent` operations run at once. Further callers queue
    and are resumed in arrival order as slots free up; a caller still queued
    after `timeout` seconds gets `BulkheadTimeoutError` and never runs.
    Admitted calls are bounded by `execution_timeout` (defaults to `timeout`).

    Check-and-update of the counter and queue never spans an await, so each
    step is atomic on the event loop. A freed slot is handed straight to the
    head waiter, which keeps newcomers from overtaking the queue.
    """

    def __init__(
        self,
        name: str = "default",
        max_concurrent: int = 10,
        timeout: float = 30.0,
        *,
        execution_timeout: Optional[float] = None,
        error_type: Type[Any] = Exception,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if timeout < 0:
            raise ValueError("timeout must be >= 0")
        ensure_error_type(
            error_type, (BulkheadTimeoutError, OperationTimeoutError), "Bulkhead"
        )
        self.name = name
        self._max = max_concurrent
        self._timeout = timeout
        self._execution_timeout = (
            execution_timeout if execution_timeout is not None else timeout
        )
        self._current = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @classmethod
    def from_settings(cls, name: str, settings: "Settings", **kwargs: Any) -> "Bulkhead":
        return cls(
            name=name,
            max_concurrent=settings.BULKHEAD_DEFAULT_MAX_CONCURRENCY,
            timeout=settings.BULKHEAD_DEFAULT_TIMEOUT_SECONDS,
            **kwargs,
        )

    @property
    def max_concurrent(self) -> int:
        return self._max

    @property
    def current_operations(self) -> int:
        return self._current

    @property
    def queue_length(self) -> int:
        return len(self._waiters)

    async def _acquire_slot(self) -> None:
        if self._current < self._max and not self._waiters:
            self._current += 1
            bulkhead_metrics.observe(self)
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        bulkhead_metrics.observe(self)
        started = time.monotonic()
        try:
            await asyncio.wait_for(waiter, timeout=self._timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError) as exc:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over as we gave up; pass it on
                self._release_slot()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            bulkhead_metrics.observe(self)
            if isinstance(exc, asyncio.CancelledError):
                raise
            waited = time.monotonic() - started
            bulkhead_metrics.inc_rejected(self.name)
            logger.error(
                "bulkhead_wait_timeout",
                bulkhead=self.name,
                timeout=self._timeout,
                queue_length=self.queue_length,
            )
            raise BulkheadTimeoutError(self.name, waited) from None
        # The releasing call transferred its slot; the counter is unchanged
        bulkhead_metrics.observe(self)

    def _release_slot(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                bulkhead_metrics.observe(self)
                return
        self._current -= 1
        bulkhead_metrics.observe(self)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block; raises BulkheadTimeoutError."""
        await self._acquire_slot()
        try:
            yield
        finally:
            self._release_slot()

    async def execute(self, operation: Operation) -> Outcome[Any, Any]:
        """Run `operation` once a slot is free, bounded by `execution_timeout`."""
        try:
            await self._acquire_slot()
        except BulkheadTimeoutError as exc:
            return Failure(exc)
        try:
            return await run_operation(operation, timeout=self._execution_timeout)
        finally:
            self._release_slot()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "max_concurrent": self._max,
            "current_operations": self._current,
            "queue_length": self.queue_length,
        }
