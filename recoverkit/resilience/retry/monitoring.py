from __future__ import annotations

from prometheus_client import Counter


class _RetryMetrics:
    def __init__(self) -> None:
        self.retry_attempts_total = Counter(
            "recoverkit_retry_attempts_total",
            "Retries scheduled after a failed attempt",
            ["operation"],
        )
        self.retry_exhausted_total = Counter(
            "recoverkit_retry_exhausted_total",
            "Calls that failed after their final attempt",
            ["operation", "reason"],
        )

    def inc_attempt(self, operation: str) -> None:
        self.retry_attempts_total.labels(operation=operation).inc()

    def inc_exhausted(self, operation: str, reason: str) -> None:
        self.retry_exhausted_total.labels(operation=operation, reason=reason).inc()


retry_metrics = _RetryMetrics()
