from __future__ import annotations

from typing import Any, Dict, List, Optional

from prometheus_client import Counter

from recoverkit.utils.logger import get_logger

logger = get_logger(__name__)

alerts_fired_total = Counter(
    "recoverkit_alerts_fired_total",
    "Resilience alerts fired",
    ["severity"],
)


class AlertManager:
    """Structured-log alert sink.

    Hook a pager or chat integration in through `sinks`; each sink receives
    the same (title, severity, context) triple that is logged.
    """

    def __init__(self, sinks: Optional[List[Any]] = None) -> None:
        self._sinks = list(sinks or [])
        self.fired = 0

    def add_sink(self, sink: Any) -> None:
        self._sinks.append(sink)

    def fire(
        self,
        title: str,
        *,
        severity: str = "warning",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        logger.warning("resilience_alert", title=title, severity=severity, **ctx)
        self.fired += 1
        alerts_fired_total.labels(severity=severity).inc()
        for sink in self._sinks:
            try:
                sink(title, severity, ctx)
            except Exception as exc:  # noqa: BLE001
                logger.error("alert_sink_error", title=title, error=str(exc))
