from __future__ import annotations

from typing import Any, Dict, Optional

from recoverkit.utils.logger import get_logger

from ..adaptive.recovery import AdaptiveRecovery
from ..bulkhead.isolator import Bulkhead
from ..circuit_breaker.breaker import CircuitBreaker, CircuitState
from .alerts import AlertManager

logger = get_logger(__name__)


class ResilienceHealthChecker:
    """Collects health indicators for registered resilience components."""

    def __init__(self, alerts: Optional[AlertManager] = None) -> None:
        self.alerts = alerts or AlertManager()
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._bulkheads: Dict[str, Bulkhead] = {}
        self._recoveries: Dict[str, AdaptiveRecovery] = {}

    def register_breaker(self, breaker: CircuitBreaker) -> None:
        self._breakers[breaker.name] = breaker

    def register_bulkhead(self, bulkhead: Bulkhead) -> None:
        self._bulkheads[bulkhead.name] = bulkhead

    def register_adaptive(self, name: str, recovery: AdaptiveRecovery) -> None:
        self._recoveries[name] = recovery

    @property
    def healthy(self) -> bool:
        return all(b.state is not CircuitState.OPEN for b in self._breakers.values())

    async def snapshot(self) -> Dict[str, Any]:
        """
        Build a point-in-time snapshot of resilience health.
        Fires one alert per breaker currently OPEN.
        """
        data: Dict[str, Any] = {
            "circuits": {},
            "bulkheads": {},
            "adaptive": {},
        }
        for name, breaker in self._breakers.items():
            snap = breaker.snapshot()
            data["circuits"][name] = snap
            if breaker.state is CircuitState.OPEN:
                self.alerts.fire(
                    f"Circuit {name} is open",
                    severity="critical",
                    context={
                        "circuit": name,
                        "failure_count": snap["failure_count"],
                    },
                )
        for name, bulkhead in self._bulkheads.items():
            data["bulkheads"][name] = bulkhead.snapshot()
        for name, recovery in self._recoveries.items():
            data["adaptive"][name] = recovery.get_statistics()
        data["healthy"] = self.healthy
        logger.debug(
            "resilience_snapshot",
            circuits=len(self._breakers),
            bulkheads=len(self._bulkheads),
            healthy=data["healthy"],
        )
        return data
