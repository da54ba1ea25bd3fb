from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge

if TYPE_CHECKING:
    from .breaker import CircuitState

# Gauge encoding: 0 closed, 0.5 probing, 1 open
_GAUGE_VALUE = {
    "closed": 0.0,
    "half_open": 0.5,
    "open": 1.0,
}


class _CircuitMetrics:
    def __init__(self) -> None:
        self.state = Gauge(
            "recoverkit_circuit_state",
            "Circuit state (0=closed, 0.5=half_open, 1=open)",
            ["circuit"],
        )
        self.transitions_total = Counter(
            "recoverkit_circuit_transitions_total",
            "State transitions per circuit",
            ["circuit", "from_state", "to_state"],
        )
        self.calls_total = Counter(
            "recoverkit_circuit_calls_total",
            "Calls that ran through the circuit, by result",
            ["circuit", "result"],
        )
        self.rejected_total = Counter(
            "recoverkit_circuit_rejected_total",
            "Calls rejected without running (open, or probe limit reached)",
            ["circuit"],
        )

    def set_state(self, circuit: str, state: "CircuitState") -> None:
        self.state.labels(circuit=circuit).set(_GAUGE_VALUE[state.value])

    def record_transition(
        self, circuit: str, old: "CircuitState", new: "CircuitState"
    ) -> None:
        self.transitions_total.labels(
            circuit=circuit, from_state=old.value, to_state=new.value
        ).inc()
        self.set_state(circuit, new)

    def inc_success(self, circuit: str) -> None:
        self.calls_total.labels(circuit=circuit, result="success").inc()

    def inc_failure(self, circuit: str) -> None:
        self.calls_total.labels(circuit=circuit, result="failure").inc()

    def inc_blocked(self, circuit: str) -> None:
        self.rejected_total.labels(circuit=circuit).inc()


circuit_metrics = _CircuitMetrics()
