import asyncio

import pytest
import structlog
from prometheus_client import REGISTRY

from recoverkit.core.outcome import Failure, Success
from recoverkit.resilience.adaptive.classifier import DefaultErrorClassifier
from recoverkit.resilience.circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from recoverkit.resilience.circuit_breaker.policies import ErrorWindowPolicy
from recoverkit.resilience.errors import CircuitOpenError, ResilienceErrorKind


async def failing():
    return Failure(ConnectionError("boom"))


async def succeeding():
    return Success("ok")


def make_breaker(name, clock, **config):
    config.setdefault("failure_threshold", 2)
    config.setdefault("timeout", 10.0)
    config.setdefault("success_threshold", 2)
    return CircuitBreaker(name=name, config=CircuitBreakerConfig(**config), clock=clock)


async def test_opens_after_failure_threshold(clock):
    cb = make_breaker("cb-open", clock)

    await cb.execute(failing)
    assert cb.state == CircuitState.CLOSED
    await cb.execute(failing)
    assert cb.state == CircuitState.OPEN
    assert cb.failure_count == 2


async def test_open_circuit_rejects_without_running(clock):
    cb = make_breaker("cb-reject", clock, failure_threshold=1)
    await cb.execute(failing)
    calls = 0

    async def counted():
        nonlocal calls
        calls += 1
        return Success("ok")

    clock.advance(5)
    outcome = await cb.execute(counted)

    assert calls == 0
    assert isinstance(outcome.error, CircuitOpenError)
    assert outcome.error.kind is ResilienceErrorKind.CIRCUIT_OPEN
    assert outcome.error.remaining_seconds == pytest.approx(5.0)
    assert cb.state == CircuitState.OPEN
    assert cb.failure_count == 1


async def test_circuit_closes_after_half_open_successes(clock):
    cb = make_breaker("cb-close", clock, failure_threshold=1)
    await cb.execute(failing)

    clock.advance(10)
    assert await cb.execute(succeeding) == Success("ok")
    assert cb.state == CircuitState.HALF_OPEN
    assert await cb.execute(succeeding) == Success("ok")
    assert cb.state == CircuitState.CLOSED
    assert cb.failure_count == 0
    assert cb.success_count == 0


async def test_half_open_failure_reopens(clock):
    cb = make_breaker("cb-reopen", clock, failure_threshold=1)
    await cb.execute(failing)

    clock.advance(10)
    await cb.execute(failing)
    assert cb.state == CircuitState.OPEN

    # Timeout restarts from the reopening
    clock.advance(5)
    assert isinstance((await cb.execute(succeeding)).error, CircuitOpenError)


async def test_success_in_closed_resets_failure_count(clock):
    cb = make_breaker("cb-reset-count", clock, failure_threshold=3)

    await cb.execute(failing)
    await cb.execute(failing)
    await cb.execute(succeeding)
    await cb.execute(failing)
    await cb.execute(failing)

    assert cb.state == CircuitState.CLOSED
    assert cb.failure_count == 2


async def test_failures_outside_time_window_do_not_open(clock):
    cb = make_breaker("cb-window", clock, failure_threshold=2, time_window=5.0)

    await cb.execute(failing)
    clock.advance(6)
    await cb.execute(failing)

    assert cb.state == CircuitState.CLOSED


async def test_raised_exception_counts_as_failure(clock):
    cb = make_breaker("cb-raise", clock, failure_threshold=1)

    async def raising():
        raise TimeoutError("slow")

    outcome = await cb.execute(raising)

    assert isinstance(outcome.error, TimeoutError)
    assert cb.state == CircuitState.OPEN


async def test_ignored_exceptions_are_not_counted(clock):
    cb = CircuitBreaker(
        name="cb-ignored",
        config=CircuitBreakerConfig(failure_threshold=1),
        ignored_exceptions=(KeyError,),
        clock=clock,
    )

    async def missing():
        return Failure(KeyError("id"))

    await cb.execute(missing)
    assert cb.state == CircuitState.CLOSED


async def test_classifier_filters_permanent_errors(clock):
    cb = CircuitBreaker(
        name="cb-classifier",
        config=CircuitBreakerConfig(failure_threshold=1),
        classifier=DefaultErrorClassifier(),
        clock=clock,
    )

    async def invalid():
        return Failure(ValueError("bad request"))

    await cb.execute(invalid)
    assert cb.state == CircuitState.CLOSED
    await cb.execute(failing)
    assert cb.state == CircuitState.OPEN


async def test_half_open_admits_a_single_concurrent_probe(clock):
    cb = make_breaker("cb-probe", clock, failure_threshold=1, success_threshold=1)
    await cb.execute(failing)
    clock.advance(10)

    release = asyncio.Event()

    async def slow_probe():
        await release.wait()
        return Success("probe")

    probe = asyncio.create_task(cb.execute(slow_probe))
    await asyncio.sleep(0)
    assert cb.state == CircuitState.HALF_OPEN

    rejected = await cb.execute(succeeding)
    assert isinstance(rejected.error, CircuitOpenError)

    release.set()
    assert await probe == Success("probe")
    assert cb.state == CircuitState.CLOSED


async def test_state_change_callback(clock):
    changes = []
    cb = CircuitBreaker(
        name="cb-callback",
        config=CircuitBreakerConfig(failure_threshold=1, timeout=1.0, success_threshold=1),
        on_state_change=lambda old, new: changes.append((old, new)),
        clock=clock,
    )

    await cb.execute(failing)
    clock.advance(1)
    await cb.execute(succeeding)

    assert changes == [
        (CircuitState.CLOSED, CircuitState.OPEN),
        (CircuitState.OPEN, CircuitState.HALF_OPEN),
        (CircuitState.HALF_OPEN, CircuitState.CLOSED),
    ]


async def test_execute_safe_and_decorate(clock):
    cb = make_breaker("cb-safe", clock, failure_threshold=1)

    def boom():
        raise ConnectionError("refused")

    outcome = await cb.execute_safe(boom)
    assert isinstance(outcome.error, ConnectionError)
    assert cb.state == CircuitState.OPEN

    cb.reset()
    assert cb.state == CircuitState.CLOSED

    @cb.decorate
    async def lookup(key):
        return Success(key.upper())

    assert await lookup("a") == Success("A")
    assert cb.snapshot()["state"] == "closed"


def test_incompatible_error_type_rejected_at_construction():
    class DomainError(Exception):
        pass

    with pytest.raises(TypeError):
        CircuitBreaker(name="cb-typed", error_type=DomainError)


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        CircuitBreakerConfig(failure_threshold=0)
    with pytest.raises(ValueError):
        CircuitBreakerConfig(success_threshold=0)


def test_error_window_policy_prunes_old_failures(clock):
    policy = ErrorWindowPolicy(window_seconds=10, max_failures=2, clock=clock)

    policy.record_failure()
    clock.advance(11)
    policy.record_failure()
    assert len(policy) == 1
    assert policy.should_open() is False

    policy.record_failure()
    assert policy.should_open() is True


async def test_transitions_and_rejections_exported(clock):
    cb = make_breaker("cb-metrics", clock, failure_threshold=1)

    await cb.execute(failing)
    await cb.execute(succeeding)

    def sample(name, **labels):
        return REGISTRY.get_sample_value(name, {"circuit": "cb-metrics", **labels})

    assert sample("recoverkit_circuit_state") == 1.0
    assert sample(
        "recoverkit_circuit_transitions_total", from_state="closed", to_state="open"
    ) == 1.0
    assert sample("recoverkit_circuit_calls_total", result="failure") == 1.0
    assert sample("recoverkit_circuit_rejected_total") == 1.0


async def test_stale_result_does_not_decide_half_open(clock):
    cb = make_breaker("cb-stale", clock, failure_threshold=2, success_threshold=1)
    release_slow = asyncio.Event()
    release_probe = asyncio.Event()

    async def slow_success():
        await release_slow.wait()
        return Success("slow")

    async def held_probe():
        await release_probe.wait()
        return Success("probe")

    slow = asyncio.create_task(cb.execute(slow_success))
    await asyncio.sleep(0)

    await cb.execute(failing)
    await cb.execute(failing)
    assert cb.state == CircuitState.OPEN

    clock.advance(10)
    probe = asyncio.create_task(cb.execute(held_probe))
    await asyncio.sleep(0)
    assert cb.state == CircuitState.HALF_OPEN

    # Admitted while CLOSED, finishes while the probe is still running
    release_slow.set()
    assert await slow == Success("slow")
    assert cb.state == CircuitState.HALF_OPEN

    release_probe.set()
    assert await probe == Success("probe")
    assert cb.state == CircuitState.CLOSED


async def test_stale_failure_does_not_reopen(clock):
    cb = make_breaker("cb-stale-failure", clock, failure_threshold=1, success_threshold=2)
    release_slow = asyncio.Event()

    async def slow_failure():
        await release_slow.wait()
        return Failure(ConnectionError("late"))

    slow = asyncio.create_task(cb.execute(slow_failure))
    await asyncio.sleep(0)

    await cb.execute(failing)
    clock.advance(10)
    await cb.execute(succeeding)
    assert cb.state == CircuitState.HALF_OPEN

    release_slow.set()
    await slow
    assert cb.state == CircuitState.HALF_OPEN
    assert cb.success_count == 1


async def test_reset_clears_closed_counters_and_logs(clock):
    cb = make_breaker("cb-reset", clock, failure_threshold=3)
    await cb.execute(failing)
    assert cb.failure_count == 1

    with structlog.testing.capture_logs() as captured:
        cb.reset()

    assert cb.state == CircuitState.CLOSED
    assert cb.failure_count == 0
    assert {"event": "circuit_reset", "circuit": "cb-reset", "log_level": "info"} in captured
