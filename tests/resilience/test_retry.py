import pytest

from recoverkit.core.outcome import Failure, Success
from recoverkit.resilience import retry
from recoverkit.resilience.retry.backoff import proportional_jitter
from recoverkit.resilience.retry.strategies import RetryPolicies, RetryPolicy


def test_exponential_delays_without_jitter():
    policy = RetryPolicy(max_attempts=3, delay=0.1, backoff_multiplier=2, jitter=False)

    assert policy.get_delay(1) == pytest.approx(0.1)
    assert policy.get_delay(2) == pytest.approx(0.2)
    assert policy.get_delay(3) == pytest.approx(0.4)
    assert policy.should_retry(2) is True
    assert policy.should_retry(3) is False


def test_exponential_delay_capped_by_max_delay():
    policy = RetryPolicy.exponential_backoff(
        max_attempts=10, initial_delay=1.0, max_delay=5.0, jitter=False
    )

    assert [round(d, 3) for d in policy.delays()] == [1, 2, 4, 5, 5, 5, 5, 5, 5]


def test_linear_and_fixed_delays():
    linear = RetryPolicy.linear_backoff(max_attempts=4, base_delay=0.5, max_delay=1.2)
    fixed = RetryPolicy(max_attempts=3, delay=0.3)

    assert list(linear.delays()) == [0.5, 1.0, 1.2]
    assert list(fixed.delays()) == [0.3, 0.3]


def test_no_delay_means_immediate_retries():
    policy = RetryPolicy.immediate(max_attempts=3)

    assert policy.get_delay(1) == 0.0
    assert policy.retries_remaining(1) == 2
    assert policy.retries_remaining(5) == 0


def test_jitter_stays_within_half_to_one_and_a_half():
    policy = RetryPolicy.exponential_backoff(max_attempts=3, initial_delay=1.0)

    for _ in range(200):
        assert 0.5 <= policy.get_delay(1) < 1.5


def test_proportional_jitter_uses_given_rng():
    class FixedRandom:
        def random(self):
            return 0.25

    assert proportional_jitter(2.0, rng=FixedRandom()) == pytest.approx(1.5)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"max_attempts": 2, "delay": -1},
        {"max_attempts": 2, "backoff_multiplier": 0.5},
        {"max_attempts": 2, "max_delay": -0.1},
        {"max_attempts": 2, "delay": 1.0, "backoff_multiplier": 2.0, "linear": True},
    ],
)
def test_invalid_policies_rejected(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_exponential_backoff_requires_growth():
    with pytest.raises(ValueError):
        RetryPolicy.exponential_backoff(max_attempts=3, initial_delay=1.0, backoff_multiplier=1.0)


def test_presets():
    assert RetryPolicies.NONE.max_attempts == 1
    assert RetryPolicies.ONCE.max_attempts == 2
    assert RetryPolicies.ONCE.get_delay(1) == 0.0
    assert RetryPolicies.STANDARD.get_delay(2) == 1.0
    assert RetryPolicies.CONSERVATIVE.linear is True
    assert RetryPolicies.AGGRESSIVE.max_attempts == 5


def test_from_settings():
    from recoverkit.core.config import Settings

    settings = Settings(
        RETRY_MAX_ATTEMPTS=4,
        RETRY_BACKOFF_BASE_SECONDS=0.5,
        RETRY_BACKOFF_MULTIPLIER=3.0,
        RETRY_BACKOFF_MAX_SECONDS=2.0,
        RETRY_USE_JITTER=False,
    )
    policy = RetryPolicy.from_settings(settings)

    assert list(policy.delays()) == [0.5, 1.5, 2.0]


async def test_retry_retries_on_exception(sleeps):
    calls = {"n": 0}

    @retry(max_attempts=3, exceptions=(RuntimeError,))
    async def sometimes_fails():
        calls["n"] += 1
        if calls["n"] < 3:
            raise RuntimeError("fail")
        return "ok"

    result = await sometimes_fails()
    assert result == Success("ok")
    assert calls["n"] == 3
    assert len(sleeps) == 2


async def test_retry_gives_up(sleeps):
    calls = {"n": 0}

    @retry(max_attempts=2, exceptions=(RuntimeError,))
    async def always_fails():
        calls["n"] += 1
        raise RuntimeError("nope")

    result = await always_fails()
    assert result.is_failure
    assert isinstance(result.error, RuntimeError)
    assert str(result.error) == "nope"
    assert calls["n"] == 2


async def test_retry_skips_unlisted_exceptions(sleeps):
    calls = {"n": 0}

    @retry(max_attempts=5, exceptions=ConnectionError)
    def parse():
        calls["n"] += 1
        raise ValueError("bad input")

    result = await parse()
    assert isinstance(result, Failure)
    assert isinstance(result.error, ValueError)
    assert calls["n"] == 1
    assert sleeps == []


async def test_retry_uses_explicit_policy(sleeps):
    @retry(policy=RetryPolicy(max_attempts=3, delay=0.1, backoff_multiplier=2.0))
    async def flaky():
        raise ConnectionError("down")

    await flaky()
    assert sleeps == pytest.approx([0.1, 0.2])
    assert flaky.safe.retry_policy.max_attempts == 3
    assert flaky.__name__ == "flaky"
