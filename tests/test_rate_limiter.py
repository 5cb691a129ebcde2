import pytest

from prompter.errors import GenerationFailure, RateLimitExceeded
from prompter.services.rate_limiter import WINDOW_SECONDS, RollingWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def test_twenty_first_call_in_an_hour_is_refused():
    clock = FakeClock()
    limiter = RollingWindowRateLimiter(20, clock=clock)

    for _ in range(20):
        limiter.acquire("alice")
        clock.now += 60

    with pytest.raises(RateLimitExceeded) as excinfo:
        limiter.acquire("alice")

    assert excinfo.value.status_code == 429
    assert "20" in str(excinfo.value)
    assert isinstance(excinfo.value, GenerationFailure)


def test_calls_expire_after_the_window():
    clock = FakeClock()
    limiter = RollingWindowRateLimiter(2, clock=clock)
    limiter.acquire("bob")
    clock.now += 10
    limiter.acquire("bob")
    assert not limiter.check("bob")

    clock.now += WINDOW_SECONDS - 10
    assert limiter.check("bob")  # first call is exactly one hour old
    limiter.acquire("bob")
    assert not limiter.check("bob")


def test_keys_are_independent():
    limiter = RollingWindowRateLimiter(1, clock=FakeClock())
    limiter.acquire("a")

    limiter.acquire("b")
    assert not limiter.check("a")


def test_usage_reports_remaining():
    limiter = RollingWindowRateLimiter(3, clock=FakeClock())
    limiter.acquire("carol")

    status = limiter.usage("carol")

    assert (status.used, status.limit, status.remaining) == (1, 3, 2)


def test_zero_limit_refuses_everything():
    limiter = RollingWindowRateLimiter(0)

    with pytest.raises(RateLimitExceeded):
        limiter.acquire("anyone")


def test_negative_limit_rejected():
    with pytest.raises(ValueError):
        RollingWindowRateLimiter(-1)
