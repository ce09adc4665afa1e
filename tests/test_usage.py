"""
Tests for API cost protection.
"""
import pytest

from voice_agent.usage import UsageGuard, estimate_cost, estimate_tokens


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_estimates():
    assert estimate_tokens(0) == 0
    assert estimate_tokens(3) == 2
    assert estimate_cost(1000, 1000) == pytest.approx(0.018)


def test_cooldown_blocks_quick_followup(clock):
    guard = UsageGuard(cooldown_ms=2000, now=clock)
    assert guard.check() is None
    guard.reserve()

    clock.now += 1.0
    assert guard.check() == "Please wait before speaking again..."

    clock.now += 1.5
    assert guard.check() is None


def test_rate_limit_uses_rolling_window(clock):
    guard = UsageGuard(rate_limit_per_minute=2, cooldown_ms=0, now=clock)
    guard.reserve()
    clock.now += 10
    guard.reserve()

    assert guard.check() == "Rate limit reached (2/min). Please wait."

    clock.now += 51
    assert guard.check() is None


def test_session_cost_limit(clock):
    guard = UsageGuard(cooldown_ms=0, session_cost_limit=0.01, now=clock)
    guard.reserve()
    guard.record_cost(input_chars=2000, output_chars=2000)

    assert guard.check() == "Session cost limit ($0.01) reached. Adjust in Settings."
    assert guard.stats()["requests"] == 1


def test_reset_clears_everything(clock):
    guard = UsageGuard(rate_limit_per_minute=1, session_cost_limit=0.0001, now=clock)
    guard.reserve()
    guard.record_cost(1000, 1000)

    guard.reset()

    assert guard.check() is None
    assert guard.stats() == {"cost": 0.0, "requests": 0}
