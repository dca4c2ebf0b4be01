import pytest

from nutriaccess.errors import TooManyAttempts
from nutriaccess.services.rate_limit import FailedAttemptLimiter


class FakeClock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self):
        return self.t


def test_blocks_after_max_failures_and_recovers():
    clock = FakeClock()
    limiter = FailedAttemptLimiter(max_failures=3, window_seconds=60, clock=clock)

    for _ in range(3):
        limiter.check("1.2.3.4")
        limiter.record_failure("1.2.3.4")

    with pytest.raises(TooManyAttempts) as exc:
        limiter.check("1.2.3.4")
    assert exc.value.retry_after == 60
    assert exc.value.status_code == 429

    # 다른 클라이언트는 영향 없음
    limiter.check("5.6.7.8")

    clock.t += 60
    limiter.check("1.2.3.4")


def test_success_resets_the_counter():
    limiter = FailedAttemptLimiter(max_failures=2, window_seconds=60, clock=FakeClock())
    limiter.record_failure("k")
    limiter.reset("k")
    limiter.record_failure("k")
    limiter.check("k")


def test_stale_keys_are_swept():
    clock = FakeClock()
    limiter = FailedAttemptLimiter(max_failures=5, window_seconds=60, clock=clock)
    limiter.record_failure("a")
    limiter.record_failure("b")

    clock.t += 30
    limiter.record_failure("c")
    assert set(limiter._failures) == {"a", "b", "c"}

    # 한 윈도우가 지나면 다음 기록 때 오래된 키가 사라짐
    clock.t += 40
    limiter.record_failure("d")
    assert set(limiter._failures) == {"c", "d"}
