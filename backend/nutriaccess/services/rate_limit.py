import logging
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from nutriaccess.config import LOGIN_MAX_FAILURES, LOGIN_FAILURE_WINDOW_SECONDS
from nutriaccess.errors import TooManyAttempts

logger = logging.getLogger(__name__)


class FailedAttemptLimiter:
    """
    접근 코드 추측(brute force) 방지용 슬라이딩 윈도우 제한기.
    실패만 기록하고, 성공하면 해당 키의 기록을 지웁니다. 프로세스 단위로 동작합니다.
    """

    def __init__(
        self,
        max_failures: int = LOGIN_MAX_FAILURES,
        window_seconds: int = LOGIN_FAILURE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self._clock = clock
        self._failures: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        failures = self._failures[key]
        while failures and now - failures[0] >= self.window_seconds:
            failures.popleft()
        if not failures:
            self._failures.pop(key, None)
        return failures

    def check(self, key: str) -> None:
        now = self._clock()
        failures = self._prune(key, now)
        if len(failures) >= self.max_failures:
            retry_after = max(1, int(self.window_seconds - (now - failures[0])))
            logger.warning("Blocking %s after %d failed code attempts", key, len(failures))
            raise TooManyAttempts(retry_after)

    def _sweep(self, now: float) -> None:
        # 다시 오지 않는 키가 쌓이지 않도록 윈도우마다 한 번 정리
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in list(self._failures):
            self._prune(key, now)

    def record_failure(self, key: str) -> None:
        now = self._clock()
        self._sweep(now)
        self._prune(key, now)
        self._failures[key].append(now)

    def reset(self, key: str) -> None:
        self._failures.pop(key, None)


code_attempts = FailedAttemptLimiter()
