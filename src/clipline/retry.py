import threading
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Capped retries with exponential backoff.

    `max_retries` counts retries after the first attempt, so a call is made
    at most `max_retries + 1` times.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    factor: float = 2.0
    sleep: Callable[[float], None] = time.sleep

    def delay(self, retry: int) -> float:
        return self.initial_delay * self.factor ** retry

    def run(self, fn: Callable[[], T], should_retry: Callable[[Exception], bool]) -> T:
        retry = 0
        while True:
            try:
                return fn()
            except Exception as exc:
                if retry >= self.max_retries or not should_retry(exc):
                    raise
                delay = self.delay(retry)
                retry += 1
                print(f"  {type(exc).__name__}: retrying in {delay:.0f}s (retry {retry}/{self.max_retries})...")
                self.sleep(delay)


@dataclass
class RateLimiter:
    """Fixed-delay gate: successive `wait()` calls are spaced `min_interval` apart."""
    min_interval: float = 1.0
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _last: float | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def wait(self):
        with self._lock:
            now = self.clock()
            if self._last is not None:
                remaining = self._last + self.min_interval - now
                if remaining > 0:
                    self.sleep(remaining)
                    now += remaining
            self._last = now
