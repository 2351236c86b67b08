"""Per-connection inbound message throttling."""

import time
from collections.abc import Callable


class TokenBucket:
    """Token bucket: ``rate`` tokens per second, holding at most ``burst``.

    ``consume()`` spends one token and returns False once the bucket is dry.
    The clock is injectable so tests can step time explicitly.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        if rate <= 0 or burst < 1:
            raise ValueError(f"rate must be > 0 and burst >= 1, got rate={rate}, burst={burst}")
        self._rate = rate
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last_refill = clock()
        self.rejected = 0

    def consume(self) -> bool:
        now = self._clock()
        self._tokens = min(self._burst, self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now

        if self._tokens < 1.0:
            self.rejected += 1
            return False
        self._tokens -= 1.0
        return True
