"""Per-connection message throttling."""

import time


class TokenBucket:
    """Token bucket limiter for inbound websocket frames.

    The bucket starts full at `burst` tokens and refills continuously at
    `rate` tokens per second, never above `burst`. Card drags send a burst
    of position updates, so the burst is what absorbs them.
    """

    def __init__(self, rate: float, burst: int) -> None:
        if rate <= 0 or burst < 1:
            raise ValueError(f"rate must be positive and burst at least 1, got rate={rate} burst={burst}")
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()

    @property
    def tokens(self) -> float:
        return self._tokens

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self._burst, self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now

    def consume(self) -> bool:
        """Take one token. False means the frame should be rejected."""
        self._refill()
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True
