"""
Interval rate limiter for BigCommerce requests.

BigCommerce throttles the V2 and V3 APIs separately, so each endpoint class
keeps its own "last request" timestamp. The check, the sleep and the
timestamp update all happen under that class's lock: batch workers running
in parallel queue up behind each other instead of reading the same stale
timestamp and bursting together.
"""
import logging
import threading
import time
from typing import Callable, Dict

logger = logging.getLogger(__name__)

V2 = 'v2'
V3 = 'v3'


class IntervalRateLimiter:
    """
    Enforce a minimum spacing between requests of the same endpoint class.

    Not a token bucket: there is no burst allowance, no backoff and no
    jitter. Waiters are released in lock acquisition order.
    """

    def __init__(
        self,
        intervals: Dict[str, float],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            intervals: Minimum seconds between requests, keyed by endpoint class
            clock: Monotonic time source (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        self.intervals = dict(intervals)
        self._clock = clock
        self._sleep = sleep
        self._locks = {name: threading.Lock() for name in self.intervals}
        self._last_request = {name: None for name in self.intervals}

    def acquire(self, endpoint_class: str) -> float:
        """
        Block until the endpoint class may send another request.

        Returns:
            Seconds spent waiting
        """
        if endpoint_class not in self.intervals:
            raise ValueError(f"Unknown endpoint class: {endpoint_class}")

        interval = self.intervals[endpoint_class]
        waited = 0.0

        with self._locks[endpoint_class]:
            last = self._last_request[endpoint_class]
            if last is not None:
                elapsed = self._clock() - last
                if elapsed < interval:
                    waited = interval - elapsed
                    self._sleep(waited)
            self._last_request[endpoint_class] = self._clock()

        if waited:
            logger.debug(f"Rate limiter delayed {endpoint_class} request by {waited:.3f}s")
        return waited

    def reset(self) -> None:
        """Forget all recorded request times."""
        for name in self._last_request:
            with self._locks[name]:
                self._last_request[name] = None


def init_rate_limiter(app) -> IntervalRateLimiter:
    """Create the process-wide limiter from config and attach it to the app."""
    limiter = IntervalRateLimiter({
        V2: app.config.get('BIGCOMMERCE_V2_MIN_INTERVAL', 0.25),
        V3: app.config.get('BIGCOMMERCE_V3_MIN_INTERVAL', 0.2),
    })
    app.extensions['bigcommerce_rate_limiter'] = limiter
    return limiter
