"""Rate limiting for GitHub API calls."""

import asyncio
import time
from typing import Mapping, Optional

from loguru import logger


class RateLimiter:
    """Token bucket rate limiter for outbound requests."""

    def __init__(self, requests_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Acquire a token for making a request.

        Blocks until a token is available.
        """
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update

            # Refill based on elapsed time
            self.tokens = min(
                self.requests_per_second,
                self.tokens + elapsed * self.requests_per_second,
            )
            self.last_update = now

            if self.tokens >= 1:
                self.tokens -= 1
                return

            sleep_time = (1 - self.tokens) / self.requests_per_second
            await asyncio.sleep(sleep_time)
            self.tokens = 0
            self.last_update = time.monotonic()


class RateLimitPolicy:
    """Decides how the client reacts to GitHub throttling signals.

    Quota exhaustion is retried exactly once after the server-specified delay.
    Abuse detection (secondary rate limits) is only logged.
    """

    ABUSE_MARKERS = ('secondary rate limit', 'abuse')

    def __init__(self, max_retries: int = 1, max_wait: float = 900.0):
        """Initialize rate limit policy.

        Args:
            max_retries: Retries allowed after quota exhaustion
            max_wait: Upper bound for the wait before a retry, in seconds
        """
        self.max_retries = max_retries
        self.max_wait = max_wait
        self.logger = logger.bind(component='RateLimitPolicy')

    def is_abuse_limit(self, status: int, data) -> bool:
        """Check whether a response signals abuse detection."""
        if status not in (403, 429):
            return False
        message = ''
        if isinstance(data, dict):
            message = str(data.get('message', ''))
        elif isinstance(data, str):
            message = data
        message = message.lower()
        return any(marker in message for marker in self.ABUSE_MARKERS)

    def is_quota_exhausted(self, status: int, headers: Mapping[str, str]) -> bool:
        """Check whether a response signals primary quota exhaustion."""
        if status not in (403, 429):
            return False
        if headers.get('x-ratelimit-remaining') == '0':
            return True
        return status == 429 and 'retry-after' in headers

    def retry_after(self, headers: Mapping[str, str], now: Optional[float] = None) -> float:
        """Compute the delay requested by the server.

        Args:
            headers: Lower-cased response headers
            now: Current epoch time (defaults to ``time.time()``)

        Returns:
            Seconds to wait, bounded by ``max_wait``
        """
        if 'retry-after' in headers:
            try:
                return min(float(headers['retry-after']), self.max_wait)
            except ValueError:
                pass

        reset = headers.get('x-ratelimit-reset')
        if reset:
            current = time.time() if now is None else now
            try:
                return min(max(float(reset) - current, 0.0), self.max_wait)
            except ValueError:
                pass

        return min(60.0, self.max_wait)

    def on_rate_limit(
        self, retry_after: float, method: str, url: str, retry_count: int
    ) -> bool:
        """Return True if the request should be retried."""
        self.logger.warning(f'Request quota exhausted for request {method} {url}')
        if retry_count < self.max_retries:
            self.logger.info(f'Retrying after {retry_after:.0f} seconds!')
            return True
        return False

    def on_abuse_limit(self, method: str, url: str) -> None:
        self.logger.warning(f'Abuse detected for request {method} {url}')
