"""
Centralized rate limiter for Spotify API calls.

Hey future me - this is the ONE limiter every Spotify request goes through, shared by
all incoming user requests in this process. BatchScanner bounds fan-out PER REQUEST,
this bounds it PER PROCESS.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Tokens refill at refill_rate/sec
- Each request consumes 1 token
- Empty bucket: wait until a token is available

COOL-DOWN on 429:
- We do NOT retry 429s here - the caller gets RateLimitExceededError and backs off.
- But we DO stop sending: note_rate_limited() blocks acquire() until Retry-After passed
  (or an exponential backoff when Spotify didn't send one).
- After a successful request the backoff resets.

USAGE:
    limiter = get_spotify_limiter()

    async with limiter:
        response = await client.get(url)

    # On 429:
    limiter.note_rate_limited(retry_after=5)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Defaults target Spotify: roughly 180 requests/minute, we stay conservative at
    2 req/sec sustained with bursts of 10.
    """

    max_tokens: int = 10  # Bucket size
    refill_rate: float = 2.0  # Tokens per second
    max_backoff_seconds: float = 600.0  # Spotify can send Retry-After of 5+ minutes
    initial_backoff_seconds: float = 1.0  # First 429 cool-down without Retry-After
    backoff_multiplier: float = 2.0  # Exponential backoff factor


@dataclass
class RateLimiter:
    """Token Bucket Rate Limiter with a 429 cool-down.

    Attributes:
        config: Rate limiter configuration
        _tokens: Current available tokens
        _last_refill: Last time tokens were refilled
        _current_backoff: Cool-down used for the next 429 without Retry-After
        _blocked_until: Monotonic time before which no request may start
        _lock: Async lock guarding the bucket
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _blocked_until: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)
    _name: str = field(default="default", init=False)

    def __post_init__(self) -> None:
        """Initialize tokens to max capacity."""
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        """Create rate limiter tuned for the Spotify Web API."""
        limiter = cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=2.0,
                max_backoff_seconds=600.0,
                initial_backoff_seconds=1.0,
            )
        )
        limiter._name = "spotify"
        return limiter

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        elapsed = now - self._last_refill

        new_tokens = elapsed * self.config.refill_rate
        self._tokens = min(self.config.max_tokens, self._tokens + new_tokens)
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary.

        Also waits out any cool-down set by note_rate_limited().
        """
        async with self._lock:
            cooldown = self._blocked_until - time.monotonic()
            if cooldown > 0:
                logger.debug(
                    f"RateLimiter[{self._name}]: cooling down for {cooldown:.2f}s"
                )
                # Release lock while waiting
                self._lock.release()
                try:
                    await asyncio.sleep(cooldown)
                finally:
                    await self._lock.acquire()

            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    f"RateLimiter[{self._name}]: No tokens available, "
                    f"waiting {wait_time:.2f}s"
                )

                self._lock.release()
                try:
                    await asyncio.sleep(wait_time)
                finally:
                    await self._lock.acquire()

                self._refill_tokens()

            self._tokens -= 1.0
            logger.debug(
                f"RateLimiter[{self._name}]: Token acquired, "
                f"{self._tokens:.1f} remaining"
            )

    def note_rate_limited(self, retry_after: int | None = None) -> float:
        """Record a 429 response and block new requests for a while.

        Args:
            retry_after: Retry-After header from the API response (seconds)

        Returns:
            The cool-down applied, in seconds
        """
        if retry_after is not None:
            wait_time = float(retry_after)
        else:
            wait_time = self._current_backoff

        wait_time = min(wait_time, self.config.max_backoff_seconds)

        logger.warning(
            f"RateLimiter[{self._name}]: 429 Rate Limited! "
            f"Pausing new requests for {wait_time:.1f}s "
            f"(backoff level: {self._current_backoff:.1f}s)"
        )

        self._current_backoff = min(
            self._current_backoff * self.config.backoff_multiplier,
            self.config.max_backoff_seconds,
        )
        self._tokens = 0.0
        self._blocked_until = max(self._blocked_until, time.monotonic() + wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        """Enter async context - acquire token."""
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Exit async context."""
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Get current available tokens (for debugging)."""
        self._refill_tokens()
        return self._tokens

    @property
    def current_backoff(self) -> float:
        """Cool-down the next 429 without Retry-After would get."""
        return self._current_backoff

    @property
    def name(self) -> str:
        """Get limiter name for logging."""
        return self._name


# Module-level singleton, shared by every SpotifyClient in the process.
_spotify_limiter: RateLimiter | None = None


def get_spotify_limiter() -> RateLimiter:
    """Get singleton Spotify rate limiter."""
    global _spotify_limiter
    if _spotify_limiter is None:
        _spotify_limiter = RateLimiter.for_spotify()
    return _spotify_limiter


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "get_spotify_limiter",
]
