"""Per-owner fixed-window rate limiter with a backoff ladder.

One instance guards one remote API. State is keyed by owner so that two
owners never contend; instances are process-scoped and handed to the
services that need them.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from app.domain.exceptions import (
    ContentSourceThrottledError,
    EmbeddingProviderError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BACKOFF_LADDER: tuple[float, ...] = (1.0, 2.0, 4.0, 8.0, 16.0)


def is_provider_throttle(exc: BaseException) -> bool:
    """Whether a downstream error is the provider asking us to slow down."""
    if isinstance(exc, ContentSourceThrottledError):
        return True
    if isinstance(exc, EmbeddingProviderError):
        # A 429 for an exhausted quota is terminal, not throttling.
        return exc.status_code == 429 and exc.code != "insufficient_quota"
    return False


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """Allows ``max_requests`` per ``window_seconds`` per owner.

    The window resets lazily on the first request after it expired. When
    the limit is hit the caller sleeps ``backoff_ladder[attempt]`` and tries
    again; once the ladder is exhausted RateLimitExceededError is raised.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        backoff_ladder: Sequence[float] = DEFAULT_BACKOFF_LADDER,
        name: str = "rate_limiter",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._ladder = tuple(backoff_ladder)
        self._name = name
        self._sleep = sleep
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    @property
    def backoff_ladder(self) -> tuple[float, ...]:
        return self._ladder

    def remaining(self, owner_id: str) -> int:
        """Requests left in the owner's current window."""
        window = self._current_window(owner_id)
        return max(self._max_requests - window.count, 0)

    def reset(self, owner_id: str | None = None) -> None:
        """Forget window state for one owner, or for everyone."""
        if owner_id is None:
            self._windows.clear()
        else:
            self._windows.pop(owner_id, None)

    async def acquire(self, owner_id: str, attempt: int = 0) -> None:
        """Take one request slot for ``owner_id``, backing off while over the limit."""
        while True:
            window = self._current_window(owner_id)
            if window.count < self._max_requests:
                window.count += 1
                return
            if attempt >= len(self._ladder):
                logger.warning(
                    "[%s] Local limit still hit for owner %s after %d attempts",
                    self._name, owner_id, attempt + 1,
                )
                raise RateLimitExceededError(owner_id, attempt + 1)
            delay = self._ladder[attempt]
            logger.info(
                "[%s] Limit of %d/%ss reached for owner %s, backing off %.1fs",
                self._name, self._max_requests, self._window_seconds, owner_id, delay,
            )
            await self._sleep(delay)
            attempt += 1

    async def execute(self, owner_id: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` under the limit, retrying on provider throttling.

        Provider throttling (see ``is_provider_throttle``) walks the same
        backoff ladder as local limiting. Any other exception propagates.
        """
        attempt = 0
        while True:
            await self.acquire(owner_id)
            try:
                return await call()
            except Exception as exc:
                if not is_provider_throttle(exc):
                    raise
                if attempt >= len(self._ladder):
                    logger.warning(
                        "[%s] Provider still throttling owner %s after %d attempts",
                        self._name, owner_id, attempt + 1,
                    )
                    raise RateLimitExceededError(owner_id, attempt + 1) from exc
                delay = self._ladder[attempt]
                logger.info(
                    "[%s] Provider throttled owner %s, retrying in %.1fs",
                    self._name, owner_id, delay,
                )
                await self._sleep(delay)
                attempt += 1

    def _current_window(self, owner_id: str) -> _Window:
        now = self._clock()
        window = self._windows.get(owner_id)
        if window is None or now - window.started_at >= self._window_seconds:
            window = _Window(started_at=now)
            self._windows[owner_id] = window
        return window
