"""
Moving-window submission rate limiting on top of the ``limits`` library.

Every guarded form class is limited independently per client scope. Attempts
are stored as moving-window entries in a ``limits`` storage (in process memory
by default) that expires them once they leave the window, so idle scopes cost
nothing after the window has passed.

Recording and querying are separate operations so the caller decides whether a
rejected attempt counts. The SubmissionController only records attempts that
passed the limit check.
"""

import threading
import time
from typing import Callable, Dict, Hashable, Optional

import structlog
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, storage_from_string
from limits.strategies import MovingWindowRateLimiter

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_SECONDS = 10
DEFAULT_STORAGE_URI = 'memory://'
NAMESPACE = 'zoo-portal-submissions'
GLOBAL_SCOPE = 'global'


def _rate_limit_item(max_attempts: int, window_seconds: int) -> RateLimitItemPerSecond:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if window_seconds < 1 or int(window_seconds) != window_seconds:
        raise ValueError("window_seconds must be a positive whole number of seconds")
    return RateLimitItemPerSecond(max_attempts, int(window_seconds), namespace=NAMESPACE)


class RateLimiter:
    """
    Moving-window counter for one form class and client scope.

    The window itself lives in the ``limits`` storage behind ``strategy``;
    limiters handed out for the same form class and scope share it.

    Args:
        max_attempts: Attempts allowed inside the window before limiting
        window_seconds: Length of the moving window in whole seconds
        form_class: Form class the attempts belong to
        scope: Client scope, e.g. one per browser session
        strategy: Shared moving-window strategy; a private in-memory one if omitted
        clock: Wall clock matching the storage's timestamps

    Example:
        limiter = RateLimiter(form_class='booking')
        if limiter.is_limited():
            raise RateLimitExceededError("slow down", retry_after=limiter.retry_after())
        limiter.record_attempt()
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        form_class: str = 'default',
        scope: Optional[Hashable] = None,
        strategy: Optional[MovingWindowRateLimiter] = None,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.item = _rate_limit_item(max_attempts, window_seconds)
        self.max_attempts = max_attempts
        self.window_seconds = int(window_seconds)
        self.form_class = str(form_class)
        self._strategy = strategy or MovingWindowRateLimiter(MemoryStorage())
        self._identifiers = (self.form_class, GLOBAL_SCOPE if scope is None else str(scope))
        self._clock = clock

    def record_attempt(self) -> bool:
        """
        Record one attempt.

        Returns:
            False when the window was already full and nothing was recorded
        """
        return self._strategy.hit(self.item, *self._identifiers)

    def is_limited(self) -> bool:
        return not self._strategy.test(self.item, *self._identifiers)

    def remaining(self) -> int:
        """Attempts still allowed inside the current window."""
        stats = self._strategy.get_window_stats(self.item, *self._identifiers)
        return max(0, stats.remaining)

    def retry_after(self) -> float:
        """Seconds until the oldest attempt in a full window expires."""
        stats = self._strategy.get_window_stats(self.item, *self._identifiers)
        if stats.remaining > 0:
            return 0.0
        return max(0.0, stats.reset_time - self._clock())

    def reset(self) -> None:
        self._strategy.clear(self.item, *self._identifiers)


class RateLimiterRegistry:
    """
    Hands out limiters per (scope, form class) and one submission lock per
    form class.

    ``scope`` separates independent clients, e.g. one per browser session on
    the server. In-process callers use the default scope. All limiters share
    one ``limits`` storage, so the registry itself holds no per-scope state.

    Args:
        max_attempts: Threshold applied to every limiter
        window_seconds: Window applied to every limiter
        storage_uri: ``limits`` storage URI, e.g. ``memory://``
        clock: Wall clock matching the storage's timestamps
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        storage_uri: str = DEFAULT_STORAGE_URI,
        clock: Callable[[], float] = time.time
    ) -> None:
        _rate_limit_item(max_attempts, window_seconds)
        self.max_attempts = max_attempts
        self.window_seconds = int(window_seconds)
        self.storage = storage_from_string(storage_uri)
        self.strategy = MovingWindowRateLimiter(self.storage)
        self._clock = clock
        # Keyed by form class only, so the map stays as small as the set of forms
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

        logger.info(
            "Rate limiting configured",
            max_attempts=max_attempts,
            window_seconds=self.window_seconds,
            storage=type(self.storage).__name__
        )

    def limiter_for(self, form_class: str, scope: Optional[Hashable] = None) -> RateLimiter:
        return RateLimiter(
            self.max_attempts,
            self.window_seconds,
            form_class=str(form_class),
            scope=scope,
            strategy=self.strategy,
            clock=self._clock
        )

    def lock_for(self, form_class: str) -> threading.Lock:
        """Lock serialising check-then-commit sequences of one form class."""
        with self._guard:
            return self._locks.setdefault(str(form_class), threading.Lock())

    def reset(self) -> None:
        self.storage.reset()


__all__ = [
    'DEFAULT_MAX_ATTEMPTS',
    'DEFAULT_WINDOW_SECONDS',
    'DEFAULT_STORAGE_URI',
    'RateLimiter',
    'RateLimiterRegistry',
]
