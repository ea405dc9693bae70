"""
Retry policies for the catalog backend using tenacity.

A :class:`RetryPolicy` describes one phase of catalog acquisition (waking the
host, fetching the catalog) and builds a tenacity ``AsyncRetrying`` with
exponential backoff. Every scheduled backoff is recorded as a
:class:`RetryAttempt` and counted in Prometheus so cold-start behaviour is
visible after the fact.

Key Features:
- Exponential backoff via ``wait_exponential_jitter`` (jitter off by default
  so delays are deterministic)
- Attempt-count bound, optionally combined with an elapsed-time bound
- Injectable async sleep and clock so tests can simulate elapsed time,
  including the elapsed-time bound
- Only :class:`TransientCatalogError` is retried; other errors propagate
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.stop import stop_base

from zoo_portal.integrations.exceptions import TransientCatalogError
from zoo_portal.monitoring.metrics import catalog_attempts_total, catalog_backoff_seconds

logger = structlog.get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class RetryAttempt:
    """One attempt against the catalog backend."""

    phase: str
    attempt_number: int
    delay_before_next_ms: int
    outcome: str


class stop_after_elapsed(stop_base):
    """
    Stop once ``clock`` shows ``max_elapsed`` seconds since the strategy was built.

    Same bound as tenacity's ``stop_after_delay``, read from an injectable clock.
    """

    def __init__(self, max_elapsed: float, clock: Clock = time.monotonic) -> None:
        self.max_elapsed = max_elapsed
        self._clock = clock
        self._started = clock()

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self._clock() - self._started >= self.max_elapsed


class RetryPolicy:
    """
    Backoff configuration for one acquisition phase.

    Args:
        phase: Phase name used in logs, metrics and attempt records
        max_attempts: Upper bound on attempts in this phase
        initial_delay: Delay in seconds after the first failure
        max_delay: Cap on any single delay
        exponential_base: Growth factor between consecutive delays
        jitter: Maximum random seconds added to each delay
        max_elapsed: Optional bound on wall-clock seconds spent in the phase
    """

    def __init__(
        self,
        phase: str,
        max_attempts: int,
        initial_delay: float = 1.0,
        max_delay: float = 8.0,
        exponential_base: float = 2,
        jitter: float = 0.0,
        max_elapsed: Optional[float] = None
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.phase = phase
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.max_elapsed = max_elapsed

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(phase={self.phase!r}, max_attempts={self.max_attempts}, "
            f"initial_delay={self.initial_delay}, max_delay={self.max_delay})"
        )

    def delay_for(self, attempt_number: int) -> float:
        """Backoff scheduled after failed attempt ``attempt_number`` (jitter excluded)."""
        delay = self.initial_delay * self.exponential_base ** (attempt_number - 1)
        return min(delay, self.max_delay)

    def build(
        self,
        history: List[RetryAttempt],
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = time.monotonic
    ) -> AsyncRetrying:
        """
        Build a tenacity ``AsyncRetrying`` for this phase.

        Args:
            history: List receiving a :class:`RetryAttempt` per scheduled backoff
            sleep: Coroutine function used for backoff sleeps
            clock: Clock measuring the elapsed-time bound from this call on
        """
        stop = stop_after_attempt(self.max_attempts)
        if self.max_elapsed is not None:
            stop = stop | stop_after_elapsed(self.max_elapsed, clock)

        return AsyncRetrying(
            stop=stop,
            wait=wait_exponential_jitter(
                initial=self.initial_delay,
                max=self.max_delay,
                exp_base=self.exponential_base,
                jitter=self.jitter
            ),
            retry=retry_if_exception_type(TransientCatalogError),
            before_sleep=self._before_sleep_callback(history),
            sleep=sleep,
            reraise=True
        )

    def _before_sleep_callback(self, history: List[RetryAttempt]):
        def callback(retry_state: RetryCallState) -> None:
            exception = retry_state.outcome.exception() if retry_state.outcome else None
            delay = getattr(retry_state.next_action, 'sleep', 0.0) or 0.0

            history.append(RetryAttempt(
                phase=self.phase,
                attempt_number=retry_state.attempt_number,
                delay_before_next_ms=int(round(delay * 1000)),
                outcome=f"failed: {type(exception).__name__}" if exception else 'failed'
            ))
            catalog_attempts_total.labels(phase=self.phase, outcome='retrying').inc()
            catalog_backoff_seconds.labels(phase=self.phase).observe(delay)

            logger.warning(
                "Catalog attempt failed, backing off",
                phase=self.phase,
                attempt_number=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                backoff_seconds=delay,
                exception_type=type(exception).__name__ if exception else None,
                exception_message=str(exception) if exception else None
            )

        return callback


__all__ = ['Clock', 'RetryAttempt', 'RetryPolicy', 'Sleeper', 'stop_after_elapsed']
