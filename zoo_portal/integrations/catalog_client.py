"""
Resilient client for the animal catalog backend.

The catalog is served by a host that may be cold-started on first contact.
:class:`ResilientCatalogClient` therefore acquires the catalog in two phases:

1. **Waking** polls the health endpoint until it answers 2xx, backing off
   exponentially, bounded by an attempt count and an elapsed-time budget.
2. **Fetching** requests the catalog with caching disabled and retries
   transport errors, non-2xx responses and unparsable bodies with backoff up to
   its own attempt count. Fetching never falls back to Waking.

The outcome is either a parsed list of :class:`CatalogRecord` (which replaces
the attached :class:`CatalogStore` wholesale) or a terminal
:class:`CatalogUnavailableError`.

Key Features:
- httpx.AsyncClient created lazily, or injected (e.g. with a MockTransport)
- tenacity-driven backoff with an injectable sleep for simulated time
- One in-flight load at a time; concurrent callers share it, and it is only
  cancelled once every caller waiting for it has gone
- Per-attempt history, structured logs and Prometheus counters

Author: Zoo Portal Team
Version: 1.0.0
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar
from urllib.parse import urljoin

import httpx
import structlog
from pydantic import ValidationError

from zoo_portal.business.models import CatalogRecord
from zoo_portal.data.storage import CatalogStore
from zoo_portal.integrations.exceptions import (
    CatalogConnectionError,
    CatalogHTTPStatusError,
    CatalogPayloadError,
    CatalogTimeoutError,
    CatalogUnavailableError,
    TransientCatalogError,
)
from zoo_portal.integrations.retry import Clock, RetryAttempt, RetryPolicy, Sleeper
from zoo_portal.monitoring.metrics import catalog_attempts_total

logger = structlog.get_logger(__name__)

T = TypeVar('T')

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-store',
    'Pragma': 'no-cache',
    'Accept': 'application/json',
}


class CatalogState(str, Enum):
    IDLE = 'idle'
    WAKING = 'waking'
    FETCHING = 'fetching'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


class ResilientCatalogClient:
    """
    Wake-then-fetch client for the catalog service.

    Args:
        base_url: Root URL of the catalog service
        health_path: Path polled while waking the host
        catalog_path: Path returning the catalog array
        wake_policy: Backoff policy for the waking phase
        fetch_policy: Backoff policy for the fetching phase
        timeout: Per-request timeout in seconds for the lazily created client
        http_client: Optional pre-built ``httpx.AsyncClient``; not closed by us
        sleep: Coroutine function used for backoff sleeps
        catalog_store: Store replaced with the catalog after a successful load
        clock: Monotonic clock for the elapsed-time budgets

    Example:
        async with ResilientCatalogClient("https://zoo.example.com") as client:
            animals = await client.load()
    """

    def __init__(
        self,
        base_url: str,
        health_path: str = '/ping',
        catalog_path: str = '/api/animals',
        wake_policy: Optional[RetryPolicy] = None,
        fetch_policy: Optional[RetryPolicy] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleeper = asyncio.sleep,
        catalog_store: Optional[CatalogStore] = None,
        clock: Clock = time.monotonic
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.health_path = health_path
        self.catalog_path = catalog_path
        self.wake_policy = wake_policy or RetryPolicy(
            'waking', max_attempts=10, initial_delay=1.0, max_delay=8.0, max_elapsed=90.0
        )
        self.fetch_policy = fetch_policy or RetryPolicy(
            'fetching', max_attempts=3, initial_delay=1.0, max_delay=4.0
        )
        self.timeout = timeout
        self.catalog_store = catalog_store

        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep
        self._clock = clock
        self._state = CatalogState.IDLE
        self._history: List[RetryAttempt] = []
        self._inflight: Optional['asyncio.Future[List[CatalogRecord]]'] = None
        self._waiters = 0

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs) -> 'ResilientCatalogClient':
        """
        Build a client from a configuration mapping holding ``CATALOG_*`` keys.

        ``base_url`` may be passed to override ``CATALOG_BASE_URL``.
        """
        wake_policy = RetryPolicy(
            'waking',
            max_attempts=config['CATALOG_WAKE_MAX_ATTEMPTS'],
            initial_delay=config['CATALOG_WAKE_INITIAL_DELAY'],
            max_delay=config['CATALOG_WAKE_MAX_DELAY'],
            max_elapsed=config['CATALOG_WAKE_MAX_ELAPSED_SECONDS']
        )
        fetch_policy = RetryPolicy(
            'fetching',
            max_attempts=config['CATALOG_FETCH_MAX_ATTEMPTS'],
            initial_delay=config['CATALOG_FETCH_INITIAL_DELAY'],
            max_delay=config['CATALOG_FETCH_MAX_DELAY']
        )
        base_url = kwargs.pop('base_url', None) or config['CATALOG_BASE_URL']
        return cls(
            base_url,
            health_path=config['CATALOG_HEALTH_PATH'],
            catalog_path=config['CATALOG_PATH'],
            wake_policy=wake_policy,
            fetch_policy=fetch_policy,
            timeout=config['CATALOG_TIMEOUT_SECONDS'],
            **kwargs
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    @property
    def state(self) -> CatalogState:
        return self._state

    @property
    def attempts(self) -> List[RetryAttempt]:
        """History of every attempt made by this client, oldest first."""
        return list(self._history)

    def _build_url(self, path: str) -> str:
        if path.startswith(('http://', 'https://')):
            return path
        return urljoin(self.base_url + '/', path.lstrip('/'))

    async def load(self) -> List[CatalogRecord]:
        """
        Wake the backend, then fetch the catalog.

        A call made while another load is in flight awaits that load instead of
        starting a second sequence. A cancelled caller leaves the shared load
        running for the others; cancelling the last caller cancels the pending
        backoff sleep.

        Raises:
            CatalogUnavailableError: If either phase exhausts its retry budget
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._load_sequence())
            self._waiters = 0

        inflight = self._inflight
        self._waiters += 1
        try:
            return await asyncio.shield(inflight)
        except asyncio.CancelledError:
            if inflight is self._inflight and self._waiters == 1 and not inflight.done():
                inflight.cancel()
            raise
        finally:
            if inflight is self._inflight:
                self._waiters -= 1

    async def _load_sequence(self) -> List[CatalogRecord]:
        try:
            self._state = CatalogState.WAKING
            await self.ensure_awake()

            self._state = CatalogState.FETCHING
            records = await self.fetch_catalog()
        except asyncio.CancelledError:
            self._state = CatalogState.IDLE
            raise
        except Exception:
            self._state = CatalogState.FAILED
            raise

        self._state = CatalogState.SUCCEEDED
        if self.catalog_store is not None:
            self.catalog_store.replace(records)
        logger.info("Catalog loaded", record_count=len(records), attempts=len(self._history))
        return records

    async def ensure_awake(self) -> None:
        """Poll the health endpoint until it answers 2xx."""

        async def ping() -> None:
            response = await self._get(self.health_path, 'wake')
            self._raise_for_status(response, 'wake')

        await self._run(self.wake_policy, ping)

    async def fetch_catalog(self) -> List[CatalogRecord]:
        """Fetch and parse the catalog array with caching disabled."""

        async def fetch() -> List[CatalogRecord]:
            response = await self._get(self.catalog_path, 'fetch', headers=NO_CACHE_HEADERS)
            self._raise_for_status(response, 'fetch')
            payload = self._parse_json(response, 'fetch')
            if not isinstance(payload, list):
                raise CatalogPayloadError(
                    "Catalog payload is not a JSON array",
                    operation='fetch',
                    error_context={'payload_type': type(payload).__name__}
                )
            try:
                return [CatalogRecord.model_validate(item) for item in payload]
            except ValidationError as e:
                raise CatalogPayloadError(
                    f"Catalog payload failed validation: {e.error_count()} error(s)",
                    operation='fetch'
                ) from e

        return await self._run(self.fetch_policy, fetch)

    async def fetch_animal(self, animal_id: int) -> Optional[CatalogRecord]:
        """
        Fetch one animal by id.

        Returns:
            The record, or ``None`` when the service answers 404
        """
        path = f"{self.catalog_path.rstrip('/')}/{int(animal_id)}"

        async def fetch_one() -> Optional[CatalogRecord]:
            response = await self._get(path, 'fetch_animal', headers=NO_CACHE_HEADERS)
            if response.status_code == 404:
                return None
            self._raise_for_status(response, 'fetch_animal')
            payload = self._parse_json(response, 'fetch_animal')
            try:
                return CatalogRecord.model_validate(payload)
            except ValidationError as e:
                raise CatalogPayloadError("Animal payload failed validation", operation='fetch_animal') from e

        return await self._run(self.fetch_policy, fetch_one)

    async def _run(self, policy: RetryPolicy, operation: Callable[[], Awaitable[T]]) -> T:
        retrying = policy.build(self._history, sleep=self._sleep, clock=self._clock)
        attempt_number = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    result = await operation()
        except TransientCatalogError as e:
            self._history.append(RetryAttempt(
                phase=policy.phase,
                attempt_number=attempt_number,
                delay_before_next_ms=0,
                outcome=f"failed: {type(e).__name__}"
            ))
            catalog_attempts_total.labels(phase=policy.phase, outcome='exhausted').inc()
            logger.error(
                "Catalog phase exhausted its retry budget",
                phase=policy.phase,
                attempts=attempt_number,
                max_attempts=policy.max_attempts,
                last_error=str(e)
            )
            raise CatalogUnavailableError(
                f"Catalog {policy.phase} failed after {attempt_number} attempt(s)",
                phase=policy.phase,
                attempts=attempt_number,
                last_error=e
            ) from e

        self._history.append(RetryAttempt(
            phase=policy.phase,
            attempt_number=attempt_number,
            delay_before_next_ms=0,
            outcome='succeeded'
        ))
        catalog_attempts_total.labels(phase=policy.phase, outcome='succeeded').inc()
        logger.info("Catalog phase succeeded", phase=policy.phase, attempts=attempt_number)
        return result

    async def _get(self, path: str, operation: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        url = self._build_url(path)
        try:
            return await self.client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise CatalogTimeoutError(
                f"Request to {url} timed out",
                operation=operation,
                timeout_duration=self.timeout
            ) from e
        except httpx.TransportError as e:
            raise CatalogConnectionError(
                f"Connection to {url} failed: {e}",
                operation=operation
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if not response.is_success:
            raise CatalogHTTPStatusError(
                f"Catalog service answered HTTP {response.status_code}",
                status_code=response.status_code,
                operation=operation
            )

    @staticmethod
    def _parse_json(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise CatalogPayloadError(
                "Catalog service returned a body that is not JSON",
                operation=operation,
                error_context={'content_type': response.headers.get('content-type')}
            ) from e

    async def aclose(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> 'ResilientCatalogClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


__all__ = ['CatalogState', 'NO_CACHE_HEADERS', 'ResilientCatalogClient']
