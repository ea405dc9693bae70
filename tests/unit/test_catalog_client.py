"""
Unit tests for the resilient catalog client.

The catalog service is simulated with ``httpx.MockTransport`` and backoff
sleeps are recorded instead of awaited, so wake and fetch sequences run
instantly and deterministically.
"""

import asyncio
from typing import List

import httpx
import pytest

from zoo_portal.data.storage import CatalogStore
from zoo_portal.integrations.catalog_client import CatalogState, ResilientCatalogClient
from zoo_portal.integrations.exceptions import CatalogUnavailableError, CatalogHTTPStatusError
from zoo_portal.integrations.retry import RetryPolicy

ANIMALS = [
    {
        'id': 1,
        'name': 'Ellie Elephant',
        'species': 'Elephant',
        'status': 'Open',
        'health': 'Healthy',
        'location': {'lat': 40.7128, 'lng': -74.006},
        'image': 'images/ellie.png',
        'feedingSchedule': [{'time': '09:00', 'food': 'Hay'}],
        'maintenanceRecords': [],
        'keeper': 'Sam',
    },
    {
        'id': 2,
        'name': 'Raja Tiger',
        'species': 'Tiger',
        'status': 'Open',
        'health': 'Healthy',
    },
]


class FakeCatalogService:
    """Scripted catalog backend recording every request it receives."""

    def __init__(self, health_failures: int = 0, fetch_failures: int = 0, payload=None):
        self.health_failures = health_failures
        self.fetch_failures = fetch_failures
        self.payload = ANIMALS if payload is None else payload
        self.requests: List[httpx.Request] = []

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == '/ping':
            if self.health_failures > 0:
                self.health_failures -= 1
                return httpx.Response(503, text='waking up')
            return httpx.Response(200, json={'ok': True})

        if path == '/api/animals':
            if self.fetch_failures > 0:
                self.fetch_failures -= 1
                raise httpx.ConnectError('connection reset', request=request)
            return httpx.Response(200, json=self.payload)

        if path == '/api/animals/1':
            return httpx.Response(200, json=ANIMALS[0])

        return httpx.Response(404, json={'error': 'Animal not found'})


class GatedSleeper:
    """Backoff sleep that blocks until the test opens the gate."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()
        self.cancelled = False

    async def sleep(self, seconds: float) -> None:
        self.entered.set()
        try:
            await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


def build_client(service, sleeper, **kwargs) -> ResilientCatalogClient:
    kwargs.setdefault('wake_policy', RetryPolicy('waking', max_attempts=5, initial_delay=1.0, max_delay=8.0))
    kwargs.setdefault('fetch_policy', RetryPolicy('fetching', max_attempts=3, initial_delay=1.0, max_delay=4.0))
    return ResilientCatalogClient(
        'http://catalog.test',
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(service)),
        sleep=sleeper.sleep,
        **kwargs
    )


@pytest.mark.unit
class TestRetryPolicy:

    def test_delays_grow_and_cap(self):
        policy = RetryPolicy('waking', max_attempts=10, initial_delay=1.0, max_delay=8.0)

        assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy('waking', max_attempts=0)


@pytest.mark.unit
class TestCatalogWakeAndFetch:

    @pytest.mark.asyncio
    async def test_wakes_after_two_failures_then_fetches(self, sleeper):
        service = FakeCatalogService(health_failures=2)

        async with build_client(service, sleeper) as client:
            records = await client.load()

        assert [r.name for r in records] == ['Ellie Elephant', 'Raja Tiger']
        assert client.state is CatalogState.SUCCEEDED
        assert service.paths() == ['/ping', '/ping', '/ping', '/api/animals']
        assert sleeper.delays == [1.0, 2.0]

        catalog_request = service.requests[-1]
        assert catalog_request.headers['Cache-Control'] == 'no-store'
        assert catalog_request.headers['Pragma'] == 'no-cache'

    @pytest.mark.asyncio
    async def test_attempt_history(self, sleeper):
        service = FakeCatalogService(health_failures=2)

        async with build_client(service, sleeper) as client:
            await client.load()

        wake = [a for a in client.attempts if a.phase == 'waking']
        assert [a.attempt_number for a in wake] == [1, 2, 3]
        assert [a.delay_before_next_ms for a in wake] == [1000, 2000, 0]
        assert wake[0].outcome == 'failed: CatalogHTTPStatusError'
        assert wake[-1].outcome == 'succeeded'

    @pytest.mark.asyncio
    async def test_fetch_retries_without_rewaking(self, sleeper):
        service = FakeCatalogService(fetch_failures=2)

        async with build_client(service, sleeper) as client:
            records = await client.load()

        assert len(records) == 2
        assert service.paths() == ['/ping', '/api/animals', '/api/animals', '/api/animals']
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_unknown_fields_are_preserved(self, sleeper):
        async with build_client(FakeCatalogService(), sleeper) as client:
            records = await client.load()

        payload = records[0].to_payload()
        assert payload['keeper'] == 'Sam'
        assert payload['feedingSchedule'] == [{'time': '09:00', 'food': 'Hay'}]

    @pytest.mark.asyncio
    async def test_successful_load_replaces_catalog_store(self, sleeper):
        store = CatalogStore()

        async with build_client(FakeCatalogService(), sleeper, catalog_store=store) as client:
            await client.load()

        assert len(store) == 2
        assert store.find(2).name == 'Raja Tiger'

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_sequence(self, sleeper):
        service = FakeCatalogService()

        async with build_client(service, sleeper) as client:
            first, second = await asyncio.gather(client.load(), client.load())

        assert first == second
        assert service.paths() == ['/ping', '/api/animals']

    @pytest.mark.asyncio
    async def test_cancelled_caller_leaves_shared_load_running(self):
        service = FakeCatalogService(health_failures=1)
        sleeper = GatedSleeper()

        async with build_client(service, sleeper) as client:
            first = asyncio.ensure_future(client.load())
            second = asyncio.ensure_future(client.load())
            await sleeper.entered.wait()

            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first

            sleeper.gate.set()
            records = await second

        assert len(records) == 2
        assert sleeper.cancelled is False
        assert client.state is CatalogState.SUCCEEDED
        assert service.paths() == ['/ping', '/ping', '/api/animals']

    @pytest.mark.asyncio
    async def test_cancelling_last_caller_stops_the_load(self):
        service = FakeCatalogService(health_failures=1)
        sleeper = GatedSleeper()

        async with build_client(service, sleeper) as client:
            caller = asyncio.ensure_future(client.load())
            await sleeper.entered.wait()

            caller.cancel()
            with pytest.raises(asyncio.CancelledError):
                await caller
            await asyncio.sleep(0)

            assert sleeper.cancelled is True
            assert client.state is CatalogState.IDLE

        assert '/api/animals' not in service.paths()


@pytest.mark.unit
class TestCatalogFailures:

    @pytest.mark.asyncio
    async def test_wake_exhaustion_is_terminal(self, sleeper):
        service = FakeCatalogService(health_failures=100)
        wake_policy = RetryPolicy('waking', max_attempts=3, initial_delay=1.0, max_delay=8.0)

        async with build_client(service, sleeper, wake_policy=wake_policy) as client:
            with pytest.raises(CatalogUnavailableError) as exc_info:
                await client.load()

        error = exc_info.value
        assert error.phase == 'waking'
        assert error.attempts == 3
        assert isinstance(error.last_error, CatalogHTTPStatusError)
        assert client.state is CatalogState.FAILED
        assert '/api/animals' not in service.paths()
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_wake_elapsed_budget_ends_phase_before_attempt_limit(self, sleeper, fake_clock):
        service = FakeCatalogService(health_failures=100)
        wake_policy = RetryPolicy('waking', max_attempts=10, initial_delay=1.0, max_delay=8.0, max_elapsed=5.0)

        async with build_client(service, sleeper, wake_policy=wake_policy, clock=fake_clock) as client:
            with pytest.raises(CatalogUnavailableError) as exc_info:
                await client.load()

        assert exc_info.value.phase == 'waking'
        assert exc_info.value.attempts == 4
        assert sleeper.delays == [1.0, 2.0, 4.0]
        assert fake_clock() == pytest.approx(1007.0)

    @pytest.mark.asyncio
    async def test_fetch_exhaustion_is_terminal(self, sleeper):
        service = FakeCatalogService(fetch_failures=100)

        async with build_client(service, sleeper) as client:
            with pytest.raises(CatalogUnavailableError) as exc_info:
                await client.load()

        assert exc_info.value.phase == 'fetching'
        assert exc_info.value.attempts == 3
        assert service.paths().count('/ping') == 1
        assert client.state is CatalogState.FAILED

    @pytest.mark.asyncio
    async def test_non_array_payload_is_retried_then_fails(self, sleeper):
        service = FakeCatalogService(payload={'animals': []})

        async with build_client(service, sleeper) as client:
            with pytest.raises(CatalogUnavailableError):
                await client.load()

        assert service.paths().count('/api/animals') == 3

    @pytest.mark.asyncio
    async def test_failed_load_leaves_store_untouched(self, sleeper):
        store = CatalogStore()
        service = FakeCatalogService(fetch_failures=100)

        async with build_client(service, sleeper, catalog_store=store) as client:
            with pytest.raises(CatalogUnavailableError):
                await client.load()

        assert len(store) == 0


@pytest.mark.unit
class TestFetchAnimal:

    @pytest.mark.asyncio
    async def test_fetch_single_animal(self, sleeper):
        async with build_client(FakeCatalogService(), sleeper) as client:
            record = await client.fetch_animal(1)

        assert record.name == 'Ellie Elephant'

    @pytest.mark.asyncio
    async def test_missing_animal_returns_none(self, sleeper):
        service = FakeCatalogService()

        async with build_client(service, sleeper) as client:
            record = await client.fetch_animal(99)

        assert record is None
        assert service.paths() == ['/api/animals/99']


@pytest.mark.unit
class TestClientConfiguration:

    def test_from_config_reads_catalog_keys(self, app):
        client = ResilientCatalogClient.from_config(app.config)

        assert client.base_url == 'http://catalog.test'
        assert client.wake_policy.max_attempts == app.config['CATALOG_WAKE_MAX_ATTEMPTS']
        assert client.wake_policy.max_elapsed == app.config['CATALOG_WAKE_MAX_ELAPSED_SECONDS']
        assert client.fetch_policy.max_attempts == app.config['CATALOG_FETCH_MAX_ATTEMPTS']

    def test_from_config_base_url_override(self, app):
        client = ResilientCatalogClient.from_config(app.config, base_url='https://zoo.example.com/')

        assert client.base_url == 'https://zoo.example.com'
