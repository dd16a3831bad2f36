from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import fakeredis
import fakeredis.aioredis
import httpx
import pytest

from tableside.app.config import Settings
from tableside.app.db import create_sessionmaker, init_models
from tableside.app.models import Customer, MenuItem
from tableside.app.repos_sqlalchemy import EntityStoreSQL
from tableside.app.services.cache import CacheStore
from tableside.app.services.dispatch import TransitionDispatcher
from tableside.app.services.effects import EffectQueue
from tableside.app.services.invalidation import InvalidationCoordinator
from tableside.app.services.lifecycle import LifecycleEngine
from tableside.app.services.read_path import ReadPath
from tableside.app.services.realtime import EndpointRegistry, Notifier
from tableside.app.services.reservations import ReservationService

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class RecordingTransport:
    """Keeps every emitted event instead of publishing it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str, dict]] = []

    async def emit_to_endpoint(self, endpoint_id: str, event: str, payload: dict) -> None:
        self.sent.append(("endpoint", endpoint_id, event, payload))

    async def emit_to_group(self, group: str, event: str, payload: dict) -> None:
        self.sent.append(("group", group, event, payload))

    async def emit_to_all(self, event: str, payload: dict) -> None:
        self.sent.append(("all", "*", event, payload))

    def events(self, target: str | None = None) -> list[str]:
        return [e for _, t, e, _ in self.sent if target is None or t == target]

    def payloads(self, event: str) -> list[dict]:
        return [p for _, _, e, p in self.sent if e == event]


class BrokenRedis:
    """Redis client whose every call fails as if the server were down."""

    async def _fail(self, *args, **kwargs):
        raise ConnectionError("redis down")

    get = set = delete = publish = _fail


def make_settings(**overrides: Any) -> Settings:
    values = {"database_url": MEMORY_URL, "redis_url": "redis://fake", **overrides}
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def redis_client():
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture
async def sessionmaker(anyio_backend):
    factory, engine = create_sessionmaker(MEMORY_URL)
    await init_models(engine)
    yield factory
    await engine.dispose()


@dataclass
class Stack:
    store: EntityStoreSQL
    cache: CacheStore
    redis: Any
    transport: RecordingTransport
    notifier: Notifier
    dispatcher: TransitionDispatcher
    engine: LifecycleEngine
    reads: ReadPath
    reservations: ReservationService

    async def settle(self) -> None:
        """Wait for queued notifications."""
        await self.dispatcher.drain()


def build_stack(sessionmaker, redis_client, settings: Settings) -> Stack:
    cache = CacheStore(redis_client, retry_after=settings.cache_retry_after_secs)
    store = EntityStoreSQL(sessionmaker)
    transport = RecordingTransport()
    notifier = Notifier(transport, EndpointRegistry(cache), cache)
    dispatcher = TransitionDispatcher(
        InvalidationCoordinator(
            cache,
            guest_buckets=settings.availability_guest_buckets,
            timeout=settings.side_effect_timeout_secs,
        ),
        notifier,
        EffectQueue(stage="notify", timeout=settings.side_effect_timeout_secs),
    )
    return Stack(
        store=store,
        cache=cache,
        redis=redis_client,
        transport=transport,
        notifier=notifier,
        dispatcher=dispatcher,
        engine=LifecycleEngine(store, dispatcher, settings),
        reads=ReadPath(store, cache, settings),
        reservations=ReservationService(store, dispatcher),
    )


async def seed(store: EntityStoreSQL) -> None:
    await store.add(Customer(id="alice", full_name="Alice Smith"))
    await store.add(Customer(id="bob", full_name=None))
    await store.add(MenuItem(id="burger", name="Burger", category="Mains", price=Decimal("5.00")))
    await store.add(MenuItem(id="fries", name="Fries", category="Sides", price=Decimal("3.50")))
    await store.add(
        MenuItem(
            id="soup",
            name="Soup",
            category="Starters",
            price=Decimal("4.25"),
            out_of_stock=True,
        )
    )


@pytest.fixture
async def make_stack(sessionmaker, redis_client):
    """Build service stacks over one database; the first call seeds it."""
    built: list[Stack] = []

    async def factory(redis=None, **overrides: Any) -> Stack:
        s = build_stack(sessionmaker, redis or redis_client, make_settings(**overrides))
        if not built:
            await seed(s.store)
        built.append(s)
        return s

    yield factory
    for s in built:
        await s.dispatcher.effects.stop()


@pytest.fixture
async def stack(make_stack) -> Stack:
    return await make_stack()


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
async def app(sessionmaker, redis_client, transport):
    from tableside.app.main import create_app

    application = create_app(
        make_settings(),
        redis_client=redis_client,
        sessionmaker=sessionmaker,
        transport=transport,
    )
    await seed(application.state.store)
    yield application
    await application.state.dispatcher.effects.stop()


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


@pytest.fixture
def ws_client(tmp_path):
    """Full app on a file database, driven from the TestClient's own loop."""
    from starlette.testclient import TestClient

    from tableside.app.main import create_app

    application = create_app(
        make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}"),
        redis_client=fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer()),
    )
    with TestClient(application) as tc:
        tc.portal.call(seed, application.state.store)
        yield tc
