"""
Test Suite Configuration
"""
from typing import AsyncGenerator, Callable, Dict, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from custom_dimensions.database.connection import create_session_factory
from custom_dimensions.database.models import Base
from custom_dimensions.dimensions.index import SlotLockRegistry
from custom_dimensions.dimensions.service import CustomDimensionsService
from custom_dimensions.reports.archive import DatabaseArchiveReader
from custom_dimensions.serving.auth import Principal
from custom_dimensions.serving.cache import TrackerCache


class InMemoryRedis:
    """Just enough of the redis.asyncio client for the cache layer"""
    
    def __init__(self):
        self.store: Dict[str, str] = {}
        self.fail = False
        self.deleted = []
    
    def _check(self):
        if self.fail:
            raise RedisConnectionError("Connection refused")
    
    async def ping(self):
        self._check()
        return True
    
    async def get(self, key):
        self._check()
        return self.store.get(key)
    
    async def set(self, key, value):
        self._check()
        self.store[key] = value
        return True
    
    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        return True
    
    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            self.deleted.append(key)
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed
    
    async def incr(self, key):
        self._check()
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database shared by every session of a test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for store-level tests; committed explicitly by the test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def tracker_cache(fake_redis) -> TrackerCache:
    return TrackerCache(client=fake_redis)


@pytest.fixture
def admin() -> Principal:
    """Administers sites 1 and 2, views site 3"""
    return Principal(user_id="admin", admin_sites=frozenset({1, 2}), view_sites=frozenset({3}))


@pytest.fixture
def viewer() -> Principal:
    return Principal(user_id="viewer", view_sites=frozenset({1}))


@pytest.fixture
def slot_locks() -> SlotLockRegistry:
    return SlotLockRegistry()


@pytest.fixture
def make_service(session_factory, tracker_cache, slot_locks) -> Callable[..., CustomDimensionsService]:
    """Build a service for a principal, sharing database, cache and locks"""
    
    def factory(principal: Principal, cache: Optional[TrackerCache] = None) -> CustomDimensionsService:
        return CustomDimensionsService(
            session_factory=session_factory,
            principal=principal,
            tracker_cache=cache or tracker_cache,
            archive=DatabaseArchiveReader(session_factory),
            locks=slot_locks,
        )
    
    return factory


@pytest.fixture
def service(make_service, admin) -> CustomDimensionsService:
    return make_service(admin)
