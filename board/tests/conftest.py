import os

# Set testing mode before any board module reads the settings
os.environ["TESTING"] = "true"
os.environ["TEST_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from typing import AsyncGenerator, Dict, List, Optional
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import board.models  # noqa: F401  registers every table
from board.db.base import Base
from board.db.session import get_db
from board.main import app
from board.models.comment import Comment
from board.models.thread import Thread
from board.models.user import User
from board.services.auth_service import AuthService
from board.services.redis_service import RedisService, get_redis_service
from board.utils.rate_limit import limiter

# Test database URL - in-memory SQLite
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

limiter.enabled = False


class FakePipeline:
    """Buffers commands and applies them on ``execute`` like MULTI/EXEC"""

    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.commands = []

    def delete(self, key):
        self.commands.append(("delete", (key,)))

    def rpush(self, key, *values):
        self.commands.append(("rpush", (key, *values)))

    def expire(self, key, seconds):
        self.commands.append(("expire", (key, seconds)))

    async def execute(self):
        results = []
        for name, args in self.commands:
            results.append(await getattr(self.redis, name)(*args))
        self.commands = []
        return results


class FakeRedis:
    """Just the commands the discovery queue and logout use"""

    def __init__(self):
        self.lists: Dict[str, List[str]] = {}
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def pipeline(self, transaction: bool = True):
        return FakePipeline(self)

    async def delete(self, key):
        self.ttls.pop(key, None)
        found = self.lists.pop(key, None) is not None
        found = self.values.pop(key, None) is not None or found
        return int(found)

    async def set(self, key, value, ex=None):
        self.values[key] = str(value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self.lists or key in self.values)

    async def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(str(v) for v in values)
        return len(self.lists[key])

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return key in self.lists

    async def lpop(self, key) -> Optional[str]:
        items = self.lists.get(key)
        if not items:
            return None
        value = items.pop(0)
        if not items:
            del self.lists[key]
        return value

    async def llen(self, key) -> int:
        return len(self.lists.get(key, []))

    async def ping(self):
        return True

    async def aclose(self):
        return None


@pytest.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Database session for service-level tests"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_service(fake_redis) -> RedisService:
    return RedisService(redis=fake_redis)


@pytest.fixture
async def test_client(session_factory, redis_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test database and Redis"""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_service] = lambda: redis_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, username: str, display_name: Optional[str] = None) -> User:
    """Insert a user directly, skipping password hashing"""
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password="not-a-real-hash",
        display_name=display_name or username.title(),
        is_active=True
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_thread(db: AsyncSession, owner: User, title: str = "A thread", body: str = "Some body", **fields) -> Thread:
    thread = Thread(owner_id=owner.id, title=title, body=body, **fields)
    db.add(thread)
    await db.commit()
    await db.refresh(thread)
    return thread


async def make_comment(db: AsyncSession, thread: Thread, author: User, body: str = "A comment", **fields) -> Comment:
    comment = Comment(thread_id=thread.id, author_id=author.id, body=body, **fields)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return comment


def auth_headers(user: User, session_id: str = "test-session") -> Dict[str, str]:
    token = AuthService(None).create_access_token(user, session_id=session_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def alice(test_db):
    return await make_user(test_db, "alice")


@pytest.fixture
async def bob(test_db):
    return await make_user(test_db, "bob")
