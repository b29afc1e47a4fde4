"""Test fixtures — in-memory SQLite, in-memory Redis, recording doubles.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets a fresh in-memory SQLite database (aiosqlite). StaticPool
   keeps one connection alive so every session sees the same tables.
2. Redis is replaced by FakeRedis, patched into tnkr.cache.client, so the
   cache-aside helpers, the message rate limiter and the HTTP rate limiter
   all run their real code paths against it.
3. Email and object storage are FastAPI dependencies; tests override them
   with doubles that record what would have been sent/uploaded.

Environment is set before anything from tnkr is imported: Settings is a
module-level singleton read at import time.
"""

import os

os.environ.setdefault("TNKR_ENVIRONMENT", "test")
os.environ.setdefault("TNKR_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TNKR_RATE_LIMIT_RPM", "10000")
os.environ.setdefault("TNKR_RATE_LIMIT_AUTH_RPM", "10000")

import asyncio
import time
import uuid
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import WatchError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tnkr.auth.jwt import create_access_token
from tnkr.auth.password import hash_password
from tnkr.cache import client as cache_client
from tnkr.db.engine import get_db
from tnkr.db.models import Base, TechnicianAddress, TechnicianProfile, User, UserRole
from tnkr.errors import NotFoundError
from tnkr.main import app
from tnkr.notifications.mailer import get_email_dispatcher
from tnkr.storage.s3 import get_storage

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "correct-horse-battery"


# ═══════════════════════════════════════════════════════════
# Doubles
# ═══════════════════════════════════════════════════════════


class FakeRedis:
    """The slice of redis.asyncio.Redis the app uses, kept in a dict.

    Every write bumps a per-key version so the pipeline below can mimic
    WATCH/MULTI/EXEC: EXEC raises WatchError if a watched key moved.
    """

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.versions: dict[str, int] = {}
        self.ops: list[tuple] = []

    async def _roundtrip(self):
        """Network hop. No-op here; YieldingRedis suspends."""

    def _alive(self, key: str) -> bool:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.time():
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.store

    def _touch(self, key: str) -> None:
        self.versions[key] = self.versions.get(key, 0) + 1

    def _write(self, key, value, ex=None) -> bool:
        self.ops.append(("set", key, ex))
        self.store[key] = value
        if ex is not None:
            self.expiry[key] = time.time() + ex
        else:
            self.expiry.pop(key, None)
        self._touch(key)
        return True

    async def get(self, key):
        await self._roundtrip()
        self.ops.append(("get", key))
        return self.store[key] if self._alive(key) else None

    async def set(self, key, value, ex=None):
        await self._roundtrip()
        return self._write(key, value, ex)

    async def delete(self, *keys):
        self.ops.append(("delete", *keys))
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.store.pop(key, None)
            self.expiry.pop(key, None)
            self._touch(key)
        return removed

    async def incr(self, key):
        value = int(self.store[key]) + 1 if self._alive(key) else 1
        self.store[key] = str(value)
        self._touch(key)
        return value

    async def expire(self, key, seconds):
        self.expiry[key] = time.time() + seconds
        return True

    async def ping(self):
        return True

    async def aclose(self):
        pass

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class FakePipeline:
    """WATCH → immediate reads → MULTI → buffered SET → EXEC."""

    def __init__(self, redis: FakeRedis):
        self.redis = redis
        self.watched: dict[str, int] = {}
        self.queued: Optional[list[tuple]] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.reset()

    async def reset(self):
        self.watched = {}
        self.queued = None

    async def watch(self, *keys):
        await self.redis._roundtrip()
        for key in keys:
            self.watched[key] = self.redis.versions.get(key, 0)
        return True

    async def unwatch(self):
        self.watched = {}
        return True

    async def get(self, key):
        return await self.redis.get(key)

    def multi(self):
        self.queued = []

    def set(self, key, value, ex=None):
        self.queued.append((key, value, ex))
        return self

    async def execute(self):
        await self.redis._roundtrip()
        try:
            # Check and apply with no suspension in between, like EXEC
            if any(self.redis.versions.get(k, 0) != v for k, v in self.watched.items()):
                raise WatchError("Watched variable changed.")
            return [self.redis._write(*command) for command in self.queued or []]
        finally:
            await self.reset()


class YieldingRedis(FakeRedis):
    """FakeRedis that gives up the loop on every round trip."""

    async def _roundtrip(self):
        await asyncio.sleep(0)


class BrokenRedis:
    """Every call fails, like a Redis that went away mid-flight."""

    async def _fail(self, *args, **kwargs):
        raise ConnectionError("redis down")

    get = set = delete = incr = expire = ping = _fail

    def pipeline(self, transaction=True):
        raise ConnectionError("redis down")


class MemoryStore:
    """MessageStore double: a set of known users and a list of messages."""

    def __init__(self, *user_ids):
        self.users = set(user_ids)
        self.messages: list[dict] = []

    async def recipient_exists(self, user_id):
        return user_id in self.users

    async def create_message(self, sender_id, receiver_id, content):
        if receiver_id not in self.users:
            raise NotFoundError("Recipient not found")
        message = {
            "id": str(uuid.uuid4()),
            "senderId": str(sender_id),
            "receiverId": str(receiver_id),
            "content": content,
        }
        self.messages.append(message)
        return message


class RecordingDispatcher:
    """Stands in for EmailDispatcher: records instead of sending."""

    def __init__(self):
        self.sent = []

    def dispatch(self, message):
        self.sent.append(message)

    async def drain(self):
        pass

    def of_kind(self, kind):
        return [m for m in self.sent if m.kind == kind]


class FakeStorage:
    """Stands in for ObjectStorage: remembers keys instead of hitting S3."""

    base_url = "https://test-bucket.s3.amazonaws.com"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted_prefixes: list[str] = []

    async def upload(self, file, key):
        self.objects[key] = file.data
        return f"{self.base_url}/{key}"

    async def upload_profile_picture(self, file, user_id):
        return await self.upload(file, f"profile-pictures/{user_id}.{file.extension}")

    async def upload_request_photo(self, file, user_id, request_id):
        suffix = uuid.uuid4().hex[:12]
        return await self.upload(
            file, f"requests/{request_id}/{user_id}_{suffix}.{file.extension}"
        )

    async def delete_prefix(self, prefix):
        self.deleted_prefixes.append(prefix)
        doomed = [k for k in self.objects if k.startswith(prefix)]
        for key in doomed:
            del self.objects[key]
        return len(doomed)

    async def delete_request_photos(self, request_id):
        return await self.delete_prefix(f"requests/{request_id}/")


# ═══════════════════════════════════════════════════════════
# Infrastructure fixtures
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(cache_client, "_redis", redis)
    return redis


@pytest.fixture()
def emails():
    return RecordingDispatcher()


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest_asyncio.fixture()
async def client(session_factory, fake_redis, emails, storage):
    """HTTP client with the database, email and storage overridden.

    Learn: Unlike a mocked identity, auth runs for real here — helpers
    below mint genuine JWTs, so the capability checks are exercised by
    every API test.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_dispatcher] = lambda: emails
    app.dependency_overrides[get_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ═══════════════════════════════════════════════════════════
# Account helpers
# ═══════════════════════════════════════════════════════════


def auth_headers(user: User) -> dict:
    token = create_access_token(
        str(user.id), user.role, email=user.email, username=user.username
    )
    return {"Authorization": f"Bearer {token}"}


async def make_user(
    session_factory,
    role: UserRole = UserRole.CUSTOMER,
    verified: bool = True,
    **fields,
) -> User:
    tag = uuid.uuid4().hex[:8]
    defaults = {
        "first_name": "Test",
        "last_name": role.value.title(),
        "username": f"{role.value.lower()}-{tag}",
        "email": f"{role.value.lower()}-{tag}@example.com",
        "password_hash": hash_password(PASSWORD),
    }
    defaults.update(fields)
    async with session_factory() as db:
        user = User(role=role.value, is_verified=verified, **defaults)
        db.add(user)
        await db.commit()
        return user


async def make_technician_profile(session_factory, user: User, verified: bool = True):
    async with session_factory() as db:
        profile = TechnicianProfile(
            user_id=user.id,
            services_provided=["cleaning", "restoration"],
            business_name="Sole Revival",
            website_link="https://solerevival.example.com",
            bio="Ten years of sneaker restoration.",
            is_verified_technician=verified,
            address=TechnicianAddress(
                street="1 Main St", city="Austin", state_code="TX", zip_code="78701"
            ),
        )
        db.add(profile)
        await db.commit()
        return profile


async def fetch(session_factory, model, **filters):
    async with session_factory() as db:
        result = await db.execute(select(model).filter_by(**filters))
        return list(result.scalars().all())


@pytest_asyncio.fixture()
async def customer(session_factory):
    return await make_user(session_factory, UserRole.CUSTOMER)


@pytest_asyncio.fixture()
async def technician(session_factory):
    user = await make_user(session_factory, UserRole.TECHNICIAN)
    await make_technician_profile(session_factory, user, verified=True)
    return user


@pytest_asyncio.fixture()
async def admin(session_factory):
    return await make_user(session_factory, UserRole.ADMIN)
