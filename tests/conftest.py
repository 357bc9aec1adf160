"""
Test configuration and shared fixtures.
HTTP and SQL store tests run against a fresh in-memory SQLite database per
test; thread engine tests run against the in-memory comment store.
"""
from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import uuid  # noqa: E402
from collections.abc import AsyncGenerator, Collection  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import huddle.models  # noqa: E402,F401
from huddle.core.exceptions import NotFoundException  # noqa: E402
from huddle.core.locks import GroupLockRegistry  # noqa: E402
from huddle.db.base import Base  # noqa: E402
from huddle.db.session import get_db  # noqa: E402
from huddle.main import app  # noqa: E402
from huddle.services.comment_store import InMemoryCommentStore  # noqa: E402
from huddle.services.group_authority import GroupAuthority  # noqa: E402
from huddle.services.thread_service import ThreadService  # noqa: E402

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One shared in-memory connection per test, with all tables created."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP test client with the test DB injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Identity helpers ──────────────────────────────────────────────────────────

def headers_for(user_id: uuid.UUID) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def alice() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def bob() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def carol() -> uuid.UUID:
    return uuid.uuid4()


@pytest_asyncio.fixture
async def book_club(client: AsyncClient, alice: uuid.UUID) -> dict[str, Any]:
    """A group administered by alice."""
    response = await client.post(
        "/api/v1/groups/", json={"name": "book-club"}, headers=headers_for(alice)
    )
    assert response.status_code == 201, response.text
    return response.json()


# ── In-memory thread engine ───────────────────────────────────────────────────

class InMemoryGroupAuthority(GroupAuthority):
    """Group authority over plain dicts, mirroring SQLGroupAuthority."""

    def __init__(self) -> None:
        self.ids: dict[str, uuid.UUID] = {}
        self.admins: dict[uuid.UUID, uuid.UUID] = {}
        self.index: dict[uuid.UUID, list[uuid.UUID]] = {}

    def add_group(self, name: str, admin_id: uuid.UUID) -> uuid.UUID:
        group_id = uuid.uuid4()
        self.ids[name] = group_id
        self.admins[group_id] = admin_id
        self.index[group_id] = []
        return group_id

    async def resolve_group(self, name: str) -> uuid.UUID:
        if name not in self.ids:
            raise NotFoundException("Group", name)
        return self.ids[name]

    async def is_group_admin(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
        return self.admins.get(group_id) == user_id

    async def lock_group(self, group_id: uuid.UUID) -> None:
        if group_id not in self.index:
            raise NotFoundException("Group", str(group_id))

    async def append_comment(self, group_id: uuid.UUID, comment_id: uuid.UUID) -> None:
        if comment_id not in self.index[group_id]:
            self.index[group_id].append(comment_id)

    async def prune_comments(
        self, group_id: uuid.UUID, comment_ids: Collection[uuid.UUID]
    ) -> None:
        gone = set(comment_ids)
        self.index[group_id] = [cid for cid in self.index[group_id] if cid not in gone]

    async def comment_ids(self, group_id: uuid.UUID) -> list[uuid.UUID]:
        return list(self.index[group_id])

    async def delete_group(self, group_id: uuid.UUID) -> None:
        self.index.pop(group_id, None)
        self.admins.pop(group_id, None)
        self.ids = {name: gid for name, gid in self.ids.items() if gid != group_id}


@pytest.fixture
def memory_store() -> InMemoryCommentStore:
    return InMemoryCommentStore()


@pytest.fixture
def memory_groups() -> InMemoryGroupAuthority:
    return InMemoryGroupAuthority()


@pytest.fixture
def threads(
    memory_store: InMemoryCommentStore, memory_groups: InMemoryGroupAuthority
) -> ThreadService:
    return ThreadService(memory_store, memory_groups, locks=GroupLockRegistry(), timeout=1.0)
