"""Shared pytest fixtures for search sync tests."""

import os
import sys
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from search_sync.database import Base
from search_sync.models import Color, FieldIcon, Project, Template, User, Workflow

# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class HookedSession(Session):
    """Session subclass so hook tests never touch the global Session class."""


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    """Create a test database engine with SQLite."""
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
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
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        sync_session_class=HookedSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ---------------------------------------------------------------------------
# Search backend
# ---------------------------------------------------------------------------

async def _bulk_ok(operations, **kwargs):
    return {
        "errors": False,
        "items": [
            {"index": {"_id": action["index"]["_id"], "status": 201}}
            for action in operations[::2]
        ],
    }


def make_fake_es() -> MagicMock:
    """AsyncElasticsearch stand-in: every call succeeds and indices exist."""
    es = MagicMock()
    es.index = AsyncMock(return_value={"result": "created"})
    es.delete = AsyncMock(return_value={"result": "deleted"})
    es.bulk = AsyncMock(side_effect=_bulk_ok)
    es.ping = AsyncMock(return_value=True)
    es.count = AsyncMock(return_value={"count": 0})
    es.close = AsyncMock()
    es.indices = MagicMock()
    es.indices.exists = AsyncMock(return_value=True)
    es.indices.create = AsyncMock(return_value={"acknowledged": True})
    return es


@pytest.fixture
def es() -> MagicMock:
    return make_fake_es()


def bulk_documents(es: MagicMock) -> list[dict]:
    """Every document sent through es.bulk, in call order."""
    documents: list[dict] = []
    for call in es.bulk.await_args_list:
        documents.extend(call.kwargs["operations"][1::2])
    return documents


def indexed_document(es: MagicMock) -> dict:
    """Document of the most recent es.index call."""
    return es.index.await_args.kwargs["document"]


# ---------------------------------------------------------------------------
# Base rows
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(
        id="user-1",
        name="Ada Tester",
        email="ada@example.com",
        image="https://cdn.example.com/avatars/ada.png",
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def project(db_session: AsyncSession, user: User) -> Project:
    """Create a test project."""
    project = Project(
        name="Checkout",
        icon_url="https://cdn.example.com/icons/checkout.png",
        created_by=user.id,
    )
    db_session.add(project)
    await db_session.commit()
    return project


@pytest_asyncio.fixture
async def workflow_state(db_session: AsyncSession) -> Workflow:
    """Create a workflow state with icon and color."""
    state = Workflow(
        name="Ready",
        icon=FieldIcon(name="circle-check"),
        color=Color(value="#22c55e"),
    )
    db_session.add(state)
    await db_session.commit()
    return state


@pytest_asyncio.fixture
async def template(db_session: AsyncSession) -> Template:
    template = Template(template_name="Default")
    db_session.add(template)
    await db_session.commit()
    return template


def api_error(error_cls, message: str, status: int):
    """Build an elasticsearch ApiError subclass the way the client raises it."""
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return error_cls(message=message, meta=meta, body={"error": {"type": message}})
