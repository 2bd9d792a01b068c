"""
Pytest configuration and fixtures for StudyLoop tests.

Engine tests run against MemoryTaskStore. Store and API tests use an
in-memory SQLite database through aiosqlite, so no server is needed.
"""

from datetime import date

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import studyloop.models  # noqa: F401
from studyloop.main import app
from studyloop.database import get_task_store
from studyloop.models.enums import UnitType
from studyloop.schemas import SplitWorkloadRequest
from studyloop.services.planner import plan_split_workload
from studyloop.store import MemoryTaskStore, SqlTaskStore


# Use a test database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

START = date(2024, 5, 1)


def split_request(**overrides) -> SplitWorkloadRequest:
    """A 30-page, 4-per-day workload unless overridden."""
    fields = {
        "title": "Algebra workbook",
        "subject": "math",
        "total_units": 30,
        "unit_type": UnitType.PAGES,
        "daily_units": 4,
        "start_date": START,
        "estimated_time": 120,
        "assigned_to": "student-1",
        "created_by": "instructor-1",
        "test_period_id": "midterm",
    }
    fields.update(overrides)
    return SplitWorkloadRequest(**fields)


@pytest.fixture
def store():
    """A fresh in-memory task store."""
    return MemoryTaskStore()


@pytest.fixture
def make_workload(store):
    """Factory that plans a workload into the memory store."""
    async def _make(**overrides):
        return await plan_split_workload(store, split_request(**overrides))
    return _make


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    # Drop all tables after tests
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def sql_store(session_maker):
    """SqlTaskStore bound to the test database."""
    return SqlTaskStore(session_maker)


@pytest_asyncio.fixture(scope="function")
async def client(sql_store):
    """Create an async test client with test database."""
    app.dependency_overrides[get_task_store] = lambda: sql_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
