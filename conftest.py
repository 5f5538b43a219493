"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GCP_PROJECT_ID", "test-project")
os.environ.setdefault("STORAGE_ENDPOINT", "localhost:9000")

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from devicelab.db.base import Base
from devicelab.models import TestRun  # noqa: F401  registers the table
from devicelab.services.apk_store import ApkStore
from devicelab.services.test_lab_controller import TestLabController
from devicelab.services.test_matrix_store import TestMatrixStore
from devicelab.services.test_run_store import TestRunStore
from devicelab.services.tools_result_store import ToolsResultStore
from tests.fakes import FakeStorage, FakeTestLabClient, FakeToolResultsClient, SleepRecorder

# Test database URL (use in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PLACEHOLDER_APK_BYTES = b"placeholder app apk"


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a session factory bound to a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_run_store(session_factory) -> TestRunStore:
    return TestRunStore(session_factory)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def apk_store(storage) -> ApkStore:
    return ApkStore(storage, placeholder_apk=PLACEHOLDER_APK_BYTES)


@pytest.fixture
def test_lab_client() -> FakeTestLabClient:
    return FakeTestLabClient()


@pytest.fixture
def tool_results_client() -> FakeToolResultsClient:
    return FakeToolResultsClient()


@pytest.fixture
def test_matrix_store(test_lab_client, test_run_store, tool_results_client) -> TestMatrixStore:
    return TestMatrixStore(
        project_id="test-project",
        test_lab_client=test_lab_client,
        test_run_store=test_run_store,
        tools_result_store=ToolsResultStore(tool_results_client),
        results_prefix="gs://test-bucket/devicelab/ftl",
    )


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def controller(test_lab_client, test_matrix_store, sleeps) -> TestLabController:
    return TestLabController(
        test_lab_client=test_lab_client,
        test_matrix_store=test_matrix_store,
        max_concurrent_submissions=2,
        sleep=sleeps,
    )


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create a test client for the API, with the test run table in place."""
    from devicelab.db.session import engine
    from devicelab.main import app

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
