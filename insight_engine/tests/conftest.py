"""
Pytest Configuration and Shared Fixtures for Insight Engine Tests.

Provides:
- A fixed as-of time so recency windows are reproducible
- Sample raw records for every source type
- Mock asyncpg pool fixtures for persistence and source tests
- Settings cache isolation

Async tests run under pytest-asyncio (configured in pyproject.toml).
"""

from datetime import datetime, timedelta, timezone
from typing import Generator, List
from unittest.mock import AsyncMock, Mock

import pytest

from insight_engine.core.config import get_settings
from insight_engine.models import Observation, RawRecord, SourceType
from insight_engine.services.pipeline import get_engine


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )


# ============================================================
# SETTINGS ISOLATION
# ============================================================

@pytest.fixture(autouse=True)
def clear_cached_singletons() -> Generator[None, None, None]:
    """
    Reset cached Settings and the default engine around every test.

    Tests that monkeypatch environment variables would otherwise leak the
    cached instance into later tests.
    """
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()


# ============================================================
# TIME FIXTURES
# ============================================================

@pytest.fixture
def as_of() -> datetime:
    """Reference time shared by every run in the tests."""
    return datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# SAMPLE RECORDS
# ============================================================

@pytest.fixture
def conversation_record() -> RawRecord:
    return RawRecord(
        source="conversation",
        data={
            "id": "conv-001",
            "title": "Payment gateway integration",
            "projectIntent": "Build a modular payment system architecture",
            "date": "2026-09-30T14:00:00Z",
            "progressMarkers": ["Designed the service structure", "Implemented the API client"],
            "challenges": ["TypeScript compilation errors", "API authentication issues"],
            "resolutions": ["Fixed the type definitions"],
            "efficiency": 87.3,
            "userSatisfaction": 9,
        },
    )


@pytest.fixture
def sample_records(conversation_record: RawRecord) -> List[RawRecord]:
    """One record per source type, all within the last week of `as_of`."""
    return [
        conversation_record,
        RawRecord(
            source="journal",
            data={
                "id": "journal-001",
                "title": "Reusable component strategy",
                "content": "We should create a reusable framework and analyze the pattern library.",
                "category": "architecture",
                "created_at": "2026-09-29T09:00:00Z",
                "tenant_id": "acme",
            },
        ),
        RawRecord(
            source="module_activity",
            data={
                "id": "module-001",
                "name": "Billing service",
                "type": "update",
                "description": "Refine the modular billing service to improve quality",
                "updated_at": "2026-10-01T08:00:00Z",
                "tenant_id": "globex",
            },
        ),
        RawRecord(
            source="dreamstate_session",
            data={
                "id": "session-001",
                "title": "Revenue expansion exploration",
                "business_context": "Evaluate the strategy for a new market",
                "status": "completed",
                "mode": "explore",
                "total_nodes": 20,
                "created_at": "2026-09-28T16:00:00Z",
            },
        ),
        RawRecord(
            source="tenant",
            data={
                "id": "initech",
                "name": "Initech",
                "industry": "software",
                "created_at": "2026-09-25T10:00:00Z",
            },
        ),
    ]


@pytest.fixture
def make_observation(as_of: datetime):
    """Factory for Observations with sensible defaults."""

    def _make(
        obs_id: str = "obs-1",
        source: SourceType = SourceType.CONVERSATION,
        hours_ago: float = 1,
        **fields,
    ) -> Observation:
        return Observation(
            id=obs_id,
            source=source,
            timestamp=as_of - timedelta(hours=hours_ago),
            **fields,
        )

    return _make


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Create a mock asyncpg connection pool.

    pool.acquire() returns an async context manager yielding a connection
    whose execute/fetch methods are AsyncMocks and whose transaction()
    returns an async context manager.

    Usage:
        async def test_query(mock_db_pool):
            conn = mock_db_pool.acquire.return_value.__aenter__.return_value
            conn.fetch.return_value = [{'id': 1}]
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    transaction = AsyncMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = Mock(return_value=transaction)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.close = AsyncMock(return_value=None)

    return pool


@pytest.fixture
def mock_conn(mock_db_pool: AsyncMock) -> AsyncMock:
    """The connection yielded by mock_db_pool.acquire()."""
    return mock_db_pool.acquire.return_value.__aenter__.return_value
