"""
Record Source Test Module

Covers the in-memory, CSV and PostgreSQL adapters and concurrent fetching
with per-source timeouts.
"""

import asyncio
from datetime import datetime, timezone
from typing import List
from unittest.mock import AsyncMock, patch

import pandas as pd
import pytest

from insight_engine.core.exceptions import ConfigurationError, SourceTimeoutError
from insight_engine.models import RawRecord, SourceType
from insight_engine.services.sources import (
    CsvRecordSource,
    PostgresRecordSource,
    RecordSource,
    StaticRecordSource,
    ecosystem_sources,
    fetch_records,
    fetch_source,
)
from insight_engine.sql.insight_queries import SOURCE_QUERIES


class SleepySource(RecordSource):
    def __init__(self, name: str, delay: float):
        self.name = name
        self.delay = delay

    async def list(self) -> List[RawRecord]:
        await asyncio.sleep(self.delay)
        return [RawRecord(source="journal", data={"content": self.name})]


class BrokenSource(RecordSource):
    name = "broken"

    async def list(self) -> List[RawRecord]:
        raise RuntimeError("connection reset")


class TestAdapters:
    """Tests for the source adapters."""

    @pytest.mark.asyncio
    async def test_static_source(self, sample_records) -> None:
        source = StaticRecordSource("memory", sample_records)
        assert await source.list() == sample_records

    @pytest.mark.asyncio
    async def test_csv_source(self, tmp_path) -> None:
        path = tmp_path / "conversations.csv"
        pd.DataFrame([
            {
                "id": "conv-1",
                "title": "Checkout flow",
                "date": "2026-09-30T10:00:00Z",
                "challenges": "TypeScript compilation errors;API authentication issues",
                "efficiency": 81.5,
            },
            {
                "id": "conv-2",
                "title": "Search page",
                "date": "2026-09-30T12:00:00Z",
                "challenges": None,
                "efficiency": 90.0,
            },
        ]).to_csv(path, index=False)

        records = await CsvRecordSource(path, SourceType.CONVERSATION).list()

        assert [r.source for r in records] == ["conversation", "conversation"]
        assert records[0].data["id"] == "conv-1"
        assert records[0].data["efficiency"] == pytest.approx(81.5)

    @pytest.mark.asyncio
    async def test_postgres_source(self, mock_db_pool, mock_conn) -> None:
        mock_conn.fetch.return_value = [
            {"id": "j-1", "title": "Note", "created_at": datetime(2026, 9, 30, tzinfo=timezone.utc)},
        ]
        since = datetime(2026, 9, 1, tzinfo=timezone.utc)
        source = PostgresRecordSource(
            "journal", SourceType.JOURNAL, SOURCE_QUERIES[SourceType.JOURNAL], (since,)
        )

        with patch(
            'insight_engine.services.sources.get_db_pool',
            new=AsyncMock(return_value=mock_db_pool),
        ):
            records = await source.list()

        assert records == [RawRecord(source="journal", data=mock_conn.fetch.return_value[0])]
        mock_conn.fetch.assert_awaited_once_with(SOURCE_QUERIES[SourceType.JOURNAL], since)

    def test_ecosystem_sources_cover_every_query(self) -> None:
        since = datetime(2026, 9, 1, tzinfo=timezone.utc)

        sources = ecosystem_sources(since)

        assert [s.source_type for s in sources] == list(SOURCE_QUERIES)
        assert all(s.args == (since,) for s in sources)


class TestFetching:
    """Tests for fetch_source and fetch_records."""

    @pytest.mark.asyncio
    async def test_fetch_source_timeout(self) -> None:
        with pytest.raises(SourceTimeoutError) as exc_info:
            await fetch_source(SleepySource("slow", 1.0), timeout_ms=20)
        assert exc_info.value.source_name == "slow"

    @pytest.mark.asyncio
    async def test_fetch_records_skips_timed_out_sources(self) -> None:
        sources = [
            SleepySource("fast", 0),
            SleepySource("slow", 1.0),
            SleepySource("also-fast", 0),
        ]

        records, timed_out, failed = await fetch_records(sources, timeout_ms=100)

        assert [r.data["content"] for r in records] == ["fast", "also-fast"]
        assert timed_out == ["slow"]
        assert failed == []

    @pytest.mark.asyncio
    async def test_failed_sources_contribute_zero_records(self, caplog) -> None:
        records, timed_out, failed = await fetch_records(
            [SleepySource("fast", 0), BrokenSource()], timeout_ms=100
        )

        assert [r.data["content"] for r in records] == ["fast"]
        assert timed_out == []
        assert failed == ["broken"]
        assert "Source 'broken' failed" in caplog.text

    @pytest.mark.asyncio
    async def test_unconfigured_database_source_fails_alone(self, sample_records) -> None:
        source = PostgresRecordSource(
            "journal", SourceType.JOURNAL, SOURCE_QUERIES[SourceType.JOURNAL]
        )

        with patch(
            'insight_engine.services.sources.get_db_pool',
            new=AsyncMock(side_effect=ConfigurationError(["DATABASE_URL is not configured"])),
        ):
            records, _, failed = await fetch_records(
                [StaticRecordSource("memory", sample_records), source], timeout_ms=100
            )

        assert records == sample_records
        assert failed == ["journal"]
