"""
Record Sources.

A record source is anything with an async `list()` returning RawRecords. The
engine fetches all sources of a run concurrently, each under the run's
source timeout. A source that does not answer in time, or that fails,
contributes zero records and is named in the diagnostic report; the run
continues.

Adapters:
- StaticRecordSource: records already in memory
- CsvRecordSource: a flat CSV export read with pandas
- PostgresRecordSource: one parameterized query against the relational store

`ecosystem_sources(since)` builds the PostgreSQL sources for journal
entries, module activity, DreamState sessions and tenant profiles.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import pandas as pd

from insight_engine.core.database import get_db_pool
from insight_engine.core.exceptions import SourceTimeoutError
from insight_engine.models import RawRecord, SourceType
from insight_engine.sql.insight_queries import SOURCE_QUERIES


logger = logging.getLogger(__name__)


# =============================================================================
# Source Adapters
# =============================================================================


class RecordSource(ABC):
    """Supplier of raw records for one run."""

    name: str = "source"

    @abstractmethod
    async def list(self) -> List[RawRecord]:
        """Return every record this source currently holds."""


class StaticRecordSource(RecordSource):
    """Records that are already in memory."""

    def __init__(self, name: str, records: Sequence[RawRecord]):
        self.name = name
        self._records = tuple(records)

    async def list(self) -> List[RawRecord]:
        return list(self._records)


class CsvRecordSource(RecordSource):
    """
    Records exported to CSV, one row per record.

    List-valued columns (challenges, tags, ...) are expected as ';' separated
    strings; the normalizer splits them.
    """

    def __init__(
        self,
        path: Union[str, Path],
        source_type: SourceType,
        name: Optional[str] = None,
    ):
        self.path = Path(path)
        self.source_type = source_type
        self.name = name or self.path.name

    def _read(self) -> List[RawRecord]:
        df = pd.read_csv(self.path)
        df.columns = df.columns.str.strip()
        logger.info(f"Parsed CSV {self.path} with {len(df)} rows and {len(df.columns)} columns")
        return [
            RawRecord(source=self.source_type.value, data=row)
            for row in df.to_dict(orient="records")
        ]

    async def list(self) -> List[RawRecord]:
        return await asyncio.to_thread(self._read)


class PostgresRecordSource(RecordSource):
    """Records returned by one query against the relational store."""

    def __init__(
        self,
        name: str,
        source_type: SourceType,
        query: str,
        args: Tuple[Any, ...] = (),
    ):
        self.name = name
        self.source_type = source_type
        self.query = query
        self.args = args

    async def list(self) -> List[RawRecord]:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(self.query, *self.args)
        logger.info(f"Source '{self.name}' returned {len(rows)} rows")
        return [RawRecord(source=self.source_type.value, data=dict(row)) for row in rows]


def ecosystem_sources(since: datetime) -> List[PostgresRecordSource]:
    """PostgreSQL sources for every ecosystem table, bounded below by `since`."""
    return [
        PostgresRecordSource(
            name=source_type.value,
            source_type=source_type,
            query=query,
            args=(since,),
        )
        for source_type, query in SOURCE_QUERIES.items()
    ]


# =============================================================================
# Fetching
# =============================================================================


async def fetch_source(source: RecordSource, timeout_ms: int) -> List[RawRecord]:
    """
    Fetch one source under a timeout.

    Raises:
        SourceTimeoutError: If the source does not answer within `timeout_ms`
    """
    try:
        return await asyncio.wait_for(source.list(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError as e:
        raise SourceTimeoutError(source.name, timeout_ms) from e


async def fetch_records(
    sources: Sequence[RecordSource],
    timeout_ms: int,
) -> Tuple[List[RawRecord], List[str], List[str]]:
    """
    Fetch all sources concurrently.

    A source that times out or fails contributes zero records; the run
    continues with whatever the other sources returned.

    Args:
        sources: Record sources of the run
        timeout_ms: Per-source timeout

    Returns:
        Tuple of (records in source order, names of timed-out sources,
        names of sources that failed for any other reason)
    """
    results = await asyncio.gather(
        *(fetch_source(source, timeout_ms) for source in sources),
        return_exceptions=True,
    )

    records: List[RawRecord] = []
    timed_out: List[str] = []
    failed: List[str] = []
    for source, result in zip(sources, results):
        if isinstance(result, SourceTimeoutError):
            logger.warning(f"{result}; continuing with zero records from it")
            timed_out.append(source.name)
        elif isinstance(result, Exception):
            logger.error(
                f"Source '{source.name}' failed; continuing with zero records from it",
                exc_info=result,
            )
            failed.append(source.name)
        elif isinstance(result, BaseException):
            raise result
        else:
            records.extend(result)

    logger.info(
        f"Fetched {len(records)} records from {len(sources)} sources "
        f"({len(timed_out)} timed out, {len(failed)} failed)"
    )
    return records, timed_out, failed


__all__ = [
    "RecordSource",
    "StaticRecordSource",
    "CsvRecordSource",
    "PostgresRecordSource",
    "ecosystem_sources",
    "fetch_source",
    "fetch_records",
]
