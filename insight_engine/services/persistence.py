"""
Persistence of run output.

Insights and simulation results are handed to the relational store only
after a run completes; a cancelled or failed run writes nothing. Writes are
upserts keyed by run id, so re-persisting a run replaces its rows.
"""

import json
import logging
from typing import List, Sequence

from insight_engine.core.database import get_db_pool
from insight_engine.models import Insight, InsightMetadata, SimulationResult
from insight_engine.sql.insight_queries import (
    SELECT_INSIGHTS_FOR_RUN,
    UPSERT_INSIGHT,
    UPSERT_SIMULATION,
)


logger = logging.getLogger(__name__)


async def persist_insights(insights: Sequence[Insight], run_id: str) -> int:
    """
    Upsert the ranked insights of one run.

    Args:
        insights: Insights in ranked order; the rank becomes the row position
        run_id: Run identifier

    Returns:
        Number of rows written

    Raises:
        asyncpg.PostgresError: If database operations fail
    """
    if not insights:
        return 0

    pool = await get_db_pool()
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                for position, insight in enumerate(insights, start=1):
                    nodes = (
                        json.dumps(insight.simulationNodes)
                        if insight.simulationNodes is not None else None
                    )
                    await conn.execute(
                        UPSERT_INSIGHT,
                        run_id,
                        position,
                        insight.title,
                        insight.category.value,
                        insight.source.value,
                        insight.confidence,
                        insight.impact.value,
                        insight.content,
                        insight.metadata.model_dump_json(),
                        nodes,
                    )
    except Exception:
        logger.exception(f"Error persisting insights for run {run_id}")
        raise

    logger.info(f"Persisted {len(insights)} insights for run {run_id}")
    return len(insights)


async def persist_simulations(results: Sequence[SimulationResult], run_id: str) -> int:
    """
    Upsert simulation results of one run.

    Returns:
        Number of rows written
    """
    if not results:
        return 0

    pool = await get_db_pool()
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                for result in results:
                    await conn.execute(
                        UPSERT_SIMULATION,
                        run_id,
                        result.observationId,
                        result.baselineEfficiency,
                        result.projectedEfficiency,
                        json.dumps(result.matchedHeuristics),
                        json.dumps(result.improvements),
                        result.timeSavedMinutes,
                        result.timeSavedLabel,
                        result.confidenceLevel,
                    )
    except Exception:
        logger.exception(f"Error persisting simulations for run {run_id}")
        raise

    logger.info(f"Persisted {len(results)} simulation results for run {run_id}")
    return len(results)


def _load_json(value):
    # asyncpg returns jsonb as text unless a codec is registered
    if isinstance(value, str):
        return json.loads(value)
    return value


async def get_insights_for_run(run_id: str) -> List[Insight]:
    """Read back the persisted insights of one run, in ranked order."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(SELECT_INSIGHTS_FOR_RUN, run_id)

    return [
        Insight(
            title=row["title"],
            category=row["category"],
            source=row["source"],
            confidence=row["confidence"],
            impact=row["impact"],
            content=row["content"],
            metadata=InsightMetadata.model_validate(_load_json(row["metadata"])),
            simulationNodes=_load_json(row["simulation_nodes"]),
        )
        for row in rows
    ]


__all__ = ["persist_insights", "persist_simulations", "get_insights_for_run"]
