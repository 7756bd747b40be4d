"""
SQL text for the PostgreSQL record sources and the persistence helpers.

Every statement is parameterized ($1, $2, ...) and executed through the
asyncpg pool. Source queries take one parameter: the lower bound of the
record timestamp.

Tables read:
- journal_entries: title, content, category, source, tags, confidence
- module_activity: name, description, type, tenant_id
- dreamstate_sessions: title, business_context, mode, status, total_nodes,
  current_depth, max_depth, tenant_id
- tenant_profiles: id, name, industry, description, monthly_revenue

Tables written:
- engine_insight: one row per (run_id, position)
- engine_simulation: one row per (run_id, observation_id)
"""

from typing import Dict

from insight_engine.models import SourceType


# =============================================================================
# Source Queries
# =============================================================================

JOURNAL_ENTRIES_QUERY = """
    SELECT id, title, content, category, source, tags, confidence, created_at
    FROM journal_entries
    WHERE created_at >= $1
    ORDER BY created_at, id
"""

MODULE_ACTIVITY_QUERY = """
    SELECT id, name, description, type, tenant_id, created_at, updated_at
    FROM module_activity
    WHERE updated_at >= $1
    ORDER BY updated_at, id
"""

DREAMSTATE_SESSIONS_QUERY = """
    SELECT id, title, business_context, mode, status,
           total_nodes, current_depth, max_depth, tenant_id, created_at
    FROM dreamstate_sessions
    WHERE created_at >= $1
    ORDER BY created_at, id
"""

TENANT_PROFILES_QUERY = """
    SELECT id, name, industry, description, monthly_revenue, created_at
    FROM tenant_profiles
    WHERE created_at >= $1 OR status = 'active'
    ORDER BY created_at, id
"""

SOURCE_QUERIES: Dict[SourceType, str] = {
    SourceType.JOURNAL: JOURNAL_ENTRIES_QUERY,
    SourceType.MODULE_ACTIVITY: MODULE_ACTIVITY_QUERY,
    SourceType.DREAMSTATE_SESSION: DREAMSTATE_SESSIONS_QUERY,
    SourceType.TENANT: TENANT_PROFILES_QUERY,
}


# =============================================================================
# Persistence Statements
# =============================================================================

UPSERT_INSIGHT = """
    INSERT INTO engine_insight (
        run_id, position, title, category, source, confidence, impact,
        content, metadata, simulation_nodes, created_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10::jsonb, NOW())
    ON CONFLICT (run_id, position)
    DO UPDATE SET
        title = EXCLUDED.title,
        category = EXCLUDED.category,
        source = EXCLUDED.source,
        confidence = EXCLUDED.confidence,
        impact = EXCLUDED.impact,
        content = EXCLUDED.content,
        metadata = EXCLUDED.metadata,
        simulation_nodes = EXCLUDED.simulation_nodes,
        created_at = NOW()
"""

UPSERT_SIMULATION = """
    INSERT INTO engine_simulation (
        run_id, observation_id, baseline_efficiency, projected_efficiency,
        matched_heuristics, improvements, time_saved_minutes, time_saved_label,
        confidence_level, created_at
    )
    VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, $8, $9, NOW())
    ON CONFLICT (run_id, observation_id)
    DO UPDATE SET
        baseline_efficiency = EXCLUDED.baseline_efficiency,
        projected_efficiency = EXCLUDED.projected_efficiency,
        matched_heuristics = EXCLUDED.matched_heuristics,
        improvements = EXCLUDED.improvements,
        time_saved_minutes = EXCLUDED.time_saved_minutes,
        time_saved_label = EXCLUDED.time_saved_label,
        confidence_level = EXCLUDED.confidence_level,
        created_at = NOW()
"""

SELECT_INSIGHTS_FOR_RUN = """
    SELECT title, category, source, confidence, impact, content,
           metadata, simulation_nodes
    FROM engine_insight
    WHERE run_id = $1
    ORDER BY position
"""


__all__ = [
    "JOURNAL_ENTRIES_QUERY",
    "MODULE_ACTIVITY_QUERY",
    "DREAMSTATE_SESSIONS_QUERY",
    "TENANT_PROFILES_QUERY",
    "SOURCE_QUERIES",
    "UPSERT_INSIGHT",
    "UPSERT_SIMULATION",
    "SELECT_INSIGHTS_FOR_RUN",
]
