"""
Insight Engine package.

Turns heterogeneous activity records (conversation logs, journal entries,
module activity, DreamState optimisation sessions, tenant profiles) into
ranked, structured insights.

Subpackages:
- core: configuration, database pool, dependencies, domain exceptions
- models: enums and pydantic schemas (the wire shapes)
- services: normalizer, signal extractor, aggregator, classifier,
  synthesizer, simulator, meta-aggregator and run orchestration
- sql: query text used by the PostgreSQL source and persistence helpers
- api: FastAPI router exposing the engine operations
"""

__version__ = "1.0.0"
