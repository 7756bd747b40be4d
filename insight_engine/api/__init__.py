"""
API package initialization.

Routers:
- analysis: run, simulate, classify and rule-table endpoints
"""

from insight_engine.api.analysis import router as analysis_router

__all__ = ["analysis_router"]
