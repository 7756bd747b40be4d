"""
FastAPI dependency injection helpers.

Usage:
    @router.post("/run")
    async def run(request: AnalysisRunRequest, settings: SettingsDep):
        ...

In tests the settings can be swapped with:
    app.dependency_overrides[get_settings_dependency] = lambda: test_settings
"""

from typing import Annotated

from fastapi import Depends

from insight_engine.core.config import Settings, get_settings


def get_settings_dependency() -> Settings:
    """Return the cached Settings instance."""
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


__all__ = ["get_settings_dependency", "SettingsDep"]
