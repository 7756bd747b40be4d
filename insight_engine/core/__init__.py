"""
Core infrastructure package.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities
- Domain exceptions

Re-exports allow:

    from insight_engine.core import get_settings, get_db_pool, ConfigurationError
"""

# =============================================================================
# Re-exports from insight_engine.core.config
# =============================================================================
from insight_engine.core.config import Settings, get_settings

# =============================================================================
# Re-exports from insight_engine.core.exceptions
# =============================================================================
from insight_engine.core.exceptions import (
    EngineError,
    ValidationError,
    SourceTimeoutError,
    TemplatePreconditionUnmet,
    EmptyInputError,
    ConfigurationError,
)

# =============================================================================
# Re-exports from insight_engine.core.database
# =============================================================================
from insight_engine.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from insight_engine.core.dependencies
# =============================================================================
from insight_engine.core.dependencies import get_settings_dependency, SettingsDep

__all__ = [
    # Configuration
    'Settings',
    'get_settings',
    # Exceptions
    'EngineError',
    'ValidationError',
    'SourceTimeoutError',
    'TemplatePreconditionUnmet',
    'EmptyInputError',
    'ConfigurationError',
    # Database pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
    # Dependency injection
    'get_settings_dependency',
    'SettingsDep',
]
