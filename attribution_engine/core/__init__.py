"""
Core infrastructure package.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities
- Engine exception types

Re-exports allow simplified imports such as:

    from attribution_engine.core import get_settings, DBSessionDep
"""

from attribution_engine.core.config import Settings, get_settings
from attribution_engine.core.database import init_db, close_db, get_db_pool
from attribution_engine.core.dependencies import (
    get_db_session,
    get_settings_dependency,
    SettingsDep,
    DBSessionDep,
)
from attribution_engine.core.errors import (
    AttributionEngineError,
    InvalidAnalysisParameters,
    RuleStoreError,
)

__all__ = [
    'Settings',
    'get_settings',
    'init_db',
    'close_db',
    'get_db_pool',
    'get_db_session',
    'get_settings_dependency',
    'SettingsDep',
    'DBSessionDep',
    'AttributionEngineError',
    'InvalidAnalysisParameters',
    'RuleStoreError',
]
