"""
POPSTATS - Core Module
Configuration, database handle and error types.
"""

from popstats.core.config import Settings, get_settings, settings
from popstats.core.database import Base, DatabaseManager
from popstats.core.errors import FetchError, ParseError, PopstatsError, StoreError

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "Base",
    "DatabaseManager",
    "PopstatsError",
    "FetchError",
    "ParseError",
    "StoreError",
]
