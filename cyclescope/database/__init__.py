"""Database package: async engine, sessions and ORM models."""

from cyclescope.database.connection import (
    close_database,
    get_async_database_url,
    get_session,
    init_database,
)
from cyclescope.database.orm import Base, SecularAnalysis


__all__ = [
    "Base",
    "SecularAnalysis",
    "close_database",
    "get_async_database_url",
    "get_session",
    "init_database",
]
