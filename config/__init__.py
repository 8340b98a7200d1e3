"""Configuration package for the draw analysis system."""

from .settings import settings
from .database import (
    DatabaseError,
    DatabaseManager,
    init_database,
    check_database_connection,
    db_manager
)

__all__ = [
    'settings',
    'DatabaseError',
    'DatabaseManager',
    'init_database',
    'check_database_connection',
    'db_manager'
]
