"""Database module for local SQLite storage."""

from .models import Base
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Base",
    "Database",
    "get_db",
    "reset_db",
]
