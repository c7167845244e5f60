"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.play_repository import SqlitePlayRepository

__all__ = [
    "Database",
    "SqlitePlayRepository",
]
