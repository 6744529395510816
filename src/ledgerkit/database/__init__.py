"""Database layer for ledgerkit."""

from ledgerkit.database.base import (
    Database,
    IdempotencyStore,
    Repo,
    StoredResponse,
    Writer,
    WriterTransaction,
)
from ledgerkit.database.factories import create_memory_database, create_sqlite_database

__all__ = [
    "Database",
    "IdempotencyStore",
    "Repo",
    "StoredResponse",
    "Writer",
    "WriterTransaction",
    "create_memory_database",
    "create_sqlite_database",
]
