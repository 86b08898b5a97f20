"""Transactional storage for vault users and files.

Records live in an embedded DuckDB database with two collections:
- users: keyed by email
- files: keyed by id, with a secondary index on owner

All access goes through StorageEngine; nothing else opens the database.
"""
from .engine import SCHEMA_VERSION, StorageEngine, StoreHandle
from .schemas import FileRecord, FileSummary, UserRecord

__all__ = [
    "SCHEMA_VERSION",
    "StorageEngine",
    "StoreHandle",
    "FileRecord",
    "FileSummary",
    "UserRecord",
]
