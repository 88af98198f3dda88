"""
Persistence layer for job records.

Single-file SQLite database. The orchestrating process is the only writer.
"""

from .errors import (
    PersistenceError,
    SchemaError,
    LoadError,
    SaveError,
)
from .manager import PersistenceManager, SCHEMA_VERSION

__all__ = [
    "PersistenceError",
    "SchemaError",
    "LoadError",
    "SaveError",
    "PersistenceManager",
    "SCHEMA_VERSION",
]
