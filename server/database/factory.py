"""
Factory for the storage backend selected by DB_BACKEND:
- "mongodb" (default): MongoDB through motor, transactions need a replica set
- "memory": process-local store, for tests and local development
"""

from typing import Optional

from config import config
from models.errors import ValidationError
from helpers.Logger import get_logger
from .base import DatabaseInterface

logger = get_logger("database.factory")

# Singleton instance
_db_instance: Optional[DatabaseInterface] = None


def get_database() -> DatabaseInterface:
    """Get or create the connected database instance."""
    global _db_instance

    if _db_instance is not None:
        return _db_instance

    backend = config.DB_BACKEND
    logger.info(f"Database backend: {backend}")

    if backend == "mongodb":
        from .DB import Database
        db = Database()
        db.check_connection()
    elif backend == "memory":
        from .MemoryDB import MemoryDatabase
        db = MemoryDatabase()
    else:
        raise ValidationError(f"Unknown DB_BACKEND: {backend}. Valid options: mongodb, memory")

    db.connect()
    _db_instance = db
    return _db_instance


def reset_database() -> None:
    """Drop the singleton. Used by tests and on shutdown."""
    global _db_instance
    if _db_instance is not None:
        _db_instance.close()
        _db_instance = None
