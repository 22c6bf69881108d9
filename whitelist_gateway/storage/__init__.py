"""Storage backends for whitelist entries and access requests."""

from .base import (
    AccessRequestRepository,
    CreateResult,
    RenameResult,
    StorageUnavailable,
    UpdateResult,
)
from .memory import InMemoryRepository
from .sql import SqlRepository, create_db_engine

__all__ = [
    "AccessRequestRepository",
    "CreateResult",
    "UpdateResult",
    "RenameResult",
    "StorageUnavailable",
    "InMemoryRepository",
    "SqlRepository",
    "create_db_engine",
]
