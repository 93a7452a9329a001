"""Services package."""

from fintrack.services.backup import export_backup, parse_backup
from fintrack.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    LedgerStorageInterface,
)

__all__ = [
    # Backup
    "export_backup",
    "parse_backup",
    # Storage services
    "InMemoryStorage",
    "JsonFileStorage",
    "LedgerStorageInterface",
]
