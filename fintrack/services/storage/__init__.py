"""
Storage Services Package

Provides the abstract persistence interface and its implementations.
Currently implements a local JSON document, but designed to be swappable.
"""

from fintrack.services.storage.interface import LedgerStorageInterface
from fintrack.services.storage.json_file import JsonFileStorage
from fintrack.services.storage.memory import InMemoryStorage

__all__ = [
    "InMemoryStorage",
    "JsonFileStorage",
    "LedgerStorageInterface",
]
