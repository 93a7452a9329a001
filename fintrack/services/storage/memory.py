"""
In-Memory Storage

Keeps the persisted snapshot as a JSON string so that a reload goes through
exactly the same serialization as the file backend. Used by tests and by
the 'memory' storage backend setting.
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from fintrack.errors import PersistenceError
from fintrack.models.records import LedgerSnapshot
from fintrack.services.storage.interface import LedgerStorageInterface


class InMemoryStorage(LedgerStorageInterface):

    def __init__(self):
        self._document: Optional[str] = None
        self.save_count = 0

    def load(self) -> Optional[LedgerSnapshot]:
        if self._document is None:
            return None
        try:
            return LedgerSnapshot.model_validate_json(self._document)
        except PydanticValidationError as e:
            raise PersistenceError(
                f"Stored ledger in memory is corrupt: {e.error_count()} invalid fields"
            ) from e

    def save(self, snapshot: LedgerSnapshot) -> None:
        self._document = snapshot.model_dump_json()
        self.save_count += 1

    def clear(self) -> None:
        self._document = None
