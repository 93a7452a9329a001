"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for persistence.
This allows us to:
1. Keep the ledger's state in a local JSON document today
2. Use in-memory storage for testing
3. Swap in an embedded database later without touching ledger logic

The interface is intentionally tiny. The ledger keeps its authoritative
state in memory and hands storage a complete snapshot after every
successful operation, so storage never has to understand individual records.
"""

from abc import ABC, abstractmethod
from typing import Optional

from fintrack.models.records import LedgerSnapshot


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def load(self) -> Optional[LedgerSnapshot]:
        """
        Load the persisted snapshot.

        Returns:
            The snapshot, or None if nothing has been persisted yet

        Raises:
            PersistenceError: If stored data exists but cannot be read
        """
        pass

    @abstractmethod
    def save(self, snapshot: LedgerSnapshot) -> None:
        """
        Persist a complete snapshot, replacing whatever was stored.

        Either the whole snapshot is stored or nothing changes.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all persisted data."""
        pass
