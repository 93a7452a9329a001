"""
Ledger Exceptions

Every failure the ledger reports to its caller is one of these.
All of them are raised BEFORE any mutation becomes visible, so a caller
that catches one can rely on the store being exactly as it was.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class NotFoundError(LedgerError):
    """An account, card, record or category id does not exist."""

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class InvalidReferenceError(LedgerError):
    """An expense or income names an account or card that does not exist."""

    def __init__(self, kind: str, ref_id: object):
        self.kind = kind
        self.ref_id = ref_id
        super().__init__(f"Funding reference points to unknown {kind}: {ref_id}")


class ValidationError(LedgerError):
    """
    Malformed input rejected before mutation.

    Carries the individual issues so the presentation layer can show
    them next to the offending fields.
    """

    def __init__(self, message: str, issues: Optional[list] = None):
        self.issues = issues or []
        super().__init__(message)


class DuplicateError(ValidationError):
    """Attempted to create a second category with the same name in a domain."""
    pass


class PersistenceError(LedgerError):
    """Durable storage could not be read or written."""
    pass
