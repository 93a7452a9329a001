"""
Backup Export and Import

A backup is the same JSON document the file storage writes, so any stored
ledger file can be imported and any export can be dropped in as a store.
"""

from pydantic import ValidationError as PydanticValidationError

from fintrack.errors import ValidationError
from fintrack.models.records import SCHEMA_VERSION, LedgerSnapshot
from fintrack.models.views import ValidationIssue


def export_backup(snapshot: LedgerSnapshot) -> str:
    """Serialize a snapshot to an indented JSON document."""
    return snapshot.model_dump_json(indent=2)


def parse_backup(document: str) -> LedgerSnapshot:
    """
    Parse and validate a backup document.

    Raises:
        ValidationError: If the document is not a valid ledger snapshot or
            was written by a newer schema version
    """
    try:
        snapshot = LedgerSnapshot.model_validate_json(document)
    except PydanticValidationError as e:
        issues = [
            ValidationIssue(
                field=".".join(str(part) for part in error["loc"]) or "document",
                issue_type=error["type"],
                message=error["msg"],
                severity="error",
            )
            for error in e.errors()
        ]
        raise ValidationError("Backup document is not a valid ledger", issues=issues) from e

    if snapshot.schema_version > SCHEMA_VERSION:
        raise ValidationError(
            f"Backup schema version {snapshot.schema_version} is newer than "
            f"supported version {SCHEMA_VERSION}"
        )
    return snapshot
