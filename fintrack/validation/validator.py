"""
Two-Stage Validation Pipeline

DESIGN DECISION: Input validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence
- Negative amounts, impossible days of month, malformed card digits
- Done by parsing into the operation's input model

STAGE 2 - SEMANTIC VALIDATION:
- Funding reference points at an existing account or card
- A transfer names two existing accounts or cards
- Payment method agrees with the funding kind
- Category is known for the record's domain
- Date is not far in the future
- Needs the store, so it runs after stage 1 succeeds

Only errors block an operation. Warnings are logged and returned so the
presentation layer can surface them, but the record is still written.

IMPORTANT: Validation NEVER silently fixes input.
"""

from datetime import date, timedelta
from typing import Optional, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from fintrack.config import get_settings
from fintrack.config.settings import AppSettings
from fintrack.core.store import RecordStore
from fintrack.errors import InvalidReferenceError, ValidationError
from fintrack.log import get_logger
from fintrack.models.inputs import ExpenseInput, IncomeInput, TransferInput
from fintrack.models.records import (
    CategoryDomain,
    FundingKind,
    FundingRef,
    PaymentMethod,
)
from fintrack.models.views import ValidationIssue, ValidationResult


logger = get_logger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)


class EntryValidator:
    """
    Validates ledger input through a two-stage pipeline.

    Stage 1: Schema validation (no store needed)
    Stage 2: Semantic validation (reads the store)
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Stage 1
    # -------------------------------------------------------------------------

    def parse(self, model: type[InputT], data: Union[InputT, dict]) -> InputT:
        """
        Stage 1: coerce `data` into `model`.

        Already-built instances pass through untouched.

        Raises:
            ValidationError: With one issue per failing field
        """
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "input",
                    issue_type=error["type"],
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            raise ValidationError(
                f"Invalid {model.__name__}: {len(issues)} field(s) failed validation",
                issues=issues,
            ) from e

    # -------------------------------------------------------------------------
    # Stage 2
    # -------------------------------------------------------------------------

    def validate_expense(self, data: ExpenseInput) -> ValidationResult:
        issues = []
        issues.extend(self._check_funding(data.funding))
        issues.extend(self._check_payment_method(data.payment_method, data.funding))
        issues.extend(self._check_category(CategoryDomain.EXPENSE, data.category))
        issues.extend(self._check_date(data.date))
        return self._result(issues)

    def validate_income(self, data: IncomeInput) -> ValidationResult:
        issues = []
        issues.extend(self._check_funding(data.funding))
        issues.extend(self._check_category(CategoryDomain.INCOME, data.category))
        issues.extend(self._check_date(data.date))
        return self._result(issues)

    def validate_transfer(self, data: TransferInput) -> ValidationResult:
        issues = []
        issues.extend(self._check_funding(data.source, "source"))
        issues.extend(self._check_funding(data.destination, "destination"))
        issues.extend(self._check_date(data.date))
        return self._result(issues)

    def raise_for_errors(
        self,
        result: ValidationResult,
        operation: str,
        *references: Optional[FundingRef],
    ) -> None:
        """
        Raise if the result has any error; log warnings otherwise.

        An unknown funding reference raises InvalidReferenceError so callers
        can tell it apart from malformed input. The first of `references`
        missing from the store is the one reported.
        """
        if any(issue.issue_type == "invalid_reference" for issue in result.issues):
            for ref in references:
                if ref is not None and not self._store.has_funding_target(ref):
                    raise InvalidReferenceError(ref.kind.value, ref.id)

        if result.has_errors:
            raise ValidationError(
                f"{operation} rejected: {result.error_count} error(s)",
                issues=result.issues,
            )

        for warning in result.warnings:
            logger.warning("validation_warning", operation=operation, message=warning)

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _check_funding(
        self,
        funding: Optional[FundingRef],
        field: str = "funding",
    ) -> list[ValidationIssue]:
        if funding is None or self._store.has_funding_target(funding):
            return []
        label = "account" if funding.kind == FundingKind.ACCOUNT else "credit card"
        return [ValidationIssue(
            field=field,
            issue_type="invalid_reference",
            message=f"The selected {label} does not exist",
            severity="error",
            suggested_fix=f"Choose an existing {label} or leave funding empty",
        )]

    def _check_payment_method(
        self,
        method: PaymentMethod,
        funding: Optional[FundingRef],
    ) -> list[ValidationIssue]:
        if funding is None:
            return []
        if method == PaymentMethod.CREDIT and funding.kind == FundingKind.ACCOUNT:
            message = "Paid by credit but charged to a bank account"
        elif method == PaymentMethod.DEBIT and funding.kind == FundingKind.CREDIT_CARD:
            message = "Paid by debit but charged to a credit card"
        else:
            return []
        return [ValidationIssue(
            field="payment_method",
            issue_type="inconsistent",
            message=message,
            severity="warning",
            suggested_fix="Check the payment method matches the selected account",
        )]

    def _check_category(self, domain: CategoryDomain, name: str) -> list[ValidationIssue]:
        if self._store.find_category(domain, name) is not None:
            return []
        return [ValidationIssue(
            field="category",
            issue_type="unknown_category",
            message=f"'{name}' is not a known {domain.value} category",
            severity="warning",
            suggested_fix="Create the category first or pick an existing one",
        )]

    def _check_date(self, record_date: date) -> list[ValidationIssue]:
        tolerance = timedelta(days=self._settings.future_date_tolerance_days)
        if record_date <= date.today() + tolerance:
            return []
        return [ValidationIssue(
            field="date",
            issue_type="future_date",
            message=f"Date ({record_date}) is in the future",
            severity="warning",
            suggested_fix="Please verify the date is correct",
        )]

    def _result(self, issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(
            schema_valid=True,
            semantic_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )
