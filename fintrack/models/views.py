"""
Derived View Models

Read-only results computed from the store on demand. Nothing here is
persisted; every instance reflects the store at the moment it was built.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.models.records import BudgetStatus, FundingRef, utc_now


def format_percentage(ratio: Decimal) -> str:
    """
    Render a ratio as a percentage with one decimal place.

    Rounds half away from zero (Decimal's ROUND_HALF_UP), so
    8000 / 30000 renders as "26.7%".
    """
    percent = (ratio * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{percent}%"


# =============================================================================
# AGGREGATES
# =============================================================================

class MonthlySummary(BaseModel):
    """Expense and income totals for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    expense_total: Decimal = Decimal("0")
    income_total: Decimal = Decimal("0")
    expense_count: int = 0
    income_count: int = 0
    expenses_by_category: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def net_cash_flow(self) -> Decimal:
        """Income minus expenses for the month."""
        return self.income_total - self.expense_total


class CreditUtilization(BaseModel):
    """Utilization of one card, or of all cards together when card_id is None."""

    card_id: Optional[UUID] = None
    current_balance: Decimal
    credit_limit: Decimal
    ratio: Decimal

    @property
    def percentage(self) -> str:
        return format_percentage(self.ratio)

    @property
    def display_ratio(self) -> Decimal:
        """Ratio capped to [0, 1] for progress bars. Never stored."""
        return min(max(self.ratio, Decimal("0")), Decimal("1"))


class CalendarDayTotal(BaseModel):
    """Expense total and count for a single day of the month."""

    day: int = Field(ge=1, le=31)
    total: Decimal = Decimal("0")
    count: int = 0


class BudgetUsage(BaseModel):
    """
    Spending against one budget for its month.

    percentage is spent / limit * 100. A budget with no limit counts as
    100% used once anything is spent.
    """

    budget_id: UUID
    category: str
    year: int
    month: int = Field(ge=1, le=12)
    spent: Decimal
    limit: Decimal
    percentage: Decimal
    remaining: Decimal
    status: BudgetStatus

    @property
    def display_percentage(self) -> str:
        return format_percentage(self.percentage / 100)


class RunningBalance(BaseModel):
    """Balance of an account or card right after one transaction."""

    transaction_id: UUID
    date: date
    amount: Decimal
    balance_after: Decimal


# =============================================================================
# INTEGRITY MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation or integrity issue found."""

    field: str = Field(
        ...,
        description="Field or entity with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_reference', 'balance_discrepancy')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage input validation.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (references and consistency against the store)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


class BalanceDiscrepancy(BaseModel):
    """A stored balance that no longer matches its transactions."""

    target: FundingRef
    stored_balance: Decimal
    expected_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.expected_balance


class IntegrityReport(BaseModel):
    """Outcome of a full consistency check over the store."""

    checked_at: datetime = Field(default_factory=utc_now)
    discrepancies: list[BalanceDiscrepancy] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies and not self.issues

    @property
    def issues_found(self) -> int:
        return len(self.discrepancies) + len(self.issues)


class ReconcileSummary(BaseModel):
    """Outcome of recomputing every balance from its transactions."""

    started_at: datetime = Field(default_factory=utc_now)
    accounts_processed: int = 0
    balances_fixed: int = 0
    fixed: list[BalanceDiscrepancy] = Field(default_factory=list)
