"""
Core Data Models for fintrack

These models define the strict schemas for every record the ledger keeps.
They are designed to:
1. Enforce type safety at runtime
2. Keep money in Decimal end to end
3. Be serializable for local storage and backups

DESIGN DECISION: A Transaction is never created directly. It only exists
as a side effect of an Expense or Income that names a funding account or
card, or of a Transfer between two of them.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


SCHEMA_VERSION = 1


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp used for all created/updated fields."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Bank account types."""
    CHECKING = "checking"
    SAVINGS = "savings"
    OTHER = "other"


class Currency(str, Enum):
    """
    Supported currencies.

    No conversion happens anywhere: amounts in different currencies are
    summed as plain numbers, the same way the dashboard always has.
    """
    MXN = "MXN"
    USD = "USD"


class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "cash"
    DEBIT = "debit"
    CREDIT = "credit"
    OTHER = "other"


class CategoryDomain(str, Enum):
    """Which kind of record a category applies to."""
    EXPENSE = "expense"
    INCOME = "income"


class FundingKind(str, Enum):
    """What a funding reference points at."""
    ACCOUNT = "account"
    CREDIT_CARD = "credit_card"


class TransactionKind(str, Enum):
    """Which kind of source record produced a transaction."""
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class BudgetStatus(str, Enum):
    """How close a budget is to its limit."""
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"
    EXCEEDED = "exceeded"


Money = Annotated[Decimal, Field(decimal_places=2)]
PositiveMoney = Annotated[Decimal, Field(ge=0, decimal_places=2)]
DayOfMonth = Annotated[int, Field(ge=1, le=31)]


# =============================================================================
# REFERENCES
# =============================================================================

class FundingRef(BaseModel):
    """
    Reference to the bank account or credit card that funded a record.

    Frozen so it can be used as a dict key when grouping transactions.
    """
    model_config = ConfigDict(frozen=True)

    kind: FundingKind
    id: UUID

    @classmethod
    def account(cls, account_id: UUID) -> "FundingRef":
        return cls(kind=FundingKind.ACCOUNT, id=account_id)

    @classmethod
    def credit_card(cls, card_id: UUID) -> "FundingRef":
        return cls(kind=FundingKind.CREDIT_CARD, id=card_id)


# =============================================================================
# ACCOUNTS AND CARDS
# =============================================================================

class Account(BaseModel):
    """
    A bank account.

    INVARIANT: balance == initial_balance + sum of the amounts of all live
    transactions whose target is this account.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    bank_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Bank or wallet name"
    )
    account_type: AccountType = AccountType.CHECKING
    account_number: Optional[str] = Field(
        default=None,
        description="Masked account number, only the last four digits kept"
    )
    currency: Currency = Currency.MXN
    balance: Money = Decimal("0")
    initial_balance: Money = Field(
        default=Decimal("0"),
        description="Opening balance the transactions are applied on top of"
    )
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("account_number")
    @classmethod
    def mask_account_number(cls, v: Optional[str]) -> Optional[str]:
        """Never keep a full account number."""
        if v is None:
            return None
        digits = "".join(c for c in v if c.isdigit())
        if not digits:
            return None
        return f"****{digits[-4:]}"

    @property
    def ref(self) -> FundingRef:
        return FundingRef.account(self.id)


class CreditCard(BaseModel):
    """
    A credit card.

    current_balance is the outstanding debt. Charges raise it, payments
    and refunds lower it.

    INVARIANT: current_balance == initial_balance + sum of the amounts of
    all live transactions whose target is this card.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    bank_name: str = Field(..., min_length=1, max_length=100)
    card_name: str = Field(..., min_length=1, max_length=100)
    last_four_digits: str = Field(..., pattern=r"^\d{4}$")
    credit_limit: PositiveMoney
    current_balance: Money = Decimal("0")
    initial_balance: Money = Decimal("0")
    cutoff_day: DayOfMonth = 1
    payment_day: DayOfMonth = 1
    interest_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Annual interest rate in percent"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def ref(self) -> FundingRef:
        return FundingRef.credit_card(self.id)

    @property
    def available_credit(self) -> Decimal:
        return self.credit_limit - self.current_balance

    @property
    def utilization(self) -> Decimal:
        """current_balance / credit_limit, 0 for a card with no limit."""
        if self.credit_limit == 0:
            return Decimal("0")
        return self.current_balance / self.credit_limit


# =============================================================================
# SOURCE RECORDS
# =============================================================================

class Expense(BaseModel):
    """An expense, optionally paid from an account or charged to a card."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    amount: PositiveMoney
    date: date
    category: str = Field(..., min_length=1, max_length=100)
    subcategory: Optional[str] = Field(default=None, max_length=100)
    payment_method: PaymentMethod = PaymentMethod.CASH
    funding: Optional[FundingRef] = None
    tags: set[str] = Field(default_factory=set)
    recurring: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Income(BaseModel):
    """An income entry, optionally deposited into an account or card."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    amount: PositiveMoney
    date: date
    category: str = Field(..., min_length=1, max_length=100)
    source: str = Field(..., min_length=1, max_length=100)
    recurring: bool = False
    funding: Optional[FundingRef] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Transfer(BaseModel):
    """
    Money moved between two of the user's own accounts or cards.

    Owns exactly two transactions: one leaving the source, one arriving at
    the destination. Leaving a bank account lowers its balance, leaving a
    card is a cash advance (more debt). Arriving at a bank account raises
    its balance, arriving at a card is a payment (less debt).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    source: FundingRef
    destination: FundingRef
    amount: PositiveMoney
    date: date
    description: str = Field(default="", max_length=200)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Transaction(BaseModel):
    """
    A monetary movement against one account or card.

    The stored amount is the signed effect on the target's balance:
    for bank accounts expenses are negative and income positive, for
    credit cards expenses are positive (more debt) and income negative.

    CRITICAL: Owned by its source record. Deleting or disconnecting the
    source deletes the transaction. A transfer owns two, every other
    source owns at most one.
    """

    id: UUID = Field(default_factory=uuid4)
    target: FundingRef
    amount: Money
    description: str
    category: Optional[str] = None
    date: date
    source_id: UUID = Field(
        ...,
        description="Expense, income or transfer that produced this transaction"
    )
    kind: TransactionKind
    created_at: datetime = Field(default_factory=utc_now)


class Category(BaseModel):
    """
    An expense or income category.

    Names are unique within a domain, compared case-insensitively.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    domain: CategoryDomain
    icon: Optional[str] = None
    color: Optional[str] = None
    order: int = 0
    is_default: bool = False

    @property
    def key(self) -> tuple[CategoryDomain, str]:
        """Uniqueness key within the store."""
        return self.domain, self.name.casefold()


class Budget(BaseModel):
    """
    A monthly spending limit for one expense category.

    Spending is never stored here; it is computed from expenses whenever
    the budget is read.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    category: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)
    monthly_limit: PositiveMoney
    rollover_amount: Money = Field(
        default=Decimal("0"),
        description="Unspent amount carried over from the previous month"
    )
    alert_threshold: Decimal = Field(
        default=Decimal("80"),
        ge=0,
        le=100,
        description="Percentage of the limit at which the budget turns to warning"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple[str, int, int]:
        """One budget per category and month."""
        return self.category.casefold(), self.year, self.month

    @property
    def limit(self) -> Decimal:
        return self.monthly_limit + self.rollover_amount


# =============================================================================
# STORE SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    The complete persisted state of one ledger.

    This is both the local storage document and the backup format.
    """

    schema_version: int = SCHEMA_VERSION
    accounts: dict[UUID, Account] = Field(default_factory=dict)
    credit_cards: dict[UUID, CreditCard] = Field(default_factory=dict)
    expenses: dict[UUID, Expense] = Field(default_factory=dict)
    incomes: dict[UUID, Income] = Field(default_factory=dict)
    transfers: dict[UUID, Transfer] = Field(default_factory=dict)
    transactions: dict[UUID, Transaction] = Field(default_factory=dict)
    categories: dict[UUID, Category] = Field(default_factory=dict)
    budgets: dict[UUID, Budget] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (
            self.accounts
            or self.credit_cards
            or self.expenses
            or self.incomes
            or self.transfers
            or self.transactions
            or self.categories
            or self.budgets
        )
