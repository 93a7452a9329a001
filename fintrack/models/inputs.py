"""
Input Models

One typed input struct per ledger operation. The presentation layer builds
these from its forms; the ledger never receives a loosely-typed dict past
its public boundary.

Create inputs carry every required field. Update inputs for accounts, cards
and budgets are partial: only the fields that were explicitly set are
applied (`model_dump(exclude_unset=True)`). Expense, income and transfer
updates take a full input, since they replace the record and re-derive its
transactions.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fintrack.models.records import (
    AccountType,
    CategoryDomain,
    Currency,
    DayOfMonth,
    FundingRef,
    Money,
    PaymentMethod,
    PositiveMoney,
)


class AccountInput(BaseModel):
    """Fields for opening a bank account. `balance` is the opening balance."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    bank_name: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType = AccountType.CHECKING
    account_number: Optional[str] = None
    currency: Currency = Currency.MXN
    balance: Money = Decimal("0")
    is_active: bool = True


class AccountUpdate(BaseModel):
    """
    Partial account update.

    Setting `balance` is the quick balance update: the new value is taken
    as truth and the opening balance is rebased underneath it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    bank_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    account_type: Optional[AccountType] = None
    account_number: Optional[str] = None
    currency: Optional[Currency] = None
    balance: Optional[Money] = None
    is_active: Optional[bool] = None


class CreditCardInput(BaseModel):
    """Fields for registering a card. `balance` is the debt already on it."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    bank_name: str = Field(..., min_length=1, max_length=100)
    card_name: str = Field(..., min_length=1, max_length=100)
    last_four_digits: str = Field(..., pattern=r"^\d{4}$")
    credit_limit: PositiveMoney
    balance: Money = Decimal("0")
    cutoff_day: DayOfMonth = 1
    payment_day: DayOfMonth = 1
    interest_rate: Decimal = Field(default=Decimal("0"), ge=0)


class CreditCardUpdate(BaseModel):
    """Partial card update. `balance` rebases like AccountUpdate.balance."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    bank_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    card_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_four_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    credit_limit: Optional[PositiveMoney] = None
    balance: Optional[Money] = None
    cutoff_day: Optional[DayOfMonth] = None
    payment_day: Optional[DayOfMonth] = None
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)


class ExpenseInput(BaseModel):
    """Fields for creating or replacing an expense."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    description: str = Field(..., min_length=1, max_length=200)
    amount: PositiveMoney
    date: date
    category: str = Field(..., min_length=1, max_length=100)
    subcategory: Optional[str] = Field(default=None, max_length=100)
    payment_method: PaymentMethod = PaymentMethod.CASH
    funding: Optional[FundingRef] = None
    tags: set[str] = Field(default_factory=set)
    recurring: bool = False


class IncomeInput(BaseModel):
    """Fields for creating or replacing an income entry."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    description: str = Field(..., min_length=1, max_length=200)
    amount: PositiveMoney
    date: date
    category: str = Field(..., min_length=1, max_length=100)
    source: str = Field(..., min_length=1, max_length=100)
    recurring: bool = False
    funding: Optional[FundingRef] = None


class TransferInput(BaseModel):
    """Fields for creating or replacing a transfer between own accounts or cards."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    source: FundingRef
    destination: FundingRef
    amount: PositiveMoney = Field(..., gt=0)
    date: date
    description: str = Field(default="", max_length=200)

    @model_validator(mode="after")
    def check_distinct_ends(self) -> "TransferInput":
        if self.source == self.destination:
            raise ValueError("source and destination must be different")
        return self


class BudgetInput(BaseModel):
    """Fields for a monthly category budget. `alert_threshold` is a percentage."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    category: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)
    monthly_limit: PositiveMoney
    rollover_amount: Money = Decimal("0")
    alert_threshold: Decimal = Field(default=Decimal("80"), ge=0, le=100)


class BudgetUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    monthly_limit: Optional[PositiveMoney] = None
    rollover_amount: Optional[Money] = None
    alert_threshold: Optional[Decimal] = Field(default=None, ge=0, le=100)


class CategoryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    domain: CategoryDomain
    icon: Optional[str] = None
    color: Optional[str] = None
    order: Optional[int] = None


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None
    order: Optional[int] = None


# =============================================================================
# QUERY MODELS
# =============================================================================

class RecordQuery(BaseModel):
    """
    Filters shared by expense and income searches.

    Every filter is optional; an empty query matches everything.
    List filters match when the record's value is any of the listed ones.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    search_term: Optional[str] = None
    categories: list[str] = Field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    limit: Optional[int] = Field(default=None, ge=1)


class ExpenseQuery(RecordQuery):
    payment_methods: list[PaymentMethod] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class IncomeQuery(RecordQuery):
    sources: list[str] = Field(default_factory=list)
