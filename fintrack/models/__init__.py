"""
Data Models Package

This package contains all Pydantic models used by fintrack.
All data flowing through the ledger must conform to these schemas.
"""

from fintrack.models.records import (
    SCHEMA_VERSION,
    Account,
    AccountType,
    Budget,
    BudgetStatus,
    Category,
    CategoryDomain,
    CreditCard,
    Currency,
    Expense,
    FundingKind,
    FundingRef,
    Income,
    LedgerSnapshot,
    PaymentMethod,
    Transaction,
    TransactionKind,
    Transfer,
)
from fintrack.models.inputs import (
    AccountInput,
    AccountUpdate,
    BudgetInput,
    BudgetUpdate,
    CategoryInput,
    CategoryUpdate,
    CreditCardInput,
    CreditCardUpdate,
    ExpenseInput,
    ExpenseQuery,
    IncomeInput,
    IncomeQuery,
    TransferInput,
)
from fintrack.models.views import (
    BalanceDiscrepancy,
    BudgetUsage,
    CalendarDayTotal,
    CreditUtilization,
    IntegrityReport,
    MonthlySummary,
    ReconcileSummary,
    RunningBalance,
    ValidationIssue,
    ValidationResult,
    format_percentage,
)

__all__ = [
    # Records
    "SCHEMA_VERSION",
    "Account",
    "AccountType",
    "Budget",
    "BudgetStatus",
    "Category",
    "CategoryDomain",
    "CreditCard",
    "Currency",
    "Expense",
    "FundingKind",
    "FundingRef",
    "Income",
    "LedgerSnapshot",
    "PaymentMethod",
    "Transaction",
    "TransactionKind",
    "Transfer",
    # Inputs
    "AccountInput",
    "AccountUpdate",
    "BudgetInput",
    "BudgetUpdate",
    "CategoryInput",
    "CategoryUpdate",
    "CreditCardInput",
    "CreditCardUpdate",
    "ExpenseInput",
    "ExpenseQuery",
    "IncomeInput",
    "IncomeQuery",
    "TransferInput",
    # Views
    "BalanceDiscrepancy",
    "BudgetUsage",
    "CalendarDayTotal",
    "CreditUtilization",
    "IntegrityReport",
    "MonthlySummary",
    "ReconcileSummary",
    "RunningBalance",
    "ValidationIssue",
    "ValidationResult",
    "format_percentage",
]
