"""Shared fixtures for the fintrack test suite."""

from datetime import date
from decimal import Decimal

import pytest

from fintrack.models import AccountInput, CreditCardInput, FundingRef
from fintrack.orchestrator import Ledger, create_ledger
from fintrack.services import InMemoryStorage


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def ledger(storage) -> Ledger:
    """A loaded ledger over in-memory storage (default categories seeded)."""
    return create_ledger(storage=storage)


@pytest.fixture
def account(ledger):
    return ledger.create_account(AccountInput(
        bank_name="BBVA",
        account_number="0123456789",
        balance=Decimal("1000"),
    ))


@pytest.fixture
def card(ledger):
    return ledger.create_credit_card(CreditCardInput(
        bank_name="Banamex",
        card_name="Oro",
        last_four_digits="4321",
        credit_limit=Decimal("30000"),
        balance=Decimal("5000"),
        cutoff_day=15,
        payment_day=5,
    ))


def expense_data(amount="100", funding=None, **overrides) -> dict:
    data = {
        "description": "Groceries",
        "amount": Decimal(amount),
        "date": date(2024, 3, 15),
        "category": "Food",
        "payment_method": "debit",
        "funding": funding,
    }
    data.update(overrides)
    return data


def income_data(amount="500", funding=None, **overrides) -> dict:
    data = {
        "description": "Paycheck",
        "amount": Decimal(amount),
        "date": date(2024, 3, 1),
        "category": "Salary",
        "source": "Employer",
        "funding": funding,
    }
    data.update(overrides)
    return data


def account_ref(account) -> FundingRef:
    return FundingRef.account(account.id)
