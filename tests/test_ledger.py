"""
Tests for the Ledger facade

Test strategy:
1. Every mutating operation is checked against the balance invariant
   (balance == initial_balance + sum of live transactions)
2. Every rejected operation is checked to leave the store unchanged
3. Storage is in-memory; file storage has its own tests
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import account_ref, expense_data, income_data
from fintrack.errors import (
    InvalidReferenceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from fintrack.models import (
    AccountInput,
    AccountUpdate,
    CreditCardUpdate,
    FundingRef,
    TransactionKind,
)
from fintrack.orchestrator import create_ledger
from fintrack.services import InMemoryStorage


def assert_consistent(ledger):
    report = ledger.check_integrity()
    assert report.is_consistent, report


class FailingStorage(InMemoryStorage):
    """In-memory storage whose writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.fail = False

    def save(self, snapshot):
        if self.fail:
            raise PersistenceError("disk full")
        super().save(snapshot)


class TestAccountBalances:
    """Account balances follow their expenses and income."""

    def test_expense_then_income(self, ledger, account):
        """Test 1000 - 300 expense + 500 income lands on 1200."""
        ledger.create_expense(expense_data("300", account_ref(account)))
        assert ledger.get_account(account.id).balance == Decimal("700")

        ledger.create_income(income_data("500", account_ref(account)))
        assert ledger.get_account(account.id).balance == Decimal("1200")
        assert_consistent(ledger)

    def test_new_account_opening_balance(self, ledger, account):
        """Test the opening balance is also the initial balance."""
        stored = ledger.get_account(account.id)
        assert stored.balance == Decimal("1000")
        assert stored.initial_balance == Decimal("1000")
        assert stored.account_number == "****6789"
        assert ledger.list_transactions(account.id) == []

    def test_expense_without_funding_creates_no_transaction(self, ledger, account):
        """Test unfunded records never touch any balance."""
        expense = ledger.create_expense(expense_data("300"))
        ledger.update_expense(expense.id, expense_data("300", description="Market"))

        assert ledger.get_account(account.id).balance == Decimal("1000")
        assert ledger.store.transaction_for_source(expense.id) is None
        assert ledger.get_expense(expense.id).description == "Market"

    def test_zero_amount_still_creates_transaction(self, ledger, account):
        """Test a zero amount expense is linked with a zero-effect transaction."""
        expense = ledger.create_expense(expense_data("0", account_ref(account)))

        transactions = ledger.list_transactions(account.id)
        assert len(transactions) == 1
        assert transactions[0].amount == 0
        assert transactions[0].source_id == expense.id
        assert ledger.get_account(account.id).balance == Decimal("1000")

    def test_transaction_mirrors_source(self, ledger, account):
        """Test the synthesized transaction copies the record's fields."""
        expense = ledger.create_expense(expense_data("250.50", account_ref(account)))

        transaction = ledger.store.transaction_for_source(expense.id)
        assert transaction.kind == TransactionKind.EXPENSE
        assert transaction.amount == Decimal("-250.50")
        assert transaction.target == account.ref
        assert transaction.description == "Groceries"
        assert transaction.category == "Food"
        assert transaction.date == date(2024, 3, 15)


class TestUpdateAndDelete:
    """Editing and deleting records keeps transactions in lockstep."""

    def test_remove_funding_reverts_balance(self, ledger, account):
        """Test disconnecting an expense deletes its transaction."""
        expense = ledger.create_expense(expense_data("100", account_ref(account)))
        assert ledger.get_account(account.id).balance == Decimal("900")

        ledger.update_expense(expense.id, expense_data("100", None))

        assert ledger.get_account(account.id).balance == Decimal("1000")
        assert ledger.list_transactions(account.id) == []
        assert_consistent(ledger)

    def test_add_funding_on_update(self, ledger, account):
        """Test connecting an unfunded expense synthesizes its transaction."""
        expense = ledger.create_expense(expense_data("100"))
        ledger.update_expense(expense.id, expense_data("100", account_ref(account)))

        assert ledger.get_account(account.id).balance == Decimal("900")
        assert len(ledger.list_transactions(account.id)) == 1

    def test_change_amount_same_account(self, ledger, account):
        """Test the old effect is reversed before the new one is applied."""
        expense = ledger.create_expense(expense_data("100", account_ref(account)))
        ledger.update_expense(expense.id, expense_data("400", account_ref(account)))

        assert ledger.get_account(account.id).balance == Decimal("600")
        assert len(ledger.list_transactions(account.id)) == 1
        assert_consistent(ledger)

    def test_move_expense_between_accounts(self, ledger, account):
        """Test moving an expense restores the old account and charges the new one."""
        other = ledger.create_account(AccountInput(bank_name="HSBC", balance=Decimal("50")))
        expense = ledger.create_expense(expense_data("100", account_ref(account)))

        ledger.update_expense(expense.id, expense_data("100", account_ref(other)))

        assert ledger.get_account(account.id).balance == Decimal("1000")
        assert ledger.get_account(other.id).balance == Decimal("-50")
        assert ledger.list_transactions(account.id) == []
        assert len(ledger.list_transactions(other.id)) == 1

    def test_update_keeps_identity(self, ledger, account):
        """Test updates keep the id and creation time."""
        expense = ledger.create_expense(expense_data("100", account_ref(account)))
        created_at = expense.created_at

        updated = ledger.update_expense(expense.id, expense_data("120", account_ref(account)))

        assert updated.id == expense.id
        assert updated.created_at == created_at
        assert updated.updated_at >= created_at

    def test_delete_expense_restores_balance(self, ledger, account):
        """Test deleting an expense removes its transaction and effect."""
        expense = ledger.create_expense(expense_data("300", account_ref(account)))
        ledger.delete_expense(expense.id)

        assert ledger.get_account(account.id).balance == Decimal("1000")
        assert ledger.list_transactions(account.id) == []
        with pytest.raises(NotFoundError):
            ledger.get_expense(expense.id)

    def test_delete_income_restores_balance(self, ledger, account):
        """Test deleting income removes its deposit."""
        income = ledger.create_income(income_data("500", account_ref(account)))
        ledger.delete_income(income.id)

        assert ledger.get_account(account.id).balance == Decimal("1000")
        assert_consistent(ledger)

    def test_update_unknown_expense(self, ledger):
        """Test updating a missing expense raises NotFoundError."""
        with pytest.raises(NotFoundError):
            ledger.update_expense(uuid4(), expense_data("10"))

    def test_delete_unknown_income(self, ledger):
        """Test deleting a missing income raises NotFoundError."""
        with pytest.raises(NotFoundError):
            ledger.delete_income(uuid4())


class TestCreditCards:
    """Card balances are debt: charges raise them, payments lower them."""

    def test_quick_balance_update_utilization(self, ledger, card):
        """Test 8000 of 30000 renders as 26.7%."""
        ledger.update_credit_card(card.id, CreditCardUpdate(balance=Decimal("8000")))

        utilization = ledger.get_credit_utilization(card.id)
        assert utilization.current_balance == Decimal("8000")
        assert utilization.percentage == "26.7%"

    def test_charge_and_payment(self, ledger, card):
        """Test an expense increases debt and income pays it down."""
        ref = FundingRef.credit_card(card.id)
        ledger.create_expense(expense_data("200", ref, payment_method="credit"))
        assert ledger.get_credit_card(card.id).current_balance == Decimal("5200")

        ledger.create_income(income_data("1000", ref))
        assert ledger.get_credit_card(card.id).current_balance == Decimal("4200")
        assert_consistent(ledger)

    def test_available_credit(self, ledger, card):
        """Test available credit is the limit minus the debt."""
        assert ledger.get_credit_card(card.id).available_credit == Decimal("25000")

    def test_update_card_fields(self, ledger, card):
        """Test a partial update leaves other fields and the balance alone."""
        updated = ledger.update_credit_card(card.id, {"card_name": "Platinum"})

        assert updated.card_name == "Platinum"
        assert updated.bank_name == "Banamex"
        assert updated.current_balance == Decimal("5000")

    def test_invalid_card_digits(self, ledger):
        """Test malformed last four digits are rejected."""
        with pytest.raises(ValidationError):
            ledger.create_credit_card({
                "bank_name": "Banamex",
                "card_name": "Oro",
                "last_four_digits": "12a4",
                "credit_limit": "1000",
            })
        assert ledger.list_credit_cards() == []


class TestQuickBalanceUpdate:
    """Direct balance edits rebase the opening balance."""

    def test_rebase_keeps_invariant(self, ledger, account):
        """Test a direct balance edit on an account with transactions."""
        expense = ledger.create_expense(expense_data("300", account_ref(account)))

        updated = ledger.update_account(account.id, AccountUpdate(balance=Decimal("2000")))

        assert updated.balance == Decimal("2000")
        assert updated.initial_balance == Decimal("2300")
        assert_consistent(ledger)

        ledger.delete_expense(expense.id)
        assert ledger.get_account(account.id).balance == Decimal("2300")

    def test_rebase_creates_no_transaction(self, ledger, account):
        """Test no synthetic transaction appears."""
        ledger.update_account(account.id, {"balance": "1500"})
        assert ledger.list_transactions(account.id) == []

    def test_non_balance_update(self, ledger, account):
        """Test other fields change without touching the balance."""
        updated = ledger.update_account(account.id, {"bank_name": "Santander", "is_active": False})

        assert updated.bank_name == "Santander"
        assert updated.is_active is False
        assert updated.balance == Decimal("1000")


class TestRejectedOperations:
    """Failed operations leave the store exactly as it was."""

    def test_unknown_funding_reference(self, ledger, account):
        """Test an expense naming a missing account is refused."""
        with pytest.raises(InvalidReferenceError):
            ledger.create_expense(expense_data("100", FundingRef.account(uuid4())))

        assert ledger.list_expenses() == []
        assert ledger.get_account(account.id).balance == Decimal("1000")

    def test_unknown_funding_on_update(self, ledger, account):
        """Test an update to a missing card keeps the old transaction."""
        expense = ledger.create_expense(expense_data("100", account_ref(account)))

        with pytest.raises(InvalidReferenceError):
            ledger.update_expense(
                expense.id,
                expense_data("100", FundingRef.credit_card(uuid4())),
            )

        assert ledger.get_account(account.id).balance == Decimal("900")
        assert ledger.get_expense(expense.id).funding == account.ref

    def test_negative_amount(self, ledger, account):
        """Test negative amounts fail schema validation."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.create_expense(expense_data("-5", account_ref(account)))

        assert exc_info.value.issues[0].field == "amount"
        assert ledger.get_account(account.id).balance == Decimal("1000")

    def test_missing_field(self, ledger):
        """Test a missing required field is reported."""
        data = income_data("10")
        del data["source"]
        with pytest.raises(ValidationError):
            ledger.create_income(data)

    def test_unknown_field(self, ledger):
        """Test unexpected fields are rejected, not ignored."""
        with pytest.raises(ValidationError):
            ledger.create_account({"bank_name": "BBVA", "nickname": "main"})

    def test_delete_account_in_use(self, ledger, account):
        """Test an account with live transactions cannot be deleted."""
        expense = ledger.create_expense(expense_data("100", account_ref(account)))

        with pytest.raises(ValidationError):
            ledger.delete_account(account.id)
        assert ledger.get_account(account.id)

        ledger.delete_expense(expense.id)
        ledger.delete_account(account.id)
        with pytest.raises(NotFoundError):
            ledger.get_account(account.id)

    def test_delete_card_in_use(self, ledger, card):
        """Test a card with live transactions cannot be deleted."""
        ledger.create_expense(
            expense_data("10", FundingRef.credit_card(card.id), payment_method="credit")
        )
        with pytest.raises(ValidationError):
            ledger.delete_credit_card(card.id)

    def test_persistence_failure_rolls_back(self):
        """Test a failed write leaves records, transactions and balances as they were."""
        storage = FailingStorage()
        ledger = create_ledger(storage=storage)
        account = ledger.create_account({"bank_name": "BBVA", "balance": "1000"})

        storage.fail = True
        with pytest.raises(PersistenceError):
            ledger.create_expense(expense_data("300", account_ref(account)))

        assert ledger.get_account(account.id).balance == Decimal("1000")
        assert ledger.list_expenses() == []
        assert ledger.list_transactions(account.id) == []

        storage.fail = False
        ledger.create_expense(expense_data("300", account_ref(account)))
        assert ledger.get_account(account.id).balance == Decimal("700")


class TestLedgerSettings:
    """App settings are read once, when the ledger is built."""

    def test_app_settings_read_at_construction(self, monkeypatch, storage):
        """Test later environment changes do not reach a built ledger."""
        from fintrack.config import Settings
        from fintrack.models import Currency

        monkeypatch.setenv("FINTRACK_DEFAULT_CURRENCY", "USD")
        ledger = create_ledger(settings=Settings(), storage=storage)
        monkeypatch.setenv("FINTRACK_DEFAULT_CURRENCY", "MXN")
        monkeypatch.setenv("FINTRACK_HIGH_UTILIZATION_THRESHOLD", "not a number")

        account = ledger.create_account({"bank_name": "Chase"})
        ledger.create_credit_card({
            "bank_name": "Amex",
            "card_name": "Gold",
            "last_four_digits": "1111",
            "credit_limit": "1000",
            "balance": "900",
        })

        assert account.currency == Currency.USD


class TestReturnedRecords:
    """Records handed to callers are copies of the stored ones."""

    def test_mutating_returned_account_changes_nothing(self, ledger, account):
        """Test assigning a balance on a returned account bypasses nothing."""
        ledger.create_expense(expense_data("300", account_ref(account)))

        ledger.get_account(account.id).balance = Decimal("5")
        account.balance = Decimal("5")

        assert ledger.get_account(account.id).balance == Decimal("700")
        assert_consistent(ledger)

    def test_rollback_leaves_returned_account_untouched(self):
        """Test a failed write cannot leave a half-applied balance on a held record."""
        storage = FailingStorage()
        ledger = create_ledger(storage=storage)
        account = ledger.create_account({"bank_name": "BBVA", "balance": "1000"})
        held = ledger.get_account(account.id)

        storage.fail = True
        with pytest.raises(PersistenceError):
            ledger.create_expense(expense_data("300", account_ref(account)))

        assert account.balance == Decimal("1000")
        assert held.balance == Decimal("1000")
        assert ledger.get_account(account.id).balance == Decimal("1000")

    def test_mutating_listed_transaction_changes_nothing(self, ledger, account):
        """Test listed transactions are detached from the store."""
        ledger.create_expense(expense_data("300", account_ref(account)))

        ledger.list_transactions(account.id)[0].amount = Decimal("-1")

        assert ledger.list_transactions(account.id)[0].amount == Decimal("-300")
        assert_consistent(ledger)


class TestTransactionListing:
    """list_transactions reads only."""

    def test_most_recent_first(self, ledger, account):
        """Test ordering by date descending."""
        ref = account_ref(account)
        ledger.create_expense(expense_data("10", ref, date=date(2024, 3, 10)))
        ledger.create_expense(expense_data("20", ref, date=date(2024, 3, 20)))
        ledger.create_income(income_data("30", ref, date=date(2024, 3, 1)))

        dates = [t.date for t in ledger.list_transactions(account.id)]
        assert dates == [date(2024, 3, 20), date(2024, 3, 10), date(2024, 3, 1)]

    def test_unknown_target(self, ledger):
        """Test an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            ledger.list_transactions(uuid4())

    def test_card_transactions(self, ledger, card, account):
        """Test cards and accounts keep separate transaction lists."""
        ledger.create_expense(
            expense_data("10", FundingRef.credit_card(card.id), payment_method="credit")
        )
        assert len(ledger.list_transactions(card.id)) == 1
        assert ledger.list_transactions(account.id) == []


class TestIntegrity:
    """Integrity checks and repair."""

    def test_clean_ledger_is_consistent(self, ledger, account, card):
        """Test a ledger built through the facade has no issues."""
        ledger.create_expense(expense_data("10", account_ref(account)))
        report = ledger.check_integrity()
        assert report.is_consistent
        assert report.issues_found == 0

    def test_reconcile_fixes_tampered_balance(self, ledger, account):
        """Test recompute brings a tampered balance back."""
        ledger.create_expense(expense_data("300", account_ref(account)))
        tampered = ledger.store.get_account(account.id)
        tampered.balance = Decimal("5")
        ledger.store.put(tampered)

        report = ledger.check_integrity()
        assert not report.is_consistent
        assert report.discrepancies[0].difference == Decimal("-695")

        summary = ledger.reconcile_all()
        assert summary.balances_fixed == 1
        assert summary.accounts_processed == 1
        assert ledger.get_account(account.id).balance == Decimal("700")
        assert_consistent(ledger)

    def test_recompute_matches_incremental(self, ledger, account):
        """Test recomputation from scratch agrees with incremental updates."""
        ref = account_ref(account)
        expense = ledger.create_expense(expense_data("300", ref))
        ledger.create_income(income_data("125.25", ref))
        ledger.update_expense(expense.id, expense_data("80", ref))

        incremental = ledger.get_account(account.id).balance
        assert ledger.reconciler.recompute_balance(ref) == incremental
        assert incremental == Decimal("1045.25")

    def test_orphaned_transaction(self, ledger, account):
        """Test a transaction whose record vanished is reported."""
        from fintrack.models import Expense

        expense = ledger.create_expense(expense_data("10", account_ref(account)))
        ledger.store.remove(Expense, expense.id)

        issue_types = {i.issue_type for i in ledger.check_integrity().issues}
        assert "orphaned_transaction" in issue_types


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
