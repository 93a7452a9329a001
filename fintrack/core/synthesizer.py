"""
Transaction Synthesizer

Keeps transactions in lockstep with the expense, income and transfer
records that own them.

FLOW:
- create: store the record; if it names funding, build exactly one
  transaction and apply it. A transfer always builds two, one per end.
- update: reverse and drop the old transactions (if any), replace the record,
  then synthesize again exactly as create would. This one path covers funding
  unchanged, changed, removed and added.
- delete: reverse and drop the transactions, then drop the record.

Every operation runs inside a single store transaction, so a failure at any
step (missing funding target, failed write) leaves balances, transactions
and records untouched.
"""

from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from fintrack.core.reconciler import BalanceReconciler
from fintrack.core.store import RecordStore
from fintrack.errors import InvalidReferenceError, ValidationError
from fintrack.log import get_logger
from fintrack.models.inputs import ExpenseInput, IncomeInput, TransferInput
from fintrack.models.records import (
    Account,
    CreditCard,
    Expense,
    FundingKind,
    FundingRef,
    Income,
    Transaction,
    TransactionKind,
    Transfer,
    utc_now,
)
from fintrack.models.views import ValidationIssue


logger = get_logger(__name__)

SourceRecord = Union[Expense, Income]


def signed_amount(kind: TransactionKind, target: FundingRef, amount: Decimal) -> Decimal:
    """
    Effect of a source record on its target's stored number.

    Bank accounts hold money: expenses take it out, income puts it in.
    Credit cards hold debt: expenses add to it, income pays it down.
    """
    if target.kind == FundingKind.CREDIT_CARD:
        return amount if kind == TransactionKind.EXPENSE else -amount
    return -amount if kind == TransactionKind.EXPENSE else amount


def transfer_amounts(transfer: Transfer) -> tuple[Decimal, Decimal]:
    """
    Signed effects of a transfer on its (source, destination).

    Money leaving an end behaves like an expense there, money arriving like
    income: a bank source loses it, a card source takes on a cash advance,
    a bank destination gains it, a card destination is paid down.
    """
    return (
        signed_amount(TransactionKind.EXPENSE, transfer.source, transfer.amount),
        signed_amount(TransactionKind.INCOME, transfer.destination, transfer.amount),
    )


def target_name(target: Union[Account, CreditCard]) -> str:
    if isinstance(target, CreditCard):
        return f"{target.bank_name} {target.card_name}"
    return target.bank_name


class TransactionSynthesizer:

    def __init__(self, store: RecordStore, reconciler: BalanceReconciler):
        self._store = store
        self._reconciler = reconciler

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def create_expense(self, data: ExpenseInput) -> Expense:
        expense = Expense.model_validate(data.model_dump())
        self._require_funding(expense)
        with self._store.transaction():
            self._store.put(expense)
            transaction = self._link(expense, TransactionKind.EXPENSE)
        self._log("expense_created", expense, transaction)
        return expense

    def update_expense(self, expense_id: UUID, data: ExpenseInput) -> Expense:
        existing = self._store.get_expense(expense_id)
        expense = Expense.model_validate({
            **data.model_dump(),
            "id": existing.id,
            "created_at": existing.created_at,
            "updated_at": utc_now(),
        })
        self._require_funding(expense)
        with self._store.transaction():
            self._unlink(existing.id)
            self._store.put(expense)
            transaction = self._link(expense, TransactionKind.EXPENSE)
        self._log("expense_updated", expense, transaction)
        return expense

    def delete_expense(self, expense_id: UUID) -> Expense:
        expense = self._store.get_expense(expense_id)
        with self._store.transaction():
            self._unlink(expense.id)
            self._store.remove(Expense, expense.id)
        self._log("expense_deleted", expense, None)
        return expense

    # -------------------------------------------------------------------------
    # Income
    # -------------------------------------------------------------------------

    def create_income(self, data: IncomeInput) -> Income:
        income = Income.model_validate(data.model_dump())
        self._require_funding(income)
        with self._store.transaction():
            self._store.put(income)
            transaction = self._link(income, TransactionKind.INCOME)
        self._log("income_created", income, transaction)
        return income

    def update_income(self, income_id: UUID, data: IncomeInput) -> Income:
        existing = self._store.get_income(income_id)
        income = Income.model_validate({
            **data.model_dump(),
            "id": existing.id,
            "created_at": existing.created_at,
            "updated_at": utc_now(),
        })
        self._require_funding(income)
        with self._store.transaction():
            self._unlink(existing.id)
            self._store.put(income)
            transaction = self._link(income, TransactionKind.INCOME)
        self._log("income_updated", income, transaction)
        return income

    def delete_income(self, income_id: UUID) -> Income:
        income = self._store.get_income(income_id)
        with self._store.transaction():
            self._unlink(income.id)
            self._store.remove(Income, income.id)
        self._log("income_deleted", income, None)
        return income

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    def create_transfer(self, data: TransferInput) -> Transfer:
        transfer = Transfer.model_validate(data.model_dump())
        self._require_ends(transfer)
        with self._store.transaction():
            self._require_funds(transfer)
            self._store.put(transfer)
            debit, credit = self._link_transfer(transfer)
        self._log_transfer("transfer_created", transfer, debit, credit)
        return transfer

    def update_transfer(self, transfer_id: UUID, data: TransferInput) -> Transfer:
        """
        Replace a transfer. Funds are checked after the old transfer has been
        reversed, so moving money back and forth between the same two ends
        never counts the old amount twice.
        """
        existing = self._store.get_transfer(transfer_id)
        transfer = Transfer.model_validate({
            **data.model_dump(),
            "id": existing.id,
            "created_at": existing.created_at,
            "updated_at": utc_now(),
        })
        self._require_ends(transfer)
        with self._store.transaction():
            self._unlink(existing.id)
            self._require_funds(transfer)
            self._store.put(transfer)
            debit, credit = self._link_transfer(transfer)
        self._log_transfer("transfer_updated", transfer, debit, credit)
        return transfer

    def delete_transfer(self, transfer_id: UUID) -> Transfer:
        transfer = self._store.get_transfer(transfer_id)
        with self._store.transaction():
            self._unlink(transfer.id)
            self._store.remove(Transfer, transfer.id)
        self._log_transfer("transfer_deleted", transfer, None, None)
        return transfer

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_funding(self, record: SourceRecord) -> None:
        ref = record.funding
        if ref is not None and not self._store.has_funding_target(ref):
            raise InvalidReferenceError(ref.kind.value, ref.id)

    def _link(self, record: SourceRecord, kind: TransactionKind) -> Optional[Transaction]:
        """Create and apply the record's transaction. Zero amounts are not skipped."""
        if record.funding is None:
            return None
        transaction = Transaction(
            target=record.funding,
            amount=signed_amount(kind, record.funding, record.amount),
            description=record.description,
            category=record.category,
            date=record.date,
            source_id=record.id,
            kind=kind,
        )
        self._store.put(transaction)
        self._reconciler.apply(transaction)
        return transaction

    def _require_ends(self, transfer: Transfer) -> None:
        for ref in (transfer.source, transfer.destination):
            if not self._store.has_funding_target(ref):
                raise InvalidReferenceError(ref.kind.value, ref.id)

    def _require_funds(self, transfer: Transfer) -> None:
        """A bank source needs the balance, a card source the available credit."""
        source = self._store.get_funding_target(transfer.source)
        if isinstance(source, CreditCard):
            available = source.available_credit
        else:
            available = source.balance
        if available >= transfer.amount:
            return
        raise ValidationError(
            f"Insufficient funds for transfer: {available} available, {transfer.amount} requested",
            issues=[ValidationIssue(
                field="amount",
                issue_type="insufficient_funds",
                message=f"Only {available} is available in {target_name(source)}",
                severity="error",
                suggested_fix="Lower the amount or choose another source",
            )],
        )

    def _link_transfer(self, transfer: Transfer) -> tuple[Transaction, Transaction]:
        source = self._store.get_funding_target(transfer.source)
        destination = self._store.get_funding_target(transfer.destination)
        debit_amount, credit_amount = transfer_amounts(transfer)
        debit = Transaction(
            target=transfer.source,
            amount=debit_amount,
            description=f"Transfer to {target_name(destination)}",
            date=transfer.date,
            source_id=transfer.id,
            kind=TransactionKind.TRANSFER,
        )
        credit = Transaction(
            target=transfer.destination,
            amount=credit_amount,
            description=f"Transfer from {target_name(source)}",
            date=transfer.date,
            source_id=transfer.id,
            kind=TransactionKind.TRANSFER,
        )
        for transaction in (debit, credit):
            self._store.put(transaction)
            self._reconciler.apply(transaction)
        return debit, credit

    def _unlink(self, source_id: UUID) -> list[Transaction]:
        """Reverse and delete every transaction owned by `source_id`."""
        transactions = self._store.transactions_for_source(source_id)
        for transaction in transactions:
            self._reconciler.reverse(transaction)
            self._store.remove(Transaction, transaction.id)
        return transactions

    def _log(
        self,
        event: str,
        record: SourceRecord,
        transaction: Optional[Transaction],
    ) -> None:
        logger.info(
            event,
            record_id=str(record.id),
            amount=str(record.amount),
            funding_kind=record.funding.kind.value if record.funding else None,
            funding_id=str(record.funding.id) if record.funding else None,
            transaction_id=str(transaction.id) if transaction else None,
        )

    def _log_transfer(
        self,
        event: str,
        transfer: Transfer,
        debit: Optional[Transaction],
        credit: Optional[Transaction],
    ) -> None:
        logger.info(
            event,
            transfer_id=str(transfer.id),
            amount=str(transfer.amount),
            source_kind=transfer.source.kind.value,
            source_id=str(transfer.source.id),
            destination_kind=transfer.destination.kind.value,
            destination_id=str(transfer.destination.id),
            debit_transaction_id=str(debit.id) if debit else None,
            credit_transaction_id=str(credit.id) if credit else None,
        )
