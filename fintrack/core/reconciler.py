"""
Balance Reconciler

Applies and reverses the monetary effect of a transaction on the account or
card it targets.

The sign on a transaction already encodes its direction for its target
(see Transaction), so apply is a single addition and reverse a single
subtraction whatever the target kind. apply followed by reverse is always a
no-op on the balance.

GUARANTEE: after every ledger operation, for every account and card,
    stored balance == initial_balance + sum(live transaction amounts)
recompute_balance() derives the same number from scratch and exists only to
repair stores that were edited outside the ledger.
"""

from decimal import Decimal
from typing import Union

from fintrack.core.store import RecordStore
from fintrack.log import get_logger
from fintrack.models.records import (
    Account,
    CreditCard,
    FundingRef,
    Transaction,
    utc_now,
)
from fintrack.models.views import BalanceDiscrepancy


logger = get_logger(__name__)

Target = Union[Account, CreditCard]


def _get_balance(target: Target) -> Decimal:
    if isinstance(target, CreditCard):
        return target.current_balance
    return target.balance


def _set_balance(target: Target, value: Decimal) -> None:
    if isinstance(target, CreditCard):
        target.current_balance = value
    else:
        target.balance = value
    target.updated_at = utc_now()


class BalanceReconciler:

    def __init__(self, store: RecordStore):
        self._store = store

    def apply(self, transaction: Transaction) -> Decimal:
        """Add the transaction's amount to its target. Returns the new balance."""
        return self._adjust(transaction.target, transaction.amount)

    def reverse(self, transaction: Transaction) -> Decimal:
        """Subtract the transaction's amount from its target. Returns the new balance."""
        return self._adjust(transaction.target, -transaction.amount)

    def stored_balance(self, ref: FundingRef) -> Decimal:
        return _get_balance(self._store.get_funding_target(ref))

    def transaction_total(self, ref: FundingRef) -> Decimal:
        return sum(
            (t.amount for t in self._store.transactions_for_target(ref)),
            Decimal("0"),
        )

    def expected_balance(self, ref: FundingRef) -> Decimal:
        """initial_balance plus every live transaction against the target."""
        target = self._store.get_funding_target(ref)
        return target.initial_balance + self.transaction_total(ref)

    def recompute_balance(self, ref: FundingRef) -> Decimal:
        """Reset the stored balance to expected_balance() and return it."""
        expected = self.expected_balance(ref)
        with self._store.transaction():
            target = self._store.get_funding_target(ref)
            if _get_balance(target) != expected:
                logger.warning(
                    "balance_recomputed",
                    target_kind=ref.kind.value,
                    target_id=str(ref.id),
                    stored=str(_get_balance(target)),
                    expected=str(expected),
                )
                _set_balance(target, expected)
                self._store.put(target)
        return expected

    def rebase(self, ref: FundingRef, new_balance: Decimal) -> Decimal:
        """
        Accept `new_balance` as the target's true balance.

        The opening balance is moved underneath the existing transactions so
        the invariant keeps holding without inventing a transaction that has
        no source record. Returns the new initial_balance.
        """
        with self._store.transaction():
            target = self._store.get_funding_target(ref)
            old_balance = _get_balance(target)
            target.initial_balance = new_balance - self.transaction_total(ref)
            _set_balance(target, new_balance)
            self._store.put(target)
        logger.info(
            "balance_rebased",
            target_kind=ref.kind.value,
            target_id=str(ref.id),
            old_balance=str(old_balance),
            new_balance=str(new_balance),
        )
        return target.initial_balance

    def find_discrepancies(self) -> list[BalanceDiscrepancy]:
        """Every account and card whose stored balance disagrees with its transactions."""
        discrepancies = []
        targets: list[Target] = [
            *self._store.all(Account),
            *self._store.all(CreditCard),
        ]
        for target in targets:
            expected = self.expected_balance(target.ref)
            stored = _get_balance(target)
            if stored != expected:
                discrepancies.append(BalanceDiscrepancy(
                    target=target.ref,
                    stored_balance=stored,
                    expected_balance=expected,
                ))
        return discrepancies

    def _adjust(self, ref: FundingRef, delta: Decimal) -> Decimal:
        with self._store.transaction():
            target = self._store.get_funding_target(ref)
            new_balance = _get_balance(target) + delta
            _set_balance(target, new_balance)
            self._store.put(target)
        logger.debug(
            "balance_adjusted",
            target_kind=ref.kind.value,
            target_id=str(ref.id),
            delta=str(delta),
            balance=str(new_balance),
        )
        return new_balance
