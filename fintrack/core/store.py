"""
Record Store

The single in-process source of truth for accounts, cards, expenses,
income, transactions and categories.

DESIGN DECISION: All writes happen inside `transaction()`. The block works on
the live state; on success the whole state is persisted, on any exception
(including a failed write) the state is restored from a copy taken when the
block started. Callers therefore never observe a half-applied operation,
and a PersistenceError leaves memory exactly as it was.

Records go in and come out as copies. Nothing outside the store ever holds a
reference to a stored instance, so a caller mutating a returned record
cannot bypass the ledger, and a rollback cannot leave a handed-out record
half-updated. To change a record, fetch it, modify the copy and put() it
back.
"""

from contextlib import contextmanager
from typing import Iterator, Optional, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel

from fintrack.core.defaults import default_categories
from fintrack.errors import NotFoundError
from fintrack.log import get_logger
from fintrack.models.records import (
    Account,
    Budget,
    Category,
    CategoryDomain,
    CreditCard,
    Expense,
    FundingKind,
    FundingRef,
    Income,
    LedgerSnapshot,
    Transaction,
    Transfer,
)
from fintrack.services.storage import LedgerStorageInterface

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

# record type -> (snapshot attribute, name used in errors)
_COLLECTIONS: dict[type, tuple[str, str]] = {
    Account: ("accounts", "Account"),
    CreditCard: ("credit_cards", "Credit card"),
    Expense: ("expenses", "Expense"),
    Income: ("incomes", "Income"),
    Transfer: ("transfers", "Transfer"),
    Transaction: ("transactions", "Transaction"),
    Category: ("categories", "Category"),
    Budget: ("budgets", "Budget"),
}

class RecordStore:
    """
    Authoritative in-memory state with durable persistence.

    Args:
        storage: Persistence backend. If None, state lives only in memory.
    """

    def __init__(self, storage: Optional[LedgerStorageInterface] = None):
        self._storage = storage
        self._state = LedgerSnapshot()
        self._depth = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def load(self) -> int:
        """
        Load persisted state and seed missing default categories.

        Safe to call any number of times: a default is only inserted when no
        category with the same (domain, name) exists yet.

        Returns:
            Number of categories seeded by this call
        """
        persisted = self._storage.load() if self._storage else None
        self._state = persisted or LedgerSnapshot()
        seeded = self.seed_default_categories()
        logger.info(
            "store_loaded",
            accounts=len(self._state.accounts),
            credit_cards=len(self._state.credit_cards),
            expenses=len(self._state.expenses),
            incomes=len(self._state.incomes),
            transactions=len(self._state.transactions),
            categories=len(self._state.categories),
            seeded_categories=seeded,
        )
        return seeded

    def seed_default_categories(self) -> int:
        existing = {category.key for category in self._state.categories.values()}
        missing = [c for c in default_categories() if c.key not in existing]
        if not missing:
            return 0
        with self.transaction():
            for category in missing:
                self.put(category)
        return len(missing)

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """
        Run a block of writes atomically.

        Nested blocks join the outermost one; only the outermost block
        persists or rolls back.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        backup = self._state.model_copy(deep=True)
        self._depth = 1
        try:
            yield self
            if self._storage is not None:
                self._storage.save(self._state)
        except BaseException:
            self._state = backup
            raise
        finally:
            self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def export_snapshot(self) -> LedgerSnapshot:
        """Deep copy of the current state."""
        return self._state.model_copy(deep=True)

    def replace_state(self, snapshot: LedgerSnapshot) -> None:
        """Swap in a whole new state. Must run inside transaction()."""
        self._require_transaction()
        self._state = snapshot.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Generic CRUD
    # -------------------------------------------------------------------------

    def get(self, record_type: type[RecordT], record_id: UUID) -> RecordT:
        collection, name = self._collection(record_type)
        try:
            return collection[record_id].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(name, record_id) from None

    def find(self, record_type: type[RecordT], record_id: UUID) -> Optional[RecordT]:
        collection, _ = self._collection(record_type)
        record = collection.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    def all(self, record_type: type[RecordT]) -> list[RecordT]:
        collection, _ = self._collection(record_type)
        return [record.model_copy(deep=True) for record in collection.values()]

    def put(self, record: BaseModel) -> None:
        """Insert or replace a record by id. The store keeps its own copy."""
        collection, _ = self._collection(type(record))
        stored = record.model_copy(deep=True)
        if self.in_transaction:
            collection[record.id] = stored
            return
        with self.transaction():
            collection[record.id] = stored

    def remove(self, record_type: type[RecordT], record_id: UUID) -> RecordT:
        collection, name = self._collection(record_type)
        if record_id not in collection:
            raise NotFoundError(name, record_id)
        if self.in_transaction:
            return collection.pop(record_id)
        with self.transaction():
            return collection.pop(record_id)

    # -------------------------------------------------------------------------
    # Typed lookups
    # -------------------------------------------------------------------------

    def get_account(self, account_id: UUID) -> Account:
        return self.get(Account, account_id)

    def get_credit_card(self, card_id: UUID) -> CreditCard:
        return self.get(CreditCard, card_id)

    def get_expense(self, expense_id: UUID) -> Expense:
        return self.get(Expense, expense_id)

    def get_income(self, income_id: UUID) -> Income:
        return self.get(Income, income_id)

    def get_category(self, category_id: UUID) -> Category:
        return self.get(Category, category_id)

    def get_transfer(self, transfer_id: UUID) -> Transfer:
        return self.get(Transfer, transfer_id)

    def get_budget(self, budget_id: UUID) -> Budget:
        return self.get(Budget, budget_id)

    def get_funding_target(self, ref: FundingRef) -> Union[Account, CreditCard]:
        if ref.kind == FundingKind.ACCOUNT:
            return self.get_account(ref.id)
        return self.get_credit_card(ref.id)

    def has_funding_target(self, ref: FundingRef) -> bool:
        record_type = Account if ref.kind == FundingKind.ACCOUNT else CreditCard
        collection, _ = self._collection(record_type)
        return ref.id in collection

    def transactions_for_source(self, source_id: UUID) -> list[Transaction]:
        """Live transactions produced by an expense, income or transfer."""
        return [
            t.model_copy(deep=True)
            for t in self._state.transactions.values()
            if t.source_id == source_id
        ]

    def transaction_for_source(self, source_id: UUID) -> Optional[Transaction]:
        """The transaction of an expense or income, if any."""
        transactions = self.transactions_for_source(source_id)
        return transactions[0] if transactions else None

    def transactions_for_target(self, ref: FundingRef) -> list[Transaction]:
        return [
            t.model_copy(deep=True)
            for t in self._state.transactions.values()
            if t.target == ref
        ]

    def find_category(self, domain: CategoryDomain, name: str) -> Optional[Category]:
        key = (domain, name.strip().casefold())
        for category in self._state.categories.values():
            if category.key == key:
                return category.model_copy(deep=True)
        return None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _collection(self, record_type: type) -> tuple[dict, str]:
        try:
            attribute, name = _COLLECTIONS[record_type]
        except KeyError:
            raise TypeError(f"Not a stored record type: {record_type.__name__}") from None
        return getattr(self._state, attribute), name

    def _require_transaction(self) -> None:
        if not self.in_transaction:
            raise RuntimeError("This write must run inside RecordStore.transaction()")
