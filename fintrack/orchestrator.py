"""
Ledger Orchestrator for fintrack

This module ties the core components together behind the one API surface
the presentation layer calls:

    UI -> Ledger.create_expense(...)
       -> EntryValidator (schema, then references against the store)
       -> TransactionSynthesizer (record + linked transaction)
       -> BalanceReconciler (apply / reverse on the account or card)
       -> RecordStore commits and persists
    UI -> Ledger.get_monthly_summary(...) -> Aggregator reads the new state

DESIGN DECISION: The Ledger owns its store explicitly. There is no module
level instance, so tests and tools can run as many isolated ledgers as they
like.
"""

from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from fintrack.config import Settings, get_settings
from fintrack.core import (
    Aggregator,
    BalanceReconciler,
    RecordStore,
    TransactionSynthesizer,
)
from fintrack.errors import DuplicateError, NotFoundError, ValidationError
from fintrack.log import get_logger
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
from fintrack.models.records import (
    Account,
    Budget,
    Category,
    CategoryDomain,
    CreditCard,
    Expense,
    FundingRef,
    Income,
    Transaction,
    Transfer,
    utc_now,
)
from fintrack.models.views import (
    BudgetUsage,
    CalendarDayTotal,
    CreditUtilization,
    IntegrityReport,
    MonthlySummary,
    ReconcileSummary,
    RunningBalance,
    ValidationIssue,
)
from fintrack.queries import QueryExecutor
from fintrack.services import (
    InMemoryStorage,
    JsonFileStorage,
    LedgerStorageInterface,
    export_backup,
    parse_backup,
)
from fintrack.validation import EntryValidator


logger = get_logger(__name__)


class Ledger:
    """
    Public API of the ledger core.

    Every mutating method either completes fully (record, transaction,
    balance and persistence) or raises and leaves the store unchanged.
    Input arguments accept the typed input model or an equivalent dict.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._app_settings = settings.app
        self._store = store
        self._reconciler = BalanceReconciler(store)
        self._synthesizer = TransactionSynthesizer(store, self._reconciler)
        self._aggregator = Aggregator(store)
        self._validator = EntryValidator(store, self._app_settings)
        self._queries = QueryExecutor(store)

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def reconciler(self) -> BalanceReconciler:
        return self._reconciler

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def create_account(self, data: Union[AccountInput, dict]) -> Account:
        data = self._validator.parse(AccountInput, data)
        fields = data.model_dump(exclude_unset=True)
        fields.setdefault("currency", self._app_settings.default_currency)
        fields["initial_balance"] = data.balance
        account = self._validator.parse(Account, fields)
        with self._store.transaction():
            self._store.put(account)
        logger.info(
            "account_created",
            account_id=str(account.id),
            bank_name=account.bank_name,
            balance=str(account.balance),
        )
        return account

    def update_account(
        self,
        account_id: UUID,
        data: Union[AccountUpdate, dict],
    ) -> Account:
        data = self._validator.parse(AccountUpdate, data)
        existing = self._store.get_account(account_id)
        changes = data.model_dump(exclude_unset=True)
        new_balance = changes.pop("balance", None)

        account = self._validator.parse(Account, {
            **existing.model_dump(),
            **changes,
            "updated_at": utc_now(),
        })
        with self._store.transaction():
            self._store.put(account)
            if new_balance is not None and new_balance != account.balance:
                self._reconciler.rebase(account.ref, new_balance)
        account = self._store.get_account(account_id)
        logger.info(
            "account_updated",
            account_id=str(account.id),
            fields=sorted(data.model_fields_set),
            balance=str(account.balance),
        )
        return account

    def delete_account(self, account_id: UUID) -> Account:
        account = self._store.get_account(account_id)
        self._ensure_unreferenced(account.ref, "account")
        with self._store.transaction():
            self._store.remove(Account, account.id)
        logger.info("account_deleted", account_id=str(account.id))
        return account

    def get_account(self, account_id: UUID) -> Account:
        return self._store.get_account(account_id)

    def list_accounts(self, include_inactive: bool = True) -> list[Account]:
        accounts = self._store.all(Account)
        if not include_inactive:
            accounts = [a for a in accounts if a.is_active]
        return sorted(accounts, key=lambda a: a.created_at)

    # -------------------------------------------------------------------------
    # Credit cards
    # -------------------------------------------------------------------------

    def create_credit_card(self, data: Union[CreditCardInput, dict]) -> CreditCard:
        data = self._validator.parse(CreditCardInput, data)
        fields = data.model_dump()
        balance = fields.pop("balance")
        card = self._validator.parse(CreditCard, {
            **fields,
            "current_balance": balance,
            "initial_balance": balance,
        })
        with self._store.transaction():
            self._store.put(card)
        logger.info(
            "credit_card_created",
            card_id=str(card.id),
            bank_name=card.bank_name,
            credit_limit=str(card.credit_limit),
            balance=str(card.current_balance),
        )
        self._warn_if_high_utilization(card)
        return card

    def update_credit_card(
        self,
        card_id: UUID,
        data: Union[CreditCardUpdate, dict],
    ) -> CreditCard:
        data = self._validator.parse(CreditCardUpdate, data)
        existing = self._store.get_credit_card(card_id)
        changes = data.model_dump(exclude_unset=True)
        new_balance = changes.pop("balance", None)

        card = self._validator.parse(CreditCard, {
            **existing.model_dump(),
            **changes,
            "updated_at": utc_now(),
        })
        with self._store.transaction():
            self._store.put(card)
            if new_balance is not None and new_balance != card.current_balance:
                self._reconciler.rebase(card.ref, new_balance)
        card = self._store.get_credit_card(card_id)
        logger.info(
            "credit_card_updated",
            card_id=str(card.id),
            fields=sorted(data.model_fields_set),
            balance=str(card.current_balance),
        )
        self._warn_if_high_utilization(card)
        return card

    def delete_credit_card(self, card_id: UUID) -> CreditCard:
        card = self._store.get_credit_card(card_id)
        self._ensure_unreferenced(card.ref, "credit card")
        with self._store.transaction():
            self._store.remove(CreditCard, card.id)
        logger.info("credit_card_deleted", card_id=str(card.id))
        return card

    def get_credit_card(self, card_id: UUID) -> CreditCard:
        return self._store.get_credit_card(card_id)

    def list_credit_cards(self) -> list[CreditCard]:
        return sorted(self._store.all(CreditCard), key=lambda c: c.created_at)

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def create_expense(self, data: Union[ExpenseInput, dict]) -> Expense:
        data = self._validator.parse(ExpenseInput, data)
        result = self._validator.validate_expense(data)
        self._validator.raise_for_errors(result, "create_expense", data.funding)
        return self._synthesizer.create_expense(data)

    def update_expense(
        self,
        expense_id: UUID,
        data: Union[ExpenseInput, dict],
    ) -> Expense:
        data = self._validator.parse(ExpenseInput, data)
        self._store.get_expense(expense_id)
        result = self._validator.validate_expense(data)
        self._validator.raise_for_errors(result, "update_expense", data.funding)
        return self._synthesizer.update_expense(expense_id, data)

    def delete_expense(self, expense_id: UUID) -> Expense:
        return self._synthesizer.delete_expense(expense_id)

    def get_expense(self, expense_id: UUID) -> Expense:
        return self._store.get_expense(expense_id)

    def list_expenses(self) -> list[Expense]:
        return self._queries.search_expenses(ExpenseQuery())

    def search_expenses(self, query: Union[ExpenseQuery, dict]) -> list[Expense]:
        query = self._validator.parse(ExpenseQuery, query)
        return self._queries.search_expenses(query)

    # -------------------------------------------------------------------------
    # Income
    # -------------------------------------------------------------------------

    def create_income(self, data: Union[IncomeInput, dict]) -> Income:
        data = self._validator.parse(IncomeInput, data)
        result = self._validator.validate_income(data)
        self._validator.raise_for_errors(result, "create_income", data.funding)
        return self._synthesizer.create_income(data)

    def update_income(
        self,
        income_id: UUID,
        data: Union[IncomeInput, dict],
    ) -> Income:
        data = self._validator.parse(IncomeInput, data)
        self._store.get_income(income_id)
        result = self._validator.validate_income(data)
        self._validator.raise_for_errors(result, "update_income", data.funding)
        return self._synthesizer.update_income(income_id, data)

    def delete_income(self, income_id: UUID) -> Income:
        return self._synthesizer.delete_income(income_id)

    def get_income(self, income_id: UUID) -> Income:
        return self._store.get_income(income_id)

    def list_incomes(self) -> list[Income]:
        return self._queries.search_incomes(IncomeQuery())

    def search_incomes(self, query: Union[IncomeQuery, dict]) -> list[Income]:
        query = self._validator.parse(IncomeQuery, query)
        return self._queries.search_incomes(query)

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    def create_transfer(self, data: Union[TransferInput, dict]) -> Transfer:
        data = self._validator.parse(TransferInput, data)
        result = self._validator.validate_transfer(data)
        self._validator.raise_for_errors(
            result, "create_transfer", data.source, data.destination
        )
        return self._synthesizer.create_transfer(data)

    def update_transfer(
        self,
        transfer_id: UUID,
        data: Union[TransferInput, dict],
    ) -> Transfer:
        data = self._validator.parse(TransferInput, data)
        self._store.get_transfer(transfer_id)
        result = self._validator.validate_transfer(data)
        self._validator.raise_for_errors(
            result, "update_transfer", data.source, data.destination
        )
        return self._synthesizer.update_transfer(transfer_id, data)

    def delete_transfer(self, transfer_id: UUID) -> Transfer:
        return self._synthesizer.delete_transfer(transfer_id)

    def get_transfer(self, transfer_id: UUID) -> Transfer:
        return self._store.get_transfer(transfer_id)

    def list_transfers(self) -> list[Transfer]:
        """All transfers, most recent first."""
        return sorted(
            self._store.all(Transfer),
            key=lambda t: (t.date, t.created_at),
            reverse=True,
        )

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def create_budget(self, data: Union[BudgetInput, dict]) -> Budget:
        data = self._validator.parse(BudgetInput, data)
        budget = Budget.model_validate(data.model_dump())
        self._ensure_budget_free(budget)
        with self._store.transaction():
            self._store.put(budget)
        logger.info(
            "budget_created",
            budget_id=str(budget.id),
            category=budget.category,
            year=budget.year,
            month=budget.month,
            limit=str(budget.limit),
        )
        return budget

    def update_budget(
        self,
        budget_id: UUID,
        data: Union[BudgetUpdate, dict],
    ) -> Budget:
        data = self._validator.parse(BudgetUpdate, data)
        existing = self._store.get_budget(budget_id)
        changes = data.model_dump(exclude_unset=True)
        budget = self._validator.parse(Budget, {
            **existing.model_dump(),
            **changes,
            "updated_at": utc_now(),
        })
        with self._store.transaction():
            self._store.put(budget)
        logger.info("budget_updated", budget_id=str(budget.id), fields=sorted(changes))
        return budget

    def delete_budget(self, budget_id: UUID) -> Budget:
        budget = self._store.get_budget(budget_id)
        with self._store.transaction():
            self._store.remove(Budget, budget.id)
        logger.info("budget_deleted", budget_id=str(budget.id))
        return budget

    def get_budget(self, budget_id: UUID) -> Budget:
        return self._store.get_budget(budget_id)

    def list_budgets(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Budget]:
        if month is not None:
            self._require_month(month)
        budgets = [
            b for b in self._store.all(Budget)
            if (year is None or b.year == year) and (month is None or b.month == month)
        ]
        return sorted(budgets, key=lambda b: (b.year, b.month, b.category.casefold()))

    def get_budget_usage(self, budget_id: UUID) -> BudgetUsage:
        return self._aggregator.budget_usage(self._store.get_budget(budget_id))

    def get_budget_overview(self, year: int, month: int) -> list[BudgetUsage]:
        """Usage of every budget set for the month, by category name."""
        return [
            self._aggregator.budget_usage(budget)
            for budget in self.list_budgets(year, month)
        ]

    # -------------------------------------------------------------------------
    # Transactions (read only)
    # -------------------------------------------------------------------------

    def list_transactions(self, account_or_card_id: UUID) -> list[Transaction]:
        """Transactions against an account or card, most recent first."""
        ref = self._resolve_ref(account_or_card_id)
        return sorted(
            self._store.transactions_for_target(ref),
            key=lambda t: (t.date, t.created_at),
            reverse=True,
        )

    def get_running_balances(self, account_or_card_id: UUID) -> list[RunningBalance]:
        return self._aggregator.running_balances(self._resolve_ref(account_or_card_id))

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def get_monthly_summary(self, year: int, month: int) -> MonthlySummary:
        self._require_month(month)
        return self._aggregator.monthly_summary(year, month)

    def get_net_worth(self) -> Decimal:
        return self._aggregator.net_worth()

    def get_credit_utilization(self, card_id: UUID) -> CreditUtilization:
        return self._aggregator.credit_utilization(card_id)

    def get_total_credit_utilization(self) -> CreditUtilization:
        return self._aggregator.total_credit_utilization()

    def get_calendar_totals(self, year: int, month: int) -> dict[int, CalendarDayTotal]:
        self._require_month(month)
        return self._aggregator.calendar_totals(year, month)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def list_categories(self, domain: Union[CategoryDomain, str]) -> list[Category]:
        domain = CategoryDomain(domain)
        categories = [c for c in self._store.all(Category) if c.domain == domain]
        return sorted(categories, key=lambda c: (c.order, c.name.casefold()))

    def create_category(self, data: Union[CategoryInput, dict]) -> Category:
        data = self._validator.parse(CategoryInput, data)
        self._ensure_category_name_free(data.domain, data.name)
        order = data.order
        if order is None:
            order = max(
                (c.order for c in self.list_categories(data.domain)),
                default=-1,
            ) + 1
        category = Category(
            name=data.name,
            domain=data.domain,
            icon=data.icon,
            color=data.color,
            order=order,
        )
        with self._store.transaction():
            self._store.put(category)
        logger.info(
            "category_created",
            category_id=str(category.id),
            domain=category.domain.value,
            name=category.name,
        )
        return category

    def update_category(
        self,
        category_id: UUID,
        data: Union[CategoryUpdate, dict],
    ) -> Category:
        data = self._validator.parse(CategoryUpdate, data)
        existing = self._store.get_category(category_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            self._ensure_category_name_free(existing.domain, changes["name"], existing.id)
        category = self._validator.parse(Category, {**existing.model_dump(), **changes})
        with self._store.transaction():
            self._store.put(category)
        logger.info(
            "category_updated",
            category_id=str(category.id),
            fields=sorted(changes),
        )
        return category

    def delete_category(self, category_id: UUID) -> Category:
        """
        Delete a category. Records keep their category name as plain text.
        """
        category = self._store.get_category(category_id)
        with self._store.transaction():
            self._store.remove(Category, category.id)
        logger.info("category_deleted", category_id=str(category.id), name=category.name)
        return category

    # -------------------------------------------------------------------------
    # Integrity
    # -------------------------------------------------------------------------

    def check_integrity(self) -> IntegrityReport:
        """
        Look for anything that would break the balance invariants.

        Checks:
        - Stored balances that disagree with their transactions
        - Transactions whose source record or target no longer exists
        - Records missing some of their transactions
        - Records owning more transactions than they should
        - Two categories sharing a name within a domain
        """
        issues: list[ValidationIssue] = []
        owners: dict[UUID, int] = {}

        # source record id -> number of transactions it must own
        expected: dict[UUID, int] = {}
        records: list[Union[Expense, Income]] = [
            *self._store.all(Expense),
            *self._store.all(Income),
        ]
        for record in records:
            expected[record.id] = 0 if record.funding is None else 1
        for transfer in self._store.all(Transfer):
            expected[transfer.id] = 2

        for transaction in self._store.all(Transaction):
            owners[transaction.source_id] = owners.get(transaction.source_id, 0) + 1
            if transaction.source_id not in expected:
                issues.append(ValidationIssue(
                    field=f"transaction:{transaction.id}",
                    issue_type="orphaned_transaction",
                    message="Transaction has no expense, income or transfer record",
                    severity="error",
                    suggested_fix="Run reconcile_all() after removing the transaction",
                ))
            if not self._store.has_funding_target(transaction.target):
                issues.append(ValidationIssue(
                    field=f"transaction:{transaction.id}",
                    issue_type="missing_target",
                    message=f"Transaction targets a missing {transaction.target.kind.value}",
                    severity="error",
                ))

        for record_id, wanted in expected.items():
            count = owners.get(record_id, 0)
            if count < wanted:
                issues.append(ValidationIssue(
                    field=f"record:{record_id}",
                    issue_type="missing_transaction",
                    message=f"Record should own {wanted} transaction(s) but has {count}",
                    severity="error",
                    suggested_fix="Save the record again to re-create its transactions",
                ))
            elif count > wanted:
                issues.append(ValidationIssue(
                    field=f"record:{record_id}",
                    issue_type="duplicate_transaction",
                    message=f"Record owns {count} transactions, expected {wanted}",
                    severity="error",
                ))

        names: dict[tuple[CategoryDomain, str], list[Category]] = {}
        for category in self._store.all(Category):
            names.setdefault(category.key, []).append(category)
        for (domain, _), clashing in names.items():
            if len(clashing) > 1:
                issues.append(ValidationIssue(
                    field=f"category:{clashing[0].name}",
                    issue_type="duplicate_category",
                    message=(
                        f"{len(clashing)} {domain.value} categories are named "
                        f"'{clashing[0].name}'"
                    ),
                    severity="error",
                    suggested_fix="Rename or delete all but one of them",
                ))

        report = IntegrityReport(
            discrepancies=self._reconciler.find_discrepancies(),
            issues=issues,
        )
        logger.info(
            "integrity_checked",
            issues_found=report.issues_found,
            consistent=report.is_consistent,
        )
        return report

    def reconcile_all(self) -> ReconcileSummary:
        """Recompute every stored balance from its transactions."""
        summary = ReconcileSummary()
        with self._store.transaction():
            for discrepancy in self._reconciler.find_discrepancies():
                self._reconciler.recompute_balance(discrepancy.target)
                summary.fixed.append(discrepancy)
            summary.accounts_processed = (
                len(self._store.all(Account)) + len(self._store.all(CreditCard))
            )
        summary.balances_fixed = len(summary.fixed)
        logger.info(
            "reconcile_completed",
            accounts_processed=summary.accounts_processed,
            balances_fixed=summary.balances_fixed,
        )
        return summary

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    def export_data(self) -> str:
        return export_backup(self._store.export_snapshot())

    def import_data(self, document: str) -> IntegrityReport:
        """
        Replace the whole store with a backup.

        The import is rejected, and the current store kept, if the backup
        fails validation or its balances do not match its transactions.
        """
        snapshot = parse_backup(document)
        with self._store.transaction():
            self._store.replace_state(snapshot)
            self._store.seed_default_categories()
            report = self.check_integrity()
            if not report.is_consistent:
                raise ValidationError(
                    f"Backup is inconsistent: {report.issues_found} issue(s)",
                    issues=report.issues,
                )
        logger.info(
            "backup_imported",
            accounts=len(snapshot.accounts),
            expenses=len(snapshot.expenses),
            incomes=len(snapshot.incomes),
            transfers=len(snapshot.transfers),
            budgets=len(snapshot.budgets),
        )
        return report

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _resolve_ref(self, account_or_card_id: UUID) -> FundingRef:
        if self._store.find(Account, account_or_card_id) is not None:
            return FundingRef.account(account_or_card_id)
        if self._store.find(CreditCard, account_or_card_id) is not None:
            return FundingRef.credit_card(account_or_card_id)
        raise NotFoundError("Account or credit card", account_or_card_id)

    def _ensure_unreferenced(self, ref: FundingRef, label: str) -> None:
        linked = self._store.transactions_for_target(ref)
        if linked:
            raise ValidationError(
                f"Cannot delete {label} {ref.id}: {len(linked)} transaction(s) still use it",
                issues=[ValidationIssue(
                    field="id",
                    issue_type="in_use",
                    message=f"The {label} is still linked to {len(linked)} record(s)",
                    severity="error",
                    suggested_fix="Move or delete the linked expenses, income and transfers first",
                )],
            )

    def _ensure_category_name_free(
        self,
        domain: CategoryDomain,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        clash = self._store.find_category(domain, name)
        if clash is not None and clash.id != exclude_id:
            raise DuplicateError(
                f"A {domain.value} category named '{clash.name}' already exists",
                issues=[ValidationIssue(
                    field="name",
                    issue_type="duplicate",
                    message=f"'{name}' is already used",
                    severity="error",
                )],
            )

    def _ensure_budget_free(self, budget: Budget) -> None:
        for other in self._store.all(Budget):
            if other.key == budget.key and other.id != budget.id:
                raise DuplicateError(
                    f"A budget for '{other.category}' in {other.year}-{other.month:02d} already exists",
                    issues=[ValidationIssue(
                        field="category",
                        issue_type="duplicate",
                        message=f"'{budget.category}' already has a budget for that month",
                        severity="error",
                        suggested_fix="Update the existing budget instead",
                    )],
                )

    @staticmethod
    def _require_month(month: int) -> None:
        if 1 <= month <= 12:
            return
        raise ValidationError(
            f"Month must be between 1 and 12, got {month}",
            issues=[ValidationIssue(
                field="month",
                issue_type="out_of_range",
                message=f"{month} is not a calendar month",
                severity="error",
            )],
        )

    def _warn_if_high_utilization(self, card: CreditCard) -> None:
        threshold = Decimal(str(self._app_settings.high_utilization_threshold))
        if card.utilization > threshold:
            logger.warning(
                "high_credit_utilization",
                card_id=str(card.id),
                utilization=str(card.utilization),
            )


def create_storage(settings: Optional[Settings] = None) -> LedgerStorageInterface:
    """Build the storage backend named in the settings."""
    storage_settings = (settings or get_settings()).storage
    if storage_settings.backend == "memory":
        return InMemoryStorage()
    return JsonFileStorage(
        storage_settings.data_path,
        write_attempts=storage_settings.write_attempts,
    )


def create_ledger(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
) -> Ledger:
    """
    Factory function to create a loaded, ready-to-use ledger.

    Args:
        settings: Settings to use. Defaults to get_settings().
        storage: Storage backend. Defaults to the one configured in settings.

    Returns:
        A Ledger whose store has been loaded and seeded
    """
    settings = settings or get_settings()
    if storage is None:
        storage = create_storage(settings)
    store = RecordStore(storage)
    store.load()
    return Ledger(store, settings)
