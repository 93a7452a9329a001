"""
Aggregator

Pure read-only views computed from the store on demand. Nothing is cached,
so a read immediately after a write always reflects it.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from fintrack.core.store import RecordStore
from fintrack.models.records import (
    Account,
    Budget,
    BudgetStatus,
    CreditCard,
    Expense,
    FundingRef,
    Income,
)
from fintrack.models.views import (
    BudgetUsage,
    CalendarDayTotal,
    CreditUtilization,
    MonthlySummary,
    RunningBalance,
)


def _in_month(day: date, year: int, month: int) -> bool:
    return day.year == year and day.month == month


def _ratio(balance: Decimal, limit: Decimal) -> Decimal:
    if limit == 0:
        return Decimal("0")
    return balance / limit


class Aggregator:

    def __init__(self, store: RecordStore):
        self._store = store

    def monthly_summary(self, year: int, month: int) -> MonthlySummary:
        """Totals of expenses and income dated within the calendar month."""
        expenses = [
            e for e in self._store.all(Expense) if _in_month(e.date, year, month)
        ]
        incomes = [
            i for i in self._store.all(Income) if _in_month(i.date, year, month)
        ]

        by_category: dict[str, Decimal] = {}
        for expense in expenses:
            by_category[expense.category] = (
                by_category.get(expense.category, Decimal("0")) + expense.amount
            )

        return MonthlySummary(
            year=year,
            month=month,
            expense_total=_total(e.amount for e in expenses),
            income_total=_total(i.amount for i in incomes),
            expense_count=len(expenses),
            income_count=len(incomes),
            expenses_by_category=dict(
                sorted(by_category.items(), key=lambda item: item[1], reverse=True)
            ),
        )

    def net_worth(self) -> Decimal:
        """Active account balances minus card debt."""
        assets = _total(a.balance for a in self._store.all(Account) if a.is_active)
        liabilities = _total(c.current_balance for c in self._store.all(CreditCard))
        return assets - liabilities

    def credit_utilization(self, card_id: UUID) -> CreditUtilization:
        card = self._store.get_credit_card(card_id)
        return CreditUtilization(
            card_id=card.id,
            current_balance=card.current_balance,
            credit_limit=card.credit_limit,
            ratio=card.utilization,
        )

    def total_credit_utilization(self) -> CreditUtilization:
        """Utilization across every card: total debt over total limit."""
        cards = self._store.all(CreditCard)
        balance = _total(c.current_balance for c in cards)
        limit = _total(c.credit_limit for c in cards)
        return CreditUtilization(
            current_balance=balance,
            credit_limit=limit,
            ratio=_ratio(balance, limit),
        )

    def calendar_totals(self, year: int, month: int) -> dict[int, CalendarDayTotal]:
        """Day of month -> expense total and count, for days with expenses."""
        days: dict[int, CalendarDayTotal] = {}
        for expense in self._store.all(Expense):
            if not _in_month(expense.date, year, month):
                continue
            bucket = days.setdefault(
                expense.date.day, CalendarDayTotal(day=expense.date.day)
            )
            bucket.total += expense.amount
            bucket.count += 1
        return dict(sorted(days.items()))

    def budget_usage(self, budget: Budget) -> BudgetUsage:
        """
        Spending in the budget's category and month against its limit.

        Categories match case-insensitively. Status is safe below the alert
        threshold, warning below 100%, danger at exactly 100% and exceeded
        above it.
        """
        category = budget.category.casefold()
        spent = _total(
            e.amount
            for e in self._store.all(Expense)
            if e.category.casefold() == category
            and _in_month(e.date, budget.year, budget.month)
        )
        limit = budget.limit
        if limit > 0:
            percentage = spent / limit * 100
        else:
            percentage = Decimal("100") if spent > 0 else Decimal("0")

        if percentage < budget.alert_threshold:
            status = BudgetStatus.SAFE
        elif percentage < 100:
            status = BudgetStatus.WARNING
        elif percentage == 100:
            status = BudgetStatus.DANGER
        else:
            status = BudgetStatus.EXCEEDED

        return BudgetUsage(
            budget_id=budget.id,
            category=budget.category,
            year=budget.year,
            month=budget.month,
            spent=spent,
            limit=limit,
            percentage=percentage,
            remaining=limit - spent,
            status=status,
        )

    def running_balances(self, ref: FundingRef) -> list[RunningBalance]:
        """Balance after each transaction, oldest first, from the opening balance."""
        target = self._store.get_funding_target(ref)
        transactions = sorted(
            self._store.transactions_for_target(ref),
            key=lambda t: (t.date, t.created_at),
        )
        balance = target.initial_balance
        rows = []
        for transaction in transactions:
            balance += transaction.amount
            rows.append(RunningBalance(
                transaction_id=transaction.id,
                date=transaction.date,
                amount=transaction.amount,
                balance_after=balance,
            ))
        return rows


def _total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, Decimal("0"))
