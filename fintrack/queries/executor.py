"""
Query Execution Engine

DESIGN DECISION: Searches are plain, deterministic filters over the store.
The presentation layer builds an ExpenseQuery or IncomeQuery from its filter
panel and gets back the matching records, newest first.

Matching rules:
- search_term: case-insensitive substring of description, category and
  subcategory (expenses) or source (income)
- list filters (categories, payment methods, sources, tags): any-of
- date and amount bounds: inclusive
"""

from decimal import Decimal
from typing import Optional, Union

from fintrack.core.store import RecordStore
from fintrack.models.inputs import ExpenseQuery, IncomeQuery, RecordQuery
from fintrack.models.records import Expense, Income


class QueryExecutor:
    """
    Executes record searches against the store.

    GUARANTEES:
    - Only returns records that exist in the store right now
    - Never mutates anything
    """

    def __init__(self, store: RecordStore):
        self._store = store

    def search_expenses(self, query: ExpenseQuery) -> list[Expense]:
        results = []
        for expense in self._store.all(Expense):
            if not self._matches_common(expense, query, expense.subcategory):
                continue
            if query.payment_methods and expense.payment_method not in query.payment_methods:
                continue
            if query.tags and not expense.tags.intersection(query.tags):
                continue
            results.append(expense)
        return self._finish(results, query)

    def search_incomes(self, query: IncomeQuery) -> list[Income]:
        results = []
        for income in self._store.all(Income):
            if not self._matches_common(income, query, income.source):
                continue
            if query.sources and income.source not in query.sources:
                continue
            results.append(income)
        return self._finish(results, query)

    @staticmethod
    def total(records: list[Union[Expense, Income]]) -> Decimal:
        return sum((record.amount for record in records), Decimal("0"))

    def _matches_common(
        self,
        record: Union[Expense, Income],
        query: RecordQuery,
        extra_text: Optional[str],
    ) -> bool:
        if query.search_term:
            needle = query.search_term.lower()
            haystacks = [record.description, record.category, extra_text or ""]
            if not any(needle in text.lower() for text in haystacks):
                return False

        if query.categories and record.category not in query.categories:
            return False

        if query.date_from and record.date < query.date_from:
            return False
        if query.date_to and record.date > query.date_to:
            return False

        if query.min_amount is not None and record.amount < query.min_amount:
            return False
        if query.max_amount is not None and record.amount > query.max_amount:
            return False

        return True

    def _finish(self, records: list, query: RecordQuery) -> list:
        # Sort by date descending (newest first)
        records.sort(key=lambda r: (r.date, r.created_at), reverse=True)
        if query.limit is not None:
            return records[:query.limit]
        return records
