"""
Tests for derived aggregates

Aggregates are computed on demand, so every test reads right after writing.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import account_ref, expense_data, income_data
from fintrack.errors import DuplicateError, NotFoundError, ValidationError
from fintrack.models import AccountInput, BudgetStatus, CreditCardInput, FundingRef


class TestMonthlySummary:
    """Monthly expense and income totals."""

    def test_totals_for_month(self, ledger):
        """Test only records dated in the month are counted."""
        ledger.create_expense(expense_data("50", date=date(2024, 3, 1)))
        ledger.create_expense(expense_data("100", date=date(2024, 3, 31)))
        ledger.create_expense(expense_data("30", category="Transportation"))
        ledger.create_expense(expense_data("999", date=date(2024, 4, 1)))
        ledger.create_income(income_data("500"))

        summary = ledger.get_monthly_summary(2024, 3)

        assert summary.expense_total == Decimal("180")
        assert summary.expense_count == 3
        assert summary.income_total == Decimal("500")
        assert summary.income_count == 1
        assert summary.net_cash_flow == Decimal("320")

    def test_expenses_by_category_largest_first(self, ledger):
        """Test category totals are sorted descending."""
        ledger.create_expense(expense_data("30", category="Transportation"))
        ledger.create_expense(expense_data("50"))
        ledger.create_expense(expense_data("100"))

        by_category = ledger.get_monthly_summary(2024, 3).expenses_by_category

        assert list(by_category) == ["Food", "Transportation"]
        assert by_category["Food"] == Decimal("150")

    def test_empty_month(self, ledger):
        """Test a month with no records is all zeros."""
        summary = ledger.get_monthly_summary(2023, 1)
        assert summary.expense_total == 0
        assert summary.income_total == 0
        assert summary.expenses_by_category == {}

    def test_summary_reflects_delete(self, ledger):
        """Test a deleted expense disappears from the totals."""
        expense = ledger.create_expense(expense_data("75"))
        ledger.delete_expense(expense.id)
        assert ledger.get_monthly_summary(2024, 3).expense_total == 0

    @pytest.mark.parametrize("month", [0, 13])
    def test_month_out_of_range(self, ledger, month):
        """Test a month outside 1-12 is a ledger validation error."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.get_monthly_summary(2024, month)
        assert exc_info.value.issues[0].field == "month"


class TestNetWorth:
    """Net worth is account money minus card debt."""

    def test_accounts_minus_cards(self, ledger, account, card):
        """Test 1000 in the bank and 5000 of debt."""
        assert ledger.get_net_worth() == Decimal("-4000")

    def test_follows_transactions(self, ledger, account):
        """Test income raises net worth."""
        ledger.create_income(income_data("500", account_ref(account)))
        assert ledger.get_net_worth() == Decimal("1500")

    def test_inactive_accounts_excluded(self, ledger, account):
        """Test closed accounts do not count."""
        ledger.create_account(AccountInput(
            bank_name="Old bank",
            balance=Decimal("999"),
            is_active=False,
        ))
        assert ledger.get_net_worth() == Decimal("1000")


class TestCreditUtilization:
    """Card utilization ratios and their display."""

    def test_single_card(self, ledger, card):
        """Test 5000 of 30000 is 16.7%."""
        utilization = ledger.get_credit_utilization(card.id)
        assert utilization.card_id == card.id
        assert utilization.percentage == "16.7%"

    def test_total_across_cards(self, ledger, card):
        """Test the overall ratio is total debt over total limit."""
        ledger.create_credit_card(CreditCardInput(
            bank_name="HSBC",
            card_name="Zero",
            last_four_digits="0001",
            credit_limit=Decimal("10000"),
            balance=Decimal("1000"),
        ))

        total = ledger.get_total_credit_utilization()
        assert total.card_id is None
        assert total.current_balance == Decimal("6000")
        assert total.credit_limit == Decimal("40000")
        assert total.percentage == "15.0%"

    def test_zero_limit(self, ledger):
        """Test a card with no limit reports zero utilization."""
        card = ledger.create_credit_card({
            "bank_name": "Test",
            "card_name": "Prepaid",
            "last_four_digits": "9999",
            "credit_limit": "0",
        })
        assert ledger.get_credit_utilization(card.id).percentage == "0.0%"

    def test_over_limit_display_capped(self, ledger):
        """Test display ratio never exceeds 1 while the ratio itself is kept."""
        card = ledger.create_credit_card({
            "bank_name": "Test",
            "card_name": "Maxed",
            "last_four_digits": "1111",
            "credit_limit": "1000",
            "balance": "1500",
        })
        utilization = ledger.get_credit_utilization(card.id)
        assert utilization.ratio == Decimal("1.5")
        assert utilization.display_ratio == Decimal("1")
        assert utilization.percentage == "150.0%"

    def test_unknown_card(self, ledger):
        """Test an unknown card id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            ledger.get_credit_utilization(uuid4())


class TestCalendarTotals:
    """Per-day expense totals for the calendar view."""

    def test_same_day_expenses(self, ledger):
        """Test two expenses of 50 and 100 on one day."""
        ledger.create_expense(expense_data("50"))
        ledger.create_expense(expense_data("100"))

        totals = ledger.get_calendar_totals(2024, 3)

        assert list(totals) == [15]
        assert totals[15].total == Decimal("150")
        assert totals[15].count == 2

    def test_days_sorted_and_month_scoped(self, ledger):
        """Test days come back in order and other months are ignored."""
        ledger.create_expense(expense_data("10", date=date(2024, 3, 20)))
        ledger.create_expense(expense_data("10", date=date(2024, 3, 2)))
        ledger.create_expense(expense_data("10", date=date(2024, 2, 2)))

        assert list(ledger.get_calendar_totals(2024, 3)) == [2, 20]

    def test_month_out_of_range(self, ledger):
        """Test month 13 is rejected the same way as for the summary."""
        with pytest.raises(ValidationError):
            ledger.get_calendar_totals(2024, 13)


class TestRunningBalances:
    """Balance after each transaction, oldest first."""

    def test_account_running_balance(self, ledger, account):
        """Test balances are accumulated from the opening balance."""
        ref = account_ref(account)
        ledger.create_expense(expense_data("300", ref, date=date(2024, 3, 10)))
        ledger.create_income(income_data("500", ref, date=date(2024, 3, 5)))

        rows = ledger.get_running_balances(account.id)

        assert [r.balance_after for r in rows] == [Decimal("1500"), Decimal("1200")]
        assert rows[-1].balance_after == ledger.get_account(account.id).balance

    def test_card_running_balance(self, ledger, card):
        """Test card debt grows with charges."""
        ledger.create_expense(
            expense_data("250", FundingRef.credit_card(card.id), payment_method="credit")
        )
        rows = ledger.get_running_balances(card.id)
        assert rows[0].amount == Decimal("250")
        assert rows[0].balance_after == Decimal("5250")



def budget_data(limit="1000", **overrides) -> dict:
    data = {
        "category": "Food",
        "year": 2024,
        "month": 3,
        "monthly_limit": Decimal(limit),
    }
    data.update(overrides)
    return data


class TestBudgetUsage:
    """Spending against monthly category budgets."""

    def test_safe_below_threshold(self, ledger):
        """Test 500 of 1000 is safe with the default 80% threshold."""
        budget = ledger.create_budget(budget_data())
        ledger.create_expense(expense_data("500"))
        ledger.create_expense(expense_data("999", date=date(2024, 4, 1)))
        ledger.create_expense(expense_data("999", category="Transportation"))

        usage = ledger.get_budget_usage(budget.id)

        assert usage.spent == Decimal("500")
        assert usage.percentage == Decimal("50")
        assert usage.remaining == Decimal("500")
        assert usage.status == BudgetStatus.SAFE
        assert usage.display_percentage == "50.0%"

    def test_warning_at_threshold(self, ledger):
        """Test reaching the alert threshold turns the budget to warning."""
        budget = ledger.create_budget(budget_data())
        ledger.create_expense(expense_data("800", category="food"))
        assert ledger.get_budget_usage(budget.id).status == BudgetStatus.WARNING

    def test_danger_at_limit(self, ledger):
        """Test spending exactly the limit is danger."""
        budget = ledger.create_budget(budget_data())
        ledger.create_expense(expense_data("1000"))

        usage = ledger.get_budget_usage(budget.id)
        assert usage.status == BudgetStatus.DANGER
        assert usage.remaining == 0

    def test_exceeded_over_limit(self, ledger):
        """Test spending past the limit is exceeded with a negative remainder."""
        budget = ledger.create_budget(budget_data())
        ledger.create_expense(expense_data("1200"))

        usage = ledger.get_budget_usage(budget.id)
        assert usage.status == BudgetStatus.EXCEEDED
        assert usage.remaining == Decimal("-200")

    def test_rollover_raises_limit(self, ledger):
        """Test the rollover amount is added to the monthly limit."""
        budget = ledger.create_budget(budget_data(rollover_amount=Decimal("250")))
        ledger.create_expense(expense_data("900"))

        usage = ledger.get_budget_usage(budget.id)
        assert usage.limit == Decimal("1250")
        assert usage.status == BudgetStatus.SAFE

    def test_zero_limit(self, ledger):
        """Test a zero limit is 0% until something is spent, then 100%."""
        budget = ledger.create_budget(budget_data("0"))
        assert ledger.get_budget_usage(budget.id).percentage == 0

        ledger.create_expense(expense_data("1"))
        usage = ledger.get_budget_usage(budget.id)
        assert usage.percentage == 100
        assert usage.status == BudgetStatus.DANGER

    def test_duplicate_budget_rejected(self, ledger):
        """Test one budget per category and month, ignoring case."""
        ledger.create_budget(budget_data())
        with pytest.raises(DuplicateError):
            ledger.create_budget(budget_data("50", category="FOOD"))

        ledger.create_budget(budget_data(month=4))
        assert len(ledger.list_budgets(2024)) == 2

    def test_update_and_overview(self, ledger):
        """Test updates apply and the overview covers only the month asked for."""
        budget = ledger.create_budget(budget_data())
        ledger.create_budget(budget_data(category="Transportation"))
        ledger.create_budget(budget_data(month=4))
        ledger.update_budget(budget.id, {"monthly_limit": Decimal("100")})
        ledger.create_expense(expense_data("150"))

        overview = ledger.get_budget_overview(2024, 3)

        assert [u.category for u in overview] == ["Food", "Transportation"]
        assert overview[0].status == BudgetStatus.EXCEEDED
        with pytest.raises(ValidationError):
            ledger.get_budget_overview(2024, 13)

    def test_delete(self, ledger):
        budget = ledger.create_budget(budget_data())
        ledger.delete_budget(budget.id)
        with pytest.raises(NotFoundError):
            ledger.get_budget_usage(budget.id)



if __name__ == "__main__":
    pytest.main([__file__, "-v"])
