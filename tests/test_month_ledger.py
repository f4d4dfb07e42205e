"""
Month ledger / Ready to Assign tests
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from blankslate.models import READY_TO_ASSIGN
from blankslate.schemas import CategoryGroup, CategoryItem, MonthBudget
from blankslate.services import MonthLedger


def _income(budget, account, amount, on=date(2025, 1, 3)):
    return budget.post_transaction(account.id, on, "Employer", READY_TO_ASSIGN, READY_TO_ASSIGN, amount)


class TestReadyToAssign:
    """Assigning moves money out of RTA; income moves money in"""

    def test_income_then_assign(self, budget, checking):
        assert budget.ready_to_assign("2025-01") == Decimal("0")

        _income(budget, checking, 2000)
        assert budget.ready_to_assign("2025-01") == Decimal("2000.00")

        month = budget.set_assigned("Bills", "Rent", "2025-01", 500)
        assert month.ready_to_assign == Decimal("1500.00")
        assert month.find_item("Bills", "Rent").available == Decimal("500.00")

        budget.set_assigned("Everyday", "Groceries", "2025-01", 300)
        assert budget.ready_to_assign("2025-01") == Decimal("1200.00")

    def test_changing_assigned_moves_rta_by_the_difference(self, budget, checking):
        _income(budget, checking, 2000)
        budget.set_assigned("Bills", "Rent", "2025-01", 500)
        assert budget.ready_to_assign() == Decimal("1500.00")

        budget.set_assigned("Bills", "Rent", "2025-01", 700)
        assert budget.ready_to_assign() == Decimal("1300.00")

        budget.set_assigned("Bills", "Rent", "2025-01", 450)
        assert budget.ready_to_assign() == Decimal("1550.00")

    def test_text_amount_uses_expression_or_zero(self, budget, checking):
        _income(budget, checking, 100)
        budget.set_assigned("Bills", "Rent", "2025-01", "10+5")
        assert budget.get_month("2025-01").find_item("Bills", "Rent").assigned == Decimal("15.00")

        budget.set_assigned("Bills", "Rent", "2025-01", "oops")
        assert budget.get_month("2025-01").find_item("Bills", "Rent").assigned == Decimal("0")
        assert budget.ready_to_assign() == Decimal("100.00")

    @pytest.mark.parametrize("amount", ["1" * 30, Decimal("9" * 40), 1e300])
    def test_out_of_range_amount_assigns_zero(self, budget, checking, amount):
        _income(budget, checking, 100)
        budget.set_assigned("Bills", "Rent", "2025-01", 25)

        budget.set_assigned("Bills", "Rent", "2025-01", amount)

        assert budget.get_month("2025-01").find_item("Bills", "Rent").assigned == Decimal("0")
        assert budget.ready_to_assign() == Decimal("100.00")

    def test_income_only_counts_debit_accounts(self, budget, checking, visa):
        _income(budget, visa, 300)
        assert budget.get_month("2025-01").income == Decimal("0")

        _income(budget, checking, 50)
        assert budget.get_month("2025-01").income == Decimal("50.00")

    def test_transfers_are_not_income(self, budget, checking, savings):
        budget.post_transfer(checking.id, savings.id, date(2025, 1, 4), 80)
        assert budget.get_month("2025-01").income == Decimal("0")
        assert budget.ready_to_assign() == Decimal("0")

    def test_rta_carries_into_later_months(self, budget, checking):
        _income(budget, checking, 1000)
        budget.set_assigned("Bills", "Rent", "2025-01", 400)
        budget.navigate("2025-02")
        assert budget.ready_to_assign("2025-02") == Decimal("600.00")

        budget.set_assigned("Bills", "Rent", "2025-02", 100)
        assert budget.ready_to_assign("2025-02") == Decimal("500.00")
        assert budget.ready_to_assign("2025-01") == Decimal("600.00")


class TestAvailable:
    def test_available_adds_up_for_every_item(self, budget, checking):
        _income(budget, checking, 500)
        budget.set_assigned("Everyday", "Groceries", "2025-01", 120)
        budget.post_transaction(checking.id, date(2025, 1, 9), "Market", "Everyday", "Groceries", -45.10)
        budget.navigate("2025-03")

        for key in budget.months():
            for _, item in budget.get_month(key).iter_items():
                assert item.available == item.carry_in + item.assigned + item.activity
        assert budget.check_invariants() == []

    def test_activity_is_signed_sum_of_month_transactions(self, budget, checking):
        budget.post_transaction(checking.id, date(2025, 1, 9), "Market", "Everyday", "Groceries", -45.10)
        budget.post_transaction(checking.id, date(2025, 1, 12), "Market", "Everyday", "Groceries", 5.10)
        budget.post_transaction(checking.id, date(2025, 2, 1), "Market", "Everyday", "Groceries", -9)

        january = budget.get_month("2025-01").find_item("Everyday", "Groceries")
        assert january.activity == Decimal("-40.00")
        assert budget.get_month("2025-01").overspent == Decimal("40.00")


class TestRtaGuard:
    """A broken computation never leaves a non-finite RTA behind"""

    def _month(self, assigned):
        month = MonthBudget(
            month="2025-02",
            ready_to_assign=Decimal("75.00"),
            groups=[CategoryGroup(name="Bills", items=[CategoryItem(name="Rent")])],
        )
        # assignment is not validated, so non-finite values get through
        month.groups[0].items[0].assigned = assigned
        return month

    def test_non_finite_keeps_last_good_value(self, caplog):
        ledger = MonthLedger()
        previous = MonthBudget(month="2025-01", ready_to_assign=Decimal("100.00"))
        month = self._month(Decimal("NaN"))

        with caplog.at_level(logging.ERROR):
            ledger.apply_ready_to_assign(month, previous)

        assert month.ready_to_assign == Decimal("75.00")
        assert month.rta_error
        assert "Ready to Assign" in caplog.text

    def test_infinite_previous_value_is_rejected(self):
        ledger = MonthLedger()
        previous = MonthBudget(month="2025-01")
        previous.ready_to_assign = Decimal("Infinity")
        month = self._month(Decimal("10.00"))

        ledger.apply_ready_to_assign(month, previous)

        assert month.ready_to_assign == Decimal("75.00")
        assert month.rta_error is not None

    def test_error_clears_on_next_good_computation(self):
        ledger = MonthLedger()
        month = self._month(Decimal("NaN"))
        ledger.apply_ready_to_assign(month, None)
        month.groups[0].items[0].assigned = Decimal("25.00")

        ledger.apply_ready_to_assign(month, None)

        assert month.ready_to_assign == Decimal("-25.00")
        assert month.rta_error is None
