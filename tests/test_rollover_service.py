"""
Rollover tests: carry-forward, overspend absorption, cascade, idempotence
"""

from datetime import date
from decimal import Decimal

from blankslate.models import READY_TO_ASSIGN
from blankslate.services import BudgetBook, RolloverService


class TestCarryForward:
    def test_unspent_money_rolls_over_with_zero_assigned(self, budget, checking):
        budget.post_transaction(checking.id, date(2025, 1, 2), "Employer", READY_TO_ASSIGN, READY_TO_ASSIGN, 500)
        budget.set_assigned("Bills", "Car Insurance", "2025-01", 100)

        february = budget.navigate("2025-02")
        item = february.find_item("Bills", "Car Insurance")

        assert item.available == Decimal("100.00")
        assert item.carry_in == Decimal("100.00")
        assert item.assigned == Decimal("0")

    def test_overspending_is_not_carried(self, budget, checking):
        budget.post_transaction(checking.id, date(2025, 1, 20), "Diner", "Everyday", "Dining", -40)
        assert budget.get_month("2025-01").find_item("Everyday", "Dining").available == Decimal("-40.00")

        february = budget.navigate("2025-02")
        dining = february.find_item("Everyday", "Dining")

        assert dining.carry_in == Decimal("0")
        assert dining.available >= 0
        # absorbed, not taken from RTA
        assert february.ready_to_assign == Decimal("0")

    def test_navigation_materializes_every_month_in_between(self, budget):
        budget.navigate("2025-05")
        assert budget.months() == ["2025-01", "2025-02", "2025-03", "2025-04", "2025-05"]
        assert budget.current_month == "2025-05"

        budget.navigate("2024-10")
        assert budget.months()[0] == "2024-10"
        assert len(budget.months()) == 8

    def test_new_months_share_the_structure(self, budget):
        budget.create_item("Bills", "Water")
        march = budget.navigate("2025-03")
        assert [item.name for item in march.find_group("Bills").items] == ["Rent", "Car Insurance", "Water"]


class TestCascade:
    def test_editing_past_month_updates_later_months_only(self, budget, checking):
        budget.post_transaction(checking.id, date(2025, 1, 2), "Employer", READY_TO_ASSIGN, READY_TO_ASSIGN, 1000)
        budget.navigate("2025-03")
        budget.navigate("2024-11")
        before_november = budget.get_month("2024-11").model_dump()
        before_december = budget.get_month("2024-12").model_dump()

        budget.set_assigned("Bills", "Rent", "2025-01", 250)

        assert budget.get_month("2025-02").find_item("Bills", "Rent").carry_in == Decimal("250.00")
        assert budget.get_month("2025-03").find_item("Bills", "Rent").available == Decimal("250.00")
        assert budget.ready_to_assign("2025-03") == Decimal("750.00")
        assert budget.get_month("2024-11").model_dump() == before_november
        assert budget.get_month("2024-12").model_dump() == before_december

    def test_later_spending_eats_rolled_over_money(self, budget, checking):
        budget.set_assigned("Everyday", "Groceries", "2025-01", 200)
        budget.post_transaction(checking.id, date(2025, 2, 10), "Market", "Everyday", "Groceries", -75)

        february = budget.get_month("2025-02").find_item("Everyday", "Groceries")
        assert february.carry_in == Decimal("200.00")
        assert february.available == Decimal("125.00")


class TestIdempotence:
    def test_deriving_next_month_twice_is_identical(self, budget, checking):
        budget.set_assigned("Bills", "Rent", "2025-01", 300)
        budget.post_transaction(checking.id, date(2025, 1, 8), "Landlord", "Bills", "Rent", -120)
        budget.navigate("2025-02")

        first = budget.rollover.derive_next(budget.book, "2025-01")
        second = budget.rollover.derive_next(budget.book, "2025-01")

        assert first.model_dump() == second.model_dump()
        assert first.model_dump() == budget.get_month("2025-02").model_dump()

    def test_recompute_does_not_double_apply(self, budget, checking):
        budget.set_assigned("Bills", "Rent", "2025-01", 300)
        budget.navigate("2025-04")
        snapshot = {key: budget.get_month(key).model_dump() for key in budget.months()}

        budget.rollover.recompute_from(budget.book)
        budget.rollover.recompute_from(budget.book, "2025-02")

        assert {key: budget.get_month(key).model_dump() for key in budget.months()} == snapshot


def test_materialize_on_empty_book_creates_single_month():
    book = BudgetBook()
    created = RolloverService().materialize(book, "2025-06-15")
    assert created == ["2025-06"]
    assert book.sorted_months() == ["2025-06"]
    assert RolloverService().materialize(book, "2025-06") == []
