"""
Transaction, transfer and account tests
"""

from datetime import date
from decimal import Decimal

import pytest

from blankslate.errors import (
    DuplicateNameError,
    InvalidTransactionError,
    MirrorIntegrityError,
    NotFoundError,
    ProtectedGroupError,
)
from blankslate.models import AccountType, CREDIT_CARD_GROUP, READY_TO_ASSIGN
from blankslate.services.account_service import INITIAL_BALANCE_PAYEE
from blankslate.services.transfer_pairing_service import TRANSFER_PAYEE_PREFIX


def _card(budget, month="2025-01"):
    return budget.get_month(month).find_item(CREDIT_CARD_GROUP, "Visa")


class TestPosting:
    def test_posting_moves_balance_and_activity(self, budget, checking):
        tx = budget.post_transaction(checking.id, date(2025, 1, 6), "Market", "Everyday", "Groceries", "-12.50")

        assert tx.amount == Decimal("-12.50")
        assert budget.book.accounts[checking.id].balance == Decimal("-12.50")
        assert budget.get_month("2025-01").find_item("Everyday", "Groceries").activity == Decimal("-12.50")

        budget.undo()
        assert tx.id not in budget.book.transactions
        assert budget.book.accounts[checking.id].balance == Decimal("0")

    @pytest.mark.parametrize(
        "group, item",
        [(None, None), ("Uncategorized", "Uncategorized"), ("Everyday", "Coffee"), ("Travel", "Hotel")],
    )
    def test_unknown_categories_post_uncategorized(self, budget, checking, group, item):
        tx = budget.post_transaction(checking.id, date(2025, 1, 6), "Shop", group, item, -5)
        assert tx.group_name is None
        assert tx.item_name is None

    def test_user_category_named_uncategorized_receives_postings(self, budget, checking):
        budget.create_item("Everyday", "Uncategorized")

        tx = budget.post_transaction(checking.id, date(2025, 1, 6), "Shop", "Everyday", "Uncategorized", -5)

        assert (tx.group_name, tx.item_name) == ("Everyday", "Uncategorized")
        assert budget.get_month("2025-01").find_item("Everyday", "Uncategorized").activity == Decimal("-5.00")

    def test_payment_group_cannot_be_posted_to(self, budget, checking, visa):
        with pytest.raises(ProtectedGroupError):
            budget.post_transaction(checking.id, date(2025, 1, 6), "Bank", CREDIT_CARD_GROUP, "Visa", -5)

    def test_posting_into_a_new_month_materializes_it(self, budget, checking):
        budget.post_transaction(checking.id, date(2025, 3, 2), "Employer", READY_TO_ASSIGN, READY_TO_ASSIGN, 100)
        assert budget.months() == ["2025-01", "2025-02", "2025-03"]
        assert budget.ready_to_assign("2025-03") == Decimal("100.00")
        assert budget.ready_to_assign("2025-02") == Decimal("0")

    def test_unknown_account(self, budget):
        with pytest.raises(NotFoundError):
            budget.post_transaction("missing", date(2025, 1, 6), "Shop", None, None, -5)

    def test_rejected_posting_creates_no_months(self, budget, checking, savings, visa):
        with pytest.raises(ProtectedGroupError):
            budget.post_transaction(checking.id, date(2025, 4, 6), "Bank", CREDIT_CARD_GROUP, "Visa", -5)
        with pytest.raises(NotFoundError):
            budget.post_transfer(checking.id, "missing", date(2025, 5, 1), Decimal("10"))
        with pytest.raises(DuplicateNameError):
            budget.create_account("checking", AccountType.DEBIT, on=date(2025, 6, 1))
        out_leg, _ = budget.post_transfer(checking.id, savings.id, date(2025, 1, 4), Decimal("10"))
        with pytest.raises(InvalidTransactionError):
            budget.edit_transaction(out_leg.id, on=date(2025, 7, 1), group="Everyday", item="Dining")

        assert budget.months() == ["2025-01"]

    def test_listing_is_newest_first(self, budget, checking, savings):
        first = budget.post_transaction(checking.id, date(2025, 1, 3), "A", None, None, -1)
        second = budget.post_transaction(checking.id, date(2025, 1, 9), "B", None, None, -2)
        budget.post_transaction(savings.id, date(2025, 1, 5), "C", None, None, -3)

        assert [tx.id for tx in budget.list_transactions(checking.id)] == [second.id, first.id]
        assert len(budget.list_transactions()) == 3


class TestTransfers:
    def test_payee_naming_an_account_creates_mirrored_pair(self, budget, checking, savings):
        out_leg = budget.post_transaction(checking.id, date(2025, 1, 7), "Savings", "Everyday", "Groceries", -200)

        assert out_leg.mirror_id is not None
        in_leg = budget.pairing.find_mirror(budget.book, out_leg)
        assert in_leg.account_id == savings.id
        assert in_leg.amount == Decimal("200.00")
        assert in_leg.payee_name == f"{TRANSFER_PAYEE_PREFIX}Checking"
        # cash-to-cash transfers carry no category
        assert out_leg.group_name is None
        assert budget.book.accounts[checking.id].balance == Decimal("-200.00")
        assert budget.book.accounts[savings.id].balance == Decimal("200.00")

    def test_positive_amount_means_money_came_in(self, budget, checking, savings):
        own_leg = budget.post_transaction(savings.id, date(2025, 1, 7), "Transfer : Checking", None, None, 75)
        assert own_leg.account_id == savings.id
        assert own_leg.amount == Decimal("75.00")
        assert budget.book.accounts[checking.id].balance == Decimal("-75.00")

    def test_zero_transfer_is_rejected(self, budget, checking, savings):
        with pytest.raises(InvalidTransactionError):
            budget.post_transaction(checking.id, date(2025, 1, 7), "Savings", None, None, 0)
        assert budget.book.transactions == {}

    def test_undo_removes_both_legs(self, budget, checking, savings):
        budget.post_transfer(checking.id, savings.id, date(2025, 1, 7), Decimal("40"))
        assert len(budget.book.transactions) == 2

        budget.undo()
        assert budget.book.transactions == {}
        assert budget.book.accounts[savings.id].balance == Decimal("0")

    def test_deleting_one_leg_deletes_its_mirror(self, budget, checking, savings):
        out_leg, in_leg = budget.post_transfer(checking.id, savings.id, date(2025, 1, 7), Decimal("40"))

        deleted = budget.delete_transaction(in_leg.id)

        assert set(deleted) == {out_leg.id, in_leg.id}
        assert budget.book.transactions == {}

    def test_broken_mirror_aborts_and_changes_nothing(self, budget, checking, savings):
        out_leg, in_leg = budget.post_transfer(checking.id, savings.id, date(2025, 1, 7), Decimal("40"))
        plain = budget.post_transaction(checking.id, date(2025, 1, 8), "Shop", None, None, -5)
        # simulate corrupted state: partner vanished
        budget.book.delete_transaction(in_leg.id)

        with pytest.raises(MirrorIntegrityError):
            budget.delete_transactions([plain.id, out_leg.id])

        assert plain.id in budget.book.transactions
        assert out_leg.id in budget.book.transactions


class TestCreditCards:
    def test_card_payment_categorizes_the_debit_leg(self, budget, checking, visa):
        out_leg, in_leg = budget.post_transfer(checking.id, visa.id, date(2025, 1, 20), Decimal("30"))

        assert (out_leg.group_name, out_leg.item_name) == (CREDIT_CARD_GROUP, "Visa")
        assert in_leg.group_name is None
        assert budget.book.accounts[visa.id].balance == Decimal("30.00")

    def test_funded_card_spending_moves_to_payment_item(self, budget, checking, visa):
        budget.post_transaction(checking.id, date(2025, 1, 1), "Employer", READY_TO_ASSIGN, READY_TO_ASSIGN, 500)
        budget.set_assigned("Everyday", "Groceries", "2025-01", 100)

        budget.post_transaction(visa.id, date(2025, 1, 10), "Market", "Everyday", "Groceries", -30)

        assert budget.get_month("2025-01").find_item("Everyday", "Groceries").available == Decimal("70.00")
        assert _card(budget).available == Decimal("30.00")
        assert budget.ready_to_assign() == Decimal("400.00")

        budget.post_transfer(checking.id, visa.id, date(2025, 1, 25), Decimal("30"))
        assert _card(budget).available == Decimal("0")
        assert budget.book.accounts[visa.id].balance == Decimal("0")

    def test_payment_in_a_later_month_uses_carried_balance(self, budget, checking, visa):
        budget.set_assigned("Everyday", "Groceries", "2025-01", 100)
        budget.post_transaction(visa.id, date(2025, 1, 10), "Market", "Everyday", "Groceries", -30)

        budget.post_transfer(checking.id, visa.id, date(2025, 2, 3), Decimal("30"))

        february = _card(budget, "2025-02")
        assert february.carry_in == Decimal("30.00")
        assert february.available == Decimal("0")

    def test_unfunded_card_spending_is_not_covered(self, budget, visa):
        budget.post_transaction(visa.id, date(2025, 1, 10), "Diner", "Everyday", "Dining", -50)

        assert budget.get_month("2025-01").find_item("Everyday", "Dining").available == Decimal("-50.00")
        assert _card(budget).available == Decimal("0")

    def test_refund_lowers_the_funded_amount(self, budget, visa):
        budget.set_assigned("Everyday", "Groceries", "2025-01", 100)
        budget.post_transaction(visa.id, date(2025, 1, 10), "Market", "Everyday", "Groceries", -60)
        budget.post_transaction(visa.id, date(2025, 1, 12), "Market", "Everyday", "Groceries", 20)

        assert _card(budget).available == Decimal("40.00")

    def test_credit_income_is_not_ready_to_assign(self, budget, visa):
        budget.post_transaction(visa.id, date(2025, 1, 10), "Cashback", READY_TO_ASSIGN, READY_TO_ASSIGN, 15)
        assert budget.ready_to_assign() == Decimal("0")


class TestAccounts:
    def test_credit_account_gets_payment_item(self, budget, visa):
        items = [item.name for item in budget.get_month().find_group(CREDIT_CARD_GROUP).items]
        assert items == ["Visa"]
        assert budget.check_invariants() == []

    def test_debit_starting_balance_is_income(self, budget):
        account = budget.create_account("Wallet", AccountType.DEBIT, balance="250", on=date(2025, 1, 1))

        assert account.balance == Decimal("250.00")
        assert budget.ready_to_assign() == Decimal("250.00")
        (opening,) = budget.list_transactions(account.id)
        assert opening.payee_name == INITIAL_BALANCE_PAYEE

    def test_credit_starting_balance_is_debt(self, budget):
        card = budget.create_account("Amex", "credit", balance=-400, issuer="amex", on=date(2025, 1, 1))
        assert card.balance == Decimal("-400.00")
        assert card.issuer == "amex"
        assert budget.ready_to_assign() == Decimal("0")

    def test_names_are_unique_ignoring_case_and_spaces(self, budget, checking):
        with pytest.raises(DuplicateNameError):
            budget.create_account("  CHECKING ", AccountType.DEBIT)

    def test_rename_credit_account_renames_payment_item(self, budget, visa):
        budget.rename_account(visa.id, "Visa Gold")

        group = budget.get_month().find_group(CREDIT_CARD_GROUP)
        assert [item.name for item in group.items] == ["Visa Gold"]

        budget.undo()
        assert budget.book.accounts[visa.id].name == "Visa"
        group = budget.get_month().find_group(CREDIT_CARD_GROUP)
        assert [item.name for item in group.items] == ["Visa"]

    def test_delete_account_removes_transactions_and_mirrors(self, budget, checking, visa):
        budget.post_transaction(visa.id, date(2025, 1, 10), "Market", "Everyday", "Groceries", -30)
        budget.post_transfer(checking.id, visa.id, date(2025, 1, 12), Decimal("30"))

        budget.delete_account(visa.id)

        assert visa.id not in budget.book.accounts
        assert budget.book.transactions == {}
        assert budget.book.accounts[checking.id].balance == Decimal("0")
        assert budget.get_month().find_group(CREDIT_CARD_GROUP).items == []

        budget.undo()
        assert budget.book.accounts[visa.id].balance == Decimal("0")
        assert len(budget.book.transactions) == 3
        assert budget.book.accounts[checking.id].balance == Decimal("-30.00")
        assert budget.check_invariants() == []

    def test_accounts_keep_creation_order(self, budget, checking, savings, visa):
        assert [account.name for account in budget.list_accounts()] == ["Checking", "Savings", "Visa"]


class TestEditing:
    def test_edit_amount_and_category(self, budget, checking):
        tx = budget.post_transaction(checking.id, date(2025, 1, 6), "Market", "Everyday", "Groceries", -20)

        edited = budget.edit_transaction(tx.id, group="Everyday", item="Dining", amount="-35")

        january = budget.get_month("2025-01")
        assert edited.id == tx.id
        assert january.find_item("Everyday", "Groceries").activity == Decimal("0")
        assert january.find_item("Everyday", "Dining").activity == Decimal("-35.00")
        assert budget.book.accounts[checking.id].balance == Decimal("-35.00")

    def test_moving_to_another_month_updates_both(self, budget, checking):
        tx = budget.post_transaction(checking.id, date(2025, 1, 6), "Market", "Everyday", "Groceries", -20)

        budget.edit_transaction(tx.id, on=date(2025, 2, 2))

        assert budget.get_month("2025-01").find_item("Everyday", "Groceries").activity == Decimal("0")
        assert budget.get_month("2025-02").find_item("Everyday", "Groceries").activity == Decimal("-20.00")

        budget.undo()
        assert budget.book.transactions[tx.id].date == date(2025, 1, 6)

    def test_transfer_edit_keeps_legs_in_sync(self, budget, checking, savings):
        out_leg, in_leg = budget.post_transfer(checking.id, savings.id, date(2025, 1, 7), Decimal("40"))

        budget.edit_transaction(out_leg.id, on=date(2025, 1, 9), amount=-55)

        mirror = budget.book.transactions[in_leg.id]
        assert mirror.amount == Decimal("55.00")
        assert mirror.date == date(2025, 1, 9)
        assert budget.book.accounts[savings.id].balance == Decimal("55.00")

    def test_transfer_category_cannot_change(self, budget, checking, savings):
        out_leg, _ = budget.post_transfer(checking.id, savings.id, date(2025, 1, 7), Decimal("40"))
        with pytest.raises(InvalidTransactionError):
            budget.edit_transaction(out_leg.id, group="Everyday", item="Dining")


class TestImports:
    def test_import_transactions_is_one_command(self, budget, checking):
        rows = [
            {"date": "2025-01-04", "payee": "Employer", "group": READY_TO_ASSIGN, "item": READY_TO_ASSIGN, "amount": "900"},
            {"date": "2025-02-11", "payee": "Market", "group": "Everyday", "item": "Groceries", "amount": "abc"},
            {"date": "not a date", "payee": "Broken", "amount": "-4"},
            {"date": "2025-01-15", "payee": "", "group": "Nope", "item": "Thing", "amount": -12},
        ]

        created, skipped, command_id = budget.import_transactions(checking.id, rows)

        assert (created, skipped) == (3, 1)
        assert budget.stack.peek_undo().id == command_id
        assert budget.ready_to_assign("2025-02") == Decimal("900.00")
        imported = {tx.payee_name: tx for tx in budget.list_transactions(checking.id)}
        assert imported["Market"].amount == Decimal("0")
        assert imported["Uncategorized"].group_name is None

        budget.undo()
        assert budget.book.transactions == {}

    def test_out_of_range_numbers_import_as_zero(self, budget, checking):
        created, skipped, _ = budget.import_transactions(
            checking.id, [{"date": "2025-01-05", "payee": "Huge", "amount": "9" * 40}]
        )
        assert (created, skipped) == (1, 0)
        assert budget.list_transactions(checking.id)[0].amount == Decimal("0")

        applied, _, _ = budget.import_categories(
            [{"month": "2025-01", "group": "Bills", "item": "Rent", "assigned": "1" * 30}]
        )
        assert applied == 1
        assert budget.get_month("2025-01").find_item("Bills", "Rent").assigned == Decimal("0")

    def test_import_categories_creates_structure_and_assigns(self, budget, checking):
        rows = [
            {"month": "2025-01", "group": "Travel", "item": "Flights", "assigned": "120"},
            {"month": "2025-01", "group": "Bills", "item": "Rent", "assigned": 400},
            {"month": "2025-01", "group": "Bills", "item": "Rent", "assigned": 450},
            {"month": "2025-01", "group": READY_TO_ASSIGN, "item": READY_TO_ASSIGN, "assigned": 10},
            {"month": "garbage", "group": "Bills", "item": "Rent"},
        ]

        applied, skipped, _ = budget.import_categories(rows)

        january = budget.get_month("2025-01")
        assert (applied, skipped) == (3, 2)
        assert january.find_item("Travel", "Flights").assigned == Decimal("120.00")
        assert january.find_item("Bills", "Rent").assigned == Decimal("450.00")
        assert budget.ready_to_assign() == Decimal("-570.00")

        budget.undo()
        assert "Travel" not in budget.book.group_names()
        assert budget.get_month("2025-01").find_item("Bills", "Rent").assigned == Decimal("0")
