"""
Persistence tests: month documents, accounts and transactions
"""

from datetime import date
from decimal import Decimal

from blankslate import models
from blankslate.models import CREDIT_CARD_GROUP, READY_TO_ASSIGN
from blankslate.services import BudgetEngine, BudgetStorageService


def _user_id(db_session) -> int:
    return db_session.query(models.User).first().id


def _populate(budget, checking, visa):
    budget.post_transaction(checking.id, date(2025, 1, 2), "Employer", READY_TO_ASSIGN, READY_TO_ASSIGN, 1500)
    budget.set_assigned("Bills", "Rent", "2025-01", 700)
    budget.set_target("Bills", "Rent", Decimal("700"))
    budget.set_assigned("Everyday", "Groceries", "2025-01", 200)
    budget.post_transaction(visa.id, date(2025, 1, 12), "Market", "Everyday", "Groceries", -80)
    budget.post_transfer(checking.id, visa.id, date(2025, 2, 1), Decimal("80"))


class TestMonthDocument:
    def test_document_shape(self, budget):
        budget.set_assigned("Bills", "Rent", "2025-01", 50)
        doc = BudgetStorageService.to_document(1, budget.get_month("2025-01"))
        data = doc.data.model_dump(by_alias=True)

        assert doc.month == "2025-01"
        assert [group["name"] for group in data["categories"]] == [CREDIT_CARD_GROUP, "Bills", "Everyday"]
        rent = data["categories"][1]["categoryItems"][0]
        assert rent == {"name": "Rent", "assigned": 50.0, "activity": 0.0, "available": 50.0, "target": None}
        assert doc.ready_to_assign == -50.0

    def test_payment_group_is_read_first(self, budget):
        doc = BudgetStorageService.to_document(1, budget.get_month("2025-01"))
        doc.data.categories.reverse()

        month = BudgetStorageService.from_document(doc)

        assert month.groups[0].name == CREDIT_CARD_GROUP
        assert month.groups[0].is_system_group


class TestSaveAndLoad:
    def test_no_stored_budget(self, db_session):
        assert BudgetStorageService(db_session).load_book(_user_id(db_session)) is None

    def test_round_trip_rebuilds_the_same_figures(self, db_session, budget, checking, visa):
        _populate(budget, checking, visa)
        user_id = _user_id(db_session)
        storage = BudgetStorageService(db_session)

        storage.save_book(user_id, budget.book)
        reloaded = BudgetEngine(storage.load_book(user_id))

        assert reloaded.months() == budget.months()
        for key in budget.months():
            assert reloaded.get_month(key).model_dump() == budget.get_month(key).model_dump()
        assert [account.name for account in reloaded.list_accounts()] == ["Checking", "Visa"]
        assert reloaded.book.accounts[visa.id].balance == Decimal("0")
        assert set(reloaded.book.transactions) == set(budget.book.transactions)
        assert reloaded.check_invariants() == []

    def test_save_removes_deleted_rows(self, db_session, budget, checking, visa):
        _populate(budget, checking, visa)
        user_id = _user_id(db_session)
        storage = BudgetStorageService(db_session)
        storage.save_book(user_id, budget.book)

        budget.delete_account(visa.id)
        storage.save_book(user_id, budget.book)

        assert db_session.query(models.Account).count() == 1
        assert db_session.query(models.Transaction).count() == 1
        assert db_session.query(models.BudgetData).filter_by(user_id=user_id).count() == 2

    def test_save_is_an_upsert_per_month(self, db_session, budget):
        user_id = _user_id(db_session)
        storage = BudgetStorageService(db_session)
        storage.save_book(user_id, budget.book)
        budget.set_assigned("Bills", "Rent", "2025-01", 25)

        storage.save_book(user_id, budget.book)

        rows = db_session.query(models.BudgetData).filter_by(user_id=user_id).all()
        assert len(rows) == 1
        assert Decimal(str(rows[0].ready_to_assign)) == Decimal("-25")
