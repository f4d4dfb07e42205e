"""
Budget storage service

Responsibilities:
- Month document <-> MonthBudget conversion
- Load a user's BudgetBook from the database
- Save it back: month documents upserted on (user_id, month), accounts and
  transactions synced by id
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from blankslate import models
from blankslate.models import CREDIT_CARD_GROUP
from blankslate.schemas import (
    Account,
    CategoryGroup,
    CategoryGroupDoc,
    CategoryItem,
    CategoryItemDoc,
    MonthBudget,
    MonthDocument,
    MonthDocumentData,
    Transaction,
)
from blankslate.services.budget_book import BudgetBook
from blankslate.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


class BudgetStorageService:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ==================== Documents ====================

    @staticmethod
    def to_document(user_id: int, month: MonthBudget) -> MonthDocument:
        return MonthDocument(
            user_id=user_id,
            month=month.month,
            data=MonthDocumentData(
                categories=[
                    CategoryGroupDoc(
                        name=group.name,
                        category_items=[
                            CategoryItemDoc(
                                name=item.name,
                                assigned=float(item.assigned),
                                activity=float(item.activity),
                                available=float(item.available),
                                target=float(item.target) if item.target is not None else None,
                            )
                            for item in group.items
                        ],
                    )
                    for group in month.groups
                ]
            ),
            assignable_money=float(month.income),
            ready_to_assign=float(month.ready_to_assign),
        )

    @staticmethod
    def from_document(doc: MonthDocument) -> MonthBudget:
        """Only ``assigned`` and targets are read; everything else is re-derived."""
        groups = [
            CategoryGroup(
                name=group.name,
                is_system_group=group.name == CREDIT_CARD_GROUP,
                items=[
                    CategoryItem(
                        name=item.name,
                        assigned=to_money(item.assigned),
                        target=to_money(item.target) if item.target else None,
                    )
                    for item in group.category_items
                ],
            )
            for group in doc.data.categories
        ]
        # payment group always first
        groups.sort(key=lambda group: not group.is_system_group)
        return MonthBudget(
            month=doc.month,
            groups=groups,
            ready_to_assign=to_money(doc.ready_to_assign),
            income=to_money(doc.assignable_money),
        )

    # ==================== Load ====================

    def load_book(self, user_id: int) -> Optional[BudgetBook]:
        """
        Rebuild a user's budget.

        Returns:
            the book, or None when the user has no stored budget
        """
        month_rows = (
            self.db.query(models.BudgetData)
            .filter(models.BudgetData.user_id == user_id)
            .order_by(models.BudgetData.month)
            .all()
        )
        account_rows = (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id)
            .order_by(models.Account.position, models.Account.created_at)
            .all()
        )
        if not month_rows and not account_rows:
            return None

        book = BudgetBook()
        for row in month_rows:
            doc = MonthDocument(
                user_id=user_id,
                month=row.month,
                data=MonthDocumentData.model_validate(row.data or {}),
                assignable_money=float(row.assignable_money or 0),
                ready_to_assign=float(row.ready_to_assign or 0),
            )
            book.add_month(self.from_document(doc))

        tx_rows = self.db.query(models.Transaction).filter(models.Transaction.user_id == user_id).all()
        totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        for row in tx_rows:
            tx = Transaction(
                id=row.id,
                account_id=row.account_id,
                date=row.occurred_on,
                payee_name=row.payee_name or "",
                group_name=row.category_group,
                item_name=row.category_item,
                amount=to_money(row.amount),
                mirror_id=row.mirror_id,
            )
            book.transactions[tx.id] = tx
            totals[tx.account_id] += tx.amount

        for row in account_rows:
            stored = to_money(row.balance)
            if stored != totals[row.id]:
                logger.warning(
                    "Account %s stored balance %s differs from its transactions (%s); using transactions",
                    row.id,
                    stored,
                    totals[row.id],
                )
            book.accounts[row.id] = Account(
                id=row.id,
                name=row.name,
                type=row.type,
                balance=totals[row.id],
                issuer=row.issuer,
                created_at=row.created_at,
            )
        if book.months:
            book.current_month = book.last_month
        return book

    # ==================== Save ====================

    def save_book(self, user_id: int, book: BudgetBook) -> None:
        self._save_months(user_id, book)
        self._save_accounts_and_transactions(user_id, book)
        self.db.commit()

    def _save_months(self, user_id: int, book: BudgetBook) -> None:
        rows = {
            row.month: row
            for row in self.db.query(models.BudgetData).filter(models.BudgetData.user_id == user_id)
        }
        for key, month in book.months.items():
            doc = self.to_document(user_id, month)
            row = rows.pop(key, None)
            if row is None:
                row = models.BudgetData(user_id=user_id, month=key)
                self.db.add(row)
            row.data = doc.data.model_dump(by_alias=True)
            row.assignable_money = doc.assignable_money
            row.ready_to_assign = doc.ready_to_assign
        for stale in rows.values():
            self.db.delete(stale)

    def _save_accounts_and_transactions(self, user_id: int, book: BudgetBook) -> None:
        tx_rows = {
            row.id: row
            for row in self.db.query(models.Transaction).filter(models.Transaction.user_id == user_id)
        }
        for tx_id in set(tx_rows) - set(book.transactions):
            self.db.delete(tx_rows.pop(tx_id))

        account_rows = {
            row.id: row
            for row in self.db.query(models.Account).filter(models.Account.user_id == user_id)
        }
        for account_id in set(account_rows) - set(book.accounts):
            self.db.delete(account_rows.pop(account_id))
        self.db.flush()

        for position, account in enumerate(book.accounts.values()):
            row = account_rows.get(account.id)
            if row is None:
                row = models.Account(id=account.id, user_id=user_id, created_at=account.created_at)
                self.db.add(row)
            row.name = account.name
            row.type = account.type
            row.issuer = account.issuer
            row.balance = account.balance
            row.position = position
        self.db.flush()

        for tx in book.transactions.values():
            row = tx_rows.get(tx.id)
            if row is None:
                row = models.Transaction(id=tx.id, user_id=user_id)
                self.db.add(row)
            row.account_id = tx.account_id
            row.occurred_on = tx.date
            row.payee_name = tx.payee_name
            row.category_group = tx.group_name
            row.category_item = tx.item_name
            row.amount = tx.amount
            row.mirror_id = tx.mirror_id
