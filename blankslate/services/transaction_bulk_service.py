"""
Bulk transaction service

Responsibilities:
- Bulk delete with mirror expansion (one command)
- CSV import of transactions and of category assignments (one command each)
- Row normalization: malformed numbers become 0, malformed text "Uncategorized"
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Tuple

from pydantic import ValidationError

from blankslate.errors import ProtectedGroupError
from blankslate.models import READY_TO_ASSIGN
from blankslate.schemas import CsvCategoryRow, CsvTransactionRow, Transaction
from blankslate.services.budget_book import BudgetBook
from blankslate.services.changes import AddGroup, AddItem, AddTransaction, Change, SetAssigned
from blankslate.services.rollover_service import RolloverService
from blankslate.services.transaction_service import TransactionService
from blankslate.services.transfer_pairing_service import new_id
from blankslate.utils.months import month_key

logger = logging.getLogger(__name__)


class TransactionBulkService:
    """
    Bulk operations over many transactions/categories

    Each method returns the changes for a single command; nothing is applied here.
    """

    def __init__(
        self,
        book: BudgetBook,
        transaction_service: TransactionService | None = None,
        rollover_service: RolloverService | None = None,
    ):
        """
        Args:
            book: budget state
            transaction_service: category resolution / delete builder (default: new instance)
            rollover_service: used to materialize months rows fall into (default: new instance)
        """
        self.book = book
        self.transaction_service = transaction_service or TransactionService(book)
        self.rollover_service = rollover_service or RolloverService()

    def bulk_delete(self, transaction_ids: Iterable[str]) -> Tuple[List[Change], List[str], List[str]]:
        """
        Delete many transactions.

        Args:
            transaction_ids: ids to delete; unknown ids are reported, not fatal

        Returns:
            (changes, deleted_ids, missing_ids); ``deleted_ids`` includes mirrors
        """
        return self.transaction_service.build_delete(list(dict.fromkeys(transaction_ids)))

    def build_import_transactions(
        self,
        account_id: str,
        rows: Iterable[Dict[str, Any] | CsvTransactionRow],
    ) -> Tuple[List[Change], int, int]:
        """
        Post ``{date, payee, group, item, amount}`` rows on one account.

        Rows without a readable date are skipped. Unknown categories post
        uncategorized.

        Returns:
            (changes, created, skipped)
        """
        account = self.book.get_account(account_id)
        parsed, skipped = self._parse(rows, CsvTransactionRow)

        for month in sorted({month_key(row.date) for row in parsed}):
            self.rollover_service.materialize(self.book, month)

        changes: List[Change] = []
        for row in parsed:
            try:
                group_name, item_name = self.transaction_service.resolve_category(row.group, row.item)
            except ProtectedGroupError:
                logger.info("Imported row for %s targets the payment group; posting uncategorized", row.payee)
                group_name = item_name = None
            changes.append(
                AddTransaction(
                    transaction=Transaction(
                        id=new_id(),
                        account_id=account.id,
                        date=row.date,
                        payee_name=row.payee,
                        group_name=group_name,
                        item_name=item_name,
                        amount=row.amount,
                    )
                )
            )
        return changes, len(changes), skipped

    def build_import_categories(
        self,
        rows: Iterable[Dict[str, Any] | CsvCategoryRow],
    ) -> Tuple[List[Change], int, int]:
        """
        Apply ``{month, group, item, assigned, activity, available}`` rows.

        Missing groups/items are created; ``assigned`` is set per month (the
        last row wins). ``activity``/``available`` are derived, so they are
        read but not applied.

        Returns:
            (changes, rows applied, skipped)
        """
        parsed, skipped = self._parse(rows, CsvCategoryRow)
        accepted: List[CsvCategoryRow] = []
        for row in parsed:
            if row.group == READY_TO_ASSIGN:
                skipped += 1
                continue
            accepted.append(row)

        for month in sorted({row.month for row in accepted}):
            self.rollover_service.materialize(self.book, month)

        changes: List[Change] = []
        new_groups: Dict[str, List[str]] = {}
        group_count = len(self.book.group_names())
        assignments: Dict[Tuple[str, str, str], Decimal] = {}

        for row in accepted:
            existing = self.book.find_group(row.group)
            if existing is None and row.group not in new_groups:
                changes.append(AddGroup(name=row.group, index=group_count))
                new_groups[row.group] = []
                group_count += 1
            has_item = existing is not None and existing.find(row.item) is not None
            if not has_item and row.item not in new_groups.setdefault(row.group, []):
                base = len(existing.items) if existing is not None else 0
                changes.append(AddItem(group=row.group, name=row.item, index=base + len(new_groups[row.group])))
                new_groups[row.group].append(row.item)
            assignments[(row.month, row.group, row.item)] = row.assigned

        for (month, group, item), amount in assignments.items():
            current = self.book.months[month].find_item(group, item)
            before = current.assigned if current is not None else Decimal("0.00")
            if before != amount:
                changes.append(SetAssigned(group=group, item=item, at=month, before=before, after=amount))

        return changes, len(accepted), skipped

    # ==================== Private Methods ====================

    @staticmethod
    def _parse(rows: Iterable[Any], model: type) -> Tuple[List[Any], int]:
        parsed: List[Any] = []
        skipped = 0
        for raw in rows:
            if isinstance(raw, model):
                parsed.append(raw)
                continue
            try:
                parsed.append(model.model_validate(raw))
            except ValidationError as exc:
                skipped += 1
                logger.warning("Skipping malformed row %r: %s", raw, exc.errors()[0].get("msg"))
        return parsed, skipped
