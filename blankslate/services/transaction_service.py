"""
Transaction service

Responsibilities:
- Resolve a typed category to a real item (or uncategorized)
- Build the changes for posting, transferring, editing and deleting
  transactions; account balances move only through these changes
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from blankslate.errors import InvalidTransactionError, ProtectedGroupError
from blankslate.models import CREDIT_CARD_GROUP, READY_TO_ASSIGN
from blankslate.schemas import Transaction
from blankslate.services.budget_book import BudgetBook
from blankslate.services.changes import AddTransaction, Change, RemoveTransaction
from blankslate.services.transfer_pairing_service import TransferPairingService, new_id
from blankslate.utils.money import to_money
from blankslate.utils.normalization import UNCATEGORIZED, clean_label

logger = logging.getLogger(__name__)


class TransactionService:
    """Coordinate transaction changes; mirrors are always handled as a pair."""

    def __init__(self, book: BudgetBook, pairing_service: TransferPairingService | None = None) -> None:
        self.book = book
        self.pairing_service = pairing_service or TransferPairingService()

    def resolve_category(
        self,
        group: Optional[str],
        item: Optional[str],
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Real ``(group, item)`` for a posting, or ``(None, None)``.

        "Ready to Assign" marks income. Names that do not resolve to an item
        post uncategorized, so "Uncategorized" only clears the category when
        no such user category exists.

        Raises:
            ProtectedGroupError: posting straight to the credit card group
        """
        group = clean_label(group, default="")
        item = clean_label(item, default="")
        if group == READY_TO_ASSIGN:
            return READY_TO_ASSIGN, READY_TO_ASSIGN
        if group == CREDIT_CARD_GROUP:
            raise ProtectedGroupError(group)
        if not group or not item:
            return None, None
        found = self.book.find_group(group)
        if found is None or found.find(item) is None:
            if UNCATEGORIZED not in (group, item):
                logger.info("Category '%s / %s' not found; posting uncategorized", group, item)
            return None, None
        return group, item

    # ==================== Posting ====================

    def build_post(
        self,
        account_id: str,
        on: date,
        payee: str,
        group: Optional[str],
        item: Optional[str],
        amount: Decimal | str | float | int,
    ) -> Tuple[List[Change], Transaction]:
        """
        Changes for a new transaction on ``account_id``.

        A payee naming another account turns the posting into a transfer whose
        direction follows the sign of ``amount``.

        Returns:
            (changes, leg on ``account_id``)
        """
        account = self.book.get_account(account_id)
        amount = to_money(amount)
        counter = self.pairing_service.resolve_counter_account(self.book, payee, exclude_account_id=account.id)
        if counter is not None:
            from_account, to_account, magnitude = self.pairing_service.decide_direction(account, counter, amount)
            changes, legs = self.build_transfer(from_account.id, to_account.id, on, magnitude)
            own_leg = legs[0] if legs[0].account_id == account.id else legs[1]
            return changes, own_leg

        group_name, item_name = self.resolve_category(group, item)
        tx = Transaction(
            id=new_id(),
            account_id=account.id,
            date=on,
            payee_name=(payee or "").strip(),
            group_name=group_name,
            item_name=item_name,
            amount=amount,
        )
        return [AddTransaction(transaction=tx)], tx

    def build_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        on: date,
        amount: Decimal,
    ) -> Tuple[List[Change], Tuple[Transaction, Transaction]]:
        from_account = self.book.get_account(from_account_id)
        to_account = self.book.get_account(to_account_id)
        out_leg, in_leg = self.pairing_service.build_pair(from_account, to_account, on, amount)
        return [AddTransaction(transaction=out_leg), AddTransaction(transaction=in_leg)], (out_leg, in_leg)

    # ==================== Edit / delete ====================

    def build_delete(self, transaction_ids: List[str]) -> Tuple[List[Change], List[str], List[str]]:
        """
        Remove transactions together with their mirrors.

        Returns:
            (changes, deleted_ids, missing_ids)
        """
        selected, missing = self.pairing_service.expand_with_mirrors(self.book, transaction_ids)
        changes: List[Change] = [RemoveTransaction(transaction=tx) for tx in selected]
        return changes, [tx.id for tx in selected], missing

    def build_edit(
        self,
        transaction_id: str,
        on: Optional[date] = None,
        payee: Optional[str] = None,
        group: Optional[str] = None,
        item: Optional[str] = None,
        amount: Decimal | str | float | int | None = None,
    ) -> Tuple[List[Change], Transaction]:
        """
        Delete-then-repost of one transaction (and its mirror).

        ``None`` leaves a field unchanged; pass "Uncategorized" to clear the
        category. The mirror keeps the opposite amount and the same date.

        Raises:
            InvalidTransactionError: category change requested on a transfer leg
        """
        tx = self.book.get_transaction(transaction_id)
        mirror = self.pairing_service.find_mirror(self.book, tx)
        new_amount = to_money(amount) if amount is not None else tx.amount
        new_date = on or tx.date
        updates = {
            "date": new_date,
            "amount": new_amount,
            "payee_name": payee.strip() if payee is not None else tx.payee_name,
        }

        if mirror is not None:
            if group is not None or item is not None:
                requested = (group if group is not None else tx.group_name,
                             item if item is not None else tx.item_name)
                if requested != (tx.group_name, tx.item_name):
                    raise InvalidTransactionError("The category of a transfer cannot be changed")
            if new_amount == 0:
                raise InvalidTransactionError("A transfer needs a non-zero amount")
        elif group is not None or item is not None:
            updates["group_name"], updates["item_name"] = self.resolve_category(
                group if group is not None else tx.group_name,
                item if item is not None else tx.item_name,
            )

        edited = tx.model_copy(update=updates)
        changes: List[Change] = [RemoveTransaction(transaction=tx)]
        if mirror is not None:
            changes.append(RemoveTransaction(transaction=mirror))
        changes.append(AddTransaction(transaction=edited))
        if mirror is not None:
            changes.append(
                AddTransaction(transaction=mirror.model_copy(update={"date": new_date, "amount": -new_amount}))
            )
        return changes, edited
