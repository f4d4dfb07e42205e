"""
Credit card payment synchronizer

Responsibilities:
- Keep exactly one "Credit Card Payments" item per credit account
- Build the structural changes that follow account create/rename/delete
- Compute how much card spending each month is funded by cash categories
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from blankslate.models import CREDIT_CARD_GROUP
from blankslate.schemas import Account, MonthBudget, Transaction
from blankslate.services.budget_book import BudgetBook
from blankslate.services.changes import AddGroup, AddItem, Change, RemoveItem, RenameItem
from blankslate.utils.money import ZERO

logger = logging.getLogger(__name__)


class CreditCardPaymentSynchronizer:
    """Owns the system group; nothing else may create or delete its items."""

    group_name = CREDIT_CARD_GROUP

    # ==================== Structure ====================

    def ensure_group_changes(self, book: BudgetBook) -> List[Change]:
        if book.find_group(self.group_name) is not None:
            return []
        return [AddGroup(name=self.group_name, index=0, is_system_group=True)]

    def changes_for_new_account(self, book: BudgetBook, account: Account) -> List[Change]:
        """Group (if missing) plus the payment item named after the card."""
        if not account.is_credit:
            return []
        changes = self.ensure_group_changes(book)
        group = book.find_group(self.group_name)
        index = len(group.items) if group is not None else 0
        changes.append(AddItem(group=self.group_name, name=account.name, index=index))
        return changes

    def changes_for_renamed_account(self, book: BudgetBook, account: Account, new_name: str) -> List[Change]:
        if not account.is_credit or book.find_group(self.group_name) is None:
            return []
        if book.find_group(self.group_name).find(account.name) is None:
            logger.warning("Credit account %s has no payment item", account.id)
            return []
        return [RenameItem(group=self.group_name, old=account.name, new=new_name)]

    def changes_for_removed_account(self, book: BudgetBook, account: Account) -> List[Change]:
        if not account.is_credit:
            return []
        group = book.find_group(self.group_name)
        if group is None or group.find(account.name) is None:
            return []
        item = group.find(account.name)
        return [
            RemoveItem(
                group=self.group_name,
                name=account.name,
                index=group.index_of(account.name),
                assigned=book.assigned_history(self.group_name, account.name),
                target=item.target,
            )
        ]

    def is_payment_item(self, group_name: str | None) -> bool:
        return group_name == self.group_name

    def check(self, book: BudgetBook) -> List[str]:
        """Describe every mismatch between credit accounts and payment items."""
        problems: List[str] = []
        group = book.find_group(self.group_name)
        item_names = [item.name for item in group.items] if group else []
        card_names = [account.name for account in book.credit_accounts()]
        for name in card_names:
            if item_names.count(name) != 1:
                problems.append(f"credit account '{name}' has {item_names.count(name)} payment item(s)")
        for name in item_names:
            if name not in card_names:
                problems.append(f"payment item '{name}' has no credit account")
        if group is not None and book.template().groups[0] is not group:
            problems.append("payment group is not first")
        return problems

    # ==================== Month figures ====================

    def funded_spending(
        self,
        book: BudgetBook,
        month: MonthBudget,
        transactions: Iterable[Transaction],
    ) -> Dict[str, Decimal]:
        """
        Card spending funded by cash categories in ``month``, keyed by card name.

        For every cash item the pool is ``carry_in + assigned + debit activity``
        floored at 0. Cards draw from it in creation order. A card with net
        refunds on the item lowers its own obligation.

        Args:
            book: state the month belongs to (accounts are read from it)
            month: month whose ``carry_in``/``assigned`` are already set
            transactions: the month's transactions
        """
        cards = book.credit_accounts()
        if not cards:
            return {}
        card_ids = {card.id for card in cards}

        debit_activity: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        card_net: Dict[Tuple[str, str, str], Decimal] = defaultdict(lambda: ZERO)
        for tx in transactions:
            if not tx.is_categorized or self.is_payment_item(tx.group_name):
                continue
            key = (tx.group_name, tx.item_name)
            if tx.account_id in card_ids:
                card_net[(tx.account_id, *key)] += tx.amount
            elif tx.account_id in book.accounts:
                debit_activity[key] += tx.amount

        funded: Dict[str, Decimal] = {card.name: ZERO for card in cards}
        for group, item in month.iter_items():
            if group.is_system_group:
                continue
            key = (group.name, item.name)
            pool = max(item.carry_in + item.assigned + debit_activity[key], ZERO)
            for card in cards:
                spending = -card_net[(card.id, *key)]
                if spending < 0:
                    funded[card.name] += spending
                elif spending > 0:
                    covered = min(spending, pool)
                    funded[card.name] += covered
                    pool -= covered
        return funded

    def payments(self, transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
        """Signed sum of legs categorized to each payment item (payments are negative)."""
        totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        for tx in transactions:
            if self.is_payment_item(tx.group_name) and tx.item_name:
                totals[tx.item_name] += tx.amount
        return totals
