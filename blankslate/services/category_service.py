"""
Category service

Responsibilities:
- Validate category edits (names, protection, funds present)
- Build the primitive changes for create / rename / delete / target edits
- Report target status and which item actions are allowed
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Tuple

from blankslate.errors import (
    BudgetValidationError,
    DuplicateNameError,
    FundsPresentError,
    GroupNotEmptyError,
    ProtectedGroupError,
    ProtectedItemError,
)
from blankslate.models import CREDIT_CARD_GROUP, READY_TO_ASSIGN
from blankslate.schemas import CategoryItem
from blankslate.services.budget_book import BudgetBook
from blankslate.services.changes import (
    AddGroup,
    AddItem,
    Change,
    RecategorizeTransaction,
    RemoveGroup,
    RemoveItem,
    RenameGroup,
    RenameItem,
    SetAssigned,
    SetTarget,
)
from blankslate.services.credit_card_service import CreditCardPaymentSynchronizer
from blankslate.utils.money import ZERO, format_money, to_money

RESERVED_GROUP_NAMES = (CREDIT_CARD_GROUP, READY_TO_ASSIGN)

DEFAULT_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Bills", ("Rent", "Electricity", "Water")),
    ("Subscriptions", ("Spotify", "Netflix")),
)


class TargetStatus(NamedTuple):
    type: str
    message: str


class CategoryService:
    """
    Category structure edits

    Every ``build_*`` method validates against the current book and returns the
    changes for one command without applying anything.
    """

    def __init__(self, book: BudgetBook, synchronizer: CreditCardPaymentSynchronizer | None = None):
        self.book = book
        self.synchronizer = synchronizer or CreditCardPaymentSynchronizer()

    # ==================== Groups ====================

    def build_create_group(self, name: str) -> List[Change]:
        name = self._clean_name(name)
        self._ensure_group_name_free(name)
        return [AddGroup(name=name, index=len(self.book.group_names()))]

    def build_rename_group(self, old: str, new: str) -> List[Change]:
        self._ensure_not_protected_group(old)
        self.book.require_group(old)
        new = self._clean_name(new)
        if new == old:
            return []
        self._ensure_group_name_free(new)
        return [RenameGroup(old=old, new=new)]

    def build_delete_group(self, name: str, clear_items: bool = False, month: Optional[str] = None) -> List[Change]:
        """
        Remove a group.

        Args:
            name: group name
            clear_items: also remove the group's items when all of them are empty
            month: month whose ``available`` decides "empty" (default: current)

        Raises:
            ProtectedGroupError: the credit card group
            GroupNotEmptyError: the group has items and they cannot be cleared
        """
        self._ensure_not_protected_group(name)
        group = self.book.require_group(name)
        changes: List[Change] = []
        if group.items:
            if not clear_items:
                raise GroupNotEmptyError(name)
            figures = self.book.get_month(self._month(month))
            for item in group.items:
                if figures.find_item(name, item.name).available != 0:
                    raise GroupNotEmptyError(name)
            # remove from the end so recorded indexes stay valid on undo
            for item in reversed(list(group.items)):
                changes.extend(self._detach_transactions(name, item.name, None, None))
                changes.append(self._remove_item_change(name, item.name))
        changes.append(
            RemoveGroup(
                name=name,
                index=self.book.group_names().index(name),
                is_system_group=group.is_system_group,
            )
        )
        return changes

    # ==================== Items ====================

    def build_create_item(self, group: str, name: str) -> List[Change]:
        self._ensure_not_protected_group(group)
        existing = self.book.require_group(group)
        name = self._clean_name(name)
        if existing.find(name) is not None:
            raise DuplicateNameError(name, scope=f"group '{group}'")
        return [AddItem(group=group, name=name, index=len(existing.items))]

    def build_rename_item(self, group: str, old: str, new: str) -> List[Change]:
        self._ensure_not_protected_item(group, old)
        self.book.require_item(group, old)
        new = self._clean_name(new)
        if new == old:
            return []
        if self.book.require_group(group).find(new) is not None:
            raise DuplicateNameError(new, scope=f"group '{group}'")
        return [RenameItem(group=group, old=old, new=new)]

    def build_delete_item(
        self,
        group: str,
        item: str,
        reassign_to: Optional[Tuple[str, str]] = None,
        month: Optional[str] = None,
    ) -> List[Change]:
        """
        Remove an item, optionally moving its money and transactions to another item.

        With ``reassign_to`` every month's ``assigned`` is added to the target
        and the item's transactions are re-pointed. The target's ``available``
        in ``month`` then rises by exactly the item's ``available``; when an
        overspend absorbed by either item would change that sum, the difference
        is settled through the target's ``assigned`` in ``month``. Without
        ``reassign_to`` the item must be empty in ``month``; its transactions
        become uncategorized.

        Args:
            group: group name
            item: item name
            reassign_to: ``(group, item)`` receiving the money
            month: month whose ``available`` is checked (default: current)

        Raises:
            ProtectedItemError: credit card payment item
            FundsPresentError: money left and no ``reassign_to``
        """
        self._ensure_not_protected_item(group, item)
        self.book.require_item(group, item)
        figures = self.book.get_month(self._month(month))
        available = figures.find_item(group, item).available

        if reassign_to is None:
            if available != 0:
                raise FundsPresentError(group, item, format_money(available))
            changes = self._detach_transactions(group, item, None, None)
            changes.append(self._remove_item_change(group, item))
            return changes

        target_group, target_item = reassign_to
        if (target_group, target_item) == (group, item):
            raise BudgetValidationError("A category cannot be reassigned to itself")
        self._ensure_not_protected_group(target_group)
        self.book.require_item(target_group, target_item)

        months = self.book.sorted_months()
        before = {key: self.book.months[key].find_item(target_group, target_item).assigned for key in months}
        merged = {key: before[key] + self.book.months[key].find_item(group, item).assigned for key in months}

        # an overspend the target absorbed earlier would eat part of the merged money
        expected = figures.find_item(target_group, target_item).available + available
        merged[figures.month] += expected - self._merged_available(
            (group, item), (target_group, target_item), merged, figures.month
        )

        changes = self._detach_transactions(group, item, target_group, target_item)
        changes.extend(
            SetAssigned(group=target_group, item=target_item, at=key, before=before[key], after=merged[key])
            for key in months
            if merged[key] != before[key]
        )
        changes.append(self._remove_item_change(group, item))
        return changes

    def build_set_target(self, group: str, item: str, amount: Optional[Decimal]) -> List[Change]:
        current = self.book.require_item(group, item)
        target = to_money(amount) if amount is not None else None
        if target is not None and target <= 0:
            target = None
        if target == current.target:
            return []
        return [SetTarget(group=group, item=item, before=current.target, after=target)]

    def build_default_categories(self) -> List[Change]:
        """Seed groups/items for a brand new budget."""
        changes: List[Change] = []
        index = len(self.book.group_names())
        for group, items in DEFAULT_CATEGORIES:
            if self.book.find_group(group) is not None:
                continue
            changes.append(AddGroup(name=group, index=index))
            changes.extend(AddItem(group=group, name=name, index=pos) for pos, name in enumerate(items))
            index += 1
        return changes

    # ==================== Queries ====================

    def item_actions(self, group: str, item: str) -> Dict[str, bool]:
        """Context-menu actions allowed for an item; payment items cannot be renamed or deleted."""
        self.book.require_item(group, item)
        protected = self.synchronizer.is_payment_item(group)
        return {
            "assign": True,
            "set_target": True,
            "rename": not protected,
            "delete": not protected,
        }

    @staticmethod
    def target_status(item: CategoryItem) -> Optional[TargetStatus]:
        """
        Progress of an item towards its target.

        Overspent is reported even without a target. Returns None when there
        is nothing to report.

        Example:
            >>> CategoryService.target_status(CategoryItem(name="Rent", assigned=500, target=500))
            TargetStatus(type='funded', message='Fully Funded')
        """
        assigned = item.assigned
        spent = abs(item.activity)
        available = item.available

        if available < 0 and assigned < spent:
            return TargetStatus(
                "overspent",
                f"Overspent {format_money(-available)} of {format_money(assigned)}",
            )
        if not item.target:
            return None

        needed = item.target
        if (assigned >= needed and available == 0) or (assigned == needed and available > 0):
            return TargetStatus("funded", "Fully Funded")
        if assigned > needed:
            return TargetStatus("overfunded", f"Funded {format_money(needed)} of {format_money(assigned)}")
        if spent <= assigned < needed:
            return TargetStatus("underfunded", f"{format_money(needed - assigned)} more needed to fulfill target")
        return TargetStatus("partial", f"{format_money(assigned)} / {format_money(needed)}")

    # ==================== Private Methods ====================

    def _month(self, month: Optional[str]) -> str:
        return month or self.book.current_month or self.book.last_month

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise BudgetValidationError("Name must not be empty")
        return cleaned

    def _ensure_group_name_free(self, name: str) -> None:
        if name in RESERVED_GROUP_NAMES or name in self.book.group_names():
            raise DuplicateNameError(name, scope="category groups")

    def _ensure_not_protected_group(self, group: str) -> None:
        if self.synchronizer.is_payment_item(group):
            raise ProtectedGroupError(group)

    def _ensure_not_protected_item(self, group: str, item: str) -> None:
        if self.synchronizer.is_payment_item(group):
            raise ProtectedItemError(group, item)

    def _merged_available(
        self,
        source: Tuple[str, str],
        target: Tuple[str, str],
        assigned: Dict[str, Decimal],
        until: str,
    ) -> Decimal:
        """Target's ``available`` in ``until`` once it owns the source's assigned money and activity."""
        available = ZERO
        for key in self.book.sorted_months():
            if key > until:
                break
            month_budget = self.book.months[key]
            activity = month_budget.find_item(*source).activity + month_budget.find_item(*target).activity
            available = max(available, ZERO) + assigned[key] + activity
        return available

    def _remove_item_change(self, group: str, item: str) -> RemoveItem:
        current = self.book.require_item(group, item)
        return RemoveItem(
            group=group,
            name=item,
            index=self.book.require_group(group).index_of(item),
            assigned=self.book.assigned_history(group, item),
            target=current.target,
        )

    def _detach_transactions(
        self,
        group: str,
        item: str,
        new_group: Optional[str],
        new_item: Optional[str],
    ) -> List[Change]:
        return [
            RecategorizeTransaction(
                transaction_id=tx.id,
                at=tx.month,
                before_group=group,
                before_item=item,
                after_group=new_group,
                after_item=new_item,
            )
            for tx in self.book.transactions_for_item(group, item)
        ]
