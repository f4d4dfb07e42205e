"""
Budget book

In-memory source of truth for one user's budget: materialized months,
accounts and transactions. Only primitive changes mutate it; derived figures
(activity, available, RTA) are filled in by the rollover/ledger services.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from blankslate.errors import NotFoundError
from blankslate.schemas import Account, CategoryGroup, CategoryItem, MonthBudget, Transaction
from blankslate.utils.money import ZERO


class BudgetBook:
    """Category structure is shared by every month; ``assigned`` is per month."""

    def __init__(self) -> None:
        self.months: dict[str, MonthBudget] = {}
        self.accounts: dict[str, Account] = {}
        self.transactions: dict[str, Transaction] = {}
        self.current_month: Optional[str] = None

    # ==================== Lookups ====================

    def sorted_months(self) -> list[str]:
        return sorted(self.months)

    @property
    def first_month(self) -> Optional[str]:
        return min(self.months) if self.months else None

    @property
    def last_month(self) -> Optional[str]:
        return max(self.months) if self.months else None

    def template(self) -> MonthBudget:
        """Latest month; its structure is the structure of every month."""
        if not self.months:
            raise NotFoundError("Budget has no months yet")
        return self.months[self.last_month]

    def get_month(self, month: str) -> MonthBudget:
        try:
            return self.months[month]
        except KeyError:
            raise NotFoundError(f"Month {month} is not materialized") from None

    def group_names(self) -> list[str]:
        return [group.name for group in self.template().groups] if self.months else []

    def find_group(self, name: str) -> Optional[CategoryGroup]:
        return self.template().find_group(name) if self.months else None

    def require_group(self, name: str) -> CategoryGroup:
        group = self.find_group(name)
        if group is None:
            raise NotFoundError(f"Category group '{name}' not found")
        return group

    def require_item(self, group_name: str, item_name: str) -> CategoryItem:
        item = self.require_group(group_name).find(item_name)
        if item is None:
            raise NotFoundError(f"Category '{group_name} / {item_name}' not found")
        return item

    def assigned_history(self, group_name: str, item_name: str) -> dict[str, Decimal]:
        """Non-zero ``assigned`` per month for one item."""
        history: dict[str, Decimal] = {}
        for key, month in self.months.items():
            item = month.find_item(group_name, item_name)
            if item is not None and item.assigned != 0:
                history[key] = item.assigned
        return history

    def get_account(self, account_id: str) -> Account:
        try:
            return self.accounts[account_id]
        except KeyError:
            raise NotFoundError(f"Account {account_id} not found") from None

    def get_transaction(self, transaction_id: str) -> Transaction:
        try:
            return self.transactions[transaction_id]
        except KeyError:
            raise NotFoundError(f"Transaction {transaction_id} not found") from None

    def credit_accounts(self) -> list[Account]:
        return [account for account in self.accounts.values() if account.is_credit]

    def transactions_for_account(self, account_id: str) -> list[Transaction]:
        return [tx for tx in self.transactions.values() if tx.account_id == account_id]

    def transactions_for_item(self, group_name: str, item_name: str) -> list[Transaction]:
        return [
            tx for tx in self.transactions.values()
            if tx.group_name == group_name and tx.item_name == item_name
        ]

    def transactions_by_month(self) -> dict[str, list[Transaction]]:
        index: dict[str, list[Transaction]] = defaultdict(list)
        for tx in self.transactions.values():
            index[tx.month].append(tx)
        return index

    def blank_month(self, month: str) -> MonthBudget:
        """A month with the current structure and zero figures."""
        if not self.months:
            return MonthBudget(month=month)
        groups = [
            CategoryGroup(
                name=group.name,
                is_system_group=group.is_system_group,
                items=[CategoryItem(name=item.name, target=item.target) for item in group.items],
            )
            for group in self.template().groups
        ]
        return MonthBudget(month=month, groups=groups)

    def add_month(self, month_budget: MonthBudget) -> None:
        self.months[month_budget.month] = month_budget

    def align_structure(self) -> bool:
        """Give every month the groups/items of the latest month.

        Stored documents written before a structural edit can lack groups or
        items; missing ones are added with zero figures. Returns True when a
        month was patched.
        """
        if not self.months:
            return False
        template = self.template()
        patched = False
        for month in self.months.values():
            if month is template:
                continue
            for index, group in enumerate(template.groups):
                existing = month.find_group(group.name)
                if existing is None:
                    existing = CategoryGroup(name=group.name, is_system_group=group.is_system_group)
                    month.groups.insert(min(index, len(month.groups)), existing)
                    patched = True
                for item in group.items:
                    if existing.find(item.name) is None:
                        existing.items.append(CategoryItem(name=item.name, target=item.target))
                        patched = True
            order = {group.name: idx for idx, group in enumerate(template.groups)}
            month.groups.sort(key=lambda g: order.get(g.name, len(order)))
        return patched

    # ==================== Structural mutations ====================

    def _each_month(self) -> Iterable[MonthBudget]:
        return self.months.values()

    def insert_group(self, name: str, index: int, is_system_group: bool = False) -> None:
        for month in self._each_month():
            month.groups.insert(min(index, len(month.groups)), CategoryGroup(name=name, is_system_group=is_system_group))

    def delete_group(self, name: str) -> None:
        group = self.require_group(name)
        if group.items:
            raise ValueError(f"Group '{name}' still holds items")
        for month in self._each_month():
            month.groups = [g for g in month.groups if g.name != name]

    def rename_group(self, old: str, new: str) -> None:
        self.require_group(old)
        for month in self._each_month():
            group = month.find_group(old)
            if group is not None:
                group.name = new
        for tx in self.transactions.values():
            if tx.group_name == old:
                tx.group_name = new

    def insert_item(
        self,
        group_name: str,
        name: str,
        index: int,
        assigned: dict[str, Decimal] | None = None,
        target: Decimal | None = None,
    ) -> None:
        self.require_group(group_name)
        assigned = assigned or {}
        for key, month in self.months.items():
            group = month.find_group(group_name)
            item = CategoryItem(name=name, assigned=assigned.get(key, ZERO), target=target)
            group.items.insert(min(index, len(group.items)), item)

    def delete_item(self, group_name: str, name: str) -> None:
        self.require_item(group_name, name)
        for month in self._each_month():
            group = month.find_group(group_name)
            group.items = [item for item in group.items if item.name != name]

    def rename_item(self, group_name: str, old: str, new: str) -> None:
        self.require_item(group_name, old)
        for month in self._each_month():
            item = month.find_item(group_name, old)
            if item is not None:
                item.name = new
        for tx in self.transactions.values():
            if tx.group_name == group_name and tx.item_name == old:
                tx.item_name = new

    def set_assigned(self, group_name: str, item_name: str, month: str, amount: Decimal) -> None:
        item = self.get_month(month).find_item(group_name, item_name)
        if item is None:
            raise NotFoundError(f"Category '{group_name} / {item_name}' not found in {month}")
        item.assigned = amount

    def set_target(self, group_name: str, item_name: str, target: Decimal | None) -> None:
        self.require_item(group_name, item_name)
        for month in self._each_month():
            month.find_item(group_name, item_name).target = target

    # ==================== Accounts & transactions ====================

    def insert_account(self, account: Account, index: int) -> None:
        if account.id in self.accounts:
            raise ValueError(f"Account {account.id} already exists")
        ordered = list(self.accounts.values())
        ordered.insert(min(index, len(ordered)), account.model_copy(deep=True))
        self.accounts = {acc.id: acc for acc in ordered}

    def delete_account(self, account_id: str) -> None:
        self.get_account(account_id)
        if self.transactions_for_account(account_id):
            raise ValueError(f"Account {account_id} still has transactions")
        del self.accounts[account_id]

    def account_index(self, account_id: str) -> int:
        return list(self.accounts).index(account_id)

    def rename_account(self, account_id: str, name: str) -> None:
        self.get_account(account_id).name = name

    def insert_transaction(self, tx: Transaction) -> None:
        if tx.id in self.transactions:
            raise ValueError(f"Transaction {tx.id} already exists")
        account = self.get_account(tx.account_id)
        self.transactions[tx.id] = tx.model_copy(deep=True)
        account.balance = account.balance + tx.amount

    def delete_transaction(self, transaction_id: str) -> Transaction:
        tx = self.get_transaction(transaction_id)
        account = self.get_account(tx.account_id)
        account.balance = account.balance - tx.amount
        return self.transactions.pop(transaction_id)

    def recategorize(self, transaction_id: str, group_name: str | None, item_name: str | None) -> None:
        tx = self.get_transaction(transaction_id)
        tx.group_name = group_name
        tx.item_name = item_name
