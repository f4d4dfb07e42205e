"""
Budget engine

Public call contract of the budget. Every mutation:
1. is validated and turned into primitive changes by a service
2. runs as one Command on the CommandStack (undoable as a unit)
3. triggers re-derivation from the earliest affected month onward
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from blankslate.errors import InvalidAmountError
from blankslate.models import AccountType
from blankslate.schemas import (
    Account,
    ChangeLogEntry,
    HistoryOut,
    MonthBudget,
    Transaction,
)
from blankslate.services.account_service import AccountService
from blankslate.services.budget_book import BudgetBook
from blankslate.services.category_service import CategoryService, TargetStatus
from blankslate.services.changes import AddItem, Change, SetAssigned
from blankslate.services.command_stack import Command, CommandStack
from blankslate.services.credit_card_service import CreditCardPaymentSynchronizer
from blankslate.services.month_ledger import MonthLedger
from blankslate.services.rollover_service import RolloverService
from blankslate.services.transaction_bulk_service import TransactionBulkService
from blankslate.services.transaction_service import TransactionService
from blankslate.services.transfer_pairing_service import TransferPairingService
from blankslate.utils.money import ZERO, format_money, parse_amount_or_zero, to_money
from blankslate.utils.months import month_key

logger = logging.getLogger(__name__)


class BudgetEngine:
    """
    One user's budget.

    Not thread-safe; callers serialize access (see ``BudgetSessionRegistry``).

    Example:
        >>> engine = BudgetEngine(current_month="2025-01")
        >>> engine.create_account("Checking", AccountType.DEBIT)
        >>> engine.set_assigned("Bills", "Rent", "2025-01", "500")
    """

    def __init__(
        self,
        book: Optional[BudgetBook] = None,
        *,
        current_month: Optional[str] = None,
        seed_defaults: bool = False,
        recent_limit: int = 10,
    ):
        self.book = book or BudgetBook()
        self.synchronizer = CreditCardPaymentSynchronizer()
        self.ledger = MonthLedger(self.synchronizer)
        self.rollover = RolloverService(self.ledger)
        self.pairing = TransferPairingService()
        self.categories = CategoryService(self.book, self.synchronizer)
        self.transactions = TransactionService(self.book, self.pairing)
        self.accounts = AccountService(self.book, self.synchronizer, self.pairing)
        self.bulk = TransactionBulkService(self.book, self.transactions, self.rollover)
        self.stack = CommandStack(self.book, on_applied=self._after_changes, recent_limit=recent_limit)
        self._bootstrap(current_month, seed_defaults)

    # ==================== Months ====================

    @property
    def current_month(self) -> str:
        return self.book.current_month

    def months(self) -> List[str]:
        return self.book.sorted_months()

    def navigate(self, month: str) -> MonthBudget:
        """Make ``month`` current, materializing every month in between."""
        month = month_key(month)
        self.rollover.materialize(self.book, month)
        self.book.current_month = month
        return self.book.months[month]

    def get_month(self, month: Optional[str] = None) -> MonthBudget:
        month = month_key(month) if month else self.current_month
        self.rollover.materialize(self.book, month)
        return self.book.months[month]

    def ready_to_assign(self, month: Optional[str] = None) -> Decimal:
        return self.get_month(month).ready_to_assign

    def set_assigned(
        self,
        group: str,
        item: str,
        month: Optional[str],
        amount: Decimal | str | int | float | None,
    ) -> MonthBudget:
        """
        Set an item's ``assigned`` for a month.

        Text is parsed as an amount expression; anything unreadable means 0.
        Months after ``month`` are re-derived.
        """
        figures = self.get_month(month)
        self.book.require_item(group, item)
        current = figures.find_item(group, item)
        value = self._assigned_value(amount)
        if value == current.assigned:
            return figures
        change = SetAssigned(group=group, item=item, at=figures.month, before=current.assigned, after=value)
        self._execute("set_assigned", f"Assign {format_money(value)} to {item} ({figures.month})", [change])
        return figures

    # ==================== Categories ====================

    def create_group(self, name: str) -> str:
        changes = self.categories.build_create_group(name)
        self._execute("create_group", f"Create group {changes[0].name}", changes)
        return changes[0].name

    def create_item(self, group: str, name: str) -> str:
        changes = self.categories.build_create_item(group, name)
        self._execute("create_item", f"Create {changes[0].name} in {group}", changes)
        return changes[0].name

    def rename_group(self, old: str, new: str) -> None:
        changes = self.categories.build_rename_group(old, new)
        self._execute("rename_group", f"Rename group {old} to {new.strip()}", changes)

    def rename_item(self, group: str, old: str, new: str) -> None:
        changes = self.categories.build_rename_item(group, old, new)
        self._execute("rename_item", f"Rename {old} to {new.strip()}", changes)

    def delete_item(
        self,
        group: str,
        item: str,
        reassign_to: Optional[Tuple[str, str]] = None,
        month: Optional[str] = None,
    ) -> None:
        changes = self.categories.build_delete_item(group, item, reassign_to, month and month_key(month))
        description = f"Delete {item}"
        if reassign_to:
            description += f" (moved to {reassign_to[1]})"
        self._execute("delete_item", description, changes)

    def delete_group(self, group: str, clear_items: bool = False, month: Optional[str] = None) -> None:
        changes = self.categories.build_delete_group(group, clear_items, month and month_key(month))
        self._execute("delete_group", f"Delete group {group}", changes)

    def set_target(self, group: str, item: str, amount: Optional[Decimal | str | int | float]) -> None:
        changes = self.categories.build_set_target(group, item, amount)
        label = format_money(changes[0].after) if changes and changes[0].after is not None else "none"
        self._execute("set_target", f"Set target for {item} to {label}", changes)

    def target_status(self, group: str, item: str, month: Optional[str] = None) -> Optional[TargetStatus]:
        figures = self.get_month(month)
        self.book.require_item(group, item)
        return self.categories.target_status(figures.find_item(group, item))

    def item_actions(self, group: str, item: str) -> Dict[str, bool]:
        return self.categories.item_actions(group, item)

    # ==================== Accounts ====================

    def list_accounts(self) -> List[Account]:
        return self.accounts.get_all()

    def create_account(
        self,
        name: str,
        type: AccountType | str,
        balance: Decimal | str | int | float = ZERO,
        issuer: Optional[str] = None,
        on: Optional[date] = None,
    ) -> Account:
        on = on or self._default_date()
        changes, account = self.accounts.build_create(name, AccountType(type), balance, issuer, on)
        self.rollover.materialize(self.book, month_key(on))
        self._execute("create_account", f"Add account {account.name}", changes)
        return self.book.accounts[account.id]

    def rename_account(self, account_id: str, name: str) -> Account:
        account = self.book.get_account(account_id)
        old = account.name
        changes = self.accounts.build_rename(account_id, name)
        self._execute("rename_account", f"Rename account {old} to {name.strip()}", changes)
        return self.book.accounts[account_id]

    def delete_account(self, account_id: str) -> None:
        account = self.book.get_account(account_id)
        changes = self.accounts.build_delete(account_id)
        self._execute("delete_account", f"Delete account {account.name}", changes)

    # ==================== Transactions ====================

    def list_transactions(self, account_id: Optional[str] = None) -> List[Transaction]:
        if account_id is not None:
            self.book.get_account(account_id)
        rows = [
            tx for tx in self.book.transactions.values()
            if account_id is None or tx.account_id == account_id
        ]
        return sorted(rows, key=lambda tx: (tx.date, tx.id), reverse=True)

    def post_transaction(
        self,
        account_id: str,
        on: date,
        payee: str,
        group: Optional[str],
        item: Optional[str],
        amount: Decimal | str | int | float,
    ) -> Transaction:
        """Post on an account; a payee naming another account becomes a transfer."""
        changes, tx = self.transactions.build_post(account_id, on, payee, group, item, amount)
        self.rollover.materialize(self.book, month_key(on))
        kind = "post_transfer" if tx.mirror_id else "post_transaction"
        self._execute(kind, f"Add transaction {tx.payee_name or 'no payee'} {format_money(tx.amount)}", changes)
        return self.book.transactions[tx.id]

    def post_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        on: date,
        amount: Decimal | str | int | float,
    ) -> Tuple[Transaction, Transaction]:
        changes, (out_leg, in_leg) = self.transactions.build_transfer(from_account_id, to_account_id, on, amount)
        self.rollover.materialize(self.book, month_key(on))
        self._execute("post_transfer", f"Transfer {format_money(in_leg.amount)}", changes)
        return self.book.transactions[out_leg.id], self.book.transactions[in_leg.id]

    def edit_transaction(
        self,
        transaction_id: str,
        on: Optional[date] = None,
        payee: Optional[str] = None,
        group: Optional[str] = None,
        item: Optional[str] = None,
        amount: Decimal | str | int | float | None = None,
    ) -> Transaction:
        changes, edited = self.transactions.build_edit(transaction_id, on, payee, group, item, amount)
        if on is not None:
            self.rollover.materialize(self.book, month_key(on))
        self._execute("edit_transaction", f"Edit transaction {edited.payee_name or transaction_id}", changes)
        return self.book.transactions[edited.id]

    def delete_transaction(self, transaction_id: str) -> List[str]:
        self.book.get_transaction(transaction_id)
        changes, deleted, _ = self.transactions.build_delete([transaction_id])
        self._execute("delete_transaction", "Delete transaction", changes)
        return deleted

    def delete_transactions(self, transaction_ids: Iterable[str]) -> Tuple[List[str], List[str]]:
        """
        Bulk delete as one command.

        Returns:
            (deleted_ids including mirrors, missing_ids)
        """
        changes, deleted, missing = self.bulk.bulk_delete(transaction_ids)
        if changes:
            self._execute("delete_transactions", f"Delete {len(deleted)} transactions", changes)
        return deleted, missing

    def import_transactions(self, account_id: str, rows: Iterable[Dict[str, Any]]) -> Tuple[int, int, Optional[str]]:
        """
        Returns:
            (created, skipped, command_id)
        """
        changes, created, skipped = self.bulk.build_import_transactions(account_id, rows)
        command = self._execute("import_transactions", f"Import {created} transactions", changes)
        return created, skipped, command.id if command else None

    def import_categories(self, rows: Iterable[Dict[str, Any]]) -> Tuple[int, int, Optional[str]]:
        changes, applied, skipped = self.bulk.build_import_categories(rows)
        command = self._execute("import_categories", f"Import {applied} category rows", changes)
        return applied, skipped, command.id if command else None

    # ==================== History ====================

    def undo(self, expected_id: Optional[str] = None) -> Optional[Command]:
        return self.stack.undo(expected_id)

    def redo(self, expected_id: Optional[str] = None) -> Optional[Command]:
        return self.stack.redo(expected_id)

    @property
    def recent_changes(self) -> List[ChangeLogEntry]:
        return self.stack.recent_changes

    def history(self) -> HistoryOut:
        undo_top = self.stack.peek_undo()
        redo_top = self.stack.peek_redo()
        return HistoryOut(
            can_undo=undo_top is not None,
            can_redo=redo_top is not None,
            undo_description=undo_top.description if undo_top else None,
            undo_id=undo_top.id if undo_top else None,
            redo_description=redo_top.description if redo_top else None,
            redo_id=redo_top.id if redo_top else None,
            recent=self.recent_changes,
        )

    # ==================== Consistency ====================

    def check_invariants(self) -> List[str]:
        """Human-readable list of broken invariants (empty when consistent)."""
        problems = self.synchronizer.check(self.book)
        for key in self.book.sorted_months():
            figures = self.book.months[key]
            if not figures.ready_to_assign.is_finite():
                problems.append(f"{key}: Ready to Assign is not finite")
            for group, item in figures.iter_items():
                if item.available != item.carry_in + item.assigned + item.activity:
                    problems.append(f"{key}: {group.name} / {item.name} available does not add up")
        months = self.book.sorted_months()
        for earlier, later in zip(months, months[1:]):
            if month_key(later) != later or later <= earlier:
                problems.append(f"months {earlier} and {later} are out of order")
        balances: Dict[str, Decimal] = {acc_id: ZERO for acc_id in self.book.accounts}
        for tx in self.book.transactions.values():
            balances[tx.account_id] = balances.get(tx.account_id, ZERO) + tx.amount
        for acc_id, account in self.book.accounts.items():
            if balances[acc_id] != account.balance:
                problems.append(f"account {account.name} balance does not match its transactions")
        return problems

    # ==================== Private Methods ====================

    def _bootstrap(self, current_month: Optional[str], seed_defaults: bool) -> None:
        fresh = not self.book.months
        month = month_key(current_month) if current_month else (self.book.current_month or month_key(date.today()))
        self.rollover.materialize(self.book, month)
        self.book.current_month = month
        if self.book.align_structure():
            logger.info("Patched months missing groups or items")

        setup: List[Change] = list(self.synchronizer.ensure_group_changes(self.book))
        if fresh and seed_defaults:
            setup.extend(self.categories.build_default_categories())
        for change in setup:
            change.apply(self.book)
        payments = self.book.require_group(self.synchronizer.group_name)
        for account in self.book.credit_accounts():
            if payments.find(account.name) is None:
                logger.warning("Restoring missing payment item for %s", account.name)
                AddItem(group=payments.name, name=account.name, index=len(payments.items)).apply(self.book)
        self.rollover.recompute_from(self.book)

    def _execute(self, kind: str, description: str, changes: Sequence[Change]) -> Optional[Command]:
        if not changes:
            return None
        return self.stack.execute(Command.build(kind, description, changes))

    def _after_changes(self, changes: Sequence[Change]) -> None:
        months = [change.month for change in changes]
        start = None if any(month is None for month in months) else min(months)
        self.rollover.recompute_from(self.book, start)

    def _default_date(self) -> date:
        today = date.today()
        if month_key(today) == self.current_month:
            return today
        year, month = (int(part) for part in self.current_month.split("-"))
        return date(year, month, 1)

    @staticmethod
    def _assigned_value(amount: Decimal | str | int | float | None) -> Decimal:
        if isinstance(amount, str):
            return parse_amount_or_zero(amount)
        try:
            return to_money(amount)
        except InvalidAmountError as exc:
            logger.warning("%s; using 0", exc)
            return ZERO
