"""
Month ledger

Responsibilities:
- Derive activity / available for every item of one month
- Derive income, overspent and Ready to Assign for the month
- Never let RTA become non-finite (keep the last good value instead)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional, Sequence, Tuple

from blankslate.models import AccountType, READY_TO_ASSIGN
from blankslate.schemas import CategoryItem, MonthBudget, Transaction
from blankslate.services.budget_book import BudgetBook
from blankslate.services.credit_card_service import CreditCardPaymentSynchronizer
from blankslate.utils.money import CENT, ZERO

logger = logging.getLogger(__name__)


class MonthLedger:
    def __init__(self, synchronizer: CreditCardPaymentSynchronizer | None = None):
        self.synchronizer = synchronizer or CreditCardPaymentSynchronizer()

    @staticmethod
    def carry_in(previous: Optional[CategoryItem], is_payment_item: bool = False) -> Decimal:
        """
        Amount an item starts the month with.

        Cash items carry only a positive balance (overspending is absorbed).
        Payment items carry their signed balance.
        """
        if previous is None:
            return ZERO
        if is_payment_item:
            return previous.available
        return max(previous.available, ZERO)

    def recompute(
        self,
        book: BudgetBook,
        month: MonthBudget,
        previous: Optional[MonthBudget],
        transactions: Sequence[Transaction],
    ) -> MonthBudget:
        """
        Re-derive ``month`` in place from its ``assigned`` values, the previous
        month and the month's transactions.

        Args:
            book: accounts are read from it
            month: month to update
            previous: the month before, or None for the first month
            transactions: transactions dated in ``month``

        Returns:
            the same ``month`` object
        """
        activity = self._cash_activity(transactions)

        for group, item in month.iter_items():
            prev_item = previous.find_item(group.name, item.name) if previous else None
            item.carry_in = self.carry_in(prev_item, group.is_system_group)
            if not group.is_system_group:
                item.activity = activity.get((group.name, item.name), ZERO)
                item.available = item.carry_in + item.assigned + item.activity

        funded = self.synchronizer.funded_spending(book, month, transactions)
        payments = self.synchronizer.payments(transactions)
        for group, item in month.iter_items():
            if group.is_system_group:
                item.activity = funded.get(item.name, ZERO) + payments.get(item.name, ZERO)
                item.available = item.carry_in + item.assigned + item.activity

        month.income = self.income(book, transactions)
        month.overspent = sum(
            (-item.available for group, item in month.iter_items()
             if not group.is_system_group and item.available < 0),
            ZERO,
        )
        self.apply_ready_to_assign(month, previous)
        return month

    @staticmethod
    def income(book: BudgetBook, transactions: Iterable[Transaction]) -> Decimal:
        """Non-mirrored "Ready to Assign" inflow on debit accounts."""
        total = ZERO
        for tx in transactions:
            if tx.group_name != READY_TO_ASSIGN or tx.mirror_id is not None:
                continue
            account = book.accounts.get(tx.account_id)
            if account is not None and account.type is AccountType.DEBIT:
                total += tx.amount
        return total

    def apply_ready_to_assign(self, month: MonthBudget, previous: Optional[MonthBudget]) -> None:
        """``rta(N) = rta(N-1) + income(N) - assigned(N)``; keeps the old value on error."""
        try:
            carried = previous.ready_to_assign if previous is not None else ZERO
            value = carried + month.income - month.total_assigned
            if not value.is_finite():
                raise InvalidOperation(f"non-finite result {value}")
            value = value.quantize(CENT)
        except (InvalidOperation, ArithmeticError, TypeError) as exc:
            logger.error(
                "Ready to Assign for %s could not be computed (%s); keeping %s",
                month.month,
                exc,
                month.ready_to_assign,
            )
            month.rta_error = str(exc) or exc.__class__.__name__
            return
        month.ready_to_assign = value
        month.rta_error = None

    # ==================== Private Methods ====================

    @staticmethod
    def _cash_activity(transactions: Iterable[Transaction]) -> Dict[Tuple[str, str], Decimal]:
        totals: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        for tx in transactions:
            if tx.is_categorized and tx.group_name != READY_TO_ASSIGN:
                totals[(tx.group_name, tx.item_name)] += tx.amount
        return dict(totals)
