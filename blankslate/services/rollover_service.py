"""
Rollover service

Responsibilities:
- Materialize months (always a contiguous range)
- Re-derive every month from a starting month onward, in order
"""

from __future__ import annotations

import logging
from typing import List, Optional

from blankslate.schemas import MonthBudget
from blankslate.services.budget_book import BudgetBook
from blankslate.services.month_ledger import MonthLedger
from blankslate.utils.months import month_key, month_range, next_month, previous_month

logger = logging.getLogger(__name__)


class RolloverService:
    """
    Rollover is a pure re-derivation: month N+1 is computed from month N's
    figures and its own ``assigned``, so running it twice changes nothing.
    """

    def __init__(self, ledger: MonthLedger | None = None):
        self.ledger = ledger or MonthLedger()

    def materialize(self, book: BudgetBook, month: str) -> List[str]:
        """
        Make sure ``month`` exists, filling every gap to the current range.

        Args:
            book: budget state
            month: "YYYY-MM" (dates and ISO strings are accepted)

        Returns:
            newly created month keys (empty when it already existed)
        """
        month = month_key(month)
        if month in book.months:
            return []
        if not book.months:
            created = [month]
        elif month > book.last_month:
            created = month_range(next_month(book.last_month), month)
        else:
            created = month_range(month, previous_month(book.first_month))
        for key in created:
            book.add_month(book.blank_month(key))
        logger.debug("Materialized %s", ", ".join(created))
        self.recompute_from(book, created[0])
        return created

    def recompute_from(self, book: BudgetBook, start: Optional[str] = None) -> None:
        """Re-derive ``start`` and every later materialized month; earlier months are untouched."""
        if not book.months:
            return
        by_month = book.transactions_by_month()
        for key in book.sorted_months():
            if start is not None and key < start:
                continue
            previous = book.months.get(previous_month(key))
            self.ledger.recompute(book, book.months[key], previous, by_month.get(key, []))

    def derive_next(self, book: BudgetBook, month: str) -> MonthBudget:
        """
        Compute what month N+1 looks like from month N without touching the book.

        Uses N+1's stored ``assigned`` when it is materialized, zero otherwise.
        """
        month = month_key(month)
        source = book.get_month(month)
        key = next_month(month)
        existing = book.months.get(key)
        draft = existing.model_copy(deep=True) if existing else book.blank_month(key)
        transactions = book.transactions_by_month().get(key, [])
        return self.ledger.recompute(book, draft, source, transactions)
