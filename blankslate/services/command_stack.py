"""
Undo/redo command stack

Responsibilities:
- Apply a command's primitive changes atomically (roll back on failure)
- Keep the undo/redo sequences; a new command clears redo
- Keep a short log of recent changes
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, List, Optional, Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from blankslate.errors import StaleUndoError
from blankslate.models import now_naive_utc
from blankslate.schemas import ChangeLogEntry
from blankslate.services.budget_book import BudgetBook
from blankslate.services.changes import Change

logger = logging.getLogger(__name__)


class Command(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    kind: str
    description: str
    forward: List[Change]
    inverse: List[Change]
    timestamp: datetime = Field(default_factory=now_naive_utc)

    @classmethod
    def build(cls, kind: str, description: str, changes: Sequence[Change]) -> "Command":
        """
        Build a command whose inverse undoes ``changes`` in reverse order.

        Example:
            >>> Command.build("set_assigned", "Assign $50.00 to Rent", [change])
        """
        forward = list(changes)
        inverse = [change.invert() for change in reversed(forward)]
        return cls(kind=kind, description=description, forward=forward, inverse=inverse)


class CommandStack:
    """
    Session-local undo/redo history for one BudgetBook.

    ``on_applied`` is called with the changes that just ran (forward or
    inverse) so derived month figures can be re-derived.
    """

    def __init__(
        self,
        book: BudgetBook,
        on_applied: Optional[Callable[[Sequence[Change]], None]] = None,
        recent_limit: int = 10,
    ):
        self.book = book
        self.on_applied = on_applied
        self._undo: List[Command] = []
        self._redo: List[Command] = []
        self._recent: Deque[ChangeLogEntry] = deque(maxlen=recent_limit)

    # ==================== Queries ====================

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def peek_undo(self) -> Optional[Command]:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> Optional[Command]:
        return self._redo[-1] if self._redo else None

    @property
    def recent_changes(self) -> List[ChangeLogEntry]:
        """Newest first."""
        return list(reversed(self._recent))

    # ==================== Operations ====================

    def execute(self, command: Command) -> Command:
        """
        Apply a new command and push it onto the undo stack.

        Raises:
            whatever a change raised; the book is restored first
        """
        self._run(command.forward)
        self._undo.append(command)
        self._redo.clear()
        self._log(command.description, command.timestamp)
        logger.debug("Executed %s (%s)", command.kind, command.id)
        return command

    def undo(self, expected_id: Optional[str] = None) -> Optional[Command]:
        """Revert the newest command; ``None`` when there is nothing (or the wrong thing) to undo."""
        try:
            command = self._pop(self._undo, expected_id)
        except StaleUndoError as exc:
            logger.info("Undo ignored: %s", exc)
            return None
        if command is None:
            return None
        try:
            self._run(command.inverse)
        except Exception:
            self._undo.append(command)
            raise
        self._redo.append(command)
        self._log(f"Undo: {command.description}", now_naive_utc())
        return command

    def redo(self, expected_id: Optional[str] = None) -> Optional[Command]:
        """Re-apply the most recently undone command; ``None`` when the redo stack is empty."""
        try:
            command = self._pop(self._redo, expected_id)
        except StaleUndoError as exc:
            logger.info("Redo ignored: %s", exc)
            return None
        if command is None:
            return None
        try:
            self._run(command.forward)
        except Exception:
            self._redo.append(command)
            raise
        self._undo.append(command)
        self._log(f"Redo: {command.description}", now_naive_utc())
        return command

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
        self._recent.clear()

    # ==================== Private Methods ====================

    @staticmethod
    def _pop(stack: List[Command], expected_id: Optional[str]) -> Optional[Command]:
        if not stack:
            return None
        if expected_id is not None and stack[-1].id != expected_id:
            raise StaleUndoError(f"expected {expected_id}, top of stack is {stack[-1].id}")
        return stack.pop()

    def _run(self, changes: Sequence[Change]) -> None:
        applied: List[Change] = []
        try:
            for change in changes:
                change.apply(self.book)
                applied.append(change)
        except Exception:
            logger.warning("Rolling back %d applied change(s)", len(applied))
            for change in reversed(applied):
                change.invert().apply(self.book)
            if applied and self.on_applied is not None:
                self.on_applied(applied)
            raise
        if self.on_applied is not None:
            self.on_applied(changes)

    def _log(self, description: str, timestamp: datetime) -> None:
        self._recent.append(ChangeLogEntry(description=description, timestamp=timestamp))
