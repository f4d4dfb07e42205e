"""
Budget engine error hierarchy

Validation errors are recovered at the call boundary (the API turns them into
HTTP errors); ``MirrorIntegrityError`` aborts the whole composite operation.
"""

from __future__ import annotations


class BudgetError(Exception):
    """Base class for every error raised by the engine."""


class BudgetValidationError(BudgetError):
    """A user action was rejected; nothing was changed."""


class DuplicateNameError(BudgetValidationError):
    def __init__(self, name: str, scope: str = "budget") -> None:
        super().__init__(f"'{name}' already exists in {scope}")
        self.name = name
        self.scope = scope


class FundsPresentError(BudgetValidationError):
    """Deleting an item that still holds money needs a reassignment target."""

    def __init__(self, group: str, item: str, available) -> None:
        super().__init__(f"'{group} / {item}' still has {available} available; choose a category to reassign it to")
        self.group = group
        self.item = item
        self.available = available


class GroupNotEmptyError(BudgetValidationError):
    def __init__(self, group: str) -> None:
        super().__init__(f"Group '{group}' still has categories")
        self.group = group


class ProtectedGroupError(BudgetValidationError):
    def __init__(self, group: str) -> None:
        super().__init__(f"Group '{group}' is managed by the system")
        self.group = group


class ProtectedItemError(BudgetValidationError):
    def __init__(self, group: str, item: str) -> None:
        super().__init__(f"'{group} / {item}' is managed by the system")
        self.group = group
        self.item = item


class InvalidTransactionError(BudgetValidationError):
    pass


class NotFoundError(BudgetValidationError, LookupError):
    pass


class InvalidAmountError(BudgetError, ValueError):
    """Input could not be read as money. Callers fall back to 0."""

    def __init__(self, text: object, reason: str = "not a number") -> None:
        super().__init__(f"Invalid amount {text!r}: {reason}")
        self.text = text


class MirrorIntegrityError(BudgetError):
    """A transaction claims a mirror that cannot be found (or is ambiguous)."""

    def __init__(self, transaction_id: str, mirror_id: str | None, found: int = 0) -> None:
        super().__init__(
            f"Transaction {transaction_id} has mirror {mirror_id} but {found} partner(s) were found"
        )
        self.transaction_id = transaction_id
        self.mirror_id = mirror_id
        self.found = found


class StaleUndoError(BudgetError):
    """Undo/redo requested for a command that is no longer on top of its stack."""
