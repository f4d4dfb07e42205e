"""
Primitive budget changes

Responsibilities:
- Smallest invertible edits to a BudgetBook
- ``invert()`` returns the exact opposite edit, so a command's inverse list is
  derived from its forward list
- ``month`` tells the rollover where re-derivation must start
  (``None`` means from the earliest materialized month)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from blankslate.schemas import Account, Transaction
from blankslate.services.budget_book import BudgetBook


class BaseChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def month(self) -> Optional[str]:
        return None

    def apply(self, book: BudgetBook) -> None:
        raise NotImplementedError

    def invert(self) -> "Change":
        raise NotImplementedError


# ==================== Groups ====================


class AddGroup(BaseChange):
    op: Literal["add_group"] = "add_group"
    name: str
    index: int
    is_system_group: bool = False

    def apply(self, book: BudgetBook) -> None:
        book.insert_group(self.name, self.index, self.is_system_group)

    def invert(self) -> "Change":
        return RemoveGroup(name=self.name, index=self.index, is_system_group=self.is_system_group)


class RemoveGroup(BaseChange):
    op: Literal["remove_group"] = "remove_group"
    name: str
    index: int
    is_system_group: bool = False

    def apply(self, book: BudgetBook) -> None:
        book.delete_group(self.name)

    def invert(self) -> "Change":
        return AddGroup(name=self.name, index=self.index, is_system_group=self.is_system_group)


class RenameGroup(BaseChange):
    op: Literal["rename_group"] = "rename_group"
    old: str
    new: str

    def apply(self, book: BudgetBook) -> None:
        book.rename_group(self.old, self.new)

    def invert(self) -> "Change":
        return RenameGroup(old=self.new, new=self.old)


# ==================== Items ====================


class AddItem(BaseChange):
    op: Literal["add_item"] = "add_item"
    group: str
    name: str
    index: int
    assigned: Dict[str, Decimal] = Field(default_factory=dict)
    target: Optional[Decimal] = None

    def apply(self, book: BudgetBook) -> None:
        book.insert_item(self.group, self.name, self.index, dict(self.assigned), self.target)

    def invert(self) -> "Change":
        return RemoveItem(**self.model_dump(exclude={"op"}))


class RemoveItem(BaseChange):
    """Removal snapshot: position, per-month assigned and target come back on undo."""

    op: Literal["remove_item"] = "remove_item"
    group: str
    name: str
    index: int
    assigned: Dict[str, Decimal] = Field(default_factory=dict)
    target: Optional[Decimal] = None

    def apply(self, book: BudgetBook) -> None:
        book.delete_item(self.group, self.name)

    def invert(self) -> "Change":
        return AddItem(**self.model_dump(exclude={"op"}))


class RenameItem(BaseChange):
    op: Literal["rename_item"] = "rename_item"
    group: str
    old: str
    new: str

    def apply(self, book: BudgetBook) -> None:
        book.rename_item(self.group, self.old, self.new)

    def invert(self) -> "Change":
        return RenameItem(group=self.group, old=self.new, new=self.old)


class SetAssigned(BaseChange):
    op: Literal["set_assigned"] = "set_assigned"
    group: str
    item: str
    at: str
    before: Decimal
    after: Decimal

    @property
    def month(self) -> Optional[str]:
        return self.at

    def apply(self, book: BudgetBook) -> None:
        book.set_assigned(self.group, self.item, self.at, self.after)

    def invert(self) -> "Change":
        return self.model_copy(update={"before": self.after, "after": self.before})


class SetTarget(BaseChange):
    op: Literal["set_target"] = "set_target"
    group: str
    item: str
    before: Optional[Decimal] = None
    after: Optional[Decimal] = None

    def apply(self, book: BudgetBook) -> None:
        book.set_target(self.group, self.item, self.after)

    def invert(self) -> "Change":
        return self.model_copy(update={"before": self.after, "after": self.before})


# ==================== Accounts ====================


class AddAccount(BaseChange):
    op: Literal["add_account"] = "add_account"
    account: Account
    index: int

    def apply(self, book: BudgetBook) -> None:
        book.insert_account(self.account, self.index)

    def invert(self) -> "Change":
        return RemoveAccount(account=self.account, index=self.index)


class RemoveAccount(BaseChange):
    """Only valid once the account's transactions are gone (balance back to start)."""

    op: Literal["remove_account"] = "remove_account"
    account: Account
    index: int

    def apply(self, book: BudgetBook) -> None:
        book.delete_account(self.account.id)

    def invert(self) -> "Change":
        return AddAccount(account=self.account, index=self.index)


class RenameAccount(BaseChange):
    op: Literal["rename_account"] = "rename_account"
    account_id: str
    old: str
    new: str

    def apply(self, book: BudgetBook) -> None:
        book.rename_account(self.account_id, self.new)

    def invert(self) -> "Change":
        return self.model_copy(update={"old": self.new, "new": self.old})


# ==================== Transactions ====================


class AddTransaction(BaseChange):
    op: Literal["add_transaction"] = "add_transaction"
    transaction: Transaction

    @property
    def month(self) -> Optional[str]:
        return self.transaction.month

    def apply(self, book: BudgetBook) -> None:
        book.insert_transaction(self.transaction)

    def invert(self) -> "Change":
        return RemoveTransaction(transaction=self.transaction)


class RemoveTransaction(BaseChange):
    op: Literal["remove_transaction"] = "remove_transaction"
    transaction: Transaction

    @property
    def month(self) -> Optional[str]:
        return self.transaction.month

    def apply(self, book: BudgetBook) -> None:
        book.delete_transaction(self.transaction.id)

    def invert(self) -> "Change":
        return AddTransaction(transaction=self.transaction)


class RecategorizeTransaction(BaseChange):
    op: Literal["recategorize_transaction"] = "recategorize_transaction"
    transaction_id: str
    at: str
    before_group: Optional[str] = None
    before_item: Optional[str] = None
    after_group: Optional[str] = None
    after_item: Optional[str] = None

    @property
    def month(self) -> Optional[str]:
        return self.at

    def apply(self, book: BudgetBook) -> None:
        book.recategorize(self.transaction_id, self.after_group, self.after_item)

    def invert(self) -> "Change":
        return self.model_copy(
            update={
                "before_group": self.after_group,
                "before_item": self.after_item,
                "after_group": self.before_group,
                "after_item": self.before_item,
            }
        )


Change = Annotated[
    Union[
        AddGroup,
        RemoveGroup,
        RenameGroup,
        AddItem,
        RemoveItem,
        RenameItem,
        SetAssigned,
        SetTarget,
        AddAccount,
        RemoveAccount,
        RenameAccount,
        AddTransaction,
        RemoveTransaction,
        RecategorizeTransaction,
    ],
    Field(discriminator="op"),
]
