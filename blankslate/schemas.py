from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Iterator, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from .models import AccountType, CREDIT_CARD_GROUP
from .utils.money import ZERO, to_money
from .utils.months import month_key
from .utils.normalization import clean_label
from .errors import InvalidAmountError


# ==================== Engine state ====================


class CategoryItem(BaseModel):
    """Per-month figures of one category; ``available = carry_in + assigned + activity``."""

    name: str
    assigned: Decimal = ZERO
    activity: Decimal = ZERO
    available: Decimal = ZERO
    carry_in: Decimal = ZERO
    target: Optional[Decimal] = None


class CategoryGroup(BaseModel):
    name: str
    items: list[CategoryItem] = Field(default_factory=list)
    is_system_group: bool = False

    def find(self, item_name: str) -> CategoryItem | None:
        return next((item for item in self.items if item.name == item_name), None)

    def index_of(self, item_name: str) -> int:
        for idx, item in enumerate(self.items):
            if item.name == item_name:
                return idx
        return -1


class MonthBudget(BaseModel):
    month: str  # YYYY-MM
    groups: list[CategoryGroup] = Field(default_factory=list)
    ready_to_assign: Decimal = ZERO
    income: Decimal = ZERO
    overspent: Decimal = ZERO
    rta_error: Optional[str] = None

    def find_group(self, name: str) -> CategoryGroup | None:
        return next((group for group in self.groups if group.name == name), None)

    def find_item(self, group_name: str, item_name: str) -> CategoryItem | None:
        group = self.find_group(group_name)
        return group.find(item_name) if group else None

    def iter_items(self) -> Iterator[tuple[CategoryGroup, CategoryItem]]:
        for group in self.groups:
            for item in group.items:
                yield group, item

    @property
    def total_assigned(self) -> Decimal:
        return sum((item.assigned for _, item in self.iter_items()), ZERO)


class Account(BaseModel):
    id: str
    name: str
    type: AccountType
    balance: Decimal = ZERO
    issuer: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).replace(tzinfo=None))

    @property
    def is_credit(self) -> bool:
        return self.type is AccountType.CREDIT


class Transaction(BaseModel):
    id: str
    account_id: str
    date: dt.date
    payee_name: str = ""
    group_name: Optional[str] = None
    item_name: Optional[str] = None
    amount: Decimal
    mirror_id: Optional[str] = None

    @property
    def month(self) -> str:
        return f"{self.date.year:04d}-{self.date.month:02d}"

    @property
    def is_categorized(self) -> bool:
        return bool(self.group_name and self.item_name)


# ==================== Month document (storage shape) ====================


class CategoryItemDoc(BaseModel):
    name: str
    assigned: float = 0
    activity: float = 0
    available: float = 0
    target: Optional[float] = None


class CategoryGroupDoc(BaseModel):
    name: str
    category_items: list[CategoryItemDoc] = Field(
        default_factory=list,
        validation_alias=AliasChoices("categoryItems", "category_items"),
        serialization_alias="categoryItems",
    )

    model_config = ConfigDict(populate_by_name=True)


class MonthDocumentData(BaseModel):
    categories: list[CategoryGroupDoc] = Field(default_factory=list)


class MonthDocument(BaseModel):
    user_id: int
    month: str
    data: MonthDocumentData
    assignable_money: float = 0
    ready_to_assign: float = 0


# ==================== API payloads ====================


class ItemOut(BaseModel):
    name: str
    assigned: Decimal
    activity: Decimal
    available: Decimal
    carry_in: Decimal
    target: Optional[Decimal] = None
    target_status: Optional[str] = None
    target_message: Optional[str] = None
    deletable: bool = True


class GroupOut(BaseModel):
    name: str
    is_system_group: bool
    items: list[ItemOut]


class MonthOut(BaseModel):
    month: str
    ready_to_assign: Decimal
    income: Decimal
    overspent: Decimal
    rta_error: Optional[str] = None
    groups: list[GroupOut]


class AssignIn(BaseModel):
    group: str = Field(min_length=1)
    item: str = Field(min_length=1)
    # Raw cell text ("10+5") or a number
    amount: Decimal | str


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class ItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class RenameIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class TargetIn(BaseModel):
    amount: Optional[Decimal] = None


class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: AccountType
    balance: Decimal = Field(default=ZERO, validation_alias=AliasChoices("balance", "starting_balance"))
    issuer: Optional[str] = Field(default=None, max_length=40)
    date: Optional[dt.date] = None


class AccountUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class AccountOut(BaseModel):
    id: str
    name: str
    type: AccountType
    balance: Decimal
    issuer: Optional[str] = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(BaseModel):
    account_id: str
    date: dt.date
    payee_name: str = Field(default="", validation_alias=AliasChoices("payee_name", "payee"))
    category_group: Optional[str] = None
    category_item: Optional[str] = None
    amount: Decimal | str


class TransferCreate(BaseModel):
    from_account_id: str
    to_account_id: str
    date: dt.date
    amount: Decimal = Field(gt=0)


class TransactionUpdate(BaseModel):
    date: Optional[dt.date] = None
    payee_name: Optional[str] = None
    category_group: Optional[str] = None
    category_item: Optional[str] = None
    amount: Optional[Decimal | str] = None


class TransactionOut(BaseModel):
    id: str
    account_id: str
    date: dt.date
    payee_name: str
    group_name: Optional[str] = None
    item_name: Optional[str] = None
    amount: Decimal
    mirror_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionsBulkDelete(BaseModel):
    ids: list[str] = Field(default_factory=list)


class TransactionsBulkDeleteResult(BaseModel):
    deleted: int
    deleted_ids: list[str]
    missing: list[str]


class CsvTransactionRow(BaseModel):
    """Imported ``{date, payee, group, item, amount}`` row with lenient defaults."""

    date: dt.date
    payee: str = "Uncategorized"
    group: str = "Uncategorized"
    item: str = "Uncategorized"
    amount: Decimal = ZERO

    @field_validator("payee", "group", "item", mode="before")
    @classmethod
    def _default_text(cls, value):
        return clean_label(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _default_amount(cls, value):
        try:
            return to_money(value)
        except InvalidAmountError:
            return ZERO


class CsvCategoryRow(BaseModel):
    """Imported ``{month, group, item, assigned, activity, available}`` row."""

    month: str
    group: str = "Uncategorized"
    item: str = "Uncategorized"
    assigned: Decimal = ZERO
    activity: Decimal = ZERO
    available: Decimal = ZERO

    @field_validator("group", "item", mode="before")
    @classmethod
    def _default_text(cls, value):
        return clean_label(value)

    @field_validator("month", mode="before")
    @classmethod
    def _month_key(cls, value):
        return month_key(value)

    @field_validator("assigned", "activity", "available", mode="before")
    @classmethod
    def _default_amount(cls, value):
        try:
            return to_money(value)
        except InvalidAmountError:
            return ZERO

    @field_validator("group")
    @classmethod
    def _not_system_group(cls, value: str) -> str:
        # payment items are owned by the synchronizer
        return "Uncategorized" if value == CREDIT_CARD_GROUP else value


class ImportTransactionsIn(BaseModel):
    account_id: str
    rows: list[dict[str, Any]] = Field(default_factory=list)


class ImportCategoriesIn(BaseModel):
    rows: list[dict[str, Any]] = Field(default_factory=list)


class ImportResult(BaseModel):
    created: int
    skipped: int = 0
    command_id: Optional[str] = None


class ChangeLogEntry(BaseModel):
    description: str
    timestamp: dt.datetime


class HistoryOut(BaseModel):
    can_undo: bool
    can_redo: bool
    undo_description: Optional[str] = None
    undo_id: Optional[str] = None
    redo_description: Optional[str] = None
    redo_id: Optional[str] = None
    recent: list[ChangeLogEntry] = Field(default_factory=list)


class UndoRedoIn(BaseModel):
    expected_id: Optional[str] = None


class UndoRedoResult(BaseModel):
    applied: bool
    description: Optional[str] = None
    history: HistoryOut
