from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.database import Base


def now_naive_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_naive_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_naive_utc, onupdate=now_naive_utc, nullable=False)


class AccountType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


CREDIT_CARD_GROUP = "Credit Card Payments"
READY_TO_ASSIGN = "Ready to Assign"


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)

    accounts: Mapped[list["Account"]] = relationship(back_populates="user")


class BudgetData(Base, TimestampMixin):
    """One month document per user: category figures plus the month's RTA."""

    __tablename__ = "budget_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    assignable_money: Mapped[float] = mapped_column(Numeric(18, 2), default=0, nullable=False)
    ready_to_assign: Mapped[float] = mapped_column(Numeric(18, 2), default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "month", name="uq_budget_data_user_month"),
    )


class Account(Base):
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    issuer: Mapped[str | None] = mapped_column(String(40))
    type: Mapped[AccountType] = mapped_column(SAEnum(AccountType, name="account_type"), nullable=False)
    balance: Mapped[float] = mapped_column(Numeric(18, 2), default=0, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_naive_utc, nullable=False)

    user: Mapped["User"] = relationship(back_populates="accounts")
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_account_name"),
    )


class Transaction(Base):
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    account_id: Mapped[str] = mapped_column(ForeignKey("account.id", ondelete="CASCADE"), nullable=False)
    occurred_on: Mapped[date] = mapped_column("date", Date, nullable=False)
    payee_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    category_group: Mapped[str | None] = mapped_column(String(100))
    category_item: Mapped[str | None] = mapped_column(String(100))
    amount: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    # Shared correlation id for the two legs of a transfer/payment
    mirror_id: Mapped[str | None] = mapped_column(String(32))

    account: Mapped["Account"] = relationship(back_populates="transactions")

    __table_args__ = (
        Index("ix_txn_user_date", "user_id", "date"),
        Index("ix_txn_mirror_id", "mirror_id"),
    )
