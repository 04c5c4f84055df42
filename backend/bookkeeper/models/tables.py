"""SQLAlchemy ORM models for the bookkeeping API.

Accounts live in a single table discriminated by ``kind``; the columns
that only make sense for one kind (bank code, card issuer, credit limit,
...) are nullable and cleared when an account switches kind.  Natural
keys are enforced by the database:

* bank accounts: ``(user_id, bank_code, account_number)``
* credit cards: ``(user_id, card_issuer, card_last4)``
* cash accounts: ``(user_id, name)`` restricted to ``kind = 'cash'``

Deleting a user's data is done explicitly by
``bookkeeper.services.purge_service``; no ORM cascade is configured for it.
Remember to call the ``init_db`` helper during development after changing
these models.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from bookkeeper.core.database import Base
from .enums import AccountKind, GroupRole, NotificationType, PaymentMethod


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def _value_enum(enum_cls: Type[PyEnum], name: str) -> Enum:
    """Store enum *values* (``"credit_card"``) rather than member names."""
    return Enum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


class User(Base):
    """A person keeping books with the service."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class Account(Base):
    """Cash, bank or credit-card account owned by one user."""

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("user_id", "bank_code", "account_number", name="uq_accounts_user_bank_number"),
        UniqueConstraint("user_id", "card_issuer", "card_last4", name="uq_accounts_user_card"),
        Index(
            "uq_accounts_user_cash_name",
            "user_id",
            "name",
            unique=True,
            sqlite_where=text("kind = 'cash'"),
            postgresql_where=text("kind = 'cash'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    kind = Column(_value_enum(AccountKind, "account_kind"), nullable=False)
    balance = Column(Float, default=0, nullable=False)
    allowance_day = Column(Integer, nullable=True)

    # bank
    bank_name = Column(String, nullable=True)
    bank_code = Column(String, nullable=True)
    branch_name = Column(String, nullable=True)
    account_number = Column(String, nullable=True)

    # credit card
    credit_limit = Column(Float, default=0, nullable=False)
    current_credit_used = Column(Float, default=0, nullable=False)
    card_issuer = Column(String, nullable=True)
    card_network = Column(String, nullable=True)
    card_last4 = Column(String, nullable=True)
    billing_day = Column(Integer, nullable=True)
    payment_due_day = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    @property
    def available_credit(self) -> float:
        return float(self.credit_limit or 0) - float(self.current_credit_used or 0)


class Record(Base):
    """A single ledger line: positive amounts are expenses, negative income."""

    __tablename__ = "records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    amount = Column(Float, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    category = Column(String, nullable=False, default="其他")
    note = Column(Text, nullable=False, default="")
    payment_method = Column(_value_enum(PaymentMethod, "payment_method"), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class Group(Base):
    """Expense-sharing group joined with a short code."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    join_code = Column(String(6), unique=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),)

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(_value_enum(GroupRole, "group_role"), nullable=False, default=GroupRole.MEMBER)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    user = relationship("User", lazy="joined")


class Split(Base):
    """An expense paid by one member and shared among participants."""

    __tablename__ = "splits"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False, index=True)
    paid_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    amount = Column(Float, nullable=False)
    description = Column(String, nullable=True)
    due_type = Column(String, nullable=True)
    due_date = Column(DateTime, nullable=True)
    # YYYY-MM for monthly splits
    month_key = Column(String(7), nullable=True)
    is_settled = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    participants = relationship("SplitParticipant", back_populates="split", lazy="selectin")


class SplitParticipant(Base):
    __tablename__ = "split_participants"
    __table_args__ = (UniqueConstraint("split_id", "user_id", name="uq_split_participants_split_user"),)

    id = Column(Integer, primary_key=True, index=True)
    split_id = Column(Integer, ForeignKey("splits.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)

    split = relationship("Split", back_populates="participants")


class Notification(Base):
    """In-app notification row."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(_value_enum(NotificationType, "notification_type"), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class UnclassifiedNote(Base):
    """Record note the classifier could not place, kept for review."""

    __tablename__ = "unclassified_notes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    amount = Column(Float, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class UserLexicon(Base):
    """Per-user term -> category mapping learned from corrections."""

    __tablename__ = "user_lexicon"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    term = Column(String, nullable=False)
    category = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
