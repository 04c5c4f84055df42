"""Pydantic schemas for request and response models.

Pydantic schemas are intentionally separate from the ORM models to allow
for different shapes of data being exposed through the API compared with
what is stored in the database.  Accounts are the main example: one wide
table on disk, a tagged union over ``kind`` on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookkeeper.utils.sanitization import sanitize_string
from .enums import AccountKind, DueType, GroupRole, NotificationType, PaymentMethod


# ---------------------------------------------------------------------------
# Auth


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("password", mode="before")
    def strip_password(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email", mode="before")
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("password", mode="before")
    def strip_password(cls, v):
        return v.strip() if isinstance(v, str) else v


class UserRead(BaseModel):
    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class RegisterResponse(BaseModel):
    success: bool = True
    userId: int
    message: str


class LoginResponse(BaseModel):
    token: str
    user: UserRead


# ---------------------------------------------------------------------------
# Accounts: tagged union over ``kind``


class _AccountReadBase(BaseModel):
    id: int
    user_id: int
    name: str
    balance: float
    allowance_day: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CashAccountRead(_AccountReadBase):
    kind: Literal["cash"] = "cash"


class BankAccountRead(_AccountReadBase):
    kind: Literal["bank"] = "bank"
    bank_name: Optional[str] = None
    bank_code: Optional[str] = None
    branch_name: Optional[str] = None
    account_number: Optional[str] = None


class CreditCardAccountRead(_AccountReadBase):
    kind: Literal["credit_card"] = "credit_card"
    credit_limit: float
    current_credit_used: float
    card_issuer: Optional[str] = None
    card_network: Optional[str] = None
    card_last4: Optional[str] = None
    billing_day: Optional[int] = None
    payment_due_day: Optional[int] = None


AccountRead = Annotated[
    Union[CashAccountRead, BankAccountRead, CreditCardAccountRead],
    Field(discriminator="kind"),
]


class _AccountCreateBase(BaseModel):
    name: str = Field(min_length=1)
    allowance_day: Optional[int] = None

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v


class CashAccountCreate(_AccountCreateBase):
    kind: Literal["cash"]
    balance: float = 0


class BankAccountCreate(_AccountCreateBase):
    kind: Literal["bank"]
    balance: float = 0
    bank_name: Optional[str] = None
    bank_code: Optional[str] = None
    branch_name: Optional[str] = None
    account_number: Optional[str] = None


class CreditCardAccountCreate(_AccountCreateBase):
    kind: Literal["credit_card"]
    credit_limit: float = 0
    current_credit_used: float = 0
    # Issuer + last four digits form the card's natural key
    card_issuer: str = Field(min_length=1)
    card_last4: str = Field(min_length=1, max_length=4)
    card_network: Optional[str] = None
    billing_day: Optional[int] = Field(default=None, ge=1, le=31)
    payment_due_day: Optional[int] = Field(default=None, ge=1, le=31)


AccountCreate = Annotated[
    Union[CashAccountCreate, BankAccountCreate, CreditCardAccountCreate],
    Field(discriminator="kind"),
]


class AccountUpdate(BaseModel):
    """Partial update; fields left unset keep their stored value."""

    name: Optional[str] = None
    kind: Optional[AccountKind] = None
    balance: Optional[float] = None
    allowance_day: Optional[int] = None
    bank_name: Optional[str] = None
    bank_code: Optional[str] = None
    branch_name: Optional[str] = None
    account_number: Optional[str] = None
    credit_limit: Optional[float] = None
    current_credit_used: Optional[float] = None
    card_issuer: Optional[str] = None
    card_network: Optional[str] = None
    card_last4: Optional[str] = Field(default=None, max_length=4)
    billing_day: Optional[int] = Field(default=None, ge=1, le=31)
    payment_due_day: Optional[int] = Field(default=None, ge=1, le=31)

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v


class RepayRequest(BaseModel):
    from_account_id: int
    # Omitted => repay everything currently used
    amount: Optional[float] = None
    date: Optional[datetime] = None
    note: Optional[str] = None


class RecordRead(BaseModel):
    id: int
    user_id: int
    account_id: int
    group_id: Optional[int] = None
    amount: float
    quantity: int
    category: str
    note: str
    payment_method: PaymentMethod
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RepayResponse(BaseModel):
    message: str
    record: Optional[RecordRead] = None
    fromAccount: Optional[AccountRead] = None
    account: AccountRead


# ---------------------------------------------------------------------------
# Records


class RecordCreate(BaseModel):
    amount: float
    account_id: int
    payment_method: PaymentMethod
    quantity: int = Field(default=1, ge=1)
    category: Optional[str] = None
    note: Optional[str] = None
    group_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("note", "category", mode="before")
    def sanitize_text(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v


class RecordListResponse(BaseModel):
    records: List[RecordRead]
    total: int


# ---------------------------------------------------------------------------
# Groups


class GroupCreate(BaseModel):
    name: str = Field(min_length=1)

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v


class JoinGroupRequest(BaseModel):
    joinCode: str


class GroupRead(BaseModel):
    id: int
    name: str
    joinCode: str
    createdAt: datetime
    updatedAt: datetime
    memberCount: int
    myRole: Optional[GroupRole] = None


class GroupMemberRead(BaseModel):
    id: int
    userId: int
    role: GroupRole
    name: str
    email: str


class GroupMembersResponse(BaseModel):
    memberCount: int
    members: List[GroupMemberRead]


class JoinGroupResponse(BaseModel):
    message: str
    groupId: int
    memberCount: int


class GroupLeaveResponse(BaseModel):
    message: str
    groupId: int
    groupDeleted: bool


# ---------------------------------------------------------------------------
# Splits


class SplitParticipantIn(BaseModel):
    user_id: int
    amount: float


class SplitCreate(BaseModel):
    group_id: int
    amount: float = Field(gt=0)
    paid_by_id: int
    participants: List[SplitParticipantIn] = Field(min_length=1)
    description: Optional[str] = None
    due_type: Optional[DueType] = None
    due_date: Optional[datetime] = None

    @field_validator("description", mode="before")
    def sanitize_description(cls, v):
        return sanitize_string(v) if isinstance(v, str) else v


class SplitParticipantRead(BaseModel):
    id: int
    user_id: int
    amount: float
    is_paid: bool

    model_config = ConfigDict(from_attributes=True)


class SplitRead(BaseModel):
    id: int
    group_id: int
    paid_by_id: int
    amount: float
    description: Optional[str] = None
    due_type: Optional[str] = None
    due_date: Optional[datetime] = None
    month_key: Optional[str] = None
    is_settled: bool
    created_at: datetime
    participants: List[SplitParticipantRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class MarkPaidResponse(BaseModel):
    message: str
    allPaid: bool
    autoSettled: bool


class SplitStats(BaseModel):
    totalUnsettled: int = 0
    totalAmount: float = 0
    paidByMe: float = 0
    owedToMe: float = 0
    myDebts: float = 0


# ---------------------------------------------------------------------------
# Notifications


class NotificationRead(BaseModel):
    id: int
    type: NotificationType
    message: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class NotificationListResponse(BaseModel):
    notifications: List[NotificationRead]
    pagination: Pagination


class UnreadCount(BaseModel):
    unreadCount: int


class MessageResponse(BaseModel):
    message: str


class PurgeResponse(BaseModel):
    ok: bool = True


_ACCOUNT_READ_BY_KIND = {
    AccountKind.CASH: CashAccountRead,
    AccountKind.BANK: BankAccountRead,
    AccountKind.CREDIT_CARD: CreditCardAccountRead,
}


def account_read(account) -> Union[CashAccountRead, BankAccountRead, CreditCardAccountRead]:
    """Project an ``Account`` row onto the schema matching its kind."""
    kind = AccountKind(account.kind)
    model = _ACCOUNT_READ_BY_KIND[kind]
    data = {name: getattr(account, name) for name in model.model_fields if name != "kind"}
    return model(kind=kind.value, **data)
