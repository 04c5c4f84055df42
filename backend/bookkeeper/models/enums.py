"""Enumeration types used throughout the bookkeeping API.

Values are what gets stored in the database and exchanged over the API,
so changing one requires a data migration.
"""

from enum import Enum


class AccountKind(str, Enum):
    """Discriminator for the account tagged union."""

    CASH = "cash"
    BANK = "bank"
    CREDIT_CARD = "credit_card"


class PaymentMethod(str, Enum):
    """How a ledger record was paid; must agree with the account kind."""

    CASH = "cash"
    BANK = "bank"
    CARD = "card"


class GroupRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class NotificationType(str, Enum):
    SYSTEM = "system"
    REPAYMENT = "repayment"
    ALERT = "alert"
    MONTHLY = "monthly"


class DueType(str, Enum):
    """Repayment cadence of a split."""

    ONCE = "once"
    MONTHLY = "monthly"
