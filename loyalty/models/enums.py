"""Enumeration types shared by the ORM models and the record layer."""
from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    DEALER = "dealer"
    SUB_DEALER = "sub_dealer"
    CONTRACTOR = "contractor"
    BUILDER = "builder"


class TransactionType(str, enum.Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    DEALER_APPROVED = "dealer_approved"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


SETTLED_STATUSES = frozenset({TransactionStatus.APPROVED, TransactionStatus.COMPLETED})
AWAITING_STATUSES = frozenset({TransactionStatus.PENDING, TransactionStatus.DEALER_APPROVED})
EXCLUDED_STATUSES = frozenset({TransactionStatus.REJECTED, TransactionStatus.CANCELLED})


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]


__all__ = [
    "AWAITING_STATUSES",
    "EXCLUDED_STATUSES",
    "SETTLED_STATUSES",
    "TransactionStatus",
    "TransactionType",
    "UserRole",
    "enum_values",
]
