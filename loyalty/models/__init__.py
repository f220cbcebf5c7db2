"""ORM models package."""
from .base import Base, TimestampMixin
from .enums import (
    AWAITING_STATUSES,
    EXCLUDED_STATUSES,
    SETTLED_STATUSES,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from .reward import Reward
from .transaction import Transaction
from .user import User

__all__ = [
    "AWAITING_STATUSES",
    "Base",
    "EXCLUDED_STATUSES",
    "Reward",
    "SETTLED_STATUSES",
    "TimestampMixin",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserRole",
]
