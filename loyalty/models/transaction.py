"""Transaction ORM model."""
from __future__ import annotations

import uuid

from sqlalchemy import Enum as SAEnum
from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loyalty.models.base import Base, TimestampMixin
from loyalty.models.enums import TransactionStatus, TransactionType, enum_values


class Transaction(TimestampMixin, Base):
    """Points earned against a cement purchase or spent on a reward."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_id", "user_id"),
        Index("ix_transactions_dealer_id", "dealer_id"),
        Index("ix_transactions_created_at", "created_at"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    dealer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reward_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transaction_type", values_callable=enum_values), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transaction_status", values_callable=enum_values),
        nullable=False,
        default=TransactionStatus.PENDING,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    user = relationship("User", back_populates="transactions", foreign_keys=[user_id])
    dealer = relationship("User", foreign_keys=[dealer_id])
    reward = relationship("Reward", back_populates="transactions")


__all__ = ["Transaction", "TransactionType", "TransactionStatus"]
