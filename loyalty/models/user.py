"""User ORM model."""
from __future__ import annotations

import uuid

from sqlalchemy import Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loyalty.models.base import Base, TimestampMixin
from loyalty.models.enums import UserRole, enum_values


class User(TimestampMixin, Base):
    """A program participant: admin, dealer, sub-dealer, contractor or builder."""

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_created_by", "created_by"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=enum_values), nullable=False
    )
    district: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    creator = relationship("User", remote_side=[id])
    transactions = relationship(
        "Transaction", back_populates="user", foreign_keys="Transaction.user_id"
    )


__all__ = ["User", "UserRole"]
