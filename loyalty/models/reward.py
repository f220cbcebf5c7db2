"""Reward catalog ORM model."""
from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Boolean, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loyalty.models.base import Base, TimestampMixin


class Reward(TimestampMixin, Base):
    """Catalog item users can redeem points against."""

    __tablename__ = "rewards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    points_required: Mapped[int] = mapped_column(Integer, nullable=False)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    transactions = relationship("Transaction", back_populates="reward")


__all__ = ["Reward"]
