"""Pydantic schemas for transaction resources."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from loyalty.models import TransactionStatus, TransactionType
from loyalty.schemas.conversion import TaggedCementType
from loyalty.services.conversion import bags_from_transaction


class PointsRequestCreate(BaseModel):
    """Bags bought through a dealer, submitted for points."""

    dealer_id: str = Field(..., min_length=1, max_length=36)
    bags: int = Field(..., gt=0, description="Whole bags purchased")
    cement_type: TaggedCementType


class RedemptionCreate(BaseModel):
    reward_id: str = Field(..., min_length=1, max_length=36)


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    dealer_id: str | None
    reward_id: str | None
    type: TransactionType
    status: TransactionStatus
    amount: int
    description: str
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def bags(self) -> int:
        if self.type is not TransactionType.EARNED:
            return 0
        return bags_from_transaction(self.description, self.amount)


__all__ = ["PointsRequestCreate", "RedemptionCreate", "TransactionRead"]
