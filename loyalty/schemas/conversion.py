"""Schemas for the points/bags conversion endpoints."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from loyalty.services.conversion import CementType

TaggedCementType = Literal["OPC", "PPC"]


class PointsToBagsRequest(BaseModel):
    """Malformed or negative amounts convert to zero bags rather than failing."""

    description: str | None = Field(default=None, max_length=255)
    amount: int | float | str | None = Field(default=None, description="Points on the transaction")


class PointsToBagsResponse(BaseModel):
    cement_type: CementType
    points_per_bag: int
    bags: int


class BagsToPointsRequest(BaseModel):
    bags: int | float | str | None = Field(default=None, description="Whole number of bags")
    cement_type: TaggedCementType


class BagsToPointsResponse(BaseModel):
    cement_type: CementType
    points_per_bag: int
    points: int


__all__ = [
    "BagsToPointsRequest",
    "BagsToPointsResponse",
    "PointsToBagsRequest",
    "PointsToBagsResponse",
    "TaggedCementType",
]
