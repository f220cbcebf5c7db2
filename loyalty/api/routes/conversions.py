"""Points/bags conversion endpoints."""
from __future__ import annotations

from fastapi import APIRouter

from loyalty.schemas import (
    BagsToPointsRequest,
    BagsToPointsResponse,
    PointsToBagsRequest,
    PointsToBagsResponse,
)
from loyalty.services.conversion import (
    LEGACY_CEMENT_TYPE,
    CementType,
    cement_type_from_description,
    convert_bags_to_points,
    convert_points_to_bags,
    points_per_bag,
)

router = APIRouter(prefix="/conversions")


@router.post("/points-to-bags", response_model=PointsToBagsResponse)
def points_to_bags(payload: PointsToBagsRequest) -> PointsToBagsResponse:
    """Bag equivalent of a transaction; untagged descriptions use the legacy rate."""

    cement_type = cement_type_from_description(payload.description)
    rate_type = LEGACY_CEMENT_TYPE if cement_type is CementType.UNKNOWN else cement_type
    return PointsToBagsResponse(
        cement_type=cement_type,
        points_per_bag=points_per_bag(rate_type),
        bags=convert_points_to_bags(payload.description, payload.amount),
    )


@router.post("/bags-to-points", response_model=BagsToPointsResponse)
def bags_to_points(payload: BagsToPointsRequest) -> BagsToPointsResponse:
    cement_type = CementType(payload.cement_type)
    return BagsToPointsResponse(
        cement_type=cement_type,
        points_per_bag=points_per_bag(cement_type),
        points=convert_bags_to_points(payload.bags, cement_type),
    )


__all__ = ["bags_to_points", "points_to_bags", "router"]
