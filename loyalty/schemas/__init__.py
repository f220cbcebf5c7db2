"""Pydantic schemas package."""

from .analytics import (
    AnalyticsSnapshotRead,
    BreakdownRead,
    BreakdownResponse,
    DealerPerformanceRead,
    PendingSummaryRead,
    PerformanceResponse,
    RollupRead,
    RollupResponse,
    ScopeRead,
    Segment,
    WindowRead,
)
from .conversion import (
    BagsToPointsRequest,
    BagsToPointsResponse,
    PointsToBagsRequest,
    PointsToBagsResponse,
)
from .transaction import PointsRequestCreate, RedemptionCreate, TransactionRead

__all__ = [
    "AnalyticsSnapshotRead",
    "BagsToPointsRequest",
    "BagsToPointsResponse",
    "BreakdownRead",
    "BreakdownResponse",
    "DealerPerformanceRead",
    "PendingSummaryRead",
    "PerformanceResponse",
    "PointsRequestCreate",
    "PointsToBagsRequest",
    "PointsToBagsResponse",
    "RedemptionCreate",
    "RollupRead",
    "RollupResponse",
    "ScopeRead",
    "Segment",
    "TransactionRead",
    "WindowRead",
]
