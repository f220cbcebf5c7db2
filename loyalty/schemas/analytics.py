"""Serialized views of aggregation engine results."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from loyalty.models.enums import UserRole
from loyalty.services.scopes import ScopeKind
from loyalty.services.windows import WindowKind

Segment = Literal["dealer", "sub_dealer", "all"]


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class WindowRead(_FromAttributes):
    kind: WindowKind
    label: str
    start: datetime | None
    end: datetime


class ScopeRead(_FromAttributes):
    kind: ScopeKind
    dealer_id: str | None = None


class RollupRead(_FromAttributes):
    points: int
    bags: int


class RollupResponse(BaseModel):
    window: WindowRead
    scope: ScopeRead
    segment: Segment
    members: int
    rollup: RollupRead


class BreakdownRead(_FromAttributes):
    window: WindowRead
    dealer: RollupRead
    sub_dealer: RollupRead
    total: RollupRead


class BreakdownResponse(BaseModel):
    breakdowns: list[BreakdownRead]


class DealerRankingRead(_FromAttributes):
    dealer_id: str
    name: str
    role: UserRole
    bags: int
    points: int


class RewardRankingRead(_FromAttributes):
    reward_id: str
    title: str
    redemptions: int


class AnalyticsSnapshotRead(_FromAttributes):
    """Dashboard metrics for one scope and window."""

    period: str
    window: WindowRead
    scope: ScopeRead
    total_users: int
    active_users: int
    new_users: int
    total_transactions: int
    total_points_issued: int
    total_bags_sold: int
    total_rewards_redeemed: int
    engagement_rate: int
    top_dealers: list[DealerRankingRead]
    top_rewards: list[RewardRankingRead]
    role_counts: dict[str, int]


class PendingSummaryRead(_FromAttributes):
    earned_requests: int
    points_awaiting: int
    redemption_requests: int
    awaiting_dispatch: int


class DealerPerformanceRead(_FromAttributes):
    dealer_id: str
    window: WindowRead
    bags: int
    points: int
    transactions: int
    unique_customers: int


class PerformanceResponse(BaseModel):
    dealer_id: str
    rows: list[DealerPerformanceRead]


__all__ = [
    "AnalyticsSnapshotRead",
    "BreakdownRead",
    "BreakdownResponse",
    "DealerPerformanceRead",
    "DealerRankingRead",
    "PendingSummaryRead",
    "PerformanceResponse",
    "RewardRankingRead",
    "RollupRead",
    "RollupResponse",
    "ScopeRead",
    "Segment",
    "WindowRead",
]
