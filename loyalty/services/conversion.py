"""Points/bags conversion keyed off the cement type tagged in a description.

Every function here is total: malformed, non-numeric or negative inputs
normalise to ``0`` rather than raising.  Bag counts are always floored so a
partial bag's worth of points never counts as a whole bag.
"""
from __future__ import annotations

import enum
import math
from collections.abc import Mapping
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any

from loyalty.core.errors import InvalidDescriptionError


class CementType(str, enum.Enum):
    OPC = "OPC"
    PPC = "PPC"
    UNKNOWN = "Unknown"


POINTS_PER_BAG: Mapping[CementType, int] = MappingProxyType(
    {
        CementType.OPC: 5,
        CementType.PPC: 10,
    }
)

# Untagged (legacy) descriptions are valued at the PPC rate.
LEGACY_CEMENT_TYPE = CementType.PPC


def _coerce_cement_type(cement_type: CementType | str | None) -> CementType:
    if isinstance(cement_type, CementType):
        return cement_type
    if isinstance(cement_type, str):
        candidate = cement_type.strip().upper()
        if candidate in (CementType.OPC.value, CementType.PPC.value):
            return CementType(candidate)
    return CementType.UNKNOWN


def _normalise_points(points: Any) -> int:
    """Return a non-negative whole number of points, or 0 for junk input."""
    if isinstance(points, bool) or points is None:
        return 0
    try:
        value = Decimal(str(points).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not value.is_finite() or value <= 0:
        return 0
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _parse_bag_count(bags: Any) -> int:
    """Return ``bags`` as a positive integer, or 0 when it is not one."""
    if isinstance(bags, bool) or bags is None:
        return 0
    if isinstance(bags, int):
        return bags if bags > 0 else 0
    if isinstance(bags, float):
        if not math.isfinite(bags) or not bags.is_integer():
            return 0
        return int(bags) if bags > 0 else 0
    try:
        value = Decimal(str(bags).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not value.is_finite() or value != value.to_integral_value() or value <= 0:
        return 0
    return int(value)


def points_per_bag(cement_type: CementType | str | None) -> int:
    """Return the points awarded per bag of ``cement_type``."""
    resolved = _coerce_cement_type(cement_type)
    if resolved is CementType.UNKNOWN:
        resolved = LEGACY_CEMENT_TYPE
    return POINTS_PER_BAG[resolved]


def cement_type_from_description(description: str | None) -> CementType:
    """Detect the cement type tag inside a free-text description.

    ``OPC`` wins when both tags appear.
    """
    if not isinstance(description, str) or not description:
        return CementType.UNKNOWN
    if CementType.OPC.value in description:
        return CementType.OPC
    if CementType.PPC.value in description:
        return CementType.PPC
    return CementType.UNKNOWN


def bags_from_points(points: Any, cement_type: CementType | str | None) -> int:
    return _normalise_points(points) // points_per_bag(cement_type)


def bags_from_transaction(description: str | None, points: Any) -> int:
    """Return the bag equivalent of a transaction's ``(description, amount)``."""
    cement_type = cement_type_from_description(description)
    if cement_type is CementType.UNKNOWN:
        cement_type = LEGACY_CEMENT_TYPE
    return bags_from_points(points, cement_type)


def points_from_bags(bags: Any, cement_type: CementType | str | None) -> int:
    return _parse_bag_count(bags) * points_per_bag(cement_type)


def convert_points_to_bags(description: str | None, amount: Any) -> int:
    return bags_from_transaction(description, amount)


def convert_bags_to_points(bags: Any, cement_type: CementType | str) -> int:
    return points_from_bags(bags, cement_type)


def describe_purchase(bags: int, cement_type: CementType | str) -> str:
    """Build the tagged description stored on new earned transactions."""
    resolved = _coerce_cement_type(cement_type)
    if resolved is CementType.UNKNOWN:
        raise InvalidDescriptionError(f"Unsupported cement type: {cement_type!r}")
    return f"{_parse_bag_count(bags)} {resolved.value} bags"


__all__ = [
    "CementType",
    "LEGACY_CEMENT_TYPE",
    "POINTS_PER_BAG",
    "bags_from_points",
    "bags_from_transaction",
    "cement_type_from_description",
    "convert_bags_to_points",
    "convert_points_to_bags",
    "describe_purchase",
    "points_from_bags",
    "points_per_bag",
]
