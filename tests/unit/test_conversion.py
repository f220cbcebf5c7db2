from __future__ import annotations

import pytest

from loyalty.core.errors import InvalidDescriptionError
from loyalty.services.conversion import (
    POINTS_PER_BAG,
    CementType,
    bags_from_points,
    bags_from_transaction,
    cement_type_from_description,
    convert_bags_to_points,
    convert_points_to_bags,
    describe_purchase,
    points_from_bags,
    points_per_bag,
)


def test_points_per_bag_policy_table() -> None:
    assert points_per_bag(CementType.OPC) == 5
    assert points_per_bag("PPC") == 10
    assert points_per_bag(CementType.UNKNOWN) == POINTS_PER_BAG[CementType.PPC]


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("50 OPC bags", CementType.OPC),
        ("50 PPC bags", CementType.PPC),
        ("mixed PPC and OPC order", CementType.OPC),
        ("legacy purchase", CementType.UNKNOWN),
        ("", CementType.UNKNOWN),
        (None, CementType.UNKNOWN),
    ],
)
def test_cement_type_from_description(description: str | None, expected: CementType) -> None:
    assert cement_type_from_description(description) is expected


def test_bags_from_transaction_examples() -> None:
    assert bags_from_transaction("50 OPC bags", 100) == 20
    assert bags_from_transaction("50 PPC bags", 100) == 10
    assert bags_from_transaction("legacy purchase", 100) == 10


def test_bags_from_points_floors_at_non_multiples() -> None:
    assert bags_from_points(9, "PPC") == 0
    assert bags_from_points(19, "PPC") == 1
    assert bags_from_points(24, CementType.OPC) == 4


@pytest.mark.parametrize("points", [0, 1, 4, 5, 9, 10, 11, 99, 1234])
@pytest.mark.parametrize("cement_type", [CementType.OPC, CementType.PPC, CementType.UNKNOWN])
def test_floor_round_trip_is_idempotent(points: int, cement_type: CementType) -> None:
    bags = bags_from_points(points, cement_type)
    assert bags_from_points(points_from_bags(bags, cement_type), cement_type) == bags


@pytest.mark.parametrize("amount", [None, "abc", -50, "-10", float("nan"), float("inf"), True, [], {}])
def test_malformed_points_normalise_to_zero(amount: object) -> None:
    assert bags_from_transaction("20 OPC bags", amount) == 0


def test_numeric_strings_are_accepted() -> None:
    assert convert_points_to_bags("10 OPC bags", "50") == 10
    assert convert_points_to_bags("10 PPC bags", "55.9") == 5


@pytest.mark.parametrize("bags", [None, "", "two", -3, "-3", 2.5, "2.5", False, float("nan")])
def test_points_from_bags_rejects_non_positive_integers(bags: object) -> None:
    assert points_from_bags(bags, CementType.OPC) == 0


def test_points_from_bags_accepts_integral_values() -> None:
    assert points_from_bags(4, CementType.OPC) == 20
    assert points_from_bags("7", "PPC") == 70
    assert points_from_bags(3.0, CementType.PPC) == 30
    assert convert_bags_to_points(12, "OPC") == 60


def test_describe_purchase_tags_cement_type() -> None:
    description = describe_purchase(12, "opc")
    assert description == "12 OPC bags"
    assert cement_type_from_description(description) is CementType.OPC

    with pytest.raises(InvalidDescriptionError):
        describe_purchase(12, "slag")
