from __future__ import annotations

from datetime import UTC, date, datetime, time

import pytest

from loyalty.core.errors import InvalidRangeError
from loyalty.services.windows import (
    CANONICAL_WINDOWS,
    WindowKind,
    WindowSpec,
    resolve_window,
)

NOW = datetime(2024, 5, 31, 18, 30, tzinfo=UTC)


def test_current_month_starts_on_the_first() -> None:
    window = resolve_window(WindowKind.CURRENT_MONTH, NOW)
    assert window.start == datetime(2024, 5, 1, tzinfo=UTC)
    assert window.end == NOW
    assert window.label == "May 2024"


def test_trailing_windows_use_calendar_months() -> None:
    quarterly = resolve_window("quarterly", NOW)
    half_yearly = resolve_window(WindowSpec.named("half_yearly"), NOW)

    # Feb 31 does not exist, so the bound clamps to the end of February.
    assert quarterly.start == datetime(2024, 2, 29, 18, 30, tzinfo=UTC)
    assert half_yearly.start == datetime(2023, 11, 30, 18, 30, tzinfo=UTC)
    assert quarterly.label == "Last 3 Months"
    assert half_yearly.end == NOW


def test_yearly_and_lifetime() -> None:
    yearly = resolve_window(WindowKind.YEARLY, NOW)
    lifetime = resolve_window(WindowKind.LIFETIME, NOW)

    assert yearly.start == datetime(2024, 1, 1, tzinfo=UTC)
    assert yearly.label == "2024"
    assert lifetime.start is None
    assert lifetime.label == "All Time"
    assert lifetime.contains(datetime(1999, 1, 1, tzinfo=UTC))


def test_custom_window_covers_whole_days() -> None:
    window = resolve_window(WindowSpec.custom("2024-03-05", "2024-03-05"), NOW)

    assert window.start == datetime.combine(date(2024, 3, 5), time.min, tzinfo=UTC)
    assert window.end == datetime.combine(date(2024, 3, 5), time.max, tzinfo=UTC)
    assert window.contains(datetime(2024, 3, 5, 23, 59, 59, tzinfo=UTC))
    assert not window.contains(datetime(2024, 3, 6, tzinfo=UTC))
    assert window.label == "Custom Period (2024-03-05 to 2024-03-05)"


def test_inverted_custom_window_is_rejected() -> None:
    with pytest.raises(InvalidRangeError):
        resolve_window(WindowSpec.custom("2024-03-10", "2024-03-05"), NOW)


def test_custom_window_requires_both_bounds() -> None:
    with pytest.raises(InvalidRangeError):
        resolve_window(WindowSpec(kind=WindowKind.CUSTOM, start=date(2024, 3, 1)), NOW)


def test_unparseable_custom_date_is_rejected() -> None:
    with pytest.raises(InvalidRangeError):
        WindowSpec.custom("not-a-date", "2024-03-05")


def test_resolution_is_a_pure_function_of_now() -> None:
    for kind in CANONICAL_WINDOWS:
        assert resolve_window(kind, NOW) == resolve_window(kind, NOW)


def test_naive_now_is_treated_as_utc() -> None:
    window = resolve_window(WindowKind.CURRENT_MONTH, datetime(2024, 5, 31, 18, 30))
    assert window.start == datetime(2024, 5, 1, tzinfo=UTC)
