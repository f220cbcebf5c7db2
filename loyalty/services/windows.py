"""Reporting window resolution.

A window is resolved against an explicit ``now`` so that every bound is a pure
function of its inputs.  Named windows end at ``now``; custom windows cover
whole days, inclusive of the end date.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, date, datetime, time

from dateutil.relativedelta import relativedelta

from loyalty.core.errors import InvalidRangeError


class WindowKind(str, enum.Enum):
    CURRENT_MONTH = "current_month"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half_yearly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"
    CUSTOM = "custom"


CANONICAL_WINDOWS: tuple[WindowKind, ...] = (
    WindowKind.CURRENT_MONTH,
    WindowKind.QUARTERLY,
    WindowKind.HALF_YEARLY,
    WindowKind.YEARLY,
    WindowKind.LIFETIME,
)

_TRAILING_MONTHS = {
    WindowKind.QUARTERLY: 3,
    WindowKind.HALF_YEARLY: 6,
}


def _parse_day(value: date | str | None, field_name: str) -> date | None:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise InvalidRangeError(f"Invalid {field_name} date: {value!r}") from exc


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@dataclass(frozen=True, slots=True)
class WindowSpec:
    """A named window, or a custom date range when ``kind`` is ``custom``."""

    kind: WindowKind
    start: date | None = None
    end: date | None = None

    @classmethod
    def named(cls, kind: WindowKind | str) -> "WindowSpec":
        return cls(kind=WindowKind(kind))

    @classmethod
    def custom(cls, start: date | str, end: date | str) -> "WindowSpec":
        return cls(
            kind=WindowKind.CUSTOM,
            start=_parse_day(start, "start"),
            end=_parse_day(end, "end"),
        )


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Resolved bounds; ``start`` is ``None`` for an unbounded (lifetime) window."""

    kind: WindowKind
    label: str
    start: datetime | None
    end: datetime

    def contains(self, moment: datetime | None) -> bool:
        if moment is None:
            return False
        moment = as_utc(moment)
        if self.start is not None and moment < self.start:
            return False
        return moment <= self.end


def resolve_window(spec: WindowSpec | WindowKind | str, now: datetime | None = None) -> TimeWindow:
    """Resolve ``spec`` into concrete bounds relative to ``now``.

    Raises
    ------
    InvalidRangeError
        If a custom window is missing a bound or ends before it starts.
    """

    if not isinstance(spec, WindowSpec):
        spec = WindowSpec.named(spec)
    current = as_utc(now or datetime.now(UTC))

    if spec.kind is WindowKind.CURRENT_MONTH:
        start = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return TimeWindow(spec.kind, current.strftime("%B %Y"), start, current)

    if spec.kind in _TRAILING_MONTHS:
        months = _TRAILING_MONTHS[spec.kind]
        return TimeWindow(spec.kind, f"Last {months} Months", current - relativedelta(months=months), current)

    if spec.kind is WindowKind.YEARLY:
        start = current.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        return TimeWindow(spec.kind, str(current.year), start, current)

    if spec.kind is WindowKind.LIFETIME:
        return TimeWindow(spec.kind, "All Time", None, current)

    if spec.start is None or spec.end is None:
        raise InvalidRangeError("Custom windows require both a start and an end date")
    if spec.start > spec.end:
        raise InvalidRangeError(
            f"Custom window ends ({spec.end.isoformat()}) before it starts ({spec.start.isoformat()})"
        )
    tz = current.tzinfo
    return TimeWindow(
        spec.kind,
        f"Custom Period ({spec.start.isoformat()} to {spec.end.isoformat()})",
        datetime.combine(spec.start, time.min, tzinfo=tz),
        datetime.combine(spec.end, time.max, tzinfo=tz),
    )


__all__ = [
    "CANONICAL_WINDOWS",
    "TimeWindow",
    "WindowKind",
    "WindowSpec",
    "as_utc",
    "resolve_window",
]
