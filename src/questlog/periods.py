from __future__ import annotations

import re
from datetime import date, timedelta

from questlog.errors import InvariantViolation, ValidationError

CADENCES = ("daily", "weekly", "monthly")

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_WEEK_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def _require_cadence(cadence: str) -> None:
    if cadence not in CADENCES:
        raise InvariantViolation(f"Unknown cadence: {cadence!r}")


def parse_day(value: str) -> date:
    if not _DAY_RE.match(value):
        raise ValidationError("Date must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value}") from exc


def _parse_week(key: str) -> date:
    """Monday of the ISO week named by ``YYYY-Www``."""
    match = _WEEK_RE.match(key)
    if not match:
        raise ValidationError(f"Invalid weekly period key: {key!r}")
    try:
        return date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
    except ValueError as exc:
        raise ValidationError(f"Invalid weekly period key: {key!r}") from exc


def _parse_month(key: str) -> tuple[int, int]:
    match = _MONTH_RE.match(key)
    if not match:
        raise ValidationError(f"Invalid monthly period key: {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid monthly period key: {key!r}")
    return year, month


def _week_key(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def period_key(cadence: str, day: date) -> str:
    _require_cadence(cadence)
    if cadence == "daily":
        return day.isoformat()
    if cadence == "weekly":
        return _week_key(day)
    return f"{day.year:04d}-{day.month:02d}"


def previous_period_key(cadence: str, key: str) -> str:
    _require_cadence(cadence)
    if cadence == "daily":
        return (parse_day(key) - timedelta(days=1)).isoformat()
    if cadence == "weekly":
        return _week_key(_parse_week(key) - timedelta(days=7))
    year, month = _parse_month(key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def _ordinal(cadence: str, key: str) -> int:
    # Monotonic index of a period; consecutive periods differ by exactly one.
    if cadence == "daily":
        return parse_day(key).toordinal()
    if cadence == "weekly":
        return _parse_week(key).toordinal() // 7
    year, month = _parse_month(key)
    return year * 12 + (month - 1)


def period_distance(cadence: str, from_key: str | None, to_key: str) -> int | None:
    """Number of ``previous_period_key`` steps from ``to_key`` back to ``from_key``.

    None when ``from_key`` is unknown or lies after ``to_key``.
    """
    _require_cadence(cadence)
    if from_key is None:
        return None
    distance = _ordinal(cadence, to_key) - _ordinal(cadence, from_key)
    if distance < 0:
        return None
    return distance


def period_bounds(cadence: str, key: str) -> tuple[date, date]:
    """First and last calendar day (inclusive) covered by a period key."""
    _require_cadence(cadence)
    if cadence == "daily":
        day = parse_day(key)
        return day, day
    if cadence == "weekly":
        monday = _parse_week(key)
        return monday, monday + timedelta(days=6)
    year, month = _parse_month(key)
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)


def weekday_bit(day: date) -> int:
    return day.weekday()


def weekday_in_mask(mask: int | None, day: date) -> bool:
    # An empty mask is treated as unconstrained, same as no recurrence at all.
    if not mask:
        return True
    return bool(mask & (1 << weekday_bit(day)))
