# revenue_planner/week_labels.py
"""
Week labels: the key under which a weekly schedule is stored.

Format: "Week-<year>-<2-digit week>", e.g. "Week-2024-05".

Week numbering is ISO-8601 (date.isocalendar()): the year is the ISO
week-based year, so 2024-12-30 is labelled "Week-2025-01".

Month grouping uses a fixed approximation, month = ceil(week / 4.333),
clamped to 1..12. It is not calendar-accurate (week 13 lands in April), but
stored history is grouped with it, so it must not change.
"""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Optional, Tuple

WEEKS_PER_MONTH = 4.333

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_LABEL_RE = re.compile(r"^Week-(\d+)-(\d+)$")


class WeekLabelParseError(ValueError):
    """
    Raised when a string is not a "Week-<year>-<week>" label.
    """


def current_week_label(day: Optional[date] = None) -> str:
    """
    Return the label for the ISO week containing `day` (today by default).
    """
    if day is None:
        day = date.today()
    iso_year, iso_week, _ = day.isocalendar()
    return f"Week-{iso_year}-{iso_week:02d}"


def parse_week_label(label: str) -> Tuple[int, int]:
    """
    Split a label into (year, week number).
    """
    match = _LABEL_RE.match((label or "").strip())
    if not match:
        raise WeekLabelParseError(f"Not a week label: {label!r}")
    return int(match.group(1)), int(match.group(2))


def week_to_month(week: int) -> int:
    """
    Approximate calendar month (1-12) for a week number.
    """
    month = math.ceil(week / WEEKS_PER_MONTH)
    return max(1, min(12, month))


def week_label_to_year_month(label: str) -> Tuple[int, int]:
    """
    Convert "Week-2024-05" to (2024, 2).

    Raises:
        WeekLabelParseError: malformed label or non-numeric fields.
    """
    year, week = parse_week_label(label)
    return year, week_to_month(week)


def month_name(month: int) -> str:
    return MONTH_NAMES[month - 1]


def next_month_label(year: int, month: int) -> str:
    """
    Return "<Month> <year>" for the month after (year, month).
    December wraps to January of the following year.
    """
    if month == 12:
        return f"{MONTH_NAMES[0]} {year + 1}"
    return f"{month_name(month + 1)} {year}"
