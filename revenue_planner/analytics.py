# revenue_planner/analytics.py
"""
Revenue analytics over stored weekly schedules.

- monthly_summaries: group stored weeks into calendar months (approximate, see week_labels)
- predict_next_month_revenue: plain mean of the monthly totals
- prediction_confidence: label based on how many months of history exist
- build_forecast: the three above, packaged for the API and the text report
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from revenue_planner.scheduler import ScheduledAssignment
from revenue_planner.week_labels import (
    WeekLabelParseError,
    month_name,
    next_month_label,
    week_label_to_year_month,
)

logger = logging.getLogger(__name__)

# Below this many months, reports add a "needs more data" note
RELIABLE_MONTH_COUNT = 3


@dataclass(frozen=True)
class MonthlySummary:
    """
    Revenue captured in one calendar month, derived from stored weeks.
    """
    year: int
    month: int
    month_name: str
    total_revenue: float
    projects_scheduled: int
    weeks_recorded: int

    @property
    def average_per_week(self) -> float:
        if self.weeks_recorded <= 0:
            return 0.0
        return self.total_revenue / self.weeks_recorded


@dataclass(frozen=True)
class RevenueForecast:
    """
    Next-month prediction and the history it was computed from.
    """
    predicted_revenue: float
    confidence: str
    months_used: int
    next_month: str
    history: Tuple[MonthlySummary, ...]

    @property
    def needs_more_data(self) -> bool:
        return self.months_used < RELIABLE_MONTH_COUNT


def monthly_summaries(
    week_labels: Iterable[str],
    fetch_schedule: Callable[[str], Sequence[ScheduledAssignment]],
) -> List[MonthlySummary]:
    """
    Aggregate stored weekly schedules by (year, month).

    Args:
        week_labels: labels of stored weeks, in the order they should be reported
        fetch_schedule: returns the assignments stored under a label

    Returns:
        One summary per month, in the order each month was first seen.
        Labels that cannot be decoded are skipped.
    """
    # dicts keep insertion order: first-seen month comes first
    buckets: Dict[Tuple[int, int], List[float]] = {}

    for label in week_labels:
        try:
            key = week_label_to_year_month(label)
        except WeekLabelParseError:
            logger.debug("Skipping malformed week label %r", label)
            continue

        assignments = fetch_schedule(label)
        week_revenue = sum(a.project.revenue for a in assignments)

        bucket = buckets.setdefault(key, [0.0, 0, 0])
        bucket[0] += week_revenue
        bucket[1] += len(assignments)
        bucket[2] += 1

    return [
        MonthlySummary(
            year=year,
            month=month,
            month_name=month_name(month),
            total_revenue=revenue,
            projects_scheduled=int(projects),
            weeks_recorded=int(weeks),
        )
        for (year, month), (revenue, projects, weeks) in buckets.items()
    ]


def predict_next_month_revenue(summaries: Sequence[MonthlySummary]) -> float:
    """
    Simple moving average: sum of monthly totals / number of months.
    """
    if not summaries:
        return 0.0
    return sum(s.total_revenue for s in summaries) / len(summaries)


def prediction_confidence(month_count: int) -> str:
    if month_count >= 6:
        return "High"
    if month_count >= 3:
        return "Medium"
    if month_count >= 2:
        return "Low"
    return "Very Low"


def build_forecast(summaries: Sequence[MonthlySummary]) -> Optional[RevenueForecast]:
    """
    Package the prediction for display. Returns None when there is no history.

    "Next month" follows the LAST summary in the given order, which is the
    latest month as long as labels were supplied chronologically.
    """
    if not summaries:
        return None

    latest = summaries[-1]
    return RevenueForecast(
        predicted_revenue=predict_next_month_revenue(summaries),
        confidence=prediction_confidence(len(summaries)),
        months_used=len(summaries),
        next_month=next_month_label(latest.year, latest.month),
        history=tuple(summaries),
    )
