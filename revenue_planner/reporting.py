# revenue_planner/reporting.py
"""
Plain-text reports for the console and the /analytics/report endpoint.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from revenue_planner.analytics import MonthlySummary, RevenueForecast
from revenue_planner.scheduler import ScheduledAssignment, total_revenue

CURRENCY = "INR"


def format_money(amount: float) -> str:
    return f"{amount:,.2f}"


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def render_schedule(assignments: Sequence[ScheduledAssignment], project_count: int) -> str:
    """
    Schedule table plus totals ("n out of m" scheduled, how many missed).
    """
    if not assignments:
        return "Could not schedule any projects. Check deadlines."

    lines: List[str] = [
        f"{'Day':<5} {'Day Name':<12} {'Code':<10} {'Title':<30} {'Revenue (' + CURRENCY + ')':<15}",
        "-" * 76,
    ]
    for a in assignments:
        lines.append(
            f"{a.slot:<5} {a.day_name:<12} {a.project.code or '-':<10} "
            f"{_truncate(a.project.title, 28):<30} {format_money(a.project.revenue):<15}"
        )
    lines.append("-" * 76)
    lines.append(f"{'Total Revenue:':<28} {CURRENCY} {format_money(total_revenue(assignments))}")
    lines.append(f"Projects Scheduled : {len(assignments)} out of {project_count}")

    missed = project_count - len(assignments)
    if missed > 0:
        lines.append(f"Projects NOT scheduled (missed deadline or no slot): {missed}")
    return "\n".join(lines)


def render_monthly_summary(summaries: Sequence[MonthlySummary]) -> str:
    if not summaries:
        return (
            "No saved schedules found.\n"
            "Tip: Generate a schedule and save it, then this report will populate."
        )

    lines: List[str] = [
        f"{'Year':<5} {'Month':<12} {'Weeks':<8} {'Total Revenue':<18} {'Projects':<12} {'Avg/Week':<10}",
        "-" * 70,
    ]
    for s in summaries:
        lines.append(
            f"{s.year:<5} {s.month_name:<12} {s.weeks_recorded:<8} "
            f"{CURRENCY + ' ' + format_money(s.total_revenue):<18} {s.projects_scheduled:<12} "
            f"{CURRENCY} {format_money(s.average_per_week)}"
        )

    grand_total = sum(s.total_revenue for s in summaries)
    grand_projects = sum(s.projects_scheduled for s in summaries)
    grand_weeks = sum(s.weeks_recorded for s in summaries)

    lines.append("-" * 70)
    lines.append(
        f"{'GRAND TOTAL':<18} {grand_weeks:<8} {CURRENCY} {format_money(grand_total):<15} {grand_projects:<12}"
    )
    lines.append("")
    lines.append(f"Months of data available: {len(summaries)}")
    return "\n".join(lines)


def render_prediction(forecast: Optional[RevenueForecast]) -> str:
    if forecast is None:
        return (
            "No historical data available yet.\n"
            "Tip: Save at least 1 weekly schedule to start seeing predictions."
        )

    lines: List[str] = [
        "REVENUE PREDICTION REPORT",
        "",
        "  Method       : Simple Moving Average",
        f"  Data Used    : {forecast.months_used} month(s) of history",
        f"  Confidence   : {forecast.confidence}",
        "",
        "  Past Monthly Revenues Used in Calculation:",
    ]
    for s in forecast.history:
        lines.append(f"    {s.month_name:<12} {s.year}  ->  {CURRENCY} {format_money(s.total_revenue)}")

    lines.append("")
    lines.append(
        f"  Predicted Revenue for {forecast.next_month} : {CURRENCY} {format_money(forecast.predicted_revenue)}"
    )

    if forecast.needs_more_data:
        lines.append("")
        lines.append("  Note: Prediction reliability improves with more data.")
        lines.append("    Save more weekly schedules to get better predictions.")
    return "\n".join(lines)
