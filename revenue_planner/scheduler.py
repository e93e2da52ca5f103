# revenue_planner/scheduler.py
"""
Scheduling logic: assign revenue-bearing projects to the days of a work week.

This module is deterministic and testable:
- Project / ScheduledAssignment: immutable value objects shared with the stores
- schedule_projects: greedy job sequencing with deadlines (highest revenue first)
- total_revenue / unscheduled_count: small helpers used by the API and reports

Algorithm (classic single-machine job sequencing for profit):
- Sort projects by revenue, highest first. Equal revenue keeps input order.
- Each project takes the LATEST free day that is still within its deadline,
  so earlier days stay open for projects with tighter deadlines.
- A project with no free day left inside its deadline is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

DEFAULT_SLOT_COUNT = 5

# Slot number (1-5) -> display name
DAY_NAMES: Dict[int, str] = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
}


@dataclass(frozen=True)
class Project:
    """
    A project competing for a day in the week.

    - code: opaque identity assigned by the project store (None until stored)
    - deadline: latest day (1-5) the project may be scheduled on
    - revenue: positive amount captured when the project is scheduled
    """
    title: str
    deadline: int
    revenue: float
    code: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScheduledAssignment:
    """
    One project placed on one day of the week.
    """
    project: Project
    slot: int
    day_name: str


def day_name(slot: int) -> str:
    """
    Return the display name of a slot ("Monday" for 1, ...).
    """
    return DAY_NAMES.get(slot, f"Day {slot}")


def schedule_projects(
    projects: Sequence[Project],
    slot_count: int = DEFAULT_SLOT_COUNT,
) -> List[ScheduledAssignment]:
    """
    Assign projects to slots to maximize captured revenue.

    Example:
      Projects: A(d=2, rev=100), B(d=1, rev=80), C(d=2, rev=60)
      - A: slot 2 free -> Tuesday
      - B: slot 1 free -> Monday
      - C: slot 2 taken, slot 1 taken -> dropped
      Result: Monday=B, Tuesday=A, total 180

    Returns:
        Assignments for the filled slots in ascending slot order.
        Dropped projects are simply absent.
    """
    # sorted() is stable, so equal revenues keep their input order
    by_revenue = sorted(projects, key=lambda p: p.revenue, reverse=True)

    filled: Dict[int, ScheduledAssignment] = {}

    for project in by_revenue:
        if len(filled) >= slot_count:
            break

        max_slot = min(slot_count, project.deadline)

        # Latest feasible day first
        for slot in range(max_slot, 0, -1):
            if slot not in filled:
                filled[slot] = ScheduledAssignment(project=project, slot=slot, day_name=day_name(slot))
                break

    return [filled[slot] for slot in sorted(filled)]


def total_revenue(assignments: Sequence[ScheduledAssignment]) -> float:
    """
    Sum of revenue over the scheduled projects.
    """
    return sum(a.project.revenue for a in assignments)


def unscheduled_count(projects: Sequence[Project], assignments: Sequence[ScheduledAssignment]) -> int:
    """
    How many candidate projects missed the week (deadline or capacity).
    """
    return len(projects) - len(assignments)
