"""Smoke test: schedule this week's projects and print the revenue reports.

Reads:
- PLANNER_DATA_DIR / UPSTASH_* (see revenue_planner.config) to find the stores.

Behavior:
- Schedules every stored project into Monday..Friday.
- If the project store is empty, a built-in sample week is shown (never saved).
- Prints the monthly revenue summary and next-month prediction from stored weeks.

SAFETY DESIGN
-------------
- By default, this script DOES NOT write anything.
- To save the schedule under the current week label, set:
      CONFIRM_SAVE="true"

Run:
    python -u -m revenue_planner.smoke_schedule
"""

from __future__ import annotations

import os
from typing import List

from revenue_planner import analytics, reporting, scheduler
from revenue_planner.config import configure_logging, load_settings
from revenue_planner.store import build_stores
from revenue_planner.week_labels import current_week_label

# Worked example from the scheduler docstring, plus two that miss the week
SAMPLE_PROJECTS: List[scheduler.Project] = [
    scheduler.Project(title="Website redesign", deadline=2, revenue=100.0),
    scheduler.Project(title="Payroll audit", deadline=1, revenue=80.0),
    scheduler.Project(title="Logo refresh", deadline=2, revenue=60.0),
    scheduler.Project(title="Data migration", deadline=5, revenue=150.0),
    scheduler.Project(title="Training session", deadline=1, revenue=20.0),
]


def main() -> None:
    settings = load_settings()
    configure_logging(settings)
    stores = build_stores(settings)

    # ---- Candidate projects ----
    projects = stores.projects.list_all()
    using_sample = not projects
    if using_sample:
        print("No stored projects, using the sample week.")
        projects = list(SAMPLE_PROJECTS)

    # ---- Schedule ----
    week_label = current_week_label()
    assignments = scheduler.schedule_projects(projects)

    print(f"\n=== Optimal Weekly Schedule ({week_label}) ===")
    print(reporting.render_schedule(assignments, project_count=len(projects)))

    # ---- Optional write (stored projects only) ----
    if os.getenv("CONFIRM_SAVE", "").strip().lower() != "true":
        print("\nDry run: set CONFIRM_SAVE=true to save this schedule.")
    elif using_sample:
        print("\nThe sample week is never saved. Add projects to save a schedule.")
    elif assignments:
        stores.schedules.save(week_label, assignments)
        print(f"\nSchedule saved as: {week_label}")

    # ---- Reports over stored weeks ----
    summaries = analytics.monthly_summaries(stores.schedules.list_labels(), stores.schedules.get_by_label)

    print("\n=== Monthly Revenue Summary ===")
    print(reporting.render_monthly_summary(summaries))

    print("\n=== Predicted Revenue for Next Month ===")
    print(reporting.render_prediction(analytics.build_forecast(summaries)))


if __name__ == "__main__":
    main()
