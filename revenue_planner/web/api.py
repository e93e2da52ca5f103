"""
FastAPI wrapper around the revenue planner.

This exposes a minimal HTTP API so a frontend can:
- add and list projects
- preview this week's schedule (read-only)
- save a schedule under a week label (write, behind explicit confirm)
- read stored weeks and the monthly revenue analytics

The planner logic (scheduler + analytics) is the "engine";
this file only wires it to the stores and to HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import requests
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from revenue_planner import analytics, reporting, scheduler
from revenue_planner.config import configure_logging, load_settings
from revenue_planner.store import StoreError, Stores, build_stores
from revenue_planner.week_labels import WeekLabelParseError, current_week_label, parse_week_label

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(load_settings())
    yield


app = FastAPI(title="Revenue Planner API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],          # Dev-only. In production, restrict to your UI domain.
    allow_credentials=False,      # Must be False when allow_origins is "*"
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------
# Helpers (internal plumbing)
# ----------------------------

def get_stores() -> Stores:
    """
    Build the stores for the current environment.

    Routes receive them through Depends(get_stores); tests swap them via
    app.dependency_overrides[get_stores].
    """
    return build_stores(load_settings())


def _guard_store(fn, *args):
    """
    Run a store call, turning storage failures into a clean 503.
    """
    try:
        return fn(*args)
    except (StoreError, requests.RequestException, OSError) as e:
        logger.error("Store call %s failed: %s", getattr(fn, "__name__", fn), e)
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")


def _project_json(p: scheduler.Project) -> Dict[str, Any]:
    return {
        "code": p.code,
        "title": p.title,
        "deadline": p.deadline,
        "revenue": p.revenue,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _assignment_json(a: scheduler.ScheduledAssignment) -> Dict[str, Any]:
    return {"slot": a.slot, "day_name": a.day_name, "project": _project_json(a.project)}


def _summary_json(s: analytics.MonthlySummary) -> Dict[str, Any]:
    return {
        "year": s.year,
        "month": s.month,
        "month_name": s.month_name,
        "total_revenue": s.total_revenue,
        "projects_scheduled": s.projects_scheduled,
        "weeks_recorded": s.weeks_recorded,
        "average_per_week": s.average_per_week,
    }


def _run_schedule(stores: Stores) -> Dict[str, Any]:
    """
    Schedule every stored project and describe the outcome.
    """
    projects = _guard_store(stores.projects.list_all)
    assignments = scheduler.schedule_projects(projects)
    return {
        "projects": projects,
        "assignments": assignments,
        "total_revenue": scheduler.total_revenue(assignments),
        "scheduled_count": len(assignments),
        "project_count": len(projects),
        "unscheduled_count": scheduler.unscheduled_count(projects, assignments),
    }


def _monthly(stores: Stores) -> List[analytics.MonthlySummary]:
    labels = _guard_store(stores.schedules.list_labels)
    return _guard_store(analytics.monthly_summaries, labels, stores.schedules.get_by_label)


# ----------------------------
# Request models (API contracts)
# ----------------------------

class ProjectCreateRequest(BaseModel):
    """
    Data entry for a new project. Validation lives here, not in the scheduler.
    """
    title: str = Field(..., min_length=1, max_length=255, description="Project title")
    deadline: int = Field(..., ge=1, le=scheduler.DEFAULT_SLOT_COUNT, description="Latest day (1=Monday .. 5=Friday)")
    revenue: float = Field(..., gt=0, description="Revenue captured when scheduled")


class SaveScheduleRequest(BaseModel):
    """
    Save this week's schedule.

    - week_label: defaults to the current ISO week ("Week-2024-05")
    - confirm: must be true, otherwise nothing is written
    """
    week_label: Optional[str] = Field(None, description="Week label, e.g. Week-2024-05")
    confirm: bool = False


# ----------------------------
# Endpoints
# ----------------------------

@app.get("/health")
def health():
    """
    Health check endpoint.
    """
    return {"ok": True}


@app.get("/projects")
def list_projects(stores: Stores = Depends(get_stores)):
    """
    Read-only: all projects, most recently added first.
    """
    projects = _guard_store(stores.projects.list_all)
    return [_project_json(p) for p in reversed(projects)]


@app.post("/projects", status_code=201)
def create_project(req: ProjectCreateRequest, stores: Stores = Depends(get_stores)):
    """
    Write: add a project. The store assigns its code (PRJ001, PRJ002, ...).
    """
    title = req.title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="title must not be blank")

    project = scheduler.Project(title=title, deadline=req.deadline, revenue=req.revenue)
    stored = _guard_store(stores.projects.add, project)
    return _project_json(stored)


@app.post("/schedule/preview")
def schedule_preview(stores: Stores = Depends(get_stores)):
    """
    Read-only: run the scheduler over all stored projects.
    """
    run = _run_schedule(stores)
    return {
        "week_label": current_week_label(),
        "assignments": [_assignment_json(a) for a in run["assignments"]],
        "total_revenue": run["total_revenue"],
        "scheduled_count": run["scheduled_count"],
        "project_count": run["project_count"],
        "unscheduled_count": run["unscheduled_count"],
    }


@app.post("/schedule/save")
def schedule_save(req: SaveScheduleRequest, stores: Stores = Depends(get_stores)):
    """
    Write: schedule all stored projects and store the result under a week label.
    Any schedule already stored under that label is replaced.

    Safety:
    - Requires confirm=True (hard guardrail)
    """
    if not req.confirm:
        raise HTTPException(status_code=400, detail="confirm must be true to save a schedule")

    week_label = (req.week_label or "").strip() or current_week_label()
    try:
        parse_week_label(week_label)
    except WeekLabelParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    run = _run_schedule(stores)
    if not run["assignments"]:
        raise HTTPException(status_code=400, detail="No projects could be scheduled. Check deadlines.")

    _guard_store(stores.schedules.save, week_label, run["assignments"])
    return {
        "week_label": week_label,
        "saved_count": run["scheduled_count"],
        "total_revenue": run["total_revenue"],
        "unscheduled_count": run["unscheduled_count"],
    }


@app.get("/schedules")
def list_schedules(stores: Stores = Depends(get_stores)):
    """
    Read-only: labels of stored weeks.
    """
    return _guard_store(stores.schedules.list_labels)


@app.get("/schedules/{week_label}")
def get_schedule(week_label: str, stores: Stores = Depends(get_stores)):
    """
    Read-only: one stored week.
    """
    assignments = _guard_store(stores.schedules.get_by_label, week_label)
    if not assignments:
        raise HTTPException(status_code=404, detail=f"No schedule stored for {week_label}")

    return {
        "week_label": week_label,
        "assignments": [_assignment_json(a) for a in assignments],
        "total_revenue": scheduler.total_revenue(assignments),
    }


@app.get("/analytics/monthly")
def analytics_monthly(stores: Stores = Depends(get_stores)):
    """
    Read-only: revenue per month over all stored weeks.
    """
    summaries = _monthly(stores)
    return {
        "months": [_summary_json(s) for s in summaries],
        "grand_total": {
            "total_revenue": sum(s.total_revenue for s in summaries),
            "projects_scheduled": sum(s.projects_scheduled for s in summaries),
            "weeks_recorded": sum(s.weeks_recorded for s in summaries),
        },
        "months_available": len(summaries),
    }


@app.get("/analytics/prediction")
def analytics_prediction(stores: Stores = Depends(get_stores)):
    """
    Read-only: next month's revenue as the mean of past months.
    """
    forecast = analytics.build_forecast(_monthly(stores))
    if forecast is None:
        return {
            "predicted_revenue": 0.0,
            "confidence": analytics.prediction_confidence(0),
            "months_used": 0,
            "next_month": None,
            "history": [],
            "needs_more_data": True,
        }

    return {
        "predicted_revenue": forecast.predicted_revenue,
        "confidence": forecast.confidence,
        "months_used": forecast.months_used,
        "next_month": forecast.next_month,
        "history": [_summary_json(s) for s in forecast.history],
        "needs_more_data": forecast.needs_more_data,
    }


@app.get("/analytics/report", response_class=PlainTextResponse)
def analytics_report(stores: Stores = Depends(get_stores)):
    """
    Read-only: the monthly table and the prediction as plain text.
    """
    summaries = _monthly(stores)
    text = "\n\n".join(
        [
            reporting.render_monthly_summary(summaries),
            reporting.render_prediction(analytics.build_forecast(summaries)),
        ]
    )
    return PlainTextResponse(text)
