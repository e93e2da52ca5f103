# revenue_planner/store.py
"""
Project and schedule storage.

Goal:
- Production: no reliable disk -> keep data in Upstash (Redis REST)
- Local dev: keep data as JSON files under PLANNER_DATA_DIR

Both backends offer the same two stores:
- project store: add(project) -> stored project with code, list_all()
- schedule store: save(label, assignments), list_labels(), get_by_label(label)

Saving a schedule REPLACES whatever was stored under that label, all-or-nothing:
- disk: under a per-file lock, the whole document is written to a fresh
  temp file, then os.replace()d
- Upstash: SET + SADD run inside one MULTI/EXEC transaction
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests

from revenue_planner.codes import format_project_code, next_project_code
from revenue_planner.config import Settings
from revenue_planner.scheduler import Project, ScheduledAssignment, day_name

logger = logging.getLogger(__name__)

PROJECTS_FILENAME = "projects.json"
SCHEDULES_FILENAME = "schedules.json"


class StoreError(RuntimeError):
    """
    Stored data could not be read or a storage command was rejected.
    """


# ----------------------------
# Serialization
# ----------------------------

def _now() -> datetime:
    return datetime.now(timezone.utc)


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "code": project.code,
        "title": project.title,
        "deadline": project.deadline,
        "revenue": project.revenue,
        "created_at": project.created_at.isoformat() if project.created_at else None,
    }


def project_from_dict(data: Dict[str, Any]) -> Project:
    created_at = data.get("created_at")
    return Project(
        code=data.get("code"),
        title=data["title"],
        deadline=int(data["deadline"]),
        revenue=float(data["revenue"]),
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )


def assignment_to_dict(assignment: ScheduledAssignment) -> Dict[str, Any]:
    """
    A stored row keeps a snapshot of the project next to its slot,
    so a stored week reads back without looking projects up again.
    """
    row = project_to_dict(assignment.project)
    row["slot"] = assignment.slot
    row["day_name"] = assignment.day_name
    return row


def assignment_from_dict(row: Dict[str, Any]) -> ScheduledAssignment:
    slot = int(row["slot"])
    return ScheduledAssignment(
        project=project_from_dict(row),
        slot=slot,
        day_name=row.get("day_name") or day_name(slot),
    )


def _rows_for(label: str, assignments: Sequence[ScheduledAssignment]) -> List[Dict[str, Any]]:
    """
    Validate one week's assignments and convert them to rows (ascending slot).
    """
    slots = [a.slot for a in assignments]
    if len(set(slots)) != len(slots):
        raise ValueError(f"Schedule {label!r} assigns more than one project to the same slot")
    return [assignment_to_dict(a) for a in sorted(assignments, key=lambda a: a.slot)]


def _assignments_from_rows(label: str, rows: Any) -> List[ScheduledAssignment]:
    try:
        out = [assignment_from_dict(r) for r in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise StoreError(f"Stored schedule {label!r} is unreadable: {e}") from e
    out.sort(key=lambda a: a.slot)
    return out


def _projects_from_rows(rows: Any) -> List[Project]:
    try:
        return [project_from_dict(r) for r in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise StoreError(f"Stored project is unreadable: {e}") from e


# ----------------------------
# Local disk backend
# ----------------------------

# One lock per data file: the API serves requests from a thread pool
_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(Path(path).resolve())
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def _read_json(path: Path, default: Dict[str, Any]) -> Dict[str, Any]:
    if not path.exists():
        return default
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise StoreError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise StoreError(f"{path} does not contain a JSON object")
    return data


def _write_json_atomic(path: Path, data: Dict[str, Any]) -> None:
    """
    Write to a fresh sibling temp file, then swap it in.
    A crash mid-write leaves the previous file untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=path.name + ".", suffix=".tmp", delete=False
    ) as tmp:
        tmp.write(json.dumps(data, indent=2))
    try:
        os.replace(tmp.name, path)
    finally:
        if os.path.exists(tmp.name):
            os.unlink(tmp.name)


class LocalProjectStore:
    """
    Projects kept in <data_dir>/projects.json, in the order they were added.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _rows(self) -> List[Dict[str, Any]]:
        return list(_read_json(self.path, {"projects": []}).get("projects", []))

    def add(self, project: Project) -> Project:
        # Read, increment and write under the file's lock
        with _lock_for(self.path):
            rows = self._rows()

            last_code = rows[-1].get("code") if rows else None
            try:
                code = next_project_code(last_code)
            except (AttributeError, ValueError) as e:
                raise StoreError(f"Last stored project code is unreadable: {last_code!r}") from e
            stored = replace(project, code=code, created_at=_now())

            rows.append(project_to_dict(stored))
            _write_json_atomic(self.path, {"projects": rows})

        logger.info("Stored project %s (%s)", stored.code, stored.title)
        return stored

    def list_all(self) -> List[Project]:
        return _projects_from_rows(self._rows())


class LocalScheduleStore:
    """
    Weekly schedules kept in <data_dir>/schedules.json, keyed by week label.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _schedules(self) -> Dict[str, Any]:
        schedules = _read_json(self.path, {"schedules": {}}).get("schedules", {})
        if not isinstance(schedules, dict):
            raise StoreError(f"{self.path} has no 'schedules' object")
        return schedules

    def save(self, label: str, assignments: Sequence[ScheduledAssignment]) -> None:
        """
        Replace the schedule stored under `label`.
        An empty assignment list removes the label.
        """
        rows = _rows_for(label, assignments)

        with _lock_for(self.path):
            schedules = self._schedules()

            if rows:
                schedules[label] = rows
            else:
                schedules.pop(label, None)

            _write_json_atomic(self.path, {"schedules": schedules})

        logger.info("Saved schedule %s (%d projects)", label, len(rows))

    def list_labels(self) -> List[str]:
        return sorted(self._schedules())

    def get_by_label(self, label: str) -> List[ScheduledAssignment]:
        rows = self._schedules().get(label)
        if not rows:
            return []
        return _assignments_from_rows(label, rows)


# ----------------------------
# Upstash (Redis REST) backend
# ----------------------------

class UpstashClient:
    """
    Minimal Upstash REST client.

    - command(): POST ["CMD", "arg", ...] to the base URL -> {"result": ...}
    - transaction(): POST [[...], [...]] to /multi-exec (MULTI/EXEC)
    """

    def __init__(self, url: str, token: str, session: Any = None, timeout: int = 10):
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        # requests.Session or the requests module itself; both expose post()
        self._http = session if session is not None else requests

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def command(self, *args: Any) -> Any:
        resp = self._http.post(
            self.url,
            headers=self._headers(),
            json=[str(a) for a in args],
            timeout=self.timeout,
        )
        resp.raise_for_status()

        data = resp.json()
        if isinstance(data, dict) and data.get("error"):
            raise StoreError(f"Upstash rejected {args[0]}: {data['error']}")
        return data.get("result")

    def transaction(self, commands: Sequence[Sequence[Any]]) -> List[Any]:
        resp = self._http.post(
            f"{self.url}/multi-exec",
            headers=self._headers(),
            json=[[str(a) for a in cmd] for cmd in commands],
            timeout=self.timeout,
        )
        resp.raise_for_status()

        data = resp.json()
        if isinstance(data, dict) and data.get("error"):
            raise StoreError(f"Upstash transaction failed: {data['error']}")

        errors = [r["error"] for r in data if isinstance(r, dict) and r.get("error")]
        if errors:
            raise StoreError(f"Upstash transaction failed: {'; '.join(errors)}")
        return [r.get("result") if isinstance(r, dict) else r for r in data]


def _loads(raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise StoreError(f"Stored {what} is not valid JSON: {e}") from e


class UpstashProjectStore:
    """
    Projects as JSON strings under <prefix>:project:<code>.
    <prefix>:project_codes lists codes in insertion order.
    Codes come from INCR <prefix>:project_seq, so concurrent writers never collide.
    """

    def __init__(self, client: UpstashClient, prefix: str):
        self.client = client
        self.prefix = prefix

    def _key(self, code: str) -> str:
        return f"{self.prefix}:project:{code}"

    def add(self, project: Project) -> Project:
        number = int(self.client.command("INCR", f"{self.prefix}:project_seq"))
        stored = replace(project, code=format_project_code(number), created_at=_now())

        self.client.transaction(
            [
                ["SET", self._key(stored.code), json.dumps(project_to_dict(stored))],
                ["RPUSH", f"{self.prefix}:project_codes", stored.code],
            ]
        )
        logger.info("Stored project %s (%s) in Upstash", stored.code, stored.title)
        return stored

    def list_all(self) -> List[Project]:
        codes = self.client.command("LRANGE", f"{self.prefix}:project_codes", 0, -1) or []
        if not codes:
            return []

        values = self.client.command("MGET", *[self._key(c) for c in codes]) or []
        rows = [_loads(v, "project") for v in values if v is not None]
        return _projects_from_rows(rows)


class UpstashScheduleStore:
    """
    Each week as one JSON string under <prefix>:schedule:<label>.
    <prefix>:schedule_labels is the set of stored labels.
    """

    def __init__(self, client: UpstashClient, prefix: str):
        self.client = client
        self.prefix = prefix

    def _key(self, label: str) -> str:
        return f"{self.prefix}:schedule:{label}"

    @property
    def _labels_key(self) -> str:
        return f"{self.prefix}:schedule_labels"

    def save(self, label: str, assignments: Sequence[ScheduledAssignment]) -> None:
        rows = _rows_for(label, assignments)

        if rows:
            commands = [
                ["SET", self._key(label), json.dumps(rows)],
                ["SADD", self._labels_key, label],
            ]
        else:
            commands = [
                ["DEL", self._key(label)],
                ["SREM", self._labels_key, label],
            ]

        self.client.transaction(commands)
        logger.info("Saved schedule %s (%d projects) in Upstash", label, len(rows))

    def list_labels(self) -> List[str]:
        return sorted(self.client.command("SMEMBERS", self._labels_key) or [])

    def get_by_label(self, label: str) -> List[ScheduledAssignment]:
        raw = self.client.command("GET", self._key(label))
        if raw is None:
            return []
        return _assignments_from_rows(label, _loads(raw, f"schedule {label!r}"))


# ----------------------------
# Wiring
# ----------------------------

class ProjectStore(Protocol):
    def add(self, project: Project) -> Project: ...

    def list_all(self) -> List[Project]: ...


class ScheduleStore(Protocol):
    def save(self, label: str, assignments: Sequence[ScheduledAssignment]) -> None: ...

    def list_labels(self) -> List[str]: ...

    def get_by_label(self, label: str) -> List[ScheduledAssignment]: ...


@dataclass(frozen=True)
class Stores:
    projects: ProjectStore
    schedules: ScheduleStore


def build_stores(settings: Settings, session: Optional[Any] = None) -> Stores:
    """
    Construct the stores for the configured backend.

    - Upstash configured (UPSTASH_ENABLED=1 + URL + token): Redis REST
    - Otherwise: JSON files under settings.data_dir
    """
    if settings.upstash_configured:
        client = UpstashClient(settings.upstash_url, settings.upstash_token, session=session)
        return Stores(
            projects=UpstashProjectStore(client, settings.key_prefix),
            schedules=UpstashScheduleStore(client, settings.key_prefix),
        )

    return Stores(
        projects=LocalProjectStore(settings.data_dir / PROJECTS_FILENAME),
        schedules=LocalScheduleStore(settings.data_dir / SCHEDULES_FILENAME),
    )
