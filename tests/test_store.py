"""
Store tests for both backends.

What these tests prove:
- Projects get sequential codes (PRJ001, PRJ002, ...) and a timestamp.
- Saving a schedule REPLACES the label's previous week (no leftovers).
- A failed save leaves the previous week intact.
- Upstash is only used when explicitly enabled.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

import pytest
import requests

from revenue_planner.config import Settings, load_settings
from revenue_planner.scheduler import Project, ScheduledAssignment, schedule_projects
from revenue_planner.store import (
    LocalProjectStore,
    LocalScheduleStore,
    StoreError,
    UpstashClient,
    UpstashProjectStore,
    UpstashScheduleStore,
    build_stores,
)


# ----------------------------
# Fake Upstash REST endpoint
# ----------------------------

class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeUpstash:
    """
    In-memory stand-in for the Upstash REST API (the subset the stores use).
    """

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self.fail_transactions = False
        self.requests: List[Dict[str, Any]] = []

    def _run(self, cmd: List[str]) -> Any:
        name, args = cmd[0].upper(), cmd[1:]
        if name == "SET":
            self.data[args[0]] = args[1]
            return "OK"
        if name == "GET":
            return self.data.get(args[0])
        if name == "DEL":
            return 1 if self.data.pop(args[0], None) is not None else 0
        if name == "INCR":
            self.data[args[0]] = str(int(self.data.get(args[0], "0")) + 1)
            return int(self.data[args[0]])
        if name == "RPUSH":
            self.data.setdefault(args[0], []).extend(args[1:])
            return len(self.data[args[0]])
        if name == "LRANGE":
            return list(self.data.get(args[0], []))
        if name == "MGET":
            return [self.data.get(k) for k in args]
        if name == "SADD":
            self.data.setdefault(args[0], set()).update(args[1:])
            return 1
        if name == "SREM":
            self.data.get(args[0], set()).difference_update(args[1:])
            return 1
        if name == "SMEMBERS":
            return list(self.data.get(args[0], set()))
        return {"error": f"unknown command {name}"}

    def post(self, url: str, headers: Dict[str, str], json: Any, timeout: int) -> FakeResponse:
        self.requests.append({"url": url, "headers": headers, "json": json, "timeout": timeout})

        if url.endswith("/multi-exec"):
            if self.fail_transactions:
                return FakeResponse({"error": "EXECABORT"}, status_code=400)
            return FakeResponse([{"result": self._run(cmd)} for cmd in json])

        result = self._run(json)
        if isinstance(result, dict) and "error" in result:
            return FakeResponse(result)
        return FakeResponse({"result": result})


@pytest.fixture
def fake_upstash() -> FakeUpstash:
    return FakeUpstash()


@pytest.fixture
def upstash_client(fake_upstash) -> UpstashClient:
    return UpstashClient("https://example.upstash.io/", "secret", session=fake_upstash)


def _week_of(*projects: Project) -> List[ScheduledAssignment]:
    return schedule_projects(list(projects))


# ----------------------------
# Local disk backend
# ----------------------------

def test_local_projects_get_sequential_codes(tmp_path):
    store = LocalProjectStore(tmp_path / "projects.json")

    first = store.add(Project(title="Alpha", deadline=2, revenue=100.0))
    second = store.add(Project(title="Beta", deadline=1, revenue=80.0))

    assert (first.code, second.code) == ("PRJ001", "PRJ002")
    assert first.created_at is not None

    listed = store.list_all()
    assert [p.code for p in listed] == ["PRJ001", "PRJ002"]
    assert listed[0] == first


def test_local_empty_store_lists_nothing(tmp_path):
    assert LocalProjectStore(tmp_path / "projects.json").list_all() == []
    schedules = LocalScheduleStore(tmp_path / "schedules.json")
    assert schedules.list_labels() == []
    assert schedules.get_by_label("Week-2024-05") == []


def test_local_save_replaces_previous_week(tmp_path):
    store = LocalScheduleStore(tmp_path / "schedules.json")
    a = Project(title="A", deadline=2, revenue=100.0, code="PRJ001")
    b = Project(title="B", deadline=1, revenue=80.0, code="PRJ002")
    c = Project(title="C", deadline=5, revenue=10.0, code="PRJ003")

    store.save("Week-2024-05", _week_of(a, b))
    store.save("Week-2024-05", _week_of(c))

    week = store.get_by_label("Week-2024-05")
    assert [(x.slot, x.project.code, x.day_name) for x in week] == [(5, "PRJ003", "Friday")]
    assert store.list_labels() == ["Week-2024-05"]


def test_local_labels_are_sorted(tmp_path):
    store = LocalScheduleStore(tmp_path / "schedules.json")
    p = Project(title="A", deadline=1, revenue=1.0, code="PRJ001")

    store.save("Week-2024-10", _week_of(p))
    store.save("Week-2024-02", _week_of(p))

    assert store.list_labels() == ["Week-2024-02", "Week-2024-10"]


def test_local_empty_save_removes_label(tmp_path):
    store = LocalScheduleStore(tmp_path / "schedules.json")
    store.save("Week-2024-05", _week_of(Project(title="A", deadline=1, revenue=1.0)))

    store.save("Week-2024-05", [])

    assert store.list_labels() == []


def test_local_failed_save_keeps_previous_week(tmp_path, monkeypatch):
    store = LocalScheduleStore(tmp_path / "schedules.json")
    old = _week_of(Project(title="old", deadline=3, revenue=5.0, code="PRJ001"))
    store.save("Week-2024-05", old)

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("revenue_planner.store.os.replace", boom)

    with pytest.raises(OSError):
        store.save("Week-2024-05", _week_of(Project(title="new", deadline=1, revenue=9.0)))

    assert store.get_by_label("Week-2024-05") == old


def test_local_rejects_duplicate_slots(tmp_path):
    store = LocalScheduleStore(tmp_path / "schedules.json")
    p = Project(title="A", deadline=1, revenue=1.0)
    twice = [
        ScheduledAssignment(project=p, slot=1, day_name="Monday"),
        ScheduledAssignment(project=p, slot=1, day_name="Monday"),
    ]

    with pytest.raises(ValueError):
        store.save("Week-2024-05", twice)


def test_local_corrupt_file_raises_store_error(tmp_path):
    path = tmp_path / "schedules.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        LocalScheduleStore(path).list_labels()


def test_local_corrupt_last_code_raises_store_error(tmp_path):
    path = tmp_path / "projects.json"
    path.write_text(
        json.dumps({"projects": [{"code": "XYZ9", "title": "A", "deadline": 1, "revenue": 1.0}]}),
        encoding="utf-8",
    )

    with pytest.raises(StoreError):
        LocalProjectStore(path).add(Project(title="B", deadline=2, revenue=2.0))


def test_local_concurrent_adds_keep_every_project(tmp_path):
    """
    The API runs sync endpoints in a thread pool: parallel adds must not lose
    rows, reuse codes or leave a half-written file behind.
    """
    store = LocalProjectStore(tmp_path / "projects.json")

    def add(i: int) -> Project:
        return store.add(Project(title=f"P{i}", deadline=1 + i % 5, revenue=float(i + 1)))

    with ThreadPoolExecutor(max_workers=16) as pool:
        added = list(pool.map(add, range(120)))

    codes = [p.code for p in added]
    assert len(set(codes)) == 120, "Codes must be unique"
    assert sorted(p.code for p in store.list_all()) == sorted(codes)
    assert list(tmp_path.glob("*.tmp")) == [], "Temp files must not be left behind"


def test_local_concurrent_saves_keep_every_label(tmp_path):
    store = LocalScheduleStore(tmp_path / "schedules.json")
    labels = [f"Week-2024-{w:02d}" for w in range(1, 51)]

    def save(i: int) -> None:
        label = labels[i % len(labels)]
        store.save(label, _week_of(Project(title=f"{label}#{i}", deadline=3, revenue=float(i + 1))))

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(save, range(100)))

    assert store.list_labels() == labels
    for label in labels:
        week = store.get_by_label(label)
        assert len(week) == 1, f"{label} must hold exactly one week: {week}"
        assert week[0].project.title.startswith(label + "#")
    assert list(tmp_path.glob("*.tmp")) == []


def test_local_failed_write_removes_temp_file(tmp_path, monkeypatch):
    store = LocalScheduleStore(tmp_path / "schedules.json")

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("revenue_planner.store.os.replace", boom)

    with pytest.raises(OSError):
        store.save("Week-2024-05", _week_of(Project(title="A", deadline=1, revenue=1.0)))

    assert list(tmp_path.glob("*.tmp")) == []


# ----------------------------
# Upstash backend
# ----------------------------

def test_upstash_projects_use_incr_sequence(upstash_client, fake_upstash):
    store = UpstashProjectStore(upstash_client, "rp")

    first = store.add(Project(title="Alpha", deadline=2, revenue=100.0))
    second = store.add(Project(title="Beta", deadline=1, revenue=80.0))

    assert (first.code, second.code) == ("PRJ001", "PRJ002")
    assert [p.title for p in store.list_all()] == ["Alpha", "Beta"]
    assert fake_upstash.data["rp:project_seq"] == "2"


def test_upstash_sends_bearer_token_and_timeout(upstash_client, fake_upstash):
    UpstashScheduleStore(upstash_client, "rp").list_labels()

    sent = fake_upstash.requests[-1]
    assert sent["url"] == "https://example.upstash.io"
    assert sent["headers"] == {"Authorization": "Bearer secret"}
    assert sent["json"] == ["SMEMBERS", "rp:schedule_labels"]
    assert sent["timeout"] == 10


def test_upstash_save_replaces_in_one_transaction(upstash_client, fake_upstash):
    store = UpstashScheduleStore(upstash_client, "rp")
    a = Project(title="A", deadline=2, revenue=100.0, code="PRJ001")
    b = Project(title="B", deadline=1, revenue=80.0, code="PRJ002")

    store.save("Week-2024-05", _week_of(a, b))
    store.save("Week-2024-05", _week_of(b))

    assert fake_upstash.requests[-1]["url"].endswith("/multi-exec")
    week = store.get_by_label("Week-2024-05")
    assert [(x.slot, x.project.code) for x in week] == [(1, "PRJ002")]
    assert store.list_labels() == ["Week-2024-05"]


def test_upstash_failed_transaction_keeps_previous_week(upstash_client, fake_upstash):
    store = UpstashScheduleStore(upstash_client, "rp")
    old = _week_of(Project(title="old", deadline=3, revenue=5.0, code="PRJ001"))
    store.save("Week-2024-05", old)

    fake_upstash.fail_transactions = True
    with pytest.raises(requests.HTTPError):
        store.save("Week-2024-05", _week_of(Project(title="new", deadline=1, revenue=9.0)))

    assert store.get_by_label("Week-2024-05") == old


def test_upstash_command_error_raises_store_error(upstash_client):
    with pytest.raises(StoreError):
        upstash_client.command("FLY", "away")


def test_upstash_corrupt_value_raises_store_error(upstash_client, fake_upstash):
    fake_upstash.data["rp:schedule:Week-2024-05"] = "{oops"

    with pytest.raises(StoreError):
        UpstashScheduleStore(upstash_client, "rp").get_by_label("Week-2024-05")


def test_upstash_stored_rows_snapshot_the_project(upstash_client, fake_upstash):
    store = UpstashScheduleStore(upstash_client, "rp")
    store.save("Week-2024-05", _week_of(Project(title="A", deadline=2, revenue=100.0, code="PRJ001")))

    rows = json.loads(fake_upstash.data["rp:schedule:Week-2024-05"])
    assert rows == [
        {
            "code": "PRJ001",
            "title": "A",
            "deadline": 2,
            "revenue": 100.0,
            "created_at": None,
            "slot": 2,
            "day_name": "Tuesday",
        }
    ]


# ----------------------------
# Wiring
# ----------------------------

def test_build_stores_defaults_to_disk(tmp_path):
    stores = build_stores(Settings(data_dir=tmp_path))

    assert isinstance(stores.projects, LocalProjectStore)
    assert isinstance(stores.schedules, LocalScheduleStore)
    assert stores.projects.path == tmp_path / "projects.json"


def test_build_stores_uses_upstash_when_configured(tmp_path, fake_upstash):
    settings = Settings(data_dir=tmp_path, upstash_url="https://x.upstash.io", upstash_token="t")

    stores = build_stores(settings, session=fake_upstash)

    assert isinstance(stores.projects, UpstashProjectStore)
    assert isinstance(stores.schedules, UpstashScheduleStore)


def test_upstash_requires_explicit_opt_in(monkeypatch):
    monkeypatch.setenv("UPSTASH_REDIS_REST_URL", "https://x.upstash.io/")
    monkeypatch.setenv("UPSTASH_REDIS_REST_TOKEN", "t")
    monkeypatch.delenv("UPSTASH_ENABLED", raising=False)

    assert load_settings().upstash_configured is False

    monkeypatch.setenv("UPSTASH_ENABLED", "1")
    settings = load_settings()
    assert settings.upstash_configured is True
    assert settings.upstash_url == "https://x.upstash.io"
