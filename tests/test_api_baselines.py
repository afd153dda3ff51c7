"""
Baseline & earned-value tests.

Covers:
  - versioned baselines with a single active one per project
  - task snapshotting into baseline tasks
  - start / end / duration / progress variances and impact levels
  - PV / EV / AC snapshots with SPI and CPI
"""

from datetime import date, datetime, timezone

import pytest

from fitout.models import db
from fitout.models.baseline import (
    DAY_IMPACT_THRESHOLDS,
    PROGRESS_IMPACT_THRESHOLDS,
    classify_impact,
    performance_index,
    planned_share,
)
from fitout.models.task import Task


def _task(client, project_id, **fields):
    res = client.post(f"/api/v1/projects/{project_id}/tasks", json={"title": "Partition walls", **fields})
    assert res.status_code == 201
    return res.get_json()


def _baseline(client, project_id, **fields):
    res = client.post(f"/api/v1/projects/{project_id}/baselines", json=fields)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# Pure helpers
# ═════════════════════════════════════════════════════════════════════════════


class TestHelpers:
    @pytest.mark.parametrize("days,level", [
        (-5, "low"), (0, "low"), (7, "low"), (8, "medium"), (14, "medium"),
        (15, "high"), (30, "high"), (31, "critical"),
    ])
    def test_day_impact(self, days, level):
        assert classify_impact(days, DAY_IMPACT_THRESHOLDS) == level

    @pytest.mark.parametrize("points,level", [(10, "low"), (25, "medium"), (50, "high"), (51, "critical")])
    def test_progress_impact(self, points, level):
        assert classify_impact(points, PROGRESS_IMPACT_THRESHOLDS) == level

    def test_planned_share(self):
        start, end = date(2026, 1, 1), date(2026, 1, 11)
        assert planned_share(start, end, date(2025, 12, 1)) == 0
        assert planned_share(start, end, date(2026, 1, 6)) == 50
        assert planned_share(start, end, date(2026, 2, 1)) == 100
        assert planned_share(None, end, date(2026, 1, 6)) is None

    def test_performance_index_zero_divisor(self):
        assert performance_index(500, 0) == 1.0
        assert performance_index(400, 500) == 0.8


# ═════════════════════════════════════════════════════════════════════════════
# Baselines
# ═════════════════════════════════════════════════════════════════════════════


class TestBaselines:
    def test_first_baseline_defaults(self, client, project):
        _task(client, project["id"], start_date="2026-01-01", due_date="2026-01-11")
        baseline = _baseline(client, project["id"])
        assert baseline["version"] == 1
        assert baseline["name"] == "Baseline v1"
        assert baseline["is_active"] is True
        assert baseline["planned_start_date"] == "2026-01-01"
        assert baseline["planned_end_date"] == "2026-06-30"
        assert baseline["planned_budget"] == 100000

        tasks = client.get(f"/api/v1/projects/{project['id']}/baselines/{baseline['id']}/tasks").get_json()
        assert len(tasks) == 1
        assert tasks[0]["planned_duration"] == 10

    def test_new_version_becomes_only_active(self, client, project):
        first = _baseline(client, project["id"])
        second = _baseline(client, project["id"], name="Re-plan after design change")
        assert second["version"] == 2

        active = client.get(f"/api/v1/projects/{project['id']}/baselines/active").get_json()
        assert active["id"] == second["id"]

        res = client.post(f"/api/v1/projects/{project['id']}/baselines/{first['id']}/activate")
        assert res.get_json()["is_active"] is True
        baselines = client.get(f"/api/v1/projects/{project['id']}/baselines").get_json()
        assert [b["is_active"] for b in baselines] == [False, True]

    def test_active_is_null_without_baselines(self, client, project):
        res = client.get(f"/api/v1/projects/{project['id']}/baselines/active")
        assert res.status_code == 200
        assert res.get_json() is None

    def test_planned_end_before_start_rejected(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/baselines", json={
            "planned_start_date": "2026-05-01", "planned_end_date": "2026-04-01",
        })
        assert res.status_code == 400

    def test_delete_baseline(self, client, project):
        baseline = _baseline(client, project["id"])
        url = f"/api/v1/projects/{project['id']}/baselines/{baseline['id']}"
        assert client.delete(url).status_code == 200
        assert client.get(url).status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Variances
# ═════════════════════════════════════════════════════════════════════════════


class TestVariances:
    def test_requires_active_baseline(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/variances/calculate", json={})
        assert res.status_code == 400

    def test_on_plan_task_has_no_variances(self, client, project):
        _task(client, project["id"], start_date="2026-01-01", due_date="2026-01-11", progress=50)
        _baseline(client, project["id"])
        res = client.post(f"/api/v1/projects/{project['id']}/variances/calculate",
                          json={"as_of": "2026-01-06"})
        assert res.get_json()["count"] == 0

    def test_slipped_task_variances(self, client, project):
        pid = project["id"]
        task = _task(client, pid, start_date="2026-01-01", due_date="2026-01-11")
        _baseline(client, pid)
        client.put(f"/api/v1/tasks/{task['id']}", json={
            "start_date": "2026-01-04", "due_date": "2026-01-20", "progress": 20,
        })

        res = client.post(f"/api/v1/projects/{pid}/variances/calculate", json={"as_of": "2026-01-06"})
        assert res.status_code == 200
        by_type = {v["variance_type"]: v for v in res.get_json()["variances"]}
        assert set(by_type) == {"start_delay", "end_delay", "duration_change", "progress_variance"}

        assert by_type["start_delay"]["variance_days"] == 3
        assert by_type["start_delay"]["impact"] == "low"
        assert by_type["end_delay"]["variance_days"] == 9
        assert by_type["end_delay"]["impact"] == "medium"
        assert by_type["duration_change"]["variance_days"] == 6
        assert by_type["duration_change"]["variance_percent"] == 60.0
        assert by_type["progress_variance"]["planned_value"] == "50%"
        assert by_type["progress_variance"]["actual_value"] == "20%"
        assert by_type["progress_variance"]["variance_percent"] == -30.0
        assert by_type["progress_variance"]["impact"] == "high"

    def test_early_task_has_negative_low_variances(self, client, project):
        pid = project["id"]
        task = _task(client, pid, start_date="2026-01-10", due_date="2026-01-20")
        _baseline(client, pid)
        client.put(f"/api/v1/tasks/{task['id']}", json={"start_date": "2026-01-08", "due_date": "2026-01-15"})

        res = client.post(f"/api/v1/projects/{pid}/variances/calculate", json={"as_of": "2026-01-06"})
        by_type = {v["variance_type"]: v for v in res.get_json()["variances"]}
        assert by_type["start_delay"]["variance_days"] == -2
        assert by_type["end_delay"]["variance_days"] == -5
        assert by_type["duration_change"]["variance_days"] == -3
        for kind in ("start_delay", "end_delay", "duration_change"):
            assert by_type[kind]["impact"] == "low"

    def test_completed_task_ends_on_completion_date(self, client, project):
        pid = project["id"]
        task = _task(client, pid, start_date="2026-01-01", due_date="2026-01-11")
        _baseline(client, pid)
        client.put(f"/api/v1/tasks/{task['id']}", json={"status": "completed"})
        row = db.session.get(Task, task["id"])
        row.completed_at = datetime(2026, 1, 14, 16, 30, tzinfo=timezone.utc)
        db.session.commit()

        res = client.post(f"/api/v1/projects/{pid}/variances/calculate", json={"as_of": "2026-01-20"})
        by_type = {v["variance_type"]: v for v in res.get_json()["variances"]}
        assert by_type["end_delay"]["actual_value"] == "2026-01-14"
        assert by_type["end_delay"]["variance_days"] == 3
        assert by_type["duration_change"]["actual_value"] == "13 days"
        assert client.get(f"/api/v1/tasks/{task['id']}").get_json()["due_date"] == "2026-01-11"

    def test_recalculation_replaces_rows(self, client, project):
        pid = project["id"]
        task = _task(client, pid, start_date="2026-01-01", due_date="2026-01-11")
        _baseline(client, pid)
        client.put(f"/api/v1/tasks/{task['id']}", json={"due_date": "2026-01-15", "progress": 50})

        url = f"/api/v1/projects/{pid}/variances/calculate"
        first = client.post(url, json={"as_of": "2026-01-06"}).get_json()["count"]
        client.post(url, json={"as_of": "2026-01-06"})
        assert len(client.get(f"/api/v1/projects/{pid}/variances").get_json()) == first

    def test_tasks_added_after_baseline_are_ignored(self, client, project):
        pid = project["id"]
        _baseline(client, pid)
        _task(client, pid, start_date="2026-01-01", due_date="2026-03-01")
        res = client.post(f"/api/v1/projects/{pid}/variances/calculate", json={"as_of": "2026-01-06"})
        assert res.get_json()["count"] == 0


# ═════════════════════════════════════════════════════════════════════════════
# Earned value
# ═════════════════════════════════════════════════════════════════════════════


class TestEarnedValue:
    def test_snapshot_indices(self, client, project):
        pid = project["id"]
        _baseline(client, pid)
        res = client.post(f"/api/v1/projects/{pid}/snapshots", json={
            "snapshot_date": "2026-03-31", "planned_progress": 50, "actual_progress": 40,
            "actual_cost": 45000,
        })
        assert res.status_code == 201
        snap = res.get_json()
        assert snap["planned_value"] == 50000
        assert snap["earned_value"] == 40000
        assert snap["spi"] == 0.8
        assert snap["cpi"] == 0.889

        perf = client.get(f"/api/v1/projects/{pid}/performance").get_json()
        assert perf["schedule_status"] == "behind schedule"
        assert perf["cost_status"] == "over budget"
        assert perf["snapshot_count"] == 1

    def test_actual_cost_defaults_to_approved_spend(self, client, project):
        pid = project["id"]
        client.post(f"/api/v1/projects/{pid}/expenses", json={
            "description": "Demolition", "amount": 8000, "expense_date": "2026-01-15", "status": "approved",
        })
        client.post(f"/api/v1/projects/{pid}/expenses", json={
            "description": "Pending quote", "amount": 3000, "expense_date": "2026-01-16",
        })
        snap = client.post(f"/api/v1/projects/{pid}/snapshots", json={
            "planned_progress": 10, "actual_progress": 10,
        }).get_json()
        assert snap["actual_cost"] == 8000
        assert snap["baseline_id"] is None
        assert snap["cpi"] == 1.25

    def test_progress_out_of_range(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/snapshots", json={"planned_progress": 120})
        assert res.status_code == 400

    def test_performance_without_snapshots(self, client, project):
        perf = client.get(f"/api/v1/projects/{project['id']}/performance").get_json()
        assert perf["spi"] == 1.0
        assert perf["cpi"] == 1.0
        assert perf["schedule_status"] == "on schedule"
        assert perf["cost_status"] == "on budget"
        assert perf["latest_snapshot"] is None
