"""
Sprint tests — CRUD, committed tasks and story points, metrics, velocity
history and burndown.
"""

import pytest

from fitout.models.sprint import SprintTask


@pytest.fixture()
def sprint(client, project):
    res = client.post(f"/api/v1/projects/{project['id']}/sprints", json={
        "name": "Sprint 1 - strip out",
        "start_date": "2026-01-05",
        "end_date": "2026-01-15",
        "target_points": 20,
    })
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _url(project, sprint, suffix=""):
    return f"/api/v1/projects/{project['id']}/sprints/{sprint['id']}{suffix}"


def _task(client, project, title, **fields):
    res = client.post(f"/api/v1/projects/{project['id']}/tasks", json={"title": title, **fields})
    assert res.status_code == 201
    return res.get_json()


def _commit(client, project, sprint, title, points, **fields):
    task = _task(client, project, title, **fields)
    res = client.post(_url(project, sprint, "/tasks"), json={"task_id": task["id"], "story_points": points})
    assert res.status_code == 201
    return task


# ═════════════════════════════════════════════════════════════════════════════
# Sprints
# ═════════════════════════════════════════════════════════════════════════════


class TestSprints:
    def test_create_defaults(self, sprint):
        assert sprint["status"] == "planning"
        assert sprint["completed_points"] == 0
        assert sprint["target_points"] == 20

    def test_dates_required(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/sprints",
                          json={"name": "S", "start_date": "2026-01-05"})
        assert res.status_code == 400

    def test_end_before_start_rejected(self, client, project, sprint):
        res = client.post(f"/api/v1/projects/{project['id']}/sprints",
                          json={"name": "S", "start_date": "2026-02-10", "end_date": "2026-02-01"})
        assert res.status_code == 400
        assert client.put(_url(project, sprint), json={"end_date": "2026-01-01"}).status_code == 400

    def test_invalid_status(self, client, project, sprint):
        assert client.put(_url(project, sprint), json={"status": "paused"}).status_code == 400

    def test_list_filters_status(self, client, project, sprint):
        client.post(f"/api/v1/projects/{project['id']}/sprints", json={
            "name": "Sprint 2 - first fix", "start_date": "2026-01-19", "end_date": "2026-01-30",
            "status": "active",
        })
        data = client.get(f"/api/v1/projects/{project['id']}/sprints").get_json()
        assert [s["name"] for s in data["items"]] == ["Sprint 2 - first fix", "Sprint 1 - strip out"]
        active = client.get(f"/api/v1/projects/{project['id']}/sprints?status=active").get_json()
        assert active["total"] == 1

    def test_sprint_of_other_project_not_found(self, client, project, sprint):
        other = client.post("/api/v1/projects", json={"name": "Other"}).get_json()
        assert client.get(f"/api/v1/projects/{other['id']}/sprints/{sprint['id']}").status_code == 404

    def test_active_sprints_only_visible_projects(self, client, client_as, project, sprint, other_user):
        client.put(_url(project, sprint), json={"status": "active"})
        assert client.get("/api/v1/sprints/active").get_json()["total"] == 1
        assert client_as(other_user).get("/api/v1/sprints/active").get_json()["total"] == 0

    def test_delete_removes_committed_tasks(self, client, project, sprint):
        _commit(client, project, sprint, "Demolish partitions", 5)
        assert client.delete(_url(project, sprint)).status_code == 200
        assert SprintTask.query.count() == 0
        assert client.get(_url(project, sprint)).status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Sprint tasks and metrics
# ═════════════════════════════════════════════════════════════════════════════


class TestSprintTasks:
    def test_add_and_list(self, client, project, sprint):
        _commit(client, project, sprint, "Demolish partitions", 5)
        data = client.get(_url(project, sprint, "/tasks")).get_json()
        assert data["total"] == 1
        assert data["items"][0]["task_title"] == "Demolish partitions"
        assert data["items"][0]["story_points"] == 5

    def test_task_once_per_sprint(self, client, project, sprint):
        task = _commit(client, project, sprint, "Demolish partitions", 5)
        res = client.post(_url(project, sprint, "/tasks"), json={"task_id": task["id"]})
        assert res.status_code == 409

    def test_task_from_other_project_rejected(self, client, project, sprint):
        other = client.post("/api/v1/projects", json={"name": "Other"}).get_json()
        foreign = _task(client, other, "Elsewhere")
        res = client.post(_url(project, sprint, "/tasks"), json={"task_id": foreign["id"]})
        assert res.status_code == 400

    def test_unknown_task_and_negative_points(self, client, project, sprint):
        assert client.post(_url(project, sprint, "/tasks"), json={"task_id": 999}).status_code == 404
        task = _task(client, project, "Strip carpet")
        res = client.post(_url(project, sprint, "/tasks"), json={"task_id": task["id"], "story_points": -1})
        assert res.status_code == 400

    def test_change_points_and_remove(self, client, project, sprint):
        task = _commit(client, project, sprint, "Demolish partitions", 5)
        url = _url(project, sprint, f"/tasks/{task['id']}")
        assert client.put(url, json={"story_points": 8}).get_json()["story_points"] == 8
        assert client.delete(url).status_code == 200
        assert client.delete(url).status_code == 404

    def test_metrics(self, client, project, sprint):
        done = _commit(client, project, sprint, "Demolish partitions", 5)
        _commit(client, project, sprint, "Strip carpet", 3)
        _commit(client, project, sprint, "Cap services", 0)
        client.put(f"/api/v1/tasks/{done['id']}", json={"status": "completed"})

        metrics = client.get(_url(project, sprint, "/metrics")).get_json()
        assert metrics["total_points"] == 8
        assert metrics["completed_points"] == 5
        assert metrics["remaining_points"] == 3
        assert metrics["total_tasks"] == 3
        assert metrics["completed_tasks"] == 1
        assert metrics["progress_percentage"] == 62

    def test_metrics_without_points(self, client, project, sprint):
        metrics = client.get(_url(project, sprint)).get_json()["metrics"]
        assert metrics["progress_percentage"] == 0

    def test_completion_stores_completed_points(self, client, project, sprint):
        done = _commit(client, project, sprint, "Demolish partitions", 5)
        _commit(client, project, sprint, "Strip carpet", 3)
        client.put(f"/api/v1/tasks/{done['id']}", json={"status": "completed"})

        res = client.put(_url(project, sprint), json={"status": "completed"})
        assert res.get_json()["completed_points"] == 5


# ═════════════════════════════════════════════════════════════════════════════
# Velocity and burndown
# ═════════════════════════════════════════════════════════════════════════════


class TestVelocity:
    def test_record_velocity(self, client, project, sprint, admin_user):
        done = _commit(client, project, sprint, "Demolish partitions", 5, assignee_id=admin_user.id)
        _commit(client, project, sprint, "Strip carpet", 3, assignee_id=admin_user.id)
        client.put(f"/api/v1/tasks/{done['id']}", json={"status": "completed"})

        res = client.post(_url(project, sprint, "/velocity"))
        assert res.status_code == 201
        velocity = res.get_json()
        assert velocity["planned_points"] == 20
        assert velocity["completed_points"] == 5
        assert velocity["velocity_score"] == 25.0
        assert velocity["team_members_active"] == 1
        assert velocity["sprint_name"] == "Sprint 1 - strip out"

    def test_planned_falls_back_to_committed_points(self, client, project):
        sprint = client.post(f"/api/v1/projects/{project['id']}/sprints", json={
            "name": "Unplanned", "start_date": "2026-02-02", "end_date": "2026-02-06",
        }).get_json()
        _commit(client, project, sprint, "Snag list", 4)
        velocity = client.post(_url(project, sprint, "/velocity")).get_json()
        assert velocity["planned_points"] == 4
        assert velocity["velocity_score"] == 0.0

    def test_history_newest_first_with_limit(self, client, project, sprint):
        done = _commit(client, project, sprint, "Demolish partitions", 6)
        client.post(_url(project, sprint, "/velocity"))
        client.put(f"/api/v1/tasks/{done['id']}", json={"status": "completed"})
        client.post(_url(project, sprint, "/velocity"))

        data = client.get(f"/api/v1/projects/{project['id']}/velocity").get_json()
        assert data["total"] == 2
        assert [v["completed_points"] for v in data["items"]] == [6, 0]
        assert data["average_velocity"] == 3.0

        limited = client.get(f"/api/v1/projects/{project['id']}/velocity?limit=1").get_json()
        assert limited["total"] == 1
        assert client.get(f"/api/v1/projects/{project['id']}/velocity?limit=0").status_code == 400


class TestBurndown:
    def test_ideal_line_from_target(self, client, project, sprint):
        data = client.get(_url(project, sprint, "/burndown")).get_json()
        assert data["points"] == []
        ideal = data["ideal"]
        assert len(ideal) == 11
        assert ideal[0] == {"day": "2026-01-05", "remaining_points": 20.0}
        assert ideal[5]["remaining_points"] == 10.0
        assert ideal[-1] == {"day": "2026-01-15", "remaining_points": 0.0}

    def test_same_day_overwritten(self, client, project, sprint):
        done = _commit(client, project, sprint, "Demolish partitions", 5)
        _commit(client, project, sprint, "Strip carpet", 3)

        res = client.post(_url(project, sprint, "/burndown"), json={"day": "2026-01-06"})
        assert res.status_code == 201
        assert res.get_json() == {"day": "2026-01-06", "remaining_points": 8, "completed_points": 0}

        client.put(f"/api/v1/tasks/{done['id']}", json={"status": "completed"})
        client.post(_url(project, sprint, "/burndown"), json={"day": "2026-01-06"})
        client.post(_url(project, sprint, "/burndown"), json={"day": "2026-01-05"})

        points = client.get(_url(project, sprint, "/burndown")).get_json()["points"]
        assert points == [
            {"day": "2026-01-05", "remaining_points": 3, "completed_points": 5},
            {"day": "2026-01-06", "remaining_points": 3, "completed_points": 5},
        ]

    def test_invalid_day(self, client, project, sprint):
        res = client.post(_url(project, sprint, "/burndown"), json={"day": "yesterday"})
        assert res.status_code == 400
