"""
Project API tests — CRUD, visibility, members, overview and activity feed.
"""

from fitout.models import db
from fitout.models.notification import Notification
from fitout.models.project import Project


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectCrud:
    def test_create_project_returns_201(self, client, admin_user):
        res = client.post("/api/v1/projects", json={"name": "Café Lumen", "budget": 80000})
        assert res.status_code == 201
        data = res.get_json()
        assert data["name"] == "Café Lumen"
        assert data["status"] == "planning"
        assert data["priority"] == "medium"
        assert data["currency"] == "USD"
        assert data["budget"] == 80000
        assert data["spent_amount"] == 0
        assert data["created_by_id"] == admin_user.id

    def test_creator_joins_as_project_manager(self, client, project, admin_user):
        res = client.get(f"/api/v1/projects/{project['id']}/members")
        assert res.status_code == 200
        members = res.get_json()
        assert len(members) == 1
        assert members[0]["user_id"] == admin_user.id
        assert members[0]["role"] == "project_manager"

    def test_create_requires_name(self, client):
        res = client.post("/api/v1/projects", json={"name": "   "})
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert body["details"] == {"name": "required"}

    def test_create_rejects_end_before_start(self, client):
        res = client.post("/api/v1/projects", json={
            "name": "Bad dates", "start_date": "2026-05-01", "end_date": "2026-04-01",
        })
        assert res.status_code == 400

    def test_create_rejects_unknown_status(self, client):
        res = client.post("/api/v1/projects", json={"name": "X", "status": "archived"})
        assert res.status_code == 400

    def test_create_rejects_progress_over_100(self, client):
        res = client.post("/api/v1/projects", json={"name": "X", "progress": 140})
        assert res.status_code == 400

    def test_get_project(self, client, project):
        res = client.get(f"/api/v1/projects/{project['id']}")
        assert res.status_code == 200
        assert res.get_json()["client_name"] == "Acme Holdings"

    def test_get_missing_project_404(self, client):
        res = client.get("/api/v1/projects/9999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_update_project(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}", json={"progress": 35, "priority": "high"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["progress"] == 35
        assert data["priority"] == "high"

    def test_update_currency_must_be_three_letters(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}", json={"currency": "EURO"})
        assert res.status_code == 400

    def test_update_rejects_infinite_budget(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}", json={"budget": "Infinity"})
        assert res.status_code == 400
        assert client.get(f"/api/v1/projects/{project['id']}").get_json()["budget"] == 100000

    def test_delete_is_soft(self, client, project):
        res = client.delete(f"/api/v1/projects/{project['id']}")
        assert res.status_code == 200
        assert res.get_json() == {"deleted": True, "id": project["id"]}

        assert client.get(f"/api/v1/projects/{project['id']}").status_code == 404
        assert client.get("/api/v1/projects").get_json()["total"] == 0
        row = db.session.get(Project, project["id"])
        assert row is not None and row.deleted_at is not None

    def test_list_filters(self, client, project):
        client.post("/api/v1/projects", json={"name": "Villa Palm", "status": "planning"})
        res = client.get("/api/v1/projects?status=in_progress")
        assert [p["name"] for p in res.get_json()["items"]] == ["Harbour View Office"]
        res = client.get("/api/v1/projects?q=villa")
        assert res.get_json()["total"] == 1

    def test_stats(self, client, project):
        client.post("/api/v1/projects", json={"name": "Done", "status": "completed"})
        client.post("/api/v1/projects", json={"name": "Paused", "status": "on_hold"})
        stats = client.get("/api/v1/projects/stats").get_json()
        assert stats == {"total": 3, "active": 1, "completed": 1, "on_hold": 1}


# ═════════════════════════════════════════════════════════════════════════════
# Visibility & permissions
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectVisibility:
    def test_non_member_cannot_read(self, client_as, project, other_user):
        res = client_as(other_user).get(f"/api/v1/projects/{project['id']}")
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_non_member_list_is_empty(self, client_as, project, other_user):
        res = client_as(other_user).get("/api/v1/projects")
        assert res.get_json()["total"] == 0

    def test_member_can_read_viewer_cannot_write(self, client, client_as, project, regular_user):
        client.post(f"/api/v1/projects/{project['id']}/members",
                    json={"user_id": regular_user.id, "role": "viewer"})
        c = client_as(regular_user)
        assert c.get(f"/api/v1/projects/{project['id']}").status_code == 200
        res = c.put(f"/api/v1/projects/{project['id']}", json={"progress": 10})
        assert res.status_code == 403

    def test_site_engineer_can_write_but_not_delete(self, client, client_as, project, regular_user):
        client.post(f"/api/v1/projects/{project['id']}/members",
                    json={"user_id": regular_user.id, "role": "site_engineer"})
        c = client_as(regular_user)
        assert c.put(f"/api/v1/projects/{project['id']}", json={"progress": 10}).status_code == 200
        assert c.delete(f"/api/v1/projects/{project['id']}").status_code == 403

    def test_creator_sees_own_project(self, client_as, regular_user):
        c = client_as(regular_user)
        created = c.post("/api/v1/projects", json={"name": "Mine"}).get_json()
        assert c.get(f"/api/v1/projects/{created['id']}").status_code == 200
        assert c.delete(f"/api/v1/projects/{created['id']}").status_code == 200


# ═════════════════════════════════════════════════════════════════════════════
# Members
# ═════════════════════════════════════════════════════════════════════════════


class TestMembers:
    def test_add_member_notifies_user(self, client, project, regular_user):
        res = client.post(f"/api/v1/projects/{project['id']}/members",
                          json={"user_id": regular_user.id, "role": "architect"})
        assert res.status_code == 201
        assert res.get_json()["user"]["name"] == "Riley Site"

        notif = Notification.query.filter_by(user_id=regular_user.id).one()
        assert notif.type == "project_updated"
        assert "architect" in notif.message

    def test_duplicate_member_409(self, client, project, regular_user):
        url = f"/api/v1/projects/{project['id']}/members"
        client.post(url, json={"user_id": regular_user.id})
        res = client.post(url, json={"user_id": regular_user.id})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_unknown_user_404(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/members", json={"user_id": 999})
        assert res.status_code == 404

    def test_invalid_role_400(self, client, project, regular_user):
        res = client.post(f"/api/v1/projects/{project['id']}/members",
                          json={"user_id": regular_user.id, "role": "boss"})
        assert res.status_code == 400

    def test_update_and_remove_member(self, client, project, regular_user):
        url = f"/api/v1/projects/{project['id']}/members"
        member = client.post(url, json={"user_id": regular_user.id}).get_json()

        res = client.put(f"{url}/{member['id']}", json={"role": "contractor"})
        assert res.get_json()["role"] == "contractor"

        res = client.delete(f"{url}/{member['id']}")
        assert res.status_code == 200
        assert len(client.get(url).get_json()) == 1

    def test_creator_cannot_be_removed(self, client, project):
        url = f"/api/v1/projects/{project['id']}/members"
        creator = client.get(url).get_json()[0]
        assert client.delete(f"{url}/{creator['id']}").status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Overview & activity
# ═════════════════════════════════════════════════════════════════════════════


class TestOverviewAndActivity:
    def test_overview_counts(self, client, project):
        pid = project["id"]
        client.post(f"/api/v1/projects/{pid}/tasks", json={"title": "Strip out"})
        client.post(f"/api/v1/projects/{pid}/tasks", json={"title": "Overdue", "due_date": "2020-01-01"})
        client.post(f"/api/v1/projects/{pid}/tasks", json={"title": "Done", "status": "completed"})
        client.post(f"/api/v1/projects/{pid}/milestones", json={"name": "Handover", "due_date": "2026-06-30"})

        data = client.get(f"/api/v1/projects/{pid}/overview").get_json()
        assert data["tasks"]["total"] == 3
        assert data["tasks"]["todo"] == 2
        assert data["tasks"]["completed"] == 1
        assert data["tasks"]["overdue"] == 1
        assert data["milestones"]["total"] == 1
        assert data["budget"]["remaining"] == 100000

    def test_activity_feed_records_changes(self, client, project):
        pid = project["id"]
        client.put(f"/api/v1/projects/{pid}", json={"progress": 20})
        feed = client.get(f"/api/v1/projects/{pid}/activities").get_json()
        actions = [a["action"] for a in feed]
        assert actions[0] == "updated"
        assert "created" in actions

    def test_recent_activities_across_projects(self, client, project):
        client.post("/api/v1/projects", json={"name": "Second"})
        feed = client.get("/api/v1/activities/recent").get_json()
        assert {a["project_id"] for a in feed} >= {project["id"]}
        assert len(feed) >= 2
