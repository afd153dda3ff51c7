"""
Notification API tests — listing, read state and ownership.
"""

import pytest

from fitout.models import db
from fitout.services.notification import NotificationService


@pytest.fixture()
def inbox(regular_user, other_user):
    """Three notifications for regular_user (one in a project), one for other_user."""
    mine = [
        NotificationService.create(user_id=regular_user.id, title=f"Note {i}", type="general")
        for i in range(3)
    ]
    theirs = NotificationService.create(user_id=other_user.id, title="Not yours")
    db.session.commit()
    return {"mine": mine, "theirs": theirs}


class TestNotifications:
    def test_list_own_only(self, client_as, regular_user, inbox):
        data = client_as(regular_user).get("/api/v1/notifications").get_json()
        assert data["total"] == 3
        assert data["unread_count"] == 3
        assert {n["title"] for n in data["items"]} == {"Note 0", "Note 1", "Note 2"}

    def test_pagination(self, client_as, regular_user, inbox):
        data = client_as(regular_user).get("/api/v1/notifications?limit=2&offset=2").get_json()
        assert data["total"] == 3
        assert len(data["items"]) == 1

    def test_mark_read(self, client_as, regular_user, inbox):
        c = client_as(regular_user)
        nid = inbox["mine"][0].id
        res = c.patch(f"/api/v1/notifications/{nid}/read")
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True
        assert res.get_json()["read_at"] is not None
        assert c.get("/api/v1/notifications/unread-count").get_json() == {"unread_count": 2}

        unread = c.get("/api/v1/notifications?unread_only=true").get_json()
        assert unread["total"] == 2

    def test_cannot_touch_others_notifications(self, client_as, regular_user, inbox):
        c = client_as(regular_user)
        theirs = inbox["theirs"].id
        assert c.patch(f"/api/v1/notifications/{theirs}/read").status_code == 404
        assert c.delete(f"/api/v1/notifications/{theirs}").status_code == 404

    def test_mark_all_read(self, client_as, regular_user, other_user, inbox):
        res = client_as(regular_user).post("/api/v1/notifications/mark-all-read")
        assert res.get_json() == {"marked_read": 3}
        assert client_as(other_user).get("/api/v1/notifications/unread-count").get_json()["unread_count"] == 1

    def test_delete_own(self, client_as, regular_user, inbox):
        c = client_as(regular_user)
        nid = inbox["mine"][1].id
        assert c.delete(f"/api/v1/notifications/{nid}").status_code == 200
        assert c.get("/api/v1/notifications").get_json()["total"] == 2

    def test_filter_by_project(self, client, client_as, project, regular_user):
        client.post(f"/api/v1/projects/{project['id']}/members",
                    json={"user_id": regular_user.id, "role": "viewer"})
        NotificationService.create(user_id=regular_user.id, title="Unrelated")
        db.session.commit()
        data = client_as(regular_user).get(f"/api/v1/notifications?project_id={project['id']}").get_json()
        assert data["total"] == 1
        assert data["items"][0]["type"] == "project_updated"
