"""
Milestone API tests.
"""

from fitout.models.notification import Notification


class TestMilestones:
    def test_create_requires_due_date(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/milestones", json={"name": "Handover"})
        assert res.status_code == 400

    def test_create_and_list_in_order(self, client, project):
        url = f"/api/v1/projects/{project['id']}/milestones"
        client.post(url, json={"name": "Handover", "due_date": "2026-06-30", "order": 2})
        client.post(url, json={"name": "Design freeze", "due_date": "2026-02-01", "order": 1})
        names = [m["name"] for m in client.get(url).get_json()]
        assert names == ["Design freeze", "Handover"]

    def test_completing_notifies_team_except_actor(self, client, project, regular_user, admin_user):
        client.post(f"/api/v1/projects/{project['id']}/members",
                    json={"user_id": regular_user.id, "role": "contractor"})
        ms = client.post(f"/api/v1/projects/{project['id']}/milestones",
                         json={"name": "First fix", "due_date": "2026-03-01"}).get_json()

        res = client.put(f"/api/v1/milestones/{ms['id']}", json={"status": "completed"})
        assert res.status_code == 200
        assert res.get_json()["completed_date"] is not None

        reached = Notification.query.filter_by(type="milestone_reached").all()
        assert [n.user_id for n in reached] == [regular_user.id]

    def test_invalid_status(self, client, project):
        ms = client.post(f"/api/v1/projects/{project['id']}/milestones",
                         json={"name": "X", "due_date": "2026-03-01"}).get_json()
        res = client.put(f"/api/v1/milestones/{ms['id']}", json={"status": "done"})
        assert res.status_code == 400

    def test_delete(self, client, project):
        ms = client.post(f"/api/v1/projects/{project['id']}/milestones",
                         json={"name": "X", "due_date": "2026-03-01"}).get_json()
        assert client.delete(f"/api/v1/milestones/{ms['id']}").status_code == 200
        assert client.get(f"/api/v1/milestones/{ms['id']}").status_code == 404
