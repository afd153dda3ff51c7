"""
Budget API tests — categories, expenses, spend roll-up and budget alerts.

Covers:
  - only approved / paid expenses count toward spent amounts
  - category and project spend follow status changes and deletes
  - one budget_alert per threshold crossing, re-armed when spend drops
"""

import pytest

from fitout.models.notification import Notification


def _expense(client, project_id, amount, status="pending", **fields):
    payload = {
        "description": "Gypsum board delivery",
        "amount": amount,
        "expense_date": "2026-02-10",
        "status": status,
        **fields,
    }
    res = client.post(f"/api/v1/projects/{project_id}/expenses", json=payload)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture()
def category(client, project):
    res = client.post(f"/api/v1/projects/{project['id']}/budget/categories",
                      json={"name": "Joinery", "allocated_amount": 30000})
    assert res.status_code == 201
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# Categories
# ═════════════════════════════════════════════════════════════════════════════


class TestCategories:
    def test_create_defaults(self, category):
        assert category["spent_amount"] == 0
        assert category["remaining_amount"] == 30000
        assert category["color"] == "#3b82f6"

    def test_name_required(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/budget/categories", json={})
        assert res.status_code == 400

    def test_negative_allocation_rejected(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/budget/categories",
                          json={"name": "X", "allocated_amount": -5})
        assert res.status_code == 400

    def test_delete_keeps_expenses(self, client, project, category):
        exp = _expense(client, project["id"], 500, category_id=category["id"])
        url = f"/api/v1/projects/{project['id']}/budget/categories/{category['id']}"
        assert client.delete(url).status_code == 200
        res = client.get(f"/api/v1/projects/{project['id']}/expenses/{exp['id']}")
        assert res.status_code == 200
        assert res.get_json()["category_id"] is None

    def test_category_from_other_project_rejected(self, client, project, category):
        other = client.post("/api/v1/projects", json={"name": "Other"}).get_json()
        res = client.post(f"/api/v1/projects/{other['id']}/expenses", json={
            "description": "X", "amount": 10, "expense_date": "2026-02-10", "category_id": category["id"],
        })
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Expenses & spend roll-up
# ═════════════════════════════════════════════════════════════════════════════


class TestExpenses:
    def test_amount_must_be_positive(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/expenses", json={
            "description": "X", "amount": 0, "expense_date": "2026-02-10",
        })
        assert res.status_code == 400

    def test_non_finite_amount_rejected(self, client, project):
        for raw in ("NaN", "Infinity", "-inf"):
            res = client.post(f"/api/v1/projects/{project['id']}/expenses", json={
                "description": "Ceiling tiles", "amount": raw, "expense_date": "2026-02-10",
            })
            assert res.status_code == 400, raw
            assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        listing = client.get(f"/api/v1/projects/{project['id']}/expenses").get_json()
        assert listing["total"] == 0

    def test_expense_date_required(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/expenses",
                          json={"description": "X", "amount": 10})
        assert res.status_code == 400

    def test_pending_does_not_count_as_spent(self, client, project, category):
        _expense(client, project["id"], 1200, category_id=category["id"])
        summary = client.get(f"/api/v1/projects/{project['id']}/budget/summary").get_json()
        assert summary["spent"] == 0
        assert summary["categories"][0]["spent_amount"] == 0

    def test_approval_rolls_up_spend(self, client, project, category, admin_user):
        exp = _expense(client, project["id"], 1200, category_id=category["id"])
        url = f"/api/v1/projects/{project['id']}/expenses/{exp['id']}"
        res = client.put(url, json={"status": "approved"})
        assert res.get_json()["approved_by_id"] == admin_user.id

        summary = client.get(f"/api/v1/projects/{project['id']}/budget/summary").get_json()
        assert summary["spent"] == 1200
        assert summary["remaining"] == 98800
        assert summary["allocated"] == 30000
        assert summary["utilization"] == 1.2
        assert summary["categories"][0]["spent_amount"] == 1200

    def test_paid_counts_and_rejected_does_not(self, client, project):
        _expense(client, project["id"], 300, status="paid")
        _expense(client, project["id"], 700, status="rejected")
        proj = client.get(f"/api/v1/projects/{project['id']}").get_json()
        assert proj["spent_amount"] == 300

    def test_delete_reduces_spend(self, client, project):
        exp = _expense(client, project["id"], 450, status="approved")
        client.delete(f"/api/v1/projects/{project['id']}/expenses/{exp['id']}")
        proj = client.get(f"/api/v1/projects/{project['id']}").get_json()
        assert proj["spent_amount"] == 0

    def test_stats(self, client, project):
        _expense(client, project["id"], 100)
        _expense(client, project["id"], 250, status="approved")
        _expense(client, project["id"], 50, status="paid")
        stats = client.get(f"/api/v1/projects/{project['id']}/expenses/stats").get_json()
        assert stats == {"total": 400, "pending": 100, "approved": 300}

    def test_list_filter_by_status(self, client, project):
        _expense(client, project["id"], 100)
        _expense(client, project["id"], 250, status="approved")
        res = client.get(f"/api/v1/projects/{project['id']}/expenses?status=approved")
        assert res.get_json()["total"] == 1


# ═════════════════════════════════════════════════════════════════════════════
# Budget alerts
# ═════════════════════════════════════════════════════════════════════════════


class TestBudgetAlert:
    def _alerts(self):
        return Notification.query.filter_by(type="budget_alert").all()

    def test_alert_fires_once_at_threshold(self, client, project, regular_user, admin_user):
        client.post(f"/api/v1/projects/{project['id']}/members",
                    json={"user_id": regular_user.id, "role": "project_manager"})

        _expense(client, project["id"], 89000, status="approved")
        assert self._alerts() == []

        _expense(client, project["id"], 1000, status="approved")
        alerts = self._alerts()
        assert sorted(n.user_id for n in alerts) == sorted([admin_user.id, regular_user.id])
        assert "90.0%" in alerts[0].message

        _expense(client, project["id"], 500, status="approved")
        assert len(self._alerts()) == 2

    def test_alert_rearms_after_spend_drops(self, client, project):
        big = _expense(client, project["id"], 95000, status="approved")
        assert len(self._alerts()) == 1

        client.put(f"/api/v1/projects/{project['id']}/expenses/{big['id']}", json={"status": "rejected"})
        client.put(f"/api/v1/projects/{project['id']}/expenses/{big['id']}", json={"status": "approved"})
        assert len(self._alerts()) == 2

    def test_budget_cut_triggers_alert(self, client, project):
        _expense(client, project["id"], 50000, status="approved")
        assert self._alerts() == []
        client.put(f"/api/v1/projects/{project['id']}", json={"budget": 52000})
        assert len(self._alerts()) == 1

    def test_no_alert_without_budget(self, client):
        proj = client.post("/api/v1/projects", json={"name": "No budget"}).get_json()
        _expense(client, proj["id"], 1000, status="approved")
        assert self._alerts() == []
