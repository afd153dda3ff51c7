"""
Procurement API tests — vendor directory and project purchase items.
"""

import pytest


@pytest.fixture()
def vendor(client):
    res = client.post("/api/v1/vendors", json={
        "name": "Gulf Joinery LLC", "category": "furniture", "email": "Sales@GulfJoinery.AE", "rating": 4,
    })
    assert res.status_code == 201
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# Vendors
# ═════════════════════════════════════════════════════════════════════════════


class TestVendors:
    def test_create_normalises_email(self, vendor):
        assert vendor["email"] == "Sales@gulfjoinery.ae"
        assert vendor["is_active"] is True

    def test_rating_out_of_range(self, client):
        res = client.post("/api/v1/vendors", json={"name": "X", "rating": 6})
        assert res.status_code == 400

    def test_unknown_category(self, client):
        res = client.post("/api/v1/vendors", json={"name": "X", "category": "catering"})
        assert res.status_code == 400

    def test_filter_active(self, client, vendor):
        client.post("/api/v1/vendors", json={"name": "Dormant Co", "is_active": False})
        res = client.get("/api/v1/vendors?active=true")
        assert [v["name"] for v in res.get_json()["items"]] == ["Gulf Joinery LLC"]

    def test_only_creator_or_admin_deletes(self, client, client_as, vendor, regular_user):
        res = client_as(regular_user).delete(f"/api/v1/vendors/{vendor['id']}")
        assert res.status_code == 403
        assert client.delete(f"/api/v1/vendors/{vendor['id']}").status_code == 200

    def test_delete_detaches_items(self, client, project, vendor):
        item = client.post(f"/api/v1/projects/{project['id']}/procurement", json={
            "name": "Reception desk", "quantity": 1, "vendor_id": vendor["id"],
        }).get_json()
        client.delete(f"/api/v1/vendors/{vendor['id']}")
        res = client.get(f"/api/v1/projects/{project['id']}/procurement/{item['id']}")
        assert res.get_json()["vendor_id"] is None


# ═════════════════════════════════════════════════════════════════════════════
# Vendor favorites
# ═════════════════════════════════════════════════════════════════════════════


class TestFavorites:
    def test_shortlist_is_idempotent_and_per_user(self, client, client_as, vendor, regular_user):
        url = f"/api/v1/vendors/{vendor['id']}/favorite"
        assert client.put(url).status_code == 200
        assert client.put(url).status_code == 200
        res = client.get("/api/v1/vendors/favorites").get_json()
        assert res["total"] == 1
        assert res["items"][0]["is_favorite"] is True
        assert client_as(regular_user).get("/api/v1/vendors/favorites").get_json()["total"] == 0

    def test_unshortlist(self, client, vendor):
        url = f"/api/v1/vendors/{vendor['id']}/favorite"
        client.put(url)
        res = client.delete(url)
        assert res.get_json()["is_favorite"] is False
        assert client.delete(url).status_code == 200
        assert client.get("/api/v1/vendors/favorites").get_json()["total"] == 0

    def test_unknown_vendor_404(self, client):
        assert client.put("/api/v1/vendors/9999/favorite").status_code == 404

    def test_deleting_vendor_clears_shortlists(self, client, vendor):
        client.put(f"/api/v1/vendors/{vendor['id']}/favorite")
        client.delete(f"/api/v1/vendors/{vendor['id']}")
        assert client.get("/api/v1/vendors/favorites").get_json()["items"] == []


# ═════════════════════════════════════════════════════════════════════════════
# Procurement items
# ═════════════════════════════════════════════════════════════════════════════


class TestProcurementItems:
    def test_total_uses_estimated_cost(self, client, project, vendor):
        res = client.post(f"/api/v1/projects/{project['id']}/procurement", json={
            "name": "Task chairs", "category": "furniture", "quantity": 12,
            "estimated_unit_cost": 450, "vendor_id": vendor["id"],
        })
        assert res.status_code == 201
        item = res.get_json()
        assert item["total_cost"] == 5400
        assert item["vendor_name"] == "Gulf Joinery LLC"
        assert item["unit"] == "pcs"

    def test_actual_cost_overrides_estimate(self, client, project):
        url = f"/api/v1/projects/{project['id']}/procurement"
        item = client.post(url, json={"name": "Carpet tiles", "quantity": 200, "estimated_unit_cost": 30}).get_json()
        res = client.put(f"{url}/{item['id']}", json={"actual_unit_cost": 27.5})
        assert res.get_json()["total_cost"] == 5500

    def test_quantity_required_and_positive(self, client, project):
        url = f"/api/v1/projects/{project['id']}/procurement"
        assert client.post(url, json={"name": "X"}).status_code == 400
        assert client.post(url, json={"name": "X", "quantity": 0}).status_code == 400

    def test_unknown_vendor_404(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/procurement",
                          json={"name": "X", "quantity": 1, "vendor_id": 999})
        assert res.status_code == 404

    def test_stats(self, client, project):
        url = f"/api/v1/projects/{project['id']}/procurement"
        client.post(url, json={"name": "A", "quantity": 2, "estimated_unit_cost": 100})
        client.post(url, json={"name": "B", "quantity": 1, "estimated_unit_cost": 50, "status": "ordered"})
        client.post(url, json={"name": "C", "quantity": 1, "status": "delivered"})
        stats = client.get(f"{url}/stats").get_json()
        assert stats["total"] == 3
        assert stats["pending"] == 1
        assert stats["ordered"] == 1
        assert stats["delivered"] == 1
        assert stats["total_cost"] == 250

    def test_delete_item(self, client, project):
        url = f"/api/v1/projects/{project['id']}/procurement"
        item = client.post(url, json={"name": "X", "quantity": 1}).get_json()
        assert client.delete(f"{url}/{item['id']}").status_code == 200
        assert client.get(f"{url}/{item['id']}").status_code == 404
