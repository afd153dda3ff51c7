"""
Document registry API tests.
"""


def _register(client, project_id, **fields):
    payload = {
        "name": "GA Plan Level 3.pdf",
        "file_url": "https://files.example.com/p/ga-l3.pdf",
        "file_key": "p/ga-l3.pdf",
        "category": "drawing",
        "file_size": 2048000,
        "mime_type": "application/pdf",
        **fields,
    }
    return client.post(f"/api/v1/projects/{project_id}/documents", json=payload)


class TestDocuments:
    def test_register(self, client, project, admin_user):
        res = _register(client, project["id"])
        assert res.status_code == 201
        doc = res.get_json()
        assert doc["version"] == 1
        assert doc["category"] == "drawing"
        assert doc["uploaded_by_id"] == admin_user.id

    def test_same_name_creates_next_version(self, client, project):
        _register(client, project["id"])
        second = _register(client, project["id"], file_url="https://files.example.com/p/ga-l3-rev-b.pdf")
        assert second.get_json()["version"] == 2
        assert client.get(f"/api/v1/projects/{project['id']}/documents").get_json()["total"] == 2

    def test_versions_are_per_project(self, client, project):
        other = client.post("/api/v1/projects", json={"name": "Other"}).get_json()
        _register(client, project["id"])
        assert _register(client, other["id"]).get_json()["version"] == 1

    def test_rename_takes_next_version_of_new_name(self, client, project):
        _register(client, project["id"])
        spec = _register(client, project["id"], name="Finishes Schedule.pdf").get_json()
        url = f"/api/v1/projects/{project['id']}/documents/{spec['id']}"
        res = client.put(url, json={"name": "GA Plan Level 3.pdf"})
        assert res.status_code == 200
        assert res.get_json()["version"] == 2
        # description-only edits keep the version
        res = client.put(url, json={"name": "GA Plan Level 3.pdf", "description": "Rev B"})
        assert res.get_json()["version"] == 2

    def test_file_url_required(self, client, project):
        assert _register(client, project["id"], file_url="").status_code == 400

    def test_unknown_category(self, client, project):
        assert _register(client, project["id"], category="memo").status_code == 400

    def test_negative_size_rejected(self, client, project):
        assert _register(client, project["id"], file_size=-1).status_code == 400

    def test_filter_by_category(self, client, project):
        _register(client, project["id"])
        _register(client, project["id"], name="Lease.pdf", category="contract")
        res = client.get(f"/api/v1/projects/{project['id']}/documents?category=contract")
        assert [d["name"] for d in res.get_json()["items"]] == ["Lease.pdf"]

    def test_update_and_delete(self, client, project):
        doc = _register(client, project["id"]).get_json()
        url = f"/api/v1/projects/{project['id']}/documents/{doc['id']}"
        res = client.put(url, json={"description": "Issued for construction", "category": "specification"})
        assert res.get_json()["category"] == "specification"
        assert client.delete(url).status_code == 200
        assert client.get(url).status_code == 404

    def test_viewer_cannot_register(self, client, client_as, project, regular_user):
        client.post(f"/api/v1/projects/{project['id']}/members",
                    json={"user_id": regular_user.id, "role": "viewer"})
        assert _register(client_as(regular_user), project["id"]).status_code == 403
