"""
Bulk project import tests — CSV / JSON parsing, validation and partial imports.
"""

import io

from fitout.models.project import Project, ProjectMember

CSV_OK = (
    "projectName,projectDescription,projectType,budget,currency,location,clientName,startDate,endDate,priority\n"
    "Harbour View Office,Two-floor office fit-out,office,250000,USD,Dubai Marina,Acme,2026-01-05,2026-05-29,high\n"
    "Café Lumen,Ground floor café refurbishment,hospitality,80000,AED,Downtown,Lumen F&B,2026-02-02,2026-03-27,"
    "medium\n"
)


class TestTemplate:
    def test_template_download(self, client):
        res = client.get("/api/v1/projects/import/template")
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert "attachment" in res.headers["Content-Disposition"]
        header = res.get_data(as_text=True).splitlines()[0]
        assert header.startswith("projectName,projectDescription")


class TestValidate:
    def test_validate_does_not_create(self, client):
        res = client.post("/api/v1/projects/import/validate", json={"csv_content": CSV_OK})
        assert res.status_code == 200
        data = res.get_json()
        assert data["total_rows"] == 2
        assert data["valid_count"] == 2
        assert data["error_count"] == 0
        assert data["valid_rows"][0]["row"] == 2
        assert Project.query.count() == 0

    def test_row_errors_reported(self, client):
        res = client.post("/api/v1/projects/import/validate", json={"projects": [
            {"projectName": "Ok", "projectDescription": "Fine"},
            {"projectName": "", "projectDescription": "No name"},
            {"projectName": "Bad budget", "projectDescription": "X", "budget": "lots"},
            {"projectName": "ok", "projectDescription": "Duplicate of row 1"},
            {"projectName": "Endless", "projectDescription": "X", "budget": "nan"},
        ]})
        data = res.get_json()
        assert data["valid_count"] == 1
        rows = {e["row"]: e["errors"] for e in data["errors"]}
        assert "projectName is required" in rows[2]
        assert "budget must be a number" in rows[3]
        assert any("Duplicate" in msg for msg in rows[4])
        assert "budget must be a finite number" in rows[5]

    def test_missing_required_columns(self, client):
        res = client.post("/api/v1/projects/import/validate", json={"csv_content": "name,budget\nX,1\n"})
        assert res.status_code == 400
        assert "projectName" in res.get_json()["error"]

    def test_invalid_json(self, client):
        res = client.post(
            "/api/v1/projects/import/validate",
            data={"file": (io.BytesIO(b"{not json"), "projects.json")},
            content_type="multipart/form-data",
        )
        assert res.status_code == 400

    def test_no_payload(self, client):
        assert client.post("/api/v1/projects/import/validate", json={}).status_code == 400


class TestImport:
    def test_import_csv_upload(self, client, admin_user):
        res = client.post(
            "/api/v1/projects/import",
            data={"file": (io.BytesIO(CSV_OK.encode("utf-8")), "projects.csv")},
            content_type="multipart/form-data",
        )
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "completed"
        assert data["created_count"] == 2

        cafe = Project.query.filter_by(name="Café Lumen").one()
        assert cafe.currency == "AED"
        assert cafe.budget == 80000
        assert "Type: hospitality" in cafe.description
        assert ProjectMember.query.filter_by(project_id=cafe.id, user_id=admin_user.id).one().role == \
            "project_manager"

    def test_partial_import_207(self, client):
        res = client.post("/api/v1/projects/import", json={"projects": [
            {"projectName": "Good", "projectDescription": "Fine"},
            {"projectName": "Bad", "projectDescription": "X", "priority": "urgent"},
        ]})
        assert res.status_code == 207
        data = res.get_json()
        assert data["status"] == "partial"
        assert data["created_count"] == 1
        assert data["errors"][0]["row"] == 2
        assert Project.query.count() == 1

    def test_creation_errors_are_reported(self, client):
        res = client.post("/api/v1/projects/import", json={"projects": [
            {"projectName": "Good", "projectDescription": "Fine"},
            {"projectName": "Backwards", "projectDescription": "X",
             "startDate": "2026-05-01", "endDate": "2026-01-01"},
        ]})
        assert res.status_code == 207
        assert [c["name"] for c in res.get_json()["created"]] == ["Good"]

    def test_all_invalid_400(self, client):
        res = client.post("/api/v1/projects/import", json={"projects": [{"projectName": "No description"}]})
        assert res.status_code == 400
        assert res.get_json()["status"] == "error"
        assert Project.query.count() == 0
