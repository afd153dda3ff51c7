"""
XLSX export tests — attachment headers and register contents.
"""

import io
from datetime import date
from types import SimpleNamespace

import pytest
from openpyxl import load_workbook

from fitout.services.export_service import EXPORT_KINDS, export_filename, slugify

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _workbook(res):
    return load_workbook(io.BytesIO(res.data))


class TestFilenames:
    def test_slugify(self):
        assert slugify("Harbour View Office") == "harbour-view-office"
        assert slugify("  Café / Lumen!! ") == "caf-lumen"
        assert slugify("***") == "project"

    def test_export_filename(self):
        project = SimpleNamespace(name="Harbour View Office")
        assert export_filename(project, "boq", date(2026, 3, 9)) == "harbour-view-office_boq_20260309.xlsx"


class TestExportEndpoint:
    @pytest.mark.parametrize("kind", EXPORT_KINDS)
    def test_every_kind_downloads(self, client, project, kind):
        res = client.get(f"/api/v1/projects/{project['id']}/export/{kind}")
        assert res.status_code == 200
        assert res.mimetype == XLSX
        disposition = res.headers["Content-Disposition"]
        assert disposition.startswith("attachment; filename=")
        assert f"harbour-view-office_{kind}_" in disposition
        assert _workbook(res).active is not None

    def test_unknown_kind_400(self, client, project):
        res = client.get(f"/api/v1/projects/{project['id']}/export/invoices")
        assert res.status_code == 400
        assert "tasks" in res.get_json()["error"]

    def test_unknown_project_404(self, client):
        assert client.get("/api/v1/projects/9999/export/tasks").status_code == 404

    def test_non_member_forbidden(self, client_as, project, other_user):
        assert client_as(other_user).get(f"/api/v1/projects/{project['id']}/export/tasks").status_code == 403

    def test_task_register_rows(self, client, project):
        client.post(f"/api/v1/projects/{project['id']}/tasks", json={
            "title": "Ceiling grid", "due_date": "2026-02-10", "priority": "high",
        })
        ws = _workbook(client.get(f"/api/v1/projects/{project['id']}/export/tasks"))["Tasks"]
        assert ws["A1"].value == "Task Register"
        assert ws.cell(row=4, column=2).value == "Title"
        assert ws.cell(row=5, column=2).value == "Ceiling grid"
        assert ws.cell(row=5, column=4).value == "high"

    def test_budget_has_expense_sheet(self, client, project):
        client.post(f"/api/v1/projects/{project['id']}/expenses", json={
            "description": "Demolition", "amount": 8000, "expense_date": "2026-01-15", "status": "approved",
        })
        wb = _workbook(client.get(f"/api/v1/projects/{project['id']}/export/budget"))
        assert wb.sheetnames == ["Summary", "Expenses"]
        assert wb["Expenses"].cell(row=2, column=2).value == "Demolition"
        assert wb["Summary"].cell(row=6, column=2).value == 8000

    def test_boq_grand_total(self, client, project):
        pid = project["id"]
        client.post(f"/api/v1/projects/{pid}/procurement", json={
            "name": "Task chairs", "category": "furniture", "quantity": 12, "estimated_unit_cost": 450,
        })
        client.post(f"/api/v1/projects/{pid}/ffe", json={
            "name": "Lounge sofa", "category": "Furniture", "quantity": 4, "estimated_unit_cost": 2000,
        })
        ws = _workbook(client.get(f"/api/v1/projects/{pid}/export/boq"))["BOQ"]
        totals = {
            ws.cell(row=r, column=6).value: ws.cell(row=r, column=7).value
            for r in range(1, ws.max_row + 1)
            if isinstance(ws.cell(row=r, column=6).value, str)
        }
        assert totals["Procurement subtotal"] == 5400
        assert totals["FF&E subtotal"] == 8000
        assert totals["Materials subtotal"] == 0
        assert totals["Grand total (USD)"] == 13400
