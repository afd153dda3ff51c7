"""
Bulk Project Import Service

CSV or JSON import of projects with a validate-only dry run.

Features:
  - Parse CSV (header row + data rows) or a JSON array of objects
  - Required columns: projectName, projectDescription (snake_case accepted)
  - Optional: projectType, budget, currency, location, clientName,
    startDate, endDate, priority, timeline
  - Per-row validation with error reporting
  - Each valid row goes through the normal project create path
  - Template CSV generation
"""

import csv
import io
import json
import logging
import math
import re

from fitout.core.exceptions import ValidationError
from fitout.models.project import PRIORITY_LEVELS
from fitout.services import project_service

logger = logging.getLogger(__name__)

MAX_IMPORT_ROWS = 500


class BulkImportError(Exception):
    """Bulk import error."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# CSV Template
# ═══════════════════════════════════════════════════════════════

CSV_TEMPLATE_HEADER = [
    "projectName", "projectDescription", "projectType", "budget", "currency",
    "location", "clientName", "startDate", "endDate", "priority",
]
CSV_TEMPLATE_EXAMPLE = [
    ["Harbour View Office", "Two-floor office fit-out with open plan and meeting suites",
     "office", "250000", "USD", "Dubai Marina", "Acme Holdings", "2026-01-05", "2026-05-29", "high"],
    ["Café Lumen", "Ground floor café refurbishment, new counter and seating",
     "hospitality", "80000", "USD", "Downtown", "Lumen F&B", "2026-02-02", "2026-03-27", "medium"],
]

# Normalised header → project field
_FIELD_MAP = {
    "projectname": "name",
    "projectdescription": "description",
    "projecttype": "project_type",
    "budget": "budget",
    "currency": "currency",
    "location": "location",
    "clientname": "client_name",
    "startdate": "start_date",
    "enddate": "end_date",
    "priority": "priority",
    "timeline": "timeline",
}


def generate_csv_template() -> str:
    """Generate a CSV template string for bulk project import."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_TEMPLATE_HEADER)
    writer.writerows(CSV_TEMPLATE_EXAMPLE)
    return output.getvalue()


# ═══════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════

def _normalize_key(key: str) -> str:
    """projectName / project_name / Project Name → projectname."""
    return re.sub(r"[\s_\-]", "", (key or "").strip().lower())


def _normalize_row(raw: dict, row_num: int) -> dict:
    row = {"row_num": row_num}
    for key, value in raw.items():
        field = _FIELD_MAP.get(_normalize_key(key))
        if field is None:
            continue
        row[field] = value.strip() if isinstance(value, str) else value
    return row


def parse_csv(file_content: str | bytes) -> list[dict]:
    """Parse CSV content into normalised row dicts."""
    if isinstance(file_content, bytes):
        file_content = file_content.decode("utf-8-sig")  # Handle BOM

    reader = csv.DictReader(io.StringIO(file_content))
    headers = {_normalize_key(h) for h in (reader.fieldnames or [])}
    missing = [h for h in ("projectname", "projectdescription") if h not in headers]
    if missing:
        raise BulkImportError(
            "CSV must have projectName and projectDescription columns. "
            f"Found columns: {', '.join(reader.fieldnames or [])}"
        )

    rows = []
    for i, raw in enumerate(reader, start=2):  # Start at 2 (header is row 1)
        if not any((v or "").strip() for v in raw.values() if isinstance(v, str)):
            continue
        rows.append(_normalize_row(raw, i))
    return rows


def parse_json(file_content: str | bytes) -> list[dict]:
    """Parse a JSON array of project objects into normalised row dicts."""
    if isinstance(file_content, bytes):
        file_content = file_content.decode("utf-8-sig")
    try:
        data = json.loads(file_content)
    except ValueError as exc:
        raise BulkImportError("Invalid JSON format") from exc
    if not isinstance(data, list):
        raise BulkImportError("JSON must contain an array of projects")

    rows = []
    for i, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            raise BulkImportError(f"Item {i}: must be an object")
        rows.append(_normalize_row(item, i))
    return rows


def parse_content(file_content, file_type: str) -> list[dict]:
    if file_type == "json":
        rows = parse_json(file_content)
    else:
        rows = parse_csv(file_content)
    if not rows:
        raise BulkImportError("No projects found in file")
    if len(rows) > MAX_IMPORT_ROWS:
        raise BulkImportError(f"Too many rows ({len(rows)}); the limit is {MAX_IMPORT_ROWS}")
    return rows


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════

def _to_project_data(row: dict) -> dict:
    data = {"name": row.get("name"), "description": row.get("description")}
    extras = [f"{label}: {row[key]}" for key, label in (("project_type", "Type"), ("timeline", "Timeline"))
              if row.get(key)]
    if extras:
        data["description"] = f"{data['description']}\n\n" + "\n".join(extras)
    for field in ("budget", "currency", "location", "client_name", "start_date", "end_date"):
        if row.get(field) not in (None, ""):
            data[field] = row[field]
    if row.get("priority"):
        data["priority"] = str(row["priority"]).lower()
    return data


def _row_errors(row: dict) -> list[str]:
    errors = []
    if not isinstance(row.get("name"), str) or not row["name"].strip():
        errors.append("projectName is required")
    if not isinstance(row.get("description"), str) or not row["description"].strip():
        errors.append("projectDescription is required")
    if row.get("priority") and str(row["priority"]).lower() not in PRIORITY_LEVELS:
        errors.append(f"priority must be one of {sorted(PRIORITY_LEVELS)}")
    if row.get("budget") not in (None, ""):
        try:
            budget = float(row["budget"])
        except (TypeError, ValueError):
            errors.append("budget must be a number")
        else:
            if not math.isfinite(budget):
                errors.append("budget must be a finite number")
            elif budget < 0:
                errors.append("budget must be >= 0")
    return errors


def validate_import_rows(rows: list[dict]) -> dict:
    """
    Validate all rows before import.
    Returns {"valid": [...], "errors": [...]}
    """
    valid = []
    errors = []
    seen_names = set()
    for row in rows:
        row_errors = _row_errors(row)
        name_key = (row.get("name") or "").strip().lower() if isinstance(row.get("name"), str) else ""
        if name_key and name_key in seen_names:
            row_errors.append(f"Duplicate projectName in file: {row['name']}")
        seen_names.add(name_key)

        if row_errors:
            errors.append({"row": row["row_num"], "name": row.get("name"), "errors": row_errors})
        else:
            valid.append({"row": row["row_num"], **_to_project_data(row)})
    return {"valid": valid, "errors": errors}


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════

def import_projects(file_content, file_type: str, user) -> dict:
    """
    Create one project per valid row through the normal create path.

    Rows that fail validation (or raise during creation) are reported and
    skipped; the caller commits the successful ones.
    """
    rows = parse_content(file_content, file_type)
    result = validate_import_rows(rows)

    created = []
    errors = list(result["errors"])
    for row in result["valid"]:
        data = {k: v for k, v in row.items() if k != "row"}
        try:
            project = project_service.create_project(data, user)
        except ValidationError as exc:
            errors.append({"row": row["row"], "name": row.get("name"), "errors": [str(exc)]})
            continue
        created.append({"row": row["row"], "id": project.id, "name": project.name})

    if not created:
        status = "error"
    elif errors:
        status = "partial"
    else:
        status = "completed"
    logger.info("Bulk import by user %s: %d created, %d failed", user.id, len(created), len(errors))
    return {
        "status": status,
        "total_rows": len(rows),
        "created_count": len(created),
        "error_count": len(errors),
        "created": created,
        "errors": sorted(errors, key=lambda e: e["row"]),
    }
