"""
Bulk Import Blueprint — CSV / JSON project import.

Endpoints:
  GET  /api/v1/projects/import/template   — Download CSV template
  POST /api/v1/projects/import/validate   — Validate without importing
  POST /api/v1/projects/import            — Upload & import

Accepted payloads:
  - multipart ``file`` (``.json`` filename → JSON, otherwise CSV)
  - JSON body ``{"csv_content": "..."}`` or ``{"projects": [...]}``
"""

import json
import logging

from flask import Blueprint, Response, jsonify, request

from fitout.auth import current_user
from fitout.services.bulk_import_service import (
    BulkImportError,
    generate_csv_template,
    import_projects,
    parse_content,
    validate_import_rows,
)
from fitout.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

bulk_import_bp = Blueprint("bulk_import_bp", __name__, url_prefix="/api/v1/projects/import")


# ═══════════════════════════════════════════════════════════════
# Error Handler
# ═══════════════════════════════════════════════════════════════
@bulk_import_bp.errorhandler(BulkImportError)
def handle_bulk_import_error(e):
    return jsonify({"error": e.message}), e.status_code


# ═══════════════════════════════════════════════════════════════
# Template Download
# ═══════════════════════════════════════════════════════════════
@bulk_import_bp.route("/template", methods=["GET"])
def download_template():
    """Download a CSV template for bulk project import."""
    return Response(
        generate_csv_template(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=project_import_template.csv"},
    )


# ═══════════════════════════════════════════════════════════════
# Validate (dry run)
# ═══════════════════════════════════════════════════════════════
@bulk_import_bp.route("/validate", methods=["POST"])
def validate_file():
    """Validate an import file without creating anything."""
    file_content, file_type = _extract_file_content()
    if not file_content:
        return jsonify({"error": "Import file is required (file upload, csv_content or projects)"}), 400

    rows = parse_content(file_content, file_type)
    result = validate_import_rows(rows)
    return jsonify({
        "total_rows": len(rows),
        "valid_count": len(result["valid"]),
        "error_count": len(result["errors"]),
        "valid_rows": result["valid"],
        "errors": result["errors"],
    }), 200


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════
@bulk_import_bp.route("", methods=["POST"])
def import_file():
    """Create one project per valid row."""
    file_content, file_type = _extract_file_content()
    if not file_content:
        return jsonify({"error": "Import file is required (file upload, csv_content or projects)"}), 400

    result = import_projects(file_content, file_type, current_user())
    if result["created_count"]:
        err = db_commit_or_error()
        if err:
            return err

    status_code = 200 if result["status"] == "completed" else 207
    if result["status"] == "error":
        status_code = 400
    return jsonify(result), status_code


# ═══════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════
def _extract_file_content() -> tuple[str | None, str]:
    """Return (content, "csv" | "json") from a multipart upload or JSON body."""
    if request.files:
        file = request.files.get("file")
        if file:
            file_type = "json" if (file.filename or "").lower().endswith(".json") else "csv"
            return file.read().decode("utf-8-sig"), file_type

    data = request.get_json(silent=True)
    if isinstance(data, dict):
        if "csv_content" in data:
            return data["csv_content"], "csv"
        if "projects" in data:
            return json.dumps(data["projects"]), "json"

    return None, "csv"
