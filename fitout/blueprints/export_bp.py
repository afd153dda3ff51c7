"""
Export endpoints — styled XLSX registers per project.

    GET /api/v1/projects/<project_id>/export/<kind>
        kind: tasks | budget | procurement | ffe | boq

Content is built in memory; no temp files.
"""

import logging

from flask import Blueprint, Response

from fitout.blueprints import load_project
from fitout.services.export_service import EXPORT_KINDS, EXPORTERS, export_filename
from fitout.utils.errors import E, api_error

logger = logging.getLogger(__name__)

export_bp = Blueprint("export_bp", __name__, url_prefix="/api/v1")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@export_bp.route("/projects/<int:project_id>/export/<kind>", methods=["GET"])
def export_register(project_id: int, kind: str):
    """Download one project register as an .xlsx attachment."""
    project = load_project(project_id)
    if kind not in EXPORTERS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unsupported export. Supported values: {', '.join(EXPORT_KINDS)}",
        )

    content = EXPORTERS[kind](project)
    filename = export_filename(project, kind)
    logger.info("Export %s generated for project %s", kind, project_id)
    return Response(
        content.getvalue(),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
