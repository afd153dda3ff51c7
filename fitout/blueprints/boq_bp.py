"""
BOQ Blueprint — Excel bill-of-quantities import and gap report.

Endpoints:
  GET  /api/v1/boq/template                          — Download .xlsx template
  POST /api/v1/projects/<pid>/boq/validate           — Validate without importing
  POST /api/v1/projects/<pid>/boq/import             — Import rows as procurement items
  GET  /api/v1/projects/<pid>/boq/gaps               — Items missing cost / vendor / date
  POST /api/v1/templates/<tid>/boq/import            — Import rows as template BOQ lines

Uploads are multipart with the workbook in ``file``. Imports answer 200 when
every row lands, 207 when some rows are rejected, 400 when none are valid.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import load_project
from fitout.blueprints.export_bp import XLSX_MIMETYPE
from fitout.services import boq_import_service, template_service
from fitout.utils.errors import E, api_error
from fitout.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

boq_bp = Blueprint("boq_bp", __name__, url_prefix="/api/v1")

_STATUS_CODES = {"completed": 200, "partial": 207, "error": 400}


def _uploaded_workbook() -> bytes | None:
    file = request.files.get("file")
    if not file:
        return None
    return file.read() or None


def _missing_file():
    return api_error(E.VALIDATION_REQUIRED, "An .xlsx workbook is required in the 'file' field")


def _import_response(result):
    if result["created_count"]:
        err = db_commit_or_error()
        if err:
            return err
    return jsonify(result), _STATUS_CODES[result["status"]]


@boq_bp.route("/boq/template", methods=["GET"])
def download_template():
    return Response(
        boq_import_service.generate_boq_template().getvalue(),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": "attachment; filename=boq_import_template.xlsx"},
    )


@boq_bp.route("/projects/<int:project_id>/boq/validate", methods=["POST"])
def validate_boq(project_id):
    load_project(project_id)
    content = _uploaded_workbook()
    if content is None:
        return _missing_file()
    return jsonify(boq_import_service.validate_workbook(content)), 200


@boq_bp.route("/projects/<int:project_id>/boq/import", methods=["POST"])
def import_boq(project_id):
    project = load_project(project_id, write=True)
    content = _uploaded_workbook()
    if content is None:
        return _missing_file()
    result = boq_import_service.import_into_project(project, content, current_user())
    return _import_response(result)


@boq_bp.route("/projects/<int:project_id>/boq/gaps", methods=["GET"])
def boq_gaps(project_id):
    load_project(project_id)
    return jsonify(boq_import_service.gap_report(project_id))


@boq_bp.route("/templates/<int:template_id>/boq/import", methods=["POST"])
def import_template_boq(template_id):
    template = template_service.get_template_for_user(template_id, current_user(), write=True)
    content = _uploaded_workbook()
    if content is None:
        return _missing_file()
    result = boq_import_service.import_into_template(template, content)
    return _import_response(result)
