"""
FF&E / Materials Blueprint.

Both schedules share one set of routes keyed by ``<schedule>``:
``ffe`` (furniture, fixtures & equipment) or ``materials``.

Endpoints:
    GET    /api/v1/projects/<pid>/<schedule>             — List (category, status)
    POST   /api/v1/projects/<pid>/<schedule>             — Create
    GET    /api/v1/projects/<pid>/<schedule>/summary     — Totals by category
    GET    /api/v1/projects/<pid>/<schedule>/<id>        — Get
    PUT    /api/v1/projects/<pid>/<schedule>/<id>        — Update
    DELETE /api/v1/projects/<pid>/<schedule>/<id>        — Delete
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.services import ffe_service
from fitout.utils.helpers import db_commit_or_error

ffe_bp = Blueprint("ffe_bp", __name__, url_prefix="/api/v1")

SCHEDULES = {"ffe": ffe_service.FFE, "materials": ffe_service.MATERIAL}
_SCHEDULE = "<any(ffe, materials):schedule>"


@ffe_bp.route(f"/projects/<int:project_id>/{_SCHEDULE}", methods=["GET"])
def list_lines(project_id, schedule):
    load_project(project_id)
    query = ffe_service.list_lines(
        SCHEDULES[schedule], project_id,
        category=request.args.get("category"),
        status=request.args.get("status"),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [i.to_dict() for i in items], "total": total})


@ffe_bp.route(f"/projects/<int:project_id>/{_SCHEDULE}", methods=["POST"])
def create_line(project_id, schedule):
    project = load_project(project_id, write=True)
    line = ffe_service.create_line(SCHEDULES[schedule], project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(line.to_dict()), 201


@ffe_bp.route(f"/projects/<int:project_id>/{_SCHEDULE}/summary", methods=["GET"])
def summary(project_id, schedule):
    load_project(project_id)
    return jsonify(ffe_service.summary_by_category(SCHEDULES[schedule], project_id))


@ffe_bp.route(f"/projects/<int:project_id>/{_SCHEDULE}/<int:line_id>", methods=["GET"])
def get_line(project_id, schedule, line_id):
    load_project(project_id)
    return jsonify(ffe_service.get_line(SCHEDULES[schedule], project_id, line_id).to_dict())


@ffe_bp.route(f"/projects/<int:project_id>/{_SCHEDULE}/<int:line_id>", methods=["PUT"])
def update_line(project_id, schedule, line_id):
    load_project(project_id, write=True)
    kind = SCHEDULES[schedule]
    line = ffe_service.get_line(kind, project_id, line_id)
    ffe_service.update_line(kind, line, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(line.to_dict())


@ffe_bp.route(f"/projects/<int:project_id>/{_SCHEDULE}/<int:line_id>", methods=["DELETE"])
def delete_line(project_id, schedule, line_id):
    load_project(project_id, write=True)
    kind = SCHEDULES[schedule]
    line = ffe_service.get_line(kind, project_id, line_id)
    ffe_service.delete_line(kind, line, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": line_id})
