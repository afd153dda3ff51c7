"""
Project Blueprint — projects, members and the activity feed.

Endpoints:
    Projects:
        GET    /api/v1/projects                              — List visible (status, priority, q)
        POST   /api/v1/projects                              — Create
        GET    /api/v1/projects/stats                        — Counts by status
        GET    /api/v1/projects/<id>                          — Get
        PUT    /api/v1/projects/<id>                          — Update
        DELETE /api/v1/projects/<id>                          — Soft delete
        GET    /api/v1/projects/<id>/overview                 — Dashboard aggregate

    Members:
        GET    /api/v1/projects/<id>/members                  — List
        POST   /api/v1/projects/<id>/members                  — Add
        PUT    /api/v1/projects/<id>/members/<mid>            — Change role
        DELETE /api/v1/projects/<id>/members/<mid>            — Remove

    Activity:
        GET    /api/v1/projects/<id>/activities               — Newest 50
        GET    /api/v1/activities/recent                      — Newest 20 across visible projects
"""

import logging

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.services import budget_service, project_service
from fitout.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECTS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects", methods=["GET"])
def list_projects():
    query = project_service.list_projects(
        current_user(),
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        q=request.args.get("q"),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [p.to_dict() for p in items], "total": total})


@project_bp.route("/projects", methods=["POST"])
def create_project():
    project = project_service.create_project(json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/stats", methods=["GET"])
def project_stats():
    return jsonify(project_service.project_stats(current_user()))


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(load_project(project_id).to_dict())


@project_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(project_id):
    project = load_project(project_id, write=True)
    data = json_body()
    project_service.update_project(project, data, current_user())
    if "budget" in data:
        budget_service.check_budget_alert(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict())


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id):
    project = load_project(project_id)
    project_service.delete_project(project, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": project_id})


@project_bp.route("/projects/<int:project_id>/overview", methods=["GET"])
def project_overview(project_id):
    return jsonify(project_service.project_overview(load_project(project_id)))


# ═══════════════════════════════════════════════════════════════════════════
#  MEMBERS
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/members", methods=["GET"])
def list_members(project_id):
    project = load_project(project_id)
    return jsonify([m.to_dict() for m in project_service.list_members(project)])


@project_bp.route("/projects/<int:project_id>/members", methods=["POST"])
def add_member(project_id):
    project = load_project(project_id, write=True)
    member = project_service.add_member(project, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(member.to_dict()), 201


@project_bp.route("/projects/<int:project_id>/members/<int:member_id>", methods=["PUT"])
def update_member(project_id, member_id):
    project = load_project(project_id, write=True)
    member = project_service.get_member(project, member_id)
    project_service.update_member_role(project, member, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(member.to_dict())


@project_bp.route("/projects/<int:project_id>/members/<int:member_id>", methods=["DELETE"])
def remove_member(project_id, member_id):
    project = load_project(project_id, write=True)
    member = project_service.get_member(project, member_id)
    project_service.remove_member(project, member)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": member_id})


# ═══════════════════════════════════════════════════════════════════════════
#  ACTIVITY
# ═══════════════════════════════════════════════════════════════════════════

@project_bp.route("/projects/<int:project_id>/activities", methods=["GET"])
def list_activities(project_id):
    load_project(project_id)
    return jsonify([a.to_dict() for a in project_service.list_activities(project_id)])


@project_bp.route("/activities/recent", methods=["GET"])
def recent_activities():
    return jsonify([a.to_dict() for a in project_service.recent_activities(current_user())])
