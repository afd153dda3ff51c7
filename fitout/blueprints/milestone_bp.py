"""
Milestone Blueprint.

Endpoints:
    GET    /api/v1/projects/<pid>/milestones   — List (order, due date)
    POST   /api/v1/projects/<pid>/milestones   — Create
    GET    /api/v1/milestones/<id>             — Get
    PUT    /api/v1/milestones/<id>             — Update (completed → notify team)
    DELETE /api/v1/milestones/<id>             — Delete
"""

from flask import Blueprint, jsonify

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project
from fitout.services import milestone_service
from fitout.utils.helpers import db_commit_or_error

milestone_bp = Blueprint("milestone_bp", __name__, url_prefix="/api/v1")


def _load_milestone(milestone_id, *, write=False):
    milestone = milestone_service.get_milestone(milestone_id)
    load_project(milestone.project_id, write=write)
    return milestone


@milestone_bp.route("/projects/<int:project_id>/milestones", methods=["GET"])
def list_milestones(project_id):
    load_project(project_id)
    return jsonify([m.to_dict() for m in milestone_service.list_milestones(project_id)])


@milestone_bp.route("/projects/<int:project_id>/milestones", methods=["POST"])
def create_milestone(project_id):
    project = load_project(project_id, write=True)
    milestone = milestone_service.create_milestone(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(milestone.to_dict()), 201


@milestone_bp.route("/milestones/<int:milestone_id>", methods=["GET"])
def get_milestone(milestone_id):
    return jsonify(_load_milestone(milestone_id).to_dict())


@milestone_bp.route("/milestones/<int:milestone_id>", methods=["PUT"])
def update_milestone(milestone_id):
    milestone = _load_milestone(milestone_id, write=True)
    milestone_service.update_milestone(milestone, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(milestone.to_dict())


@milestone_bp.route("/milestones/<int:milestone_id>", methods=["DELETE"])
def delete_milestone(milestone_id):
    milestone = _load_milestone(milestone_id, write=True)
    milestone_service.delete_milestone(milestone, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": milestone_id})
