"""
Sprint Blueprint — time boxes of project tasks with velocity and burndown.

Endpoints:
    GET    /api/v1/sprints/active                                    — Caller's active sprints
    GET    /api/v1/projects/<pid>/sprints                            — List (status)
    POST   /api/v1/projects/<pid>/sprints                            — Create
    GET    /api/v1/projects/<pid>/sprints/<sid>                      — Get with metrics
    PUT    /api/v1/projects/<pid>/sprints/<sid>                      — Update
    DELETE /api/v1/projects/<pid>/sprints/<sid>                      — Delete

    GET    /api/v1/projects/<pid>/sprints/<sid>/tasks                — Committed tasks
    POST   /api/v1/projects/<pid>/sprints/<sid>/tasks                — Add task (story_points)
    PUT    /api/v1/projects/<pid>/sprints/<sid>/tasks/<task_id>      — Change points
    DELETE /api/v1/projects/<pid>/sprints/<sid>/tasks/<task_id>      — Remove task

    GET    /api/v1/projects/<pid>/sprints/<sid>/metrics              — Points and progress
    POST   /api/v1/projects/<pid>/sprints/<sid>/velocity             — Record velocity
    GET    /api/v1/projects/<pid>/velocity                           — Velocity history (limit)
    GET    /api/v1/projects/<pid>/sprints/<sid>/burndown             — Recorded + ideal line
    POST   /api/v1/projects/<pid>/sprints/<sid>/burndown             — Record a day (day)
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.services import sprint_service
from fitout.utils.helpers import db_commit_or_error, parse_date_field, parse_int

sprint_bp = Blueprint("sprint_bp", __name__, url_prefix="/api/v1")


def _load_sprint(project_id, sprint_id, *, write=False):
    load_project(project_id, write=write)
    return sprint_service.get_sprint(project_id, sprint_id)


# ═══════════════════════════════════════════════════════════════════════════
#  SPRINTS
# ═══════════════════════════════════════════════════════════════════════════

@sprint_bp.route("/sprints/active", methods=["GET"])
def active_sprints():
    items, total = paginate_query(sprint_service.active_sprints(current_user()))
    return jsonify({"items": [s.to_dict() for s in items], "total": total})


@sprint_bp.route("/projects/<int:project_id>/sprints", methods=["GET"])
def list_sprints(project_id):
    load_project(project_id)
    query = sprint_service.list_sprints(project_id, status=request.args.get("status"))
    items, total = paginate_query(query)
    return jsonify({"items": [s.to_dict() for s in items], "total": total})


@sprint_bp.route("/projects/<int:project_id>/sprints", methods=["POST"])
def create_sprint(project_id):
    project = load_project(project_id, write=True)
    sprint = sprint_service.create_sprint(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(sprint.to_dict()), 201


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>", methods=["GET"])
def get_sprint(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id)
    return jsonify({**sprint.to_dict(), "metrics": sprint_service.sprint_metrics(sprint)})


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>", methods=["PUT"])
def update_sprint(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    sprint_service.update_sprint(sprint, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(sprint.to_dict())


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>", methods=["DELETE"])
def delete_sprint(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    sprint_service.delete_sprint(sprint, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": sprint_id})


# ═══════════════════════════════════════════════════════════════════════════
#  SPRINT TASKS
# ═══════════════════════════════════════════════════════════════════════════

@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/tasks", methods=["GET"])
def list_sprint_tasks(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id)
    entries = sprint_service.list_sprint_tasks(sprint)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)})


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/tasks", methods=["POST"])
def add_sprint_task(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    entry = sprint_service.add_task(sprint, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(entry.to_dict()), 201


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/tasks/<int:task_id>", methods=["PUT"])
def update_sprint_task(project_id, sprint_id, task_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    entry = sprint_service.get_sprint_task(sprint, task_id)
    sprint_service.update_sprint_task(entry, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(entry.to_dict())


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/tasks/<int:task_id>", methods=["DELETE"])
def remove_sprint_task(project_id, sprint_id, task_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    sprint_service.remove_task(sprint_service.get_sprint_task(sprint, task_id))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": task_id})


# ═══════════════════════════════════════════════════════════════════════════
#  METRICS, VELOCITY, BURNDOWN
# ═══════════════════════════════════════════════════════════════════════════

@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/metrics", methods=["GET"])
def sprint_metrics(project_id, sprint_id):
    return jsonify(sprint_service.sprint_metrics(_load_sprint(project_id, sprint_id)))


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/velocity", methods=["POST"])
def record_velocity(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    velocity = sprint_service.record_velocity(sprint)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(velocity.to_dict()), 201


@sprint_bp.route("/projects/<int:project_id>/velocity", methods=["GET"])
def velocity_history(project_id):
    load_project(project_id)
    limit = parse_int(request.args.get("limit"), "limit", minimum=1, maximum=100)
    return jsonify(sprint_service.velocity_history(
        project_id, limit=limit or sprint_service.VELOCITY_HISTORY_LIMIT))


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/burndown", methods=["GET"])
def get_burndown(project_id, sprint_id):
    return jsonify(sprint_service.burndown(_load_sprint(project_id, sprint_id)))


@sprint_bp.route("/projects/<int:project_id>/sprints/<int:sprint_id>/burndown", methods=["POST"])
def record_burndown(project_id, sprint_id):
    sprint = _load_sprint(project_id, sprint_id, write=True)
    point = sprint_service.record_burndown(sprint, parse_date_field(json_body(), "day"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(point.to_dict()), 201
