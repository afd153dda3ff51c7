"""
Task Blueprint — tasks and comments.

Endpoints:
    GET    /api/v1/projects/<pid>/tasks        — List (status, priority, assignee_id, parent_task_id)
    POST   /api/v1/projects/<pid>/tasks        — Create
    GET    /api/v1/tasks/<id>                  — Get
    PUT    /api/v1/tasks/<id>                  — Update
    DELETE /api/v1/tasks/<id>                  — Delete
    GET    /api/v1/tasks/mine                  — Assigned to the current user
    GET    /api/v1/tasks/stats                 — Counts (?project_id=, else visible projects)

    GET    /api/v1/tasks/<id>/comments         — List comments
    POST   /api/v1/tasks/<id>/comments         — Add comment
    DELETE /api/v1/tasks/<id>/comments/<cid>   — Delete comment (author or admin)
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.models.project import Project
from fitout.services import project_service, task_service
from fitout.utils.helpers import db_commit_or_error

task_bp = Blueprint("task_bp", __name__, url_prefix="/api/v1")


def _load_task(task_id, *, write=False):
    task = task_service.get_task(task_id)
    load_project(task.project_id, write=write)
    return task


# ═══════════════════════════════════════════════════════════════════════════
#  TASKS
# ═══════════════════════════════════════════════════════════════════════════

@task_bp.route("/projects/<int:project_id>/tasks", methods=["GET"])
def list_tasks(project_id):
    load_project(project_id)
    query = task_service.list_tasks(
        project_id,
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        assignee_id=request.args.get("assignee_id", type=int),
        parent_task_id=request.args.get("parent_task_id", type=int),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [t.to_dict() for t in items], "total": total})


@task_bp.route("/projects/<int:project_id>/tasks", methods=["POST"])
def create_task(project_id):
    project = load_project(project_id, write=True)
    task = task_service.create_task(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(task.to_dict()), 201


@task_bp.route("/tasks/mine", methods=["GET"])
def my_tasks():
    return jsonify([t.to_dict() for t in task_service.my_tasks(current_user())])


@task_bp.route("/tasks/stats", methods=["GET"])
def task_stats():
    project_id = request.args.get("project_id", type=int)
    if project_id:
        load_project(project_id)
        project_ids = [project_id]
    else:
        project_ids = [pid for (pid,) in project_service.visible_projects_query(current_user())
                       .with_entities(Project.id)]
    return jsonify(task_service.task_stats(project_ids))


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    return jsonify(_load_task(task_id).to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    task = _load_task(task_id, write=True)
    task_service.update_task(task, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(task.to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    task = _load_task(task_id, write=True)
    task_service.delete_task(task, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": task_id})


# ═══════════════════════════════════════════════════════════════════════════
#  COMMENTS
# ═══════════════════════════════════════════════════════════════════════════

@task_bp.route("/tasks/<int:task_id>/comments", methods=["GET"])
def list_comments(task_id):
    task = _load_task(task_id)
    return jsonify([c.to_dict() for c in task_service.list_comments(task)])


@task_bp.route("/tasks/<int:task_id>/comments", methods=["POST"])
def add_comment(task_id):
    # Any reader may comment, viewers included
    task = _load_task(task_id)
    comment = task_service.add_comment(task, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(comment.to_dict()), 201


@task_bp.route("/tasks/<int:task_id>/comments/<int:comment_id>", methods=["DELETE"])
def delete_comment(task_id, comment_id):
    task = _load_task(task_id)
    task_service.delete_comment(task, comment_id, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": comment_id})
