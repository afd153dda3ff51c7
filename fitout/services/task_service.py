"""Task service layer — tasks, sub-tasks and comments.

Transaction policy: functions use flush(), never commit().

Business rules:
- progress stays within 0..100
- a parent task must live in the same project and cannot be the task itself
- moving to ``completed`` stamps completed_at and forces progress to 100;
  leaving ``completed`` clears completed_at
- assignment, reassignment, status changes and comments notify the assignee
  unless the assignee is the actor
"""
import logging
from datetime import date, datetime, timezone

from sqlalchemy import func

from fitout.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.project import PRIORITY_LEVELS, Project
from fitout.models.task import OPEN_TASK_STATUSES, TASK_STATUSES, Task, TaskComment
from fitout.models.user import User
from fitout.services.notification import NotificationService
from fitout.utils.helpers import parse_amount, parse_date_field, parse_int, require_choice

logger = logging.getLogger(__name__)


def get_task(task_id):
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def _validate_parent(project_id, parent_id, task_id=None):
    if parent_id is None:
        return None
    if task_id is not None and parent_id == task_id:
        raise ValidationError("A task cannot be its own parent", details={"parent_task_id": parent_id})
    parent = db.session.get(Task, parent_id)
    if parent is None or parent.project_id != project_id:
        raise ValidationError("Parent task must belong to the same project",
                              details={"parent_task_id": parent_id})
    if task_id is not None:
        ancestor, seen = parent, set()
        while ancestor is not None and ancestor.id not in seen:
            if ancestor.parent_task_id == task_id:
                raise ValidationError("Parent assignment would create a cycle",
                                      details={"parent_task_id": parent_id})
            seen.add(ancestor.id)
            ancestor = db.session.get(Task, ancestor.parent_task_id) if ancestor.parent_task_id else None
    return parent_id


def _validate_assignee(assignee_id):
    if assignee_id is None:
        return None
    if db.session.get(User, assignee_id) is None:
        raise ValidationError("Assignee does not exist", details={"assignee_id": assignee_id})
    return assignee_id


def _apply_status(task, status):
    require_choice(status, TASK_STATUSES, "status")
    if status == task.status:
        return
    if status == "completed":
        task.completed_at = datetime.now(timezone.utc)
        task.progress = 100
    elif task.status == "completed":
        task.completed_at = None
    task.status = status


def _apply_task_fields(task, data):
    if "description" in data:
        task.description = data["description"]
    if "priority" in data:
        task.priority = require_choice(data["priority"], PRIORITY_LEVELS, "priority")
    for field in ("start_date", "due_date"):
        if field in data:
            setattr(task, field, parse_date_field(data, field))
    for field in ("estimated_hours", "actual_hours"):
        if field in data:
            setattr(task, field, parse_amount(data[field], field))
    if "progress" in data:
        task.progress = parse_int(data["progress"], "progress", minimum=0, maximum=100) or 0
    if "tags" in data:
        tags = data["tags"] or []
        if not isinstance(tags, list):
            raise ValidationError("tags must be a list of strings", details={"tags": tags})
        task.tags = [str(t) for t in tags]
    if task.start_date and task.due_date and task.due_date < task.start_date:
        raise ValidationError("due_date must not be before start_date",
                              details={"start_date": task.start_date.isoformat(),
                                       "due_date": task.due_date.isoformat()})


# ── Task CRUD ────────────────────────────────────────────────────────────


def list_tasks(project_id, *, status=None, priority=None, assignee_id=None, parent_task_id=None):
    q = Task.query.filter_by(project_id=project_id)
    if status:
        q = q.filter(Task.status == status)
    if priority:
        q = q.filter(Task.priority == priority)
    if assignee_id:
        q = q.filter(Task.assignee_id == assignee_id)
    if parent_task_id:
        q = q.filter(Task.parent_task_id == parent_task_id)
    return q.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id.asc())


def create_task(project, data, user):
    """Create a task; notifies the assignee when it is someone else.

    Returns:
        Task instance (already flushed).
    """
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})

    task = Task(
        project_id=project.id,
        title=title,
        status="todo",
        created_by_id=user.id,
        parent_task_id=_validate_parent(project.id, parse_int(data.get("parent_task_id"), "parent_task_id")),
        assignee_id=_validate_assignee(parse_int(data.get("assignee_id"), "assignee_id")),
    )
    _apply_task_fields(task, data)
    if data.get("status"):
        _apply_status(task, data["status"])
    db.session.add(task)
    db.session.flush()

    if task.assignee_id and task.assignee_id != user.id:
        NotificationService.notify_task_assigned(task)
    write_activity(project_id=project.id, entity_type="task", entity_id=task.id,
                   action="created", user_id=user.id, details={"title": task.title})
    return task


def update_task(task, data, user):
    """Update a task, firing reassignment / status notifications as needed."""
    old_status = task.status
    old_assignee = task.assignee_id

    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("title cannot be empty", details={"title": "required"})
        task.title = title
    if "parent_task_id" in data:
        task.parent_task_id = _validate_parent(
            task.project_id, parse_int(data.get("parent_task_id"), "parent_task_id"), task.id)
    if "assignee_id" in data:
        task.assignee_id = _validate_assignee(parse_int(data.get("assignee_id"), "assignee_id"))
    _apply_task_fields(task, data)
    if "status" in data:
        _apply_status(task, data["status"])
    db.session.flush()

    reassigned = task.assignee_id and task.assignee_id != old_assignee
    if reassigned and task.assignee_id != user.id:
        NotificationService.notify_task_assigned(task)
    elif task.status != old_status and task.assignee_id and task.assignee_id != user.id:
        NotificationService.notify_task_status(task, old_status)

    details = {"fields": sorted(data.keys())}
    if task.status != old_status:
        details["status"] = {"from": old_status, "to": task.status}
    write_activity(project_id=task.project_id, entity_type="task", entity_id=task.id,
                   action="updated", user_id=user.id, details=details)
    return task


def delete_task(task, user):
    write_activity(project_id=task.project_id, entity_type="task", entity_id=task.id,
                   action="deleted", user_id=user.id, details={"title": task.title})
    db.session.delete(task)
    db.session.flush()


def my_tasks(user):
    """Tasks assigned to ``user`` in active projects, latest due date first."""
    return (Task.query.join(Project, Project.id == Task.project_id)
            .filter(Task.assignee_id == user.id, Project.deleted_at.is_(None))
            .order_by(Task.due_date.desc(), Task.id.desc())
            .all())


def task_stats(project_ids, today: date | None = None):
    """Count tasks by status plus overdue, across ``project_ids``."""
    today = today or date.today()
    rows = (db.session.query(Task.status, func.count(Task.id))
            .filter(Task.project_id.in_(project_ids))
            .group_by(Task.status).all())
    by_status = dict(rows)
    overdue = (Task.query.filter(Task.project_id.in_(project_ids),
                                 Task.status.in_(OPEN_TASK_STATUSES),
                                 Task.due_date.isnot(None),
                                 Task.due_date < today)
               .count())
    return {
        "total": sum(by_status.values()),
        "todo": by_status.get("todo", 0),
        "in_progress": by_status.get("in_progress", 0),
        "in_review": by_status.get("in_review", 0),
        "completed": by_status.get("completed", 0),
        "overdue": overdue,
    }


# ── Comments ─────────────────────────────────────────────────────────────


def list_comments(task):
    return task.comments.order_by(TaskComment.created_at.asc(), TaskComment.id.asc()).all()


def add_comment(task, data, user):
    content = (data.get("content") or "").strip()
    if not content:
        raise ValidationError("content is required", details={"content": "required"})
    comment = TaskComment(task_id=task.id, user_id=user.id, content=content)
    db.session.add(comment)
    db.session.flush()

    if task.assignee_id and task.assignee_id != user.id:
        NotificationService.notify_comment_added(task, comment, user.name)
    write_activity(project_id=task.project_id, entity_type="comment", entity_id=comment.id,
                   action="commented", user_id=user.id, details={"task_id": task.id})
    return comment


def delete_comment(task, comment_id, user):
    comment = db.session.get(TaskComment, comment_id)
    if comment is None or comment.task_id != task.id:
        raise NotFoundError(resource="Comment", resource_id=comment_id)
    if comment.user_id != user.id and not user.is_admin:
        raise PermissionDeniedError("Only the author or an admin can delete a comment")
    db.session.delete(comment)
    db.session.flush()
