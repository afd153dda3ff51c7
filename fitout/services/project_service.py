"""Project service layer — projects, members, visibility and activity feed.

Transaction policy: functions use flush(), never commit().
Caller (route handler) is responsible for db.session.commit().

Visibility rules:
- admin users see every non-deleted project
- other users see projects they created or are a member of
- writing needs admin, the creator, or a non-viewer member
- deleting needs admin or the creator
"""
import logging

from sqlalchemy import func, or_

from fitout.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from fitout.models import db
from fitout.models.activity import ActivityLog, write_activity
from fitout.models.milestone import Milestone
from fitout.models.procurement import ProcurementItem
from fitout.models.project import (
    MANAGER_ROLES,
    MEMBER_ROLES,
    PRIORITY_LEVELS,
    PROJECT_STATUSES,
    Project,
    ProjectMember,
)
from fitout.models.task import Task
from fitout.models.user import User
from fitout.services.notification import NotificationService
from fitout.utils.helpers import (
    normalize_email,
    parse_amount,
    parse_date_field,
    parse_int,
    require_choice,
)

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("description", "client_name", "client_phone", "location", "address")


# ── Visibility ───────────────────────────────────────────────────────────


def visible_projects_query(user):
    """Active projects the user may read."""
    q = Project.query_active()
    if user.is_admin:
        return q
    member_ids = db.session.query(ProjectMember.project_id).filter(ProjectMember.user_id == user.id)
    return q.filter(or_(Project.created_by_id == user.id, Project.id.in_(member_ids)))


def get_membership(project_id, user_id):
    return ProjectMember.query.filter_by(project_id=project_id, user_id=user_id).first()


def can_read(project, user):
    if user.is_admin or project.created_by_id == user.id:
        return True
    return get_membership(project.id, user.id) is not None


def can_write(project, user):
    if user.is_admin or project.created_by_id == user.id:
        return True
    member = get_membership(project.id, user.id)
    return member is not None and member.role != "viewer"


def can_delete(project, user):
    return user.is_admin or project.created_by_id == user.id


def get_project(project_id):
    """Load an active project or raise NotFoundError."""
    project = db.session.get(Project, project_id)
    if project is None or project.is_deleted:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def get_project_for_user(project_id, user, *, write=False):
    """Load a project and enforce read (or write) access for ``user``.

    Raises:
        NotFoundError: project missing or soft-deleted.
        PermissionDeniedError: user may not read / write it.
    """
    project = get_project(project_id)
    allowed = can_write(project, user) if write else can_read(project, user)
    if not allowed:
        logger.info("User %s denied %s access to project %s",
                    user.id, "write" if write else "read", project_id)
        raise PermissionDeniedError()
    return project


def member_user_ids(project):
    """Creator plus every member, deduplicated."""
    ids = [project.created_by_id] if project.created_by_id else []
    ids.extend(m.user_id for m in project.members)
    return list(dict.fromkeys(ids))


def manager_user_ids(project):
    """Users that receive budget alerts: creator and project managers."""
    ids = [project.created_by_id] if project.created_by_id else []
    ids.extend(m.user_id for m in project.members.filter(ProjectMember.role.in_(MANAGER_ROLES)))
    return list(dict.fromkeys(ids))


# ── Project CRUD ─────────────────────────────────────────────────────────


def _apply_project_fields(project, data):
    for field in _TEXT_FIELDS:
        if field in data:
            setattr(project, field, data[field])
    if "client_email" in data:
        project.client_email = normalize_email(data["client_email"], "client_email")
    if "status" in data:
        project.status = require_choice(data["status"], PROJECT_STATUSES, "status")
    if "priority" in data:
        project.priority = require_choice(data["priority"], PRIORITY_LEVELS, "priority")
    if "budget" in data:
        project.budget = parse_amount(data["budget"], "budget")
    if "currency" in data and data["currency"]:
        currency = str(data["currency"]).upper()
        if len(currency) != 3:
            raise ValidationError("currency must be a 3-letter code", details={"currency": data["currency"]})
        project.currency = currency
    if "progress" in data:
        project.progress = parse_int(data["progress"], "progress", minimum=0, maximum=100) or 0
    for field in ("start_date", "end_date", "actual_end_date"):
        if field in data:
            setattr(project, field, parse_date_field(data, field))
    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise ValidationError("end_date must not be before start_date",
                              details={"start_date": project.start_date.isoformat(),
                                       "end_date": project.end_date.isoformat()})


def list_projects(user, *, status=None, priority=None, q=None):
    """Visible projects, newest activity first. Returns a query for pagination."""
    query = visible_projects_query(user)
    if status:
        query = query.filter(Project.status == status)
    if priority:
        query = query.filter(Project.priority == priority)
    if q:
        query = query.filter(Project.name.ilike(f"%{q}%"))
    return query.order_by(Project.updated_at.desc(), Project.id.desc())


def project_stats(user):
    rows = (visible_projects_query(user)
            .with_entities(Project.status, func.count(Project.id))
            .group_by(Project.status).all())
    by_status = dict(rows)
    return {
        "total": sum(by_status.values()),
        "active": by_status.get("in_progress", 0),
        "completed": by_status.get("completed", 0),
        "on_hold": by_status.get("on_hold", 0),
    }


def create_project(data, user):
    """Create a project; the creator joins as project_manager.

    Returns:
        Project instance (already flushed).
    """
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    project = Project(name=name, created_by_id=user.id)
    _apply_project_fields(project, data)
    db.session.add(project)
    db.session.flush()

    db.session.add(ProjectMember(project_id=project.id, user_id=user.id, role="project_manager"))
    write_activity(project_id=project.id, entity_type="project", entity_id=project.id,
                   action="created", user_id=user.id, details={"name": project.name})
    logger.info("Project created id=%s name=%s by user=%s", project.id, project.name, user.id)
    return project


def update_project(project, data, user=None):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        project.name = name
    _apply_project_fields(project, data)
    db.session.flush()
    write_activity(project_id=project.id, entity_type="project", entity_id=project.id,
                   action="updated", user_id=user.id if user else None,
                   details={"fields": sorted(data.keys())})
    return project


def delete_project(project, user):
    if not can_delete(project, user):
        raise PermissionDeniedError("Only the project creator or an admin can delete a project")
    project.soft_delete()
    db.session.flush()
    write_activity(project_id=project.id, entity_type="project", entity_id=project.id,
                   action="deleted", user_id=user.id)
    logger.info("Project soft-deleted id=%s by user=%s", project.id, user.id)


def project_overview(project):
    """Dashboard aggregate: tasks, budget, milestones, procurement."""
    task_rows = (db.session.query(Task.status, func.count(Task.id))
                 .filter(Task.project_id == project.id)
                 .group_by(Task.status).all())
    task_counts = dict(task_rows)
    open_tasks = Task.query.filter(Task.project_id == project.id,
                                   Task.status.in_(("todo", "in_progress", "in_review"))).all()
    overdue = sum(1 for t in open_tasks if t.is_overdue())

    milestone_rows = (db.session.query(Milestone.status, func.count(Milestone.id))
                      .filter(Milestone.project_id == project.id)
                      .group_by(Milestone.status).all())
    milestone_counts = dict(milestone_rows)

    proc_rows = (db.session.query(ProcurementItem.status, func.count(ProcurementItem.id))
                 .filter(ProcurementItem.project_id == project.id)
                 .group_by(ProcurementItem.status).all())
    proc_counts = dict(proc_rows)

    budget = round(project.budget or 0.0, 2)
    spent = round(project.spent_amount or 0.0, 2)
    return {
        "project": project.to_dict(),
        "tasks": {
            "total": sum(task_counts.values()),
            "todo": task_counts.get("todo", 0),
            "in_progress": task_counts.get("in_progress", 0),
            "in_review": task_counts.get("in_review", 0),
            "completed": task_counts.get("completed", 0),
            "overdue": overdue,
        },
        "budget": {
            "budget": budget,
            "spent": spent,
            "remaining": round(budget - spent, 2),
            "currency": project.currency,
        },
        "milestones": {
            "total": sum(milestone_counts.values()),
            "completed": milestone_counts.get("completed", 0),
            "delayed": milestone_counts.get("delayed", 0),
        },
        "procurement": {
            "total": sum(proc_counts.values()),
            "pending": proc_counts.get("pending", 0),
            "ordered": proc_counts.get("ordered", 0),
            "delivered": proc_counts.get("delivered", 0),
        },
    }


# ── Members ──────────────────────────────────────────────────────────────


def list_members(project):
    return project.members.order_by(ProjectMember.joined_at.asc(), ProjectMember.id.asc()).all()


def get_member(project, member_id):
    member = db.session.get(ProjectMember, member_id)
    if member is None or member.project_id != project.id:
        raise NotFoundError(resource="ProjectMember", resource_id=member_id)
    return member


def add_member(project, data):
    """Add a user to the project and notify them.

    Raises:
        ValidationError: missing user_id or bad role.
        NotFoundError: the user does not exist.
        ConflictError: already a member.
    """
    user_id = parse_int(data.get("user_id"), "user_id")
    if user_id is None:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    role = require_choice(data.get("role", "viewer"), MEMBER_ROLES, "role")
    if db.session.get(User, user_id) is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    if get_membership(project.id, user_id) is not None:
        raise ConflictError(resource="ProjectMember", field="user_id", value=str(user_id))

    member = ProjectMember(project_id=project.id, user_id=user_id, role=role)
    db.session.add(member)
    db.session.flush()

    NotificationService.notify_member_added(project, user_id, role)
    write_activity(project_id=project.id, entity_type="member", entity_id=member.id,
                   action="member_added", details={"user_id": user_id, "role": role})
    return member


def update_member_role(project, member, data):
    member.role = require_choice(data.get("role"), MEMBER_ROLES, "role")
    db.session.flush()
    write_activity(project_id=project.id, entity_type="member", entity_id=member.id,
                   action="member_updated", details={"user_id": member.user_id, "role": member.role})
    return member


def remove_member(project, member):
    if member.user_id == project.created_by_id:
        raise ValidationError("The project creator cannot be removed",
                              details={"user_id": member.user_id})
    write_activity(project_id=project.id, entity_type="member", entity_id=member.id,
                   action="member_removed", details={"user_id": member.user_id})
    db.session.delete(member)
    db.session.flush()


# ── Activity feed ────────────────────────────────────────────────────────


def list_activities(project_id, limit=50):
    return (ActivityLog.query.filter_by(project_id=project_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit).all())


def recent_activities(user, limit=20):
    """Newest activity across every project the user can see."""
    project_ids = visible_projects_query(user).with_entities(Project.id)
    return (ActivityLog.query.filter(ActivityLog.project_id.in_(project_ids))
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit).all())
