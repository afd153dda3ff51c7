"""Sprint service layer — time boxes, story points, velocity and burndown.

Transaction policy: functions use flush(), never commit().

Metrics rule:
    completed_points = Σ story_points of sprint tasks whose status is ``completed``
    progress_percentage = round(completed_points / total_points × 100), 0 without points
"""
import logging
from datetime import date, timedelta

from fitout.core.exceptions import ConflictError, NotFoundError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.project import Project
from fitout.models.sprint import SPRINT_STATUSES, BurndownPoint, Sprint, SprintTask, TeamVelocity
from fitout.models.task import Task
from fitout.services import project_service
from fitout.utils.helpers import parse_date_field, parse_int, require_choice

logger = logging.getLogger(__name__)

VELOCITY_HISTORY_LIMIT = 10


# ── Sprints ──────────────────────────────────────────────────────────────


def list_sprints(project_id, *, status=None):
    q = Sprint.query.filter_by(project_id=project_id)
    if status:
        q = q.filter(Sprint.status == status)
    return q.order_by(Sprint.start_date.desc(), Sprint.id.desc())


def active_sprints(user):
    """Active sprints across the projects ``user`` can see."""
    project_ids = project_service.visible_projects_query(user).with_entities(Project.id)
    return (Sprint.query
            .filter(Sprint.status == "active", Sprint.project_id.in_(project_ids))
            .order_by(Sprint.end_date.asc(), Sprint.id.asc()))


def get_sprint(project_id, sprint_id):
    sprint = db.session.get(Sprint, sprint_id)
    if sprint is None or sprint.project_id != project_id:
        raise NotFoundError(resource="Sprint", resource_id=sprint_id)
    return sprint


def _apply_sprint_fields(sprint, data):
    if "description" in data:
        sprint.description = data["description"]
    if "status" in data:
        sprint.status = require_choice(data["status"], SPRINT_STATUSES, "status")
    for field in ("start_date", "end_date"):
        if field in data:
            value = parse_date_field(data, field)
            if value is None:
                raise ValidationError(f"{field} is required", details={field: "required"})
            setattr(sprint, field, value)
    if "target_points" in data:
        sprint.target_points = parse_int(data["target_points"], "target_points", minimum=0)
    if sprint.start_date and sprint.end_date and sprint.end_date < sprint.start_date:
        raise ValidationError("end_date must not be before start_date",
                              details={"start_date": sprint.start_date.isoformat(),
                                       "end_date": sprint.end_date.isoformat()})


def create_sprint(project, data, user):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    for field in ("start_date", "end_date"):
        if data.get(field) in (None, ""):
            raise ValidationError(f"{field} is required", details={field: "required"})

    sprint = Sprint(project_id=project.id, name=name, created_by_id=user.id)
    _apply_sprint_fields(sprint, data)
    db.session.add(sprint)
    db.session.flush()

    write_activity(project_id=project.id, entity_type="sprint", entity_id=sprint.id,
                   action="created", user_id=user.id, details={"name": sprint.name})
    return sprint


def update_sprint(sprint, data, user):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        sprint.name = name
    previous_status = sprint.status
    _apply_sprint_fields(sprint, data)
    if sprint.status == "completed" and previous_status != "completed":
        sprint.completed_points = sprint_metrics(sprint)["completed_points"]
        logger.info("Sprint %s completed with %d points", sprint.id, sprint.completed_points)
    db.session.flush()

    write_activity(project_id=sprint.project_id, entity_type="sprint", entity_id=sprint.id,
                   action="updated", user_id=user.id, details={"fields": sorted(data.keys())})
    return sprint


def delete_sprint(sprint, user):
    write_activity(project_id=sprint.project_id, entity_type="sprint", entity_id=sprint.id,
                   action="deleted", user_id=user.id, details={"name": sprint.name})
    TeamVelocity.query.filter_by(sprint_id=sprint.id).delete(synchronize_session="fetch")
    db.session.delete(sprint)
    db.session.flush()


# ── Sprint tasks ─────────────────────────────────────────────────────────


def list_sprint_tasks(sprint):
    return sprint.sprint_tasks.all()


def get_sprint_task(sprint, task_id):
    entry = SprintTask.query.filter_by(sprint_id=sprint.id, task_id=task_id).first()
    if entry is None:
        raise NotFoundError(resource="SprintTask", resource_id=task_id)
    return entry


def add_task(sprint, data):
    task_id = parse_int(data.get("task_id"), "task_id")
    if task_id is None:
        raise ValidationError("task_id is required", details={"task_id": "required"})
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    if task.project_id != sprint.project_id:
        raise ValidationError("Task must belong to the sprint's project", details={"task_id": task_id})
    if SprintTask.query.filter_by(sprint_id=sprint.id, task_id=task_id).first():
        raise ConflictError(resource="SprintTask", field="task_id", value=str(task_id))

    entry = SprintTask(
        sprint_id=sprint.id, task_id=task_id,
        story_points=parse_int(data.get("story_points"), "story_points", minimum=0) or 0,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def update_sprint_task(entry, data):
    if "story_points" in data:
        entry.story_points = parse_int(data["story_points"], "story_points", minimum=0) or 0
    db.session.flush()
    return entry


def remove_task(entry):
    db.session.delete(entry)
    db.session.flush()


# ── Metrics / velocity / burndown ────────────────────────────────────────


def sprint_metrics(sprint) -> dict:
    entries = sprint.sprint_tasks.all()
    done = [e for e in entries if e.task is not None and e.task.status == "completed"]
    total_points = sum(e.story_points for e in entries)
    completed_points = sum(e.story_points for e in done)
    return {
        "sprint_id": sprint.id,
        "total_points": total_points,
        "completed_points": completed_points,
        "remaining_points": total_points - completed_points,
        "total_tasks": len(entries),
        "completed_tasks": len(done),
        "progress_percentage": round(completed_points / total_points * 100) if total_points else 0,
    }


def record_velocity(sprint):
    """Snapshot the sprint's current delivery figures as a TeamVelocity row."""
    metrics = sprint_metrics(sprint)
    planned = sprint.target_points if sprint.target_points else metrics["total_points"]
    assignees = {e.task.assignee_id for e in sprint.sprint_tasks if e.task and e.task.assignee_id}
    velocity = TeamVelocity(
        project_id=sprint.project_id,
        sprint_id=sprint.id,
        planned_points=planned,
        completed_points=metrics["completed_points"],
        total_tasks=metrics["total_tasks"],
        completed_tasks=metrics["completed_tasks"],
        team_members_active=len(assignees),
        velocity_score=round(metrics["completed_points"] / planned * 100, 1) if planned else 0.0,
    )
    db.session.add(velocity)
    db.session.flush()
    return velocity


def velocity_history(project_id, limit=VELOCITY_HISTORY_LIMIT):
    rows = (TeamVelocity.query.filter_by(project_id=project_id)
            .order_by(TeamVelocity.recorded_at.desc(), TeamVelocity.id.desc())
            .limit(limit).all())
    average = round(sum(r.completed_points for r in rows) / len(rows), 1) if rows else 0.0
    return {"items": [r.to_dict() for r in rows], "total": len(rows), "average_velocity": average}


def record_burndown(sprint, day: date | None = None):
    """Store (or overwrite) the sprint's remaining / completed points for ``day``."""
    day = day or date.today()
    metrics = sprint_metrics(sprint)
    point = BurndownPoint.query.filter_by(sprint_id=sprint.id, day=day).first()
    if point is None:
        point = BurndownPoint(sprint_id=sprint.id, project_id=sprint.project_id, day=day)
        db.session.add(point)
    point.remaining_points = metrics["remaining_points"]
    point.completed_points = metrics["completed_points"]
    db.session.flush()
    return point


def ideal_line(sprint, total_points) -> list[dict]:
    """Straight line from ``total_points`` on the start date to 0 on the end date."""
    span = (sprint.end_date - sprint.start_date).days
    if span <= 0:
        return [{"day": sprint.start_date.isoformat(), "remaining_points": 0.0}]
    return [
        {
            "day": (sprint.start_date + timedelta(days=i)).isoformat(),
            "remaining_points": round(total_points * (1 - i / span), 1),
        }
        for i in range(span + 1)
    ]


def burndown(sprint) -> dict:
    total = sprint.target_points if sprint.target_points else sprint_metrics(sprint)["total_points"]
    return {
        "sprint_id": sprint.id,
        "points": [p.to_dict() for p in sprint.burndown],
        "ideal": ideal_line(sprint, total),
    }
