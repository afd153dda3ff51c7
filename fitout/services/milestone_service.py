"""Milestone service layer.

Transaction policy: functions use flush(), never commit().
"""
import logging
from datetime import date

from fitout.core.exceptions import NotFoundError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.milestone import MILESTONE_STATUSES, Milestone
from fitout.services.notification import NotificationService
from fitout.services.project_service import get_project, member_user_ids
from fitout.utils.helpers import parse_date_field, parse_int, require_choice

logger = logging.getLogger(__name__)


def get_milestone(milestone_id):
    milestone = db.session.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFoundError(resource="Milestone", resource_id=milestone_id)
    return milestone


def list_milestones(project_id):
    return (Milestone.query.filter_by(project_id=project_id)
            .order_by(Milestone.order.asc(), Milestone.due_date.asc(), Milestone.id.asc())
            .all())


def _apply_fields(milestone, data):
    if "description" in data:
        milestone.description = data["description"]
    if "color" in data:
        milestone.color = data["color"]
    if "order" in data:
        milestone.order = parse_int(data["order"], "order", minimum=0) or 0
    if "due_date" in data:
        due = parse_date_field(data, "due_date")
        if due is None:
            raise ValidationError("due_date is required", details={"due_date": "required"})
        milestone.due_date = due
    if "completed_date" in data:
        milestone.completed_date = parse_date_field(data, "completed_date")


def create_milestone(project, data, user):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if not data.get("due_date"):
        raise ValidationError("due_date is required", details={"due_date": "required"})

    milestone = Milestone(project_id=project.id, name=name)
    _apply_fields(milestone, data)
    milestone.status = require_choice(data.get("status", "pending"), MILESTONE_STATUSES, "status")
    if milestone.status == "completed" and milestone.completed_date is None:
        milestone.completed_date = date.today()
    db.session.add(milestone)
    db.session.flush()

    write_activity(project_id=project.id, entity_type="milestone", entity_id=milestone.id,
                   action="created", user_id=user.id, details={"name": milestone.name})
    return milestone


def update_milestone(milestone, data, user):
    """Update a milestone; reaching ``completed`` notifies the project team."""
    old_status = milestone.status
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        milestone.name = name
    _apply_fields(milestone, data)
    if "status" in data:
        milestone.status = require_choice(data["status"], MILESTONE_STATUSES, "status")
    db.session.flush()

    if milestone.status == "completed" and old_status != "completed":
        if milestone.completed_date is None:
            milestone.completed_date = date.today()
        project = get_project(milestone.project_id)
        NotificationService.notify_milestone_reached(milestone, member_user_ids(project), actor_id=user.id)
        logger.info("Milestone %s reached on project %s", milestone.id, milestone.project_id)

    write_activity(project_id=milestone.project_id, entity_type="milestone", entity_id=milestone.id,
                   action="updated", user_id=user.id, details={"fields": sorted(data.keys())})
    return milestone


def delete_milestone(milestone, user):
    write_activity(project_id=milestone.project_id, entity_type="milestone", entity_id=milestone.id,
                   action="deleted", user_id=user.id, details={"name": milestone.name})
    db.session.delete(milestone)
    db.session.flush()
