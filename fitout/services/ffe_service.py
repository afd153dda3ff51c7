"""FF&E and material schedule service.

Transaction policy: functions use flush(), never commit().

FF&E lines and material lines share one code path, parameterised by a
``ScheduleKind`` (model, statuses, integer vs decimal quantity, activity
entity name).
"""
import logging
from dataclasses import dataclass

from sqlalchemy import func

from fitout.core.exceptions import NotFoundError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.ffe import FFE_STATUSES, MATERIAL_STATUSES, FFEItem, MaterialItem
from fitout.models.procurement import ProcurementItem
from fitout.models.project import PRIORITY_LEVELS
from fitout.utils.helpers import parse_amount, parse_date_field, parse_int, require_choice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleKind:
    model: type
    statuses: set
    entity: str
    label: str
    integer_quantity: bool
    extra_fields: tuple


FFE = ScheduleKind(
    model=FFEItem,
    statuses=FFE_STATUSES,
    entity="ffe_item",
    label="FFEItem",
    integer_quantity=True,
    extra_fields=("type", "manufacturer", "model_number", "installation_notes"),
)
MATERIAL = ScheduleKind(
    model=MaterialItem,
    statuses=MATERIAL_STATUSES,
    entity="material_item",
    label="MaterialItem",
    integer_quantity=False,
    extra_fields=("supplier",),
)


def list_lines(kind, project_id, *, category=None, status=None):
    model = kind.model
    q = model.query.filter_by(project_id=project_id)
    if category:
        q = q.filter(model.category == category)
    if status:
        q = q.filter(model.status == status)
    return q.order_by(model.category.asc(), model.name.asc(), model.id.asc())


def get_line(kind, project_id, line_id):
    line = db.session.get(kind.model, line_id)
    if line is None or line.project_id != project_id:
        raise NotFoundError(resource=kind.label, resource_id=line_id)
    return line


def _parse_quantity(kind, raw):
    if kind.integer_quantity:
        quantity = parse_int(raw, "quantity")
    else:
        quantity = parse_amount(raw, "quantity", minimum=None)
    if quantity is None:
        raise ValidationError("quantity is required", details={"quantity": "required"})
    if quantity <= 0:
        raise ValidationError("quantity must be greater than 0", details={"quantity": raw})
    return quantity


def _validate_linked_item(project_id, raw):
    item_id = parse_int(raw, "linked_procurement_item_id")
    if item_id is None:
        return None
    item = db.session.get(ProcurementItem, item_id)
    if item is None or item.project_id != project_id:
        raise ValidationError("Linked procurement item must belong to the same project",
                              details={"linked_procurement_item_id": item_id})
    return item_id


def _apply_fields(kind, line, data):
    for field in ("description", "specification_notes") + kind.extra_fields:
        if field in data:
            setattr(line, field, data[field])
    if "category" in data:
        category = (data.get("category") or "").strip()
        if not category:
            raise ValidationError("category is required", details={"category": "required"})
        line.category = category
    if "unit" in data and data["unit"]:
        line.unit = data["unit"]
    if "quantity" in data:
        line.quantity = _parse_quantity(kind, data["quantity"])
    if "estimated_unit_cost" in data:
        line.estimated_unit_cost = parse_amount(data["estimated_unit_cost"], "estimated_unit_cost")
    if "required_date" in data:
        line.required_date = parse_date_field(data, "required_date")
    if "status" in data:
        line.status = require_choice(data["status"], kind.statuses, "status")
    if "priority" in data:
        line.priority = require_choice(data["priority"], PRIORITY_LEVELS, "priority")
    if "linked_procurement_item_id" in data:
        line.linked_procurement_item_id = _validate_linked_item(
            line.project_id, data["linked_procurement_item_id"])


def create_line(kind, project, data, user):
    """Create an FF&E or material line with its estimated total.

    Returns:
        The new line (already flushed).
    """
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if not (data.get("category") or "").strip():
        raise ValidationError("category is required", details={"category": "required"})
    if data.get("quantity") in (None, ""):
        raise ValidationError("quantity is required", details={"quantity": "required"})

    line = kind.model(project_id=project.id, name=name, created_by_id=user.id)
    _apply_fields(kind, line, data)
    line.recalculate_total()
    db.session.add(line)
    db.session.flush()

    write_activity(project_id=project.id, entity_type=kind.entity, entity_id=line.id,
                   action="created", user_id=user.id, details={"name": line.name})
    return line


def update_line(kind, line, data, user):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        line.name = name
    _apply_fields(kind, line, data)
    if "quantity" in data or "estimated_unit_cost" in data:
        line.recalculate_total()
    db.session.flush()

    write_activity(project_id=line.project_id, entity_type=kind.entity, entity_id=line.id,
                   action="updated", user_id=user.id, details={"fields": sorted(data.keys())})
    return line


def delete_line(kind, line, user):
    write_activity(project_id=line.project_id, entity_type=kind.entity, entity_id=line.id,
                   action="deleted", user_id=user.id, details={"name": line.name})
    db.session.delete(line)
    db.session.flush()


def summary_by_category(kind, project_id):
    """Per-category count, quantity and estimated cost plus grand totals."""
    model = kind.model
    rows = (db.session.query(
                model.category,
                func.count(model.id),
                func.coalesce(func.sum(model.quantity), 0),
                func.coalesce(func.sum(model.total_estimated_cost), 0.0))
            .filter(model.project_id == project_id)
            .group_by(model.category)
            .order_by(model.category.asc())
            .all())
    categories = [
        {
            "category": category,
            "count": count,
            "quantity": quantity,
            "estimated_cost": round(float(cost or 0.0), 2),
        }
        for category, count, quantity, cost in rows
    ]
    return {
        "categories": categories,
        "total_items": sum(c["count"] for c in categories),
        "total_estimated_cost": round(sum(c["estimated_cost"] for c in categories), 2),
    }
