"""Procurement service layer — vendor directory and project purchase items.

Transaction policy: functions use flush(), never commit().

Cost rule:
    total_cost = quantity × (actual_unit_cost, else estimated_unit_cost)
"""
import logging

from sqlalchemy import func

from fitout.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.procurement import (
    PROCUREMENT_STATUSES,
    TRADE_CATEGORIES,
    ProcurementItem,
    Vendor,
    VendorFavorite,
)
from fitout.models.project import PRIORITY_LEVELS
from fitout.utils.helpers import (
    normalize_email,
    parse_amount,
    parse_date_field,
    parse_int,
    require_choice,
)

logger = logging.getLogger(__name__)

_COST_FIELDS = ("quantity", "estimated_unit_cost", "actual_unit_cost")


# ── Vendors ──────────────────────────────────────────────────────────────


def list_vendors(*, category=None, active=None):
    q = Vendor.query
    if category:
        q = q.filter(Vendor.category == category)
    if active is not None:
        q = q.filter(Vendor.is_active.is_(active))
    return q.order_by(Vendor.name.asc())


def get_vendor(vendor_id):
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFoundError(resource="Vendor", resource_id=vendor_id)
    return vendor


def _apply_vendor_fields(vendor, data):
    for field in ("contact_person", "phone", "address", "notes"):
        if field in data:
            setattr(vendor, field, data[field])
    if "email" in data:
        vendor.email = normalize_email(data["email"])
    if "category" in data:
        vendor.category = require_choice(data["category"], TRADE_CATEGORIES, "category")
    if "rating" in data:
        vendor.rating = parse_int(data["rating"], "rating", minimum=0, maximum=5) or 0
    if "is_active" in data:
        vendor.is_active = bool(data["is_active"])


def create_vendor(data, user):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    vendor = Vendor(name=name, created_by_id=user.id)
    _apply_vendor_fields(vendor, data)
    db.session.add(vendor)
    db.session.flush()
    logger.info("Vendor created id=%s name=%s", vendor.id, vendor.name)
    return vendor


def update_vendor(vendor, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        vendor.name = name
    _apply_vendor_fields(vendor, data)
    db.session.flush()
    return vendor


def delete_vendor(vendor, user):
    """Delete a vendor; items that referenced it keep vendor_id nulled."""
    if not user.is_admin and vendor.created_by_id != user.id:
        raise PermissionDeniedError("Only the vendor's creator or an admin can delete it")
    ProcurementItem.query.filter_by(vendor_id=vendor.id).update(
        {"vendor_id": None}, synchronize_session="fetch")
    VendorFavorite.query.filter_by(vendor_id=vendor.id).delete(synchronize_session="fetch")
    db.session.delete(vendor)
    db.session.flush()


# ── Favorites ────────────────────────────────────────────────────────────


def list_favorite_vendors(user):
    return (Vendor.query.join(VendorFavorite, VendorFavorite.vendor_id == Vendor.id)
            .filter(VendorFavorite.user_id == user.id)
            .order_by(Vendor.name.asc()))


def add_favorite(vendor, user):
    """Shortlist ``vendor`` for ``user``; a repeat call is a no-op."""
    favorite = VendorFavorite.query.filter_by(user_id=user.id, vendor_id=vendor.id).first()
    if favorite is None:
        favorite = VendorFavorite(user_id=user.id, vendor_id=vendor.id)
        db.session.add(favorite)
        db.session.flush()
    return favorite


def remove_favorite(vendor, user):
    removed = VendorFavorite.query.filter_by(user_id=user.id, vendor_id=vendor.id).delete()
    db.session.flush()
    return bool(removed)


# ── Procurement items ────────────────────────────────────────────────────


def list_items(project_id, *, status=None, category=None, vendor_id=None):
    q = ProcurementItem.query.filter_by(project_id=project_id)
    if status:
        q = q.filter(ProcurementItem.status == status)
    if category:
        q = q.filter(ProcurementItem.category == category)
    if vendor_id:
        q = q.filter(ProcurementItem.vendor_id == vendor_id)
    return q.order_by(ProcurementItem.required_date.is_(None),
                      ProcurementItem.required_date.asc(), ProcurementItem.id.asc())


def get_item(project_id, item_id):
    item = db.session.get(ProcurementItem, item_id)
    if item is None or item.project_id != project_id:
        raise NotFoundError(resource="ProcurementItem", resource_id=item_id)
    return item


def _apply_item_fields(item, data):
    for field in ("description", "specifications", "notes"):
        if field in data:
            setattr(item, field, data[field])
    if "unit" in data and data["unit"]:
        item.unit = data["unit"]
    if "category" in data:
        item.category = require_choice(data["category"], TRADE_CATEGORIES, "category")
    if "status" in data:
        item.status = require_choice(data["status"], PROCUREMENT_STATUSES, "status")
    if "priority" in data:
        item.priority = require_choice(data["priority"], PRIORITY_LEVELS, "priority")
    if "required_date" in data:
        item.required_date = parse_date_field(data, "required_date")
    if "vendor_id" in data:
        vendor_id = parse_int(data["vendor_id"], "vendor_id")
        if vendor_id is not None:
            get_vendor(vendor_id)
        item.vendor_id = vendor_id
    if "quantity" in data:
        quantity = parse_amount(data["quantity"], "quantity", minimum=None, allow_none=False)
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0", details={"quantity": data["quantity"]})
        item.quantity = quantity
    for field in ("estimated_unit_cost", "actual_unit_cost"):
        if field in data:
            setattr(item, field, parse_amount(data[field], field))


def create_item(project, data, user):
    """Create a procurement item with its total cost computed.

    Returns:
        ProcurementItem instance (already flushed).
    """
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if data.get("quantity") in (None, ""):
        raise ValidationError("quantity is required", details={"quantity": "required"})

    item = ProcurementItem(project_id=project.id, name=name, created_by_id=user.id)
    _apply_item_fields(item, data)
    item.recalculate_total()
    db.session.add(item)
    db.session.flush()

    write_activity(project_id=project.id, entity_type="procurement_item", entity_id=item.id,
                   action="created", user_id=user.id, details={"name": item.name})
    return item


def update_item(item, data, user):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        item.name = name
    _apply_item_fields(item, data)
    if any(field in data for field in _COST_FIELDS):
        item.recalculate_total()
    db.session.flush()

    write_activity(project_id=item.project_id, entity_type="procurement_item", entity_id=item.id,
                   action="updated", user_id=user.id, details={"fields": sorted(data.keys())})
    return item


def delete_item(item, user):
    write_activity(project_id=item.project_id, entity_type="procurement_item", entity_id=item.id,
                   action="deleted", user_id=user.id, details={"name": item.name})
    db.session.delete(item)
    db.session.flush()


def procurement_stats(project_id):
    rows = (db.session.query(ProcurementItem.status, func.count(ProcurementItem.id))
            .filter(ProcurementItem.project_id == project_id)
            .group_by(ProcurementItem.status).all())
    by_status = dict(rows)
    total_cost = (db.session.query(func.coalesce(func.sum(ProcurementItem.total_cost), 0.0))
                  .filter(ProcurementItem.project_id == project_id).scalar())
    return {
        "total": sum(by_status.values()),
        "pending": by_status.get("pending", 0),
        "ordered": by_status.get("ordered", 0),
        "delivered": by_status.get("delivered", 0),
        "total_cost": round(float(total_cost or 0.0), 2),
    }
