"""Project template service layer.

Transaction policy: functions use flush(), never commit().

Visibility:
    a template is readable by its creator, by admins, and by everyone once
    ``is_public``; only the creator or an admin may change or delete it.

Applying a template creates a project through ``project_service`` and turns
each BOQ line into a pending procurement item.
"""
import logging

from sqlalchemy import String, cast, or_

from fitout.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from fitout.models import db
from fitout.models.procurement import ProcurementItem, trade_category
from fitout.models.template import ProjectTemplate, TemplateBOQItem, TemplateSupplier
from fitout.services import procurement_service, project_service
from fitout.utils.helpers import parse_amount, parse_int

logger = logging.getLogger(__name__)

# Project fields a template's default_settings may preset
PROJECT_DEFAULT_FIELDS = ("description", "location", "currency", "priority", "budget", "status")


# ── Visibility ───────────────────────────────────────────────────────────


def visible_templates_query(user):
    q = ProjectTemplate.query
    if user.is_admin:
        return q
    return q.filter(or_(ProjectTemplate.created_by_id == user.id, ProjectTemplate.is_public.is_(True)))


def get_template_for_user(template_id, user, *, write=False):
    """Load a template the user may see (or change).

    Raises:
        NotFoundError: missing, or private to someone else.
        PermissionDeniedError: visible but not owned, and ``write`` requested.
    """
    template = db.session.get(ProjectTemplate, template_id)
    if template is None:
        raise NotFoundError(resource="ProjectTemplate", resource_id=template_id)
    owner = user.is_admin or template.created_by_id == user.id
    if not owner and not template.is_public:
        raise NotFoundError(resource="ProjectTemplate", resource_id=template_id)
    if write and not owner:
        raise PermissionDeniedError("Only the template's creator or an admin can change it")
    return template


# ── Template CRUD ────────────────────────────────────────────────────────


def list_templates(user, *, category=None, q=None):
    query = visible_templates_query(user)
    if category:
        query = query.filter(ProjectTemplate.category == category)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(
            ProjectTemplate.name.ilike(like),
            ProjectTemplate.description.ilike(like),
            cast(ProjectTemplate.tags, String).ilike(like),
        ))
    return query.order_by(ProjectTemplate.created_at.desc(), ProjectTemplate.id.desc())


def _apply_template_fields(template, data):
    for field in ("description", "category", "preview_image"):
        if field in data:
            setattr(template, field, data[field])
    if "is_public" in data:
        template.is_public = bool(data["is_public"])
    if "tags" in data:
        tags = data["tags"] or []
        if not isinstance(tags, list):
            raise ValidationError("tags must be a list of strings", details={"tags": tags})
        template.tags = [str(t) for t in tags]
    if "default_settings" in data:
        settings = data["default_settings"] or {}
        if not isinstance(settings, dict):
            raise ValidationError("default_settings must be an object",
                                  details={"default_settings": settings})
        unknown = sorted(set(settings) - set(PROJECT_DEFAULT_FIELDS))
        if unknown:
            raise ValidationError(f"Unsupported default_settings keys: {unknown}",
                                  details={"default_settings": unknown})
        template.default_settings = dict(settings)


def create_template(data, user):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    template = ProjectTemplate(name=name, created_by_id=user.id, tags=[], default_settings={})
    _apply_template_fields(template, data)
    db.session.add(template)
    db.session.flush()
    logger.info("Template created id=%s name=%s by user=%s", template.id, template.name, user.id)
    return template


def update_template(template, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        template.name = name
    _apply_template_fields(template, data)
    db.session.flush()
    return template


def delete_template(template):
    """Delete a template together with its BOQ lines and suppliers."""
    db.session.delete(template)
    db.session.flush()


# ── BOQ lines ────────────────────────────────────────────────────────────


def get_boq_item(template, item_id):
    item = db.session.get(TemplateBOQItem, item_id)
    if item is None or item.template_id != template.id:
        raise NotFoundError(resource="TemplateBOQItem", resource_id=item_id)
    return item


def _apply_boq_fields(item, data):
    if "description" in data:
        description = (data.get("description") or "").strip()
        if not description:
            raise ValidationError("description is required", details={"description": "required"})
        item.description = description[:500]
    if "category" in data:
        item.category = data["category"]
    if "unit" in data and data["unit"]:
        item.unit = data["unit"]
    if "quantity" in data:
        quantity = parse_amount(data["quantity"], "quantity", minimum=None, allow_none=False)
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0", details={"quantity": data["quantity"]})
        item.quantity = quantity
    if "unit_price" in data:
        item.unit_price = parse_amount(data["unit_price"], "unit_price")
    if "vendor_id" in data:
        vendor_id = parse_int(data["vendor_id"], "vendor_id")
        if vendor_id is not None:
            procurement_service.get_vendor(vendor_id)
        item.vendor_id = vendor_id


def add_boq_item(template, data):
    if not (data.get("description") or "").strip():
        raise ValidationError("description is required", details={"description": "required"})
    if data.get("quantity") in (None, ""):
        raise ValidationError("quantity is required", details={"quantity": "required"})
    item = TemplateBOQItem(template_id=template.id)
    _apply_boq_fields(item, data)
    db.session.add(item)
    db.session.flush()
    return item


def update_boq_item(item, data):
    _apply_boq_fields(item, data)
    db.session.flush()
    return item


def delete_boq_item(item):
    db.session.delete(item)
    db.session.flush()


# ── Suppliers ────────────────────────────────────────────────────────────


def get_supplier(template, supplier_id):
    supplier = db.session.get(TemplateSupplier, supplier_id)
    if supplier is None or supplier.template_id != template.id:
        raise NotFoundError(resource="TemplateSupplier", resource_id=supplier_id)
    return supplier


def add_supplier(template, data):
    vendor_id = parse_int(data.get("vendor_id"), "vendor_id")
    if vendor_id is None:
        raise ValidationError("vendor_id is required", details={"vendor_id": "required"})
    vendor = procurement_service.get_vendor(vendor_id)
    if TemplateSupplier.query.filter_by(template_id=template.id, vendor_id=vendor.id).first():
        raise ConflictError(resource="TemplateSupplier", field="vendor_id", value=str(vendor.id))
    supplier = TemplateSupplier(
        template_id=template.id, vendor_id=vendor.id,
        is_primary=bool(data.get("is_primary", False)), notes=data.get("notes"),
    )
    db.session.add(supplier)
    db.session.flush()
    return supplier


def delete_supplier(supplier):
    db.session.delete(supplier)
    db.session.flush()


# ── Stats / apply ────────────────────────────────────────────────────────


def template_stats(template):
    items = template.boq_items.all()
    return {
        "template_id": template.id,
        "suppliers_count": template.suppliers.count(),
        "boq_items_count": len(items),
        "total_boq_value": round(sum(i.line_total for i in items), 2),
        "categories_count": len({i.category for i in items if i.category}),
    }


def apply_template(template, data, user):
    """Create a project from ``template``; request fields win over template defaults.

    Returns:
        (Project, list[ProcurementItem]), both flushed.
    """
    defaults = {k: v for k, v in (template.default_settings or {}).items() if k in PROJECT_DEFAULT_FIELDS}
    payload = {**defaults, **data}
    payload.setdefault("name", template.name)
    if "description" not in payload and template.description:
        payload["description"] = template.description

    project = project_service.create_project(payload, user)

    items = []
    for line in template.boq_items:
        item = ProcurementItem(
            project_id=project.id,
            name=line.description[:255],
            description=line.description,
            category=trade_category(line.category),
            quantity=line.quantity,
            unit=line.unit,
            estimated_unit_cost=line.unit_price,
            vendor_id=line.vendor_id,
            notes=f"From template: {template.name}",
            created_by_id=user.id,
        )
        item.recalculate_total()
        db.session.add(item)
        items.append(item)
    db.session.flush()

    logger.info("Template %s applied: project=%s procurement_items=%d",
                template.id, project.id, len(items))
    return project, items
