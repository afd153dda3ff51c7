"""
Template Blueprint — reusable project templates.

Endpoints:
    Templates:
        GET    /api/v1/templates                               — List visible (category, q)
        POST   /api/v1/templates                               — Create
        GET    /api/v1/templates/<tid>                         — Get with BOQ lines and suppliers
        PUT    /api/v1/templates/<tid>                         — Update (creator or admin)
        DELETE /api/v1/templates/<tid>                         — Delete (creator or admin)
        GET    /api/v1/templates/<tid>/stats                   — Counts and BOQ value
        POST   /api/v1/templates/<tid>/apply                   — Create a project from it

    BOQ lines:
        POST   /api/v1/templates/<tid>/boq-items               — Add
        PUT    /api/v1/templates/<tid>/boq-items/<iid>         — Update
        DELETE /api/v1/templates/<tid>/boq-items/<iid>         — Remove

    Suppliers:
        POST   /api/v1/templates/<tid>/suppliers               — Add (vendor once)
        DELETE /api/v1/templates/<tid>/suppliers/<sid>         — Remove

Template suggestions live in the AI blueprint.
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, paginate_query
from fitout.services import template_service
from fitout.utils.helpers import db_commit_or_error

template_bp = Blueprint("template_bp", __name__, url_prefix="/api/v1/templates")


def _load(template_id, *, write=False):
    return template_service.get_template_for_user(template_id, current_user(), write=write)


# ═══════════════════════════════════════════════════════════════════════════
#  TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════

@template_bp.route("", methods=["GET"])
def list_templates():
    query = template_service.list_templates(
        current_user(),
        category=request.args.get("category"),
        q=request.args.get("q"),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [t.to_dict() for t in items], "total": total})


@template_bp.route("", methods=["POST"])
def create_template():
    template = template_service.create_template(json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(template.to_dict(include_children=True)), 201


@template_bp.route("/<int:template_id>", methods=["GET"])
def get_template(template_id):
    return jsonify(_load(template_id).to_dict(include_children=True))


@template_bp.route("/<int:template_id>", methods=["PUT"])
def update_template(template_id):
    template = _load(template_id, write=True)
    template_service.update_template(template, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(template.to_dict(include_children=True))


@template_bp.route("/<int:template_id>", methods=["DELETE"])
def delete_template(template_id):
    template_service.delete_template(_load(template_id, write=True))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": template_id})


@template_bp.route("/<int:template_id>/stats", methods=["GET"])
def template_stats(template_id):
    return jsonify(template_service.template_stats(_load(template_id)))


@template_bp.route("/<int:template_id>/apply", methods=["POST"])
def apply_template(template_id):
    template = _load(template_id)
    project, items = template_service.apply_template(template, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({
        "project": project.to_dict(),
        "template_id": template.id,
        "procurement_items_created": len(items),
    }), 201


# ═══════════════════════════════════════════════════════════════════════════
#  BOQ LINES
# ═══════════════════════════════════════════════════════════════════════════

@template_bp.route("/<int:template_id>/boq-items", methods=["POST"])
def add_boq_item(template_id):
    template = _load(template_id, write=True)
    item = template_service.add_boq_item(template, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(item.to_dict()), 201


@template_bp.route("/<int:template_id>/boq-items/<int:item_id>", methods=["PUT"])
def update_boq_item(template_id, item_id):
    template = _load(template_id, write=True)
    item = template_service.get_boq_item(template, item_id)
    template_service.update_boq_item(item, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(item.to_dict())


@template_bp.route("/<int:template_id>/boq-items/<int:item_id>", methods=["DELETE"])
def delete_boq_item(template_id, item_id):
    template = _load(template_id, write=True)
    template_service.delete_boq_item(template_service.get_boq_item(template, item_id))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": item_id})


# ═══════════════════════════════════════════════════════════════════════════
#  SUPPLIERS
# ═══════════════════════════════════════════════════════════════════════════

@template_bp.route("/<int:template_id>/suppliers", methods=["POST"])
def add_supplier(template_id):
    template = _load(template_id, write=True)
    supplier = template_service.add_supplier(template, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(supplier.to_dict()), 201


@template_bp.route("/<int:template_id>/suppliers/<int:supplier_id>", methods=["DELETE"])
def delete_supplier(template_id, supplier_id):
    template = _load(template_id, write=True)
    template_service.delete_supplier(template_service.get_supplier(template, supplier_id))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": supplier_id})
