"""
Procurement Blueprint — vendor directory and project purchase items.

Endpoints:
    Vendors:
        GET    /api/v1/vendors                               — List (category, active)
        POST   /api/v1/vendors                               — Create
        GET    /api/v1/vendors/<id>                          — Get
        PUT    /api/v1/vendors/<id>                          — Update
        DELETE /api/v1/vendors/<id>                          — Delete (creator or admin)
        GET    /api/v1/vendors/favorites                     — Caller's shortlisted vendors
        PUT    /api/v1/vendors/<id>/favorite                 — Shortlist (idempotent)
        DELETE /api/v1/vendors/<id>/favorite                 — Un-shortlist (idempotent)

    Items:
        GET    /api/v1/projects/<pid>/procurement            — List (status, category, vendor_id)
        POST   /api/v1/projects/<pid>/procurement            — Create
        GET    /api/v1/projects/<pid>/procurement/stats      — Counts and total cost
        GET    /api/v1/projects/<pid>/procurement/<iid>      — Get
        PUT    /api/v1/projects/<pid>/procurement/<iid>      — Update
        DELETE /api/v1/projects/<pid>/procurement/<iid>      — Delete
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.services import procurement_service
from fitout.utils.helpers import db_commit_or_error

procurement_bp = Blueprint("procurement_bp", __name__, url_prefix="/api/v1")


def _parse_active(raw):
    if raw is None or raw == "":
        return None
    return raw.lower() in ("1", "true", "yes")


# ═══════════════════════════════════════════════════════════════════════════
#  VENDORS
# ═══════════════════════════════════════════════════════════════════════════

@procurement_bp.route("/vendors", methods=["GET"])
def list_vendors():
    query = procurement_service.list_vendors(
        category=request.args.get("category"),
        active=_parse_active(request.args.get("active")),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [v.to_dict() for v in items], "total": total})


@procurement_bp.route("/vendors", methods=["POST"])
def create_vendor():
    vendor = procurement_service.create_vendor(json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(vendor.to_dict()), 201


@procurement_bp.route("/vendors/favorites", methods=["GET"])
def list_favorite_vendors():
    items, total = paginate_query(procurement_service.list_favorite_vendors(current_user()))
    return jsonify({"items": [{**v.to_dict(), "is_favorite": True} for v in items], "total": total})


@procurement_bp.route("/vendors/<int:vendor_id>/favorite", methods=["PUT"])
def add_favorite(vendor_id):
    vendor = procurement_service.get_vendor(vendor_id)
    procurement_service.add_favorite(vendor, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"vendor_id": vendor_id, "is_favorite": True})


@procurement_bp.route("/vendors/<int:vendor_id>/favorite", methods=["DELETE"])
def remove_favorite(vendor_id):
    vendor = procurement_service.get_vendor(vendor_id)
    procurement_service.remove_favorite(vendor, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"vendor_id": vendor_id, "is_favorite": False})


@procurement_bp.route("/vendors/<int:vendor_id>", methods=["GET"])
def get_vendor(vendor_id):
    return jsonify(procurement_service.get_vendor(vendor_id).to_dict())


@procurement_bp.route("/vendors/<int:vendor_id>", methods=["PUT"])
def update_vendor(vendor_id):
    vendor = procurement_service.get_vendor(vendor_id)
    procurement_service.update_vendor(vendor, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(vendor.to_dict())


@procurement_bp.route("/vendors/<int:vendor_id>", methods=["DELETE"])
def delete_vendor(vendor_id):
    vendor = procurement_service.get_vendor(vendor_id)
    procurement_service.delete_vendor(vendor, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": vendor_id})


# ═══════════════════════════════════════════════════════════════════════════
#  PROCUREMENT ITEMS
# ═══════════════════════════════════════════════════════════════════════════

@procurement_bp.route("/projects/<int:project_id>/procurement", methods=["GET"])
def list_items(project_id):
    load_project(project_id)
    query = procurement_service.list_items(
        project_id,
        status=request.args.get("status"),
        category=request.args.get("category"),
        vendor_id=request.args.get("vendor_id", type=int),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [i.to_dict() for i in items], "total": total})


@procurement_bp.route("/projects/<int:project_id>/procurement", methods=["POST"])
def create_item(project_id):
    project = load_project(project_id, write=True)
    item = procurement_service.create_item(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(item.to_dict()), 201


@procurement_bp.route("/projects/<int:project_id>/procurement/stats", methods=["GET"])
def procurement_stats(project_id):
    load_project(project_id)
    return jsonify(procurement_service.procurement_stats(project_id))


@procurement_bp.route("/projects/<int:project_id>/procurement/<int:item_id>", methods=["GET"])
def get_item(project_id, item_id):
    load_project(project_id)
    return jsonify(procurement_service.get_item(project_id, item_id).to_dict())


@procurement_bp.route("/projects/<int:project_id>/procurement/<int:item_id>", methods=["PUT"])
def update_item(project_id, item_id):
    load_project(project_id, write=True)
    item = procurement_service.get_item(project_id, item_id)
    procurement_service.update_item(item, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(item.to_dict())


@procurement_bp.route("/projects/<int:project_id>/procurement/<int:item_id>", methods=["DELETE"])
def delete_item(project_id, item_id):
    load_project(project_id, write=True)
    item = procurement_service.get_item(project_id, item_id)
    procurement_service.delete_item(item, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": item_id})
