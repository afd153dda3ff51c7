"""
Document Blueprint — file metadata registry.

Uploads go straight to object storage from the client; this API records
the resulting URL/key. Registering an existing name in the same project
creates the next version.

Endpoints:
    GET    /api/v1/projects/<pid>/documents          — List (?category=)
    POST   /api/v1/projects/<pid>/documents          — Register
    GET    /api/v1/projects/<pid>/documents/<did>    — Get
    PUT    /api/v1/projects/<pid>/documents/<did>    — Update name / description / category
    DELETE /api/v1/projects/<pid>/documents/<did>    — Delete
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.services import document_service
from fitout.utils.helpers import db_commit_or_error

document_bp = Blueprint("document_bp", __name__, url_prefix="/api/v1")


@document_bp.route("/projects/<int:project_id>/documents", methods=["GET"])
def list_documents(project_id):
    load_project(project_id)
    query = document_service.list_documents(project_id, category=request.args.get("category"))
    items, total = paginate_query(query)
    return jsonify({"items": [d.to_dict() for d in items], "total": total})


@document_bp.route("/projects/<int:project_id>/documents", methods=["POST"])
def register_document(project_id):
    project = load_project(project_id, write=True)
    document = document_service.register_document(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(document.to_dict()), 201


@document_bp.route("/projects/<int:project_id>/documents/<int:document_id>", methods=["GET"])
def get_document(project_id, document_id):
    load_project(project_id)
    return jsonify(document_service.get_document(project_id, document_id).to_dict())


@document_bp.route("/projects/<int:project_id>/documents/<int:document_id>", methods=["PUT"])
def update_document(project_id, document_id):
    load_project(project_id, write=True)
    document = document_service.get_document(project_id, document_id)
    document_service.update_document(document, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(document.to_dict())


@document_bp.route("/projects/<int:project_id>/documents/<int:document_id>", methods=["DELETE"])
def delete_document(project_id, document_id):
    load_project(project_id, write=True)
    document = document_service.get_document(project_id, document_id)
    document_service.delete_document(document, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": document_id})
