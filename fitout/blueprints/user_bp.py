"""
User & auth blueprint.

Endpoints:
    POST /api/v1/auth/token     — upsert a user by open_id and issue a token (dev only)
    GET  /api/v1/auth/me        — current user
    GET  /api/v1/users          — list users (admin)
    GET  /api/v1/users/<id>     — get user
    PUT  /api/v1/users/<id>     — update profile (self or admin; role admin-only)
"""

import logging

from flask import Blueprint, current_app, jsonify

from fitout.auth import admin_required, current_user, is_auth_enabled
from fitout.blueprints import json_body, paginate_query
from fitout.services import user_service
from fitout.services.jwt_service import generate_access_token
from fitout.utils.errors import E, api_error
from fitout.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

user_bp = Blueprint("user_bp", __name__, url_prefix="/api/v1")


@user_bp.route("/auth/token", methods=["POST"])
def issue_dev_token():
    """Development sign-in: identity normally comes from the external provider."""
    if is_auth_enabled():
        return api_error(E.NOT_FOUND, "Not found")

    data = json_body()
    user = user_service.upsert_user(
        data.get("open_id"),
        name=data.get("name"),
        email=data.get("email"),
        login_method=data.get("login_method", "dev"),
        role=data.get("role"),
    )
    err = db_commit_or_error()
    if err:
        return err

    token = generate_access_token(user.id, user.role)
    return jsonify({
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": current_app.config.get("JWT_ACCESS_EXPIRES", 3600),
        "user": user.to_dict(),
    }), 200


@user_bp.route("/auth/me", methods=["GET"])
def me():
    return jsonify(current_user().to_dict())


@user_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    items, total = paginate_query(user_service.list_users())
    return jsonify({"items": [u.to_dict() for u in items], "total": total})


@user_bp.route("/users/<int:user_id>", methods=["GET"])
def get_user(user_id):
    return jsonify(user_service.get_user(user_id).to_dict())


@user_bp.route("/users/<int:user_id>", methods=["PUT"])
def update_user(user_id):
    target = user_service.get_user(user_id)
    user_service.update_user(target, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(target.to_dict())
