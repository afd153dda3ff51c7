"""
Notification Blueprint — the current user's in-app notifications.

Endpoints:
    GET    /api/v1/notifications                   — List own (limit, offset, unread_only, project_id)
    GET    /api/v1/notifications/unread-count      — Unread count
    PATCH  /api/v1/notifications/<id>/read         — Mark one read
    POST   /api/v1/notifications/mark-all-read     — Mark all read
    DELETE /api/v1/notifications/<id>              — Delete own
"""

import logging

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.services.notification import NotificationService
from fitout.utils.errors import E, api_error
from fitout.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    user = current_user()
    limit = min(request.args.get("limit", 20, type=int), 200)
    offset = max(request.args.get("offset", 0, type=int), 0)
    unread_only = request.args.get("unread_only", "false").lower() in ("1", "true", "yes")

    items, total = NotificationService.list_for_user(
        user.id,
        project_id=request.args.get("project_id", type=int),
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(user.id),
    })


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(current_user().id)})


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH"])
def mark_read(notification_id):
    notif = NotificationService.mark_read(notification_id, current_user().id)
    if notif is None:
        return api_error(E.NOT_FOUND, "Notification not found")
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/mark-all-read", methods=["POST"])
def mark_all_read():
    count = NotificationService.mark_all_read(current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"marked_read": count})


@notification_bp.route("/notifications/<int:notification_id>", methods=["DELETE"])
def delete_notification(notification_id):
    if not NotificationService.delete(notification_id, current_user().id):
        return api_error(E.NOT_FOUND, "Notification not found")
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": notification_id})
