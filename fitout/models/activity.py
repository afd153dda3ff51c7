"""
Fit-Out Dashboard
Activity log — append-only project timeline ("who did what").

Models:
    - ActivityLog
Helpers:
    - write_activity(): flush-only append used by services
"""

from datetime import datetime, timezone

from fitout.models import db


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(100), nullable=False, comment="created / updated / deleted / ...")
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "user": self.user.to_brief() if self.user else None,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def write_activity(
    *,
    project_id: int | None,
    entity_type: str,
    entity_id: int | None,
    action: str,
    user_id: int | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append a single activity row. Uses ``flush`` so callers keep
    transaction control.

    ``user_id`` defaults to the request's current user when omitted.
    """
    if user_id is None:
        from flask import g, has_request_context
        if has_request_context():
            user = getattr(g, "current_user", None)
            user_id = user.id if user is not None else None

    entry = ActivityLog(
        project_id=project_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.session.add(entry)
    db.session.flush()
    return entry
