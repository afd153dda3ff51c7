"""
Fit-Out Dashboard
Project domain models.

Models:
    - Project: a fit-out job for a client (soft-deleted)
    - ProjectMember: user ↔ project assignment with a site role
"""

from datetime import datetime, timezone

from fitout.models import db
from fitout.models.soft_delete import SoftDeleteMixin

# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = {"planning", "in_progress", "on_hold", "completed", "cancelled"}
PRIORITY_LEVELS = {"low", "medium", "high", "critical"}
MEMBER_ROLES = {"project_manager", "site_engineer", "architect", "contractor", "consultant", "viewer"}

# Members with these roles receive budget alerts
MANAGER_ROLES = {"project_manager"}


class Project(SoftDeleteMixin, db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    client_name = db.Column(db.String(255), nullable=True)
    client_email = db.Column(db.String(320), nullable=True)
    client_phone = db.Column(db.String(20), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default="planning",
                       comment="planning | in_progress | on_hold | completed | cancelled")
    priority = db.Column(db.String(20), nullable=False, default="medium")

    budget = db.Column(db.Float, nullable=True)
    spent_amount = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    budget_alert_sent = db.Column(db.Boolean, nullable=False, default=False)

    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    actual_end_date = db.Column(db.Date, nullable=True)
    progress = db.Column(db.Integer, nullable=False, default=0, comment="0-100")

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    members = db.relationship("ProjectMember", backref="project", lazy="dynamic",
                              cascade="all, delete-orphan")
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    @property
    def remaining_budget(self):
        return round((self.budget or 0.0) - (self.spent_amount or 0.0), 2)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "location": self.location,
            "address": self.address,
            "status": self.status,
            "priority": self.priority,
            "budget": round(self.budget, 2) if self.budget is not None else None,
            "spent_amount": round(self.spent_amount or 0.0, 2),
            "remaining_budget": self.remaining_budget,
            "currency": self.currency,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "actual_end_date": self.actual_end_date.isoformat() if self.actual_end_date else None,
            "progress": self.progress,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"


class ProjectMember(db.Model):
    __tablename__ = "project_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(db.String(30), nullable=False, default="viewer")
    joined_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "user": self.user.to_brief() if self.user else None,
        }
