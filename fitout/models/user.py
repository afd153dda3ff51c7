"""
Fit-Out Dashboard
User model.

Identity comes from an external provider (``open_id``); the platform only
stores the profile and the global role used for visibility decisions.
"""

from datetime import datetime, timezone

from fitout.models import db

USER_ROLES = {"user", "admin"}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    open_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(200), default="")
    email = db.Column(db.String(320), nullable=True)
    login_method = db.Column(db.String(64), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="user")
    phone = db.Column(db.String(20), nullable=True)
    job_title = db.Column(db.String(100), nullable=True)
    avatar_url = db.Column(db.Text, nullable=True)
    last_signed_in = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self):
        return {
            "id": self.id,
            "open_id": self.open_id,
            "name": self.name,
            "email": self.email,
            "login_method": self.login_method,
            "role": self.role,
            "phone": self.phone,
            "job_title": self.job_title,
            "avatar_url": self.avatar_url,
            "last_signed_in": self.last_signed_in.isoformat() if self.last_signed_in else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def to_brief(self):
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self):
        return f"<User {self.id}: {self.open_id}>"
