"""Soft delete for rows that must stay referable after removal.

Projects use it: deleting a project stamps ``deleted_at`` and hides it from
listings, while its tasks, expenses and activity rows remain in the database.
"""

from datetime import datetime, timezone

from fitout.models import db


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self):
        if self.deleted_at is None:
            self.deleted_at = datetime.now(timezone.utc)

    @classmethod
    def query_active(cls):
        """Query over rows that have not been soft-deleted."""
        return cls.query.filter(cls.deleted_at.is_(None))
