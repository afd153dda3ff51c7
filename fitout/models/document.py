"""
Fit-Out Dashboard
Document register.

Files live in external object storage; the platform stores metadata and a
per-name version counter.
"""

from datetime import datetime, timezone

from fitout.models import db

DOCUMENT_CATEGORIES = {"drawing", "contract", "invoice", "report", "permit", "photo", "specification", "other"}


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(20), nullable=False, default="other")
    file_url = db.Column(db.Text, nullable=False)
    file_key = db.Column(db.String(500), nullable=True)
    file_size = db.Column(db.Integer, nullable=True, comment="bytes")
    mime_type = db.Column(db.String(100), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    uploaded_by = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "file_url": self.file_url,
            "file_key": self.file_key,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "version": self.version,
            "uploaded_by_id": self.uploaded_by_id,
            "uploaded_by": self.uploaded_by.to_brief() if self.uploaded_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Document {self.id}: {self.name} v{self.version}>"
