"""Document register service.

Transaction policy: functions use flush(), never commit().

Files are uploaded to object storage by the client; this layer only
registers metadata. Registering a name that already exists in the project
creates a new row with the next version number.
"""
import logging

from sqlalchemy import func

from fitout.core.exceptions import NotFoundError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.document import DOCUMENT_CATEGORIES, Document
from fitout.utils.helpers import parse_int, require_choice

logger = logging.getLogger(__name__)


def list_documents(project_id, *, category=None):
    q = Document.query.filter_by(project_id=project_id)
    if category:
        q = q.filter(Document.category == category)
    return q.order_by(Document.created_at.desc(), Document.id.desc())


def get_document(project_id, document_id):
    document = db.session.get(Document, document_id)
    if document is None or document.project_id != project_id:
        raise NotFoundError(resource="Document", resource_id=document_id)
    return document


def _next_version(project_id, name):
    current = (db.session.query(func.max(Document.version))
               .filter(Document.project_id == project_id, Document.name == name).scalar())
    return (current or 0) + 1


def register_document(project, data, user):
    """Register uploaded file metadata.

    Returns:
        Document instance (already flushed).
    """
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    file_url = (data.get("file_url") or "").strip()
    if not file_url:
        raise ValidationError("file_url is required", details={"file_url": "required"})

    document = Document(
        project_id=project.id,
        name=name,
        description=data.get("description"),
        category=require_choice(data.get("category") or "other", DOCUMENT_CATEGORIES, "category"),
        file_url=file_url,
        file_key=data.get("file_key"),
        file_size=parse_int(data.get("file_size"), "file_size", minimum=0),
        mime_type=data.get("mime_type"),
        version=_next_version(project.id, name),
        uploaded_by_id=user.id,
    )
    db.session.add(document)
    db.session.flush()

    write_activity(project_id=project.id, entity_type="document", entity_id=document.id,
                   action="uploaded", user_id=user.id,
                   details={"name": document.name, "version": document.version})
    return document


def update_document(document, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        if name != document.name:
            document.version = _next_version(document.project_id, name)
            document.name = name
    if "description" in data:
        document.description = data["description"]
    if "category" in data:
        document.category = require_choice(data["category"], DOCUMENT_CATEGORIES, "category")
    db.session.flush()
    return document


def delete_document(document, user):
    write_activity(project_id=document.project_id, entity_type="document", entity_id=document.id,
                   action="deleted", user_id=user.id, details={"name": document.name})
    db.session.delete(document)
    db.session.flush()
