"""
Fit-Out Dashboard
Project template models.

Models:
    - ProjectTemplate: reusable project set-up (private to its creator unless public)
    - TemplateBOQItem: default bill-of-quantities line carried by a template
    - TemplateSupplier: vendor shortlisted on a template
"""

from datetime import datetime, timezone

from fitout.models import db


class ProjectTemplate(db.Model):
    __tablename__ = "project_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    preview_image = db.Column(db.String(500), nullable=True)
    default_settings = db.Column(db.JSON, nullable=False, default=dict,
                                 comment="Project fields applied when the template is used")
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    boq_items = db.relationship(
        "TemplateBOQItem", backref="template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="TemplateBOQItem.id",
    )
    suppliers = db.relationship(
        "TemplateSupplier", backref="template", lazy="dynamic",
        cascade="all, delete-orphan", order_by="TemplateSupplier.id",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tags": self.tags or [],
            "is_public": self.is_public,
            "preview_image": self.preview_image,
            "default_settings": self.default_settings or {},
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["boq_items"] = [i.to_dict() for i in self.boq_items]
            result["suppliers"] = [s.to_dict() for s in self.suppliers]
        return result

    def __repr__(self):
        return f"<ProjectTemplate {self.id}: {self.name}>"


class TemplateBOQItem(db.Model):
    __tablename__ = "template_boq_items"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("project_templates.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    description = db.Column(db.String(500), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(50), nullable=False, default="pcs")
    unit_price = db.Column(db.Float, nullable=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    vendor = db.relationship("Vendor")

    @property
    def line_total(self):
        if self.unit_price is None:
            return 0.0
        return round(self.quantity * self.unit_price, 2)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "description": self.description,
            "category": self.category,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
        }


class TemplateSupplier(db.Model):
    __tablename__ = "template_suppliers"
    __table_args__ = (
        db.UniqueConstraint("template_id", "vendor_id", name="uq_template_suppliers_template_vendor"),
    )

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("project_templates.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    vendor = db.relationship("Vendor")

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "vendor_category": self.vendor.category if self.vendor else None,
            "is_primary": self.is_primary,
            "notes": self.notes,
        }
