"""
Fit-Out Dashboard
FF&E and material schedules.

Models:
    - FFEItem: furniture, fixtures & equipment line on a project schedule
    - MaterialItem: bulk material line (paint, gypsum, cabling, ...)

Both may point at the ProcurementItem that buys them.
"""

from datetime import datetime, timezone

from fitout.models import db

FFE_STATUSES = {"pending", "ordered", "delivered", "installed", "cancelled"}
MATERIAL_STATUSES = {"pending", "ordered", "delivered", "used", "cancelled"}


class ScheduleLineMixin:
    """Columns and cost rule shared by FF&E and material lines."""

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=False)
    estimated_unit_cost = db.Column(db.Float, nullable=True)
    total_estimated_cost = db.Column(db.Float, nullable=True)
    specification_notes = db.Column(db.Text, nullable=True)
    required_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    priority = db.Column(db.String(20), nullable=False, default="medium")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def recalculate_total(self):
        if self.estimated_unit_cost is None or self.quantity is None:
            self.total_estimated_cost = None
        else:
            self.total_estimated_cost = round(self.quantity * self.estimated_unit_cost, 2)
        return self.total_estimated_cost

    def _base_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "quantity": self.quantity,
            "unit": self.unit,
            "estimated_unit_cost": self.estimated_unit_cost,
            "total_estimated_cost": self.total_estimated_cost,
            "specification_notes": self.specification_notes,
            "required_date": self.required_date.isoformat() if self.required_date else None,
            "status": self.status,
            "priority": self.priority,
            "linked_procurement_item_id": self.linked_procurement_item_id,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class FFEItem(ScheduleLineMixin, db.Model):
    __tablename__ = "ffe_items"

    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(100), nullable=True, comment="sofa, pendant light, ...")
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(50), nullable=False, default="piece")
    manufacturer = db.Column(db.String(255), nullable=True)
    model_number = db.Column(db.String(100), nullable=True)
    installation_notes = db.Column(db.Text, nullable=True)
    linked_procurement_item_id = db.Column(
        db.Integer, db.ForeignKey("procurement_items.id", ondelete="SET NULL"), nullable=True,
    )
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self):
        d = self._base_dict()
        d.update({
            "type": self.type,
            "manufacturer": self.manufacturer,
            "model_number": self.model_number,
            "installation_notes": self.installation_notes,
        })
        return d

    def __repr__(self):
        return f"<FFEItem {self.id}: {self.name}>"


class MaterialItem(ScheduleLineMixin, db.Model):
    __tablename__ = "material_items"

    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(50), nullable=False, default="pcs")
    supplier = db.Column(db.String(255), nullable=True)
    linked_procurement_item_id = db.Column(
        db.Integer, db.ForeignKey("procurement_items.id", ondelete="SET NULL"), nullable=True,
    )
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self):
        d = self._base_dict()
        d["supplier"] = self.supplier
        return d

    def __repr__(self):
        return f"<MaterialItem {self.id}: {self.name}>"
