"""
Fit-Out Dashboard
Procurement domain models.

Models:
    - Vendor: supplier / subcontractor directory entry (global, not per project)
    - ProcurementItem: something a project needs to buy
    - VendorFavorite: a user's shortlist entry for a vendor
"""

from datetime import datetime, timezone

from fitout.models import db

TRADE_CATEGORIES = {
    "materials", "equipment", "labor", "services", "furniture",
    "fixtures", "electrical", "plumbing", "hvac", "other",
}
PROCUREMENT_STATUSES = {"pending", "quoted", "approved", "ordered", "shipped", "delivered", "cancelled"}

# BOQ trade headings and the procurement category each one lands in
BOQ_TRADES = {
    "electrical": "electrical",
    "plumbing": "plumbing",
    "hvac": "hvac",
    "carpentry": "materials",
    "painting": "services",
    "flooring": "materials",
    "doors & windows": "fixtures",
    "hardware": "fixtures",
    "fixtures": "fixtures",
    "materials": "materials",
}


def trade_category(label) -> str:
    """Procurement category for a BOQ trade or category label, ``other`` when unknown."""
    key = (label or "").strip().lower()
    if key in TRADE_CATEGORIES:
        return key
    return BOQ_TRADES.get(key, "other")


class Vendor(db.Model):
    __tablename__ = "vendors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(320), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(20), nullable=False, default="other")
    rating = db.Column(db.Integer, nullable=False, default=0, comment="0-5")
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "category": self.category,
            "rating": self.rating,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ProcurementItem(db.Model):
    __tablename__ = "procurement_items"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(20), nullable=False, default="other")
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(50), nullable=False, default="pcs")
    estimated_unit_cost = db.Column(db.Float, nullable=True)
    actual_unit_cost = db.Column(db.Float, nullable=True)
    total_cost = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    priority = db.Column(db.String(20), nullable=False, default="medium")
    required_date = db.Column(db.Date, nullable=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True, index=True)
    specifications = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    vendor = db.relationship("Vendor")

    def recalculate_total(self):
        """total = quantity × (actual unit cost, else estimated unit cost)."""
        unit_cost = self.actual_unit_cost if self.actual_unit_cost is not None else self.estimated_unit_cost
        if unit_cost is None or self.quantity is None:
            self.total_cost = None
        else:
            self.total_cost = round(self.quantity * unit_cost, 2)
        return self.total_cost

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "quantity": self.quantity,
            "unit": self.unit,
            "estimated_unit_cost": self.estimated_unit_cost,
            "actual_unit_cost": self.actual_unit_cost,
            "total_cost": self.total_cost,
            "status": self.status,
            "priority": self.priority,
            "required_date": self.required_date.isoformat() if self.required_date else None,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "specifications": self.specifications,
            "notes": self.notes,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProcurementItem {self.id}: {self.name}>"


class VendorFavorite(db.Model):
    __tablename__ = "vendor_favorites"
    __table_args__ = (db.UniqueConstraint("user_id", "vendor_id", name="uq_vendor_favorites_user_vendor"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
