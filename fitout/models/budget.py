"""
Fit-Out Dashboard
Budget domain models.

Models:
    - BudgetCategory: allocation bucket within a project budget
    - Expense: a cost booked against a project (optionally a category)

``spent_amount`` on categories and projects is derived from approved and
paid expenses; see ``fitout.services.budget_service.recalculate_spend``.
"""

from datetime import datetime, timezone

from fitout.models import db

EXPENSE_STATUSES = {"pending", "approved", "rejected", "paid"}
SPENT_EXPENSE_STATUSES = ("approved", "paid")


class BudgetCategory(db.Model):
    __tablename__ = "budget_categories"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    allocated_amount = db.Column(db.Float, nullable=False, default=0.0)
    spent_amount = db.Column(db.Float, nullable=False, default=0.0)
    color = db.Column(db.String(7), nullable=True, default="#3b82f6")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        allocated = round(self.allocated_amount or 0.0, 2)
        spent = round(self.spent_amount or 0.0, 2)
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "allocated_amount": allocated,
            "spent_amount": spent,
            "remaining_amount": round(allocated - spent, 2),
            "color": self.color,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Expense(db.Model):
    __tablename__ = "expenses"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("budget_categories.id", ondelete="SET NULL"), nullable=True, index=True)
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Float, nullable=False)
    vendor = db.Column(db.String(255), nullable=True)
    invoice_number = db.Column(db.String(100), nullable=True)
    expense_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    approved_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    category = db.relationship("BudgetCategory")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "description": self.description,
            "amount": round(self.amount or 0.0, 2),
            "vendor": self.vendor,
            "invoice_number": self.invoice_number,
            "expense_date": self.expense_date.isoformat() if self.expense_date else None,
            "status": self.status,
            "approved_by_id": self.approved_by_id,
            "notes": self.notes,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Expense {self.id}: {self.amount}>"
