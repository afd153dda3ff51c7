"""Budget service layer — categories, expenses, spend roll-up and alerts.

Transaction policy: functions use flush(), never commit().

Spend roll-up:
    category.spent_amount = Σ amount of its approved + paid expenses
    project.spent_amount  = Σ amount of all approved + paid project expenses

Budget alert:
    When project spend first reaches BUDGET_ALERT_THRESHOLD (default 90%)
    of a non-zero budget, the creator and project managers get one
    ``budget_alert`` notification. Dropping back under the threshold re-arms it.
"""
import logging

from flask import current_app
from sqlalchemy import func

from fitout.core.exceptions import NotFoundError, ValidationError
from fitout.models import db
from fitout.models.activity import write_activity
from fitout.models.budget import (
    EXPENSE_STATUSES,
    SPENT_EXPENSE_STATUSES,
    BudgetCategory,
    Expense,
)
from fitout.services.notification import NotificationService
from fitout.services.project_service import manager_user_ids
from fitout.utils.helpers import parse_amount, parse_date_field, parse_int, require_choice

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD = 0.9


def _sum_expenses(*filters):
    total = (db.session.query(func.coalesce(func.sum(Expense.amount), 0.0))
             .filter(*filters).scalar())
    return round(float(total or 0.0), 2)


def approved_spend(project_id):
    """Approved + paid expense total for a project."""
    return _sum_expenses(Expense.project_id == project_id, Expense.status.in_(SPENT_EXPENSE_STATUSES))


# ── Spend roll-up ────────────────────────────────────────────────────────


def recalculate_spend(project):
    """Recompute category and project spend from expenses, then check the alert."""
    db.session.flush()
    for category in BudgetCategory.query.filter_by(project_id=project.id):
        category.spent_amount = _sum_expenses(
            Expense.category_id == category.id, Expense.status.in_(SPENT_EXPENSE_STATUSES))
    project.spent_amount = approved_spend(project.id)
    db.session.flush()
    check_budget_alert(project)


def check_budget_alert(project):
    """Fire or re-arm the project's budget alert. Returns True when one was sent."""
    if not project.budget or project.budget <= 0:
        return False
    threshold = current_app.config.get("BUDGET_ALERT_THRESHOLD", DEFAULT_ALERT_THRESHOLD)
    ratio = (project.spent_amount or 0.0) / project.budget

    if ratio >= threshold and not project.budget_alert_sent:
        NotificationService.notify_budget_alert(project, manager_user_ids(project), ratio * 100)
        project.budget_alert_sent = True
        db.session.flush()
        logger.info("Budget alert sent project=%s utilization=%.1f%%", project.id, ratio * 100)
        return True
    if ratio < threshold and project.budget_alert_sent:
        project.budget_alert_sent = False
        db.session.flush()
    return False


# ── Categories ───────────────────────────────────────────────────────────


def list_categories(project_id):
    return (BudgetCategory.query.filter_by(project_id=project_id)
            .order_by(BudgetCategory.name.asc()).all())


def get_category(project_id, category_id):
    category = db.session.get(BudgetCategory, category_id)
    if category is None or category.project_id != project_id:
        raise NotFoundError(resource="BudgetCategory", resource_id=category_id)
    return category


def create_category(project, data):
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    category = BudgetCategory(
        project_id=project.id,
        name=name,
        description=data.get("description"),
        allocated_amount=parse_amount(data.get("allocated_amount"), "allocated_amount") or 0.0,
        color=data.get("color") or "#3b82f6",
    )
    db.session.add(category)
    db.session.flush()
    return category


def update_category(category, data):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty", details={"name": "required"})
        category.name = name
    if "description" in data:
        category.description = data["description"]
    if "allocated_amount" in data:
        category.allocated_amount = parse_amount(data["allocated_amount"], "allocated_amount") or 0.0
    if "color" in data:
        category.color = data["color"]
    db.session.flush()
    return category


def delete_category(category):
    """Delete a category; its expenses stay with category_id nulled."""
    Expense.query.filter_by(category_id=category.id).update(
        {"category_id": None}, synchronize_session="fetch")
    db.session.delete(category)
    db.session.flush()


# ── Expenses ─────────────────────────────────────────────────────────────


def list_expenses(project_id, *, status=None, category_id=None):
    q = Expense.query.filter_by(project_id=project_id)
    if status:
        q = q.filter(Expense.status == status)
    if category_id:
        q = q.filter(Expense.category_id == category_id)
    return q.order_by(Expense.expense_date.desc(), Expense.id.desc())


def get_expense(project_id, expense_id):
    expense = db.session.get(Expense, expense_id)
    if expense is None or expense.project_id != project_id:
        raise NotFoundError(resource="Expense", resource_id=expense_id)
    return expense


def _resolve_category_id(project_id, raw):
    category_id = parse_int(raw, "category_id")
    if category_id is None:
        return None
    get_category(project_id, category_id)
    return category_id


def _set_status(expense, status, user):
    require_choice(status, EXPENSE_STATUSES, "status")
    if status == "approved" and expense.status != "approved":
        expense.approved_by_id = user.id
    expense.status = status


def create_expense(project, data, user):
    """Create an expense and roll its amount into category/project spend.

    Returns:
        Expense instance (already flushed).
    """
    description = (data.get("description") or "").strip()
    if not description:
        raise ValidationError("description is required", details={"description": "required"})
    amount = parse_amount(data.get("amount"), "amount", minimum=None, allow_none=False)
    if amount <= 0:
        raise ValidationError("amount must be greater than 0", details={"amount": data.get("amount")})
    expense_date = parse_date_field(data, "expense_date")
    if expense_date is None:
        raise ValidationError("expense_date is required", details={"expense_date": "required"})

    expense = Expense(
        project_id=project.id,
        category_id=_resolve_category_id(project.id, data.get("category_id")),
        description=description,
        amount=amount,
        vendor=data.get("vendor"),
        invoice_number=data.get("invoice_number"),
        expense_date=expense_date,
        status="pending",
        notes=data.get("notes"),
        created_by_id=user.id,
    )
    _set_status(expense, data.get("status") or "pending", user)
    db.session.add(expense)
    db.session.flush()

    recalculate_spend(project)
    write_activity(project_id=project.id, entity_type="expense", entity_id=expense.id,
                   action="created", user_id=user.id,
                   details={"amount": expense.amount, "status": expense.status})
    return expense


def update_expense(project, expense, data, user):
    if "description" in data:
        description = (data.get("description") or "").strip()
        if not description:
            raise ValidationError("description cannot be empty", details={"description": "required"})
        expense.description = description
    if "amount" in data:
        amount = parse_amount(data["amount"], "amount", minimum=None, allow_none=False)
        if amount <= 0:
            raise ValidationError("amount must be greater than 0", details={"amount": data["amount"]})
        expense.amount = amount
    if "category_id" in data:
        expense.category_id = _resolve_category_id(project.id, data["category_id"])
    if "expense_date" in data:
        expense_date = parse_date_field(data, "expense_date")
        if expense_date is None:
            raise ValidationError("expense_date is required", details={"expense_date": "required"})
        expense.expense_date = expense_date
    for field in ("vendor", "invoice_number", "notes"):
        if field in data:
            setattr(expense, field, data[field])
    if "status" in data:
        _set_status(expense, data["status"], user)
    db.session.flush()

    recalculate_spend(project)
    write_activity(project_id=project.id, entity_type="expense", entity_id=expense.id,
                   action="updated", user_id=user.id, details={"fields": sorted(data.keys())})
    return expense


def delete_expense(project, expense, user):
    write_activity(project_id=project.id, entity_type="expense", entity_id=expense.id,
                   action="deleted", user_id=user.id, details={"amount": expense.amount})
    db.session.delete(expense)
    db.session.flush()
    recalculate_spend(project)


# ── Aggregates ───────────────────────────────────────────────────────────


def expense_stats(project_id):
    """Sums of expense amounts: all, pending, and approved (approved + paid)."""
    return {
        "total": _sum_expenses(Expense.project_id == project_id),
        "pending": _sum_expenses(Expense.project_id == project_id, Expense.status == "pending"),
        "approved": _sum_expenses(Expense.project_id == project_id,
                                  Expense.status.in_(SPENT_EXPENSE_STATUSES)),
    }


def budget_summary(project):
    budget = round(project.budget or 0.0, 2)
    spent = round(project.spent_amount or 0.0, 2)
    categories = list_categories(project.id)
    allocated = round(sum(c.allocated_amount or 0.0 for c in categories), 2)
    utilization = round(spent / budget * 100, 1) if budget > 0 else 0.0
    return {
        "budget": budget,
        "allocated": allocated,
        "spent": spent,
        "remaining": round(budget - spent, 2),
        "utilization": utilization,
        "currency": project.currency,
        "categories": [c.to_dict() for c in categories],
    }
