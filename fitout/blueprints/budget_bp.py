"""
Budget Blueprint — categories, expenses, stats and summary.

Endpoints:
    GET    /api/v1/projects/<pid>/budget/summary               — Budget vs spend
    GET    /api/v1/projects/<pid>/budget/categories            — List categories
    POST   /api/v1/projects/<pid>/budget/categories            — Create category
    PUT    /api/v1/projects/<pid>/budget/categories/<cid>      — Update category
    DELETE /api/v1/projects/<pid>/budget/categories/<cid>      — Delete category

    GET    /api/v1/projects/<pid>/expenses                     — List (status, category_id)
    POST   /api/v1/projects/<pid>/expenses                     — Create
    GET    /api/v1/projects/<pid>/expenses/stats               — Total / pending / approved sums
    GET    /api/v1/projects/<pid>/expenses/<eid>               — Get
    PUT    /api/v1/projects/<pid>/expenses/<eid>               — Update
    DELETE /api/v1/projects/<pid>/expenses/<eid>               — Delete
"""

from flask import Blueprint, jsonify, request

from fitout.auth import current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.services import budget_service
from fitout.utils.helpers import db_commit_or_error

budget_bp = Blueprint("budget_bp", __name__, url_prefix="/api/v1")


@budget_bp.route("/projects/<int:project_id>/budget/summary", methods=["GET"])
def budget_summary(project_id):
    return jsonify(budget_service.budget_summary(load_project(project_id)))


# ═══════════════════════════════════════════════════════════════════════════
#  CATEGORIES
# ═══════════════════════════════════════════════════════════════════════════

@budget_bp.route("/projects/<int:project_id>/budget/categories", methods=["GET"])
def list_categories(project_id):
    load_project(project_id)
    return jsonify([c.to_dict() for c in budget_service.list_categories(project_id)])


@budget_bp.route("/projects/<int:project_id>/budget/categories", methods=["POST"])
def create_category(project_id):
    project = load_project(project_id, write=True)
    category = budget_service.create_category(project, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(category.to_dict()), 201


@budget_bp.route("/projects/<int:project_id>/budget/categories/<int:category_id>", methods=["PUT"])
def update_category(project_id, category_id):
    load_project(project_id, write=True)
    category = budget_service.get_category(project_id, category_id)
    budget_service.update_category(category, json_body())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(category.to_dict())


@budget_bp.route("/projects/<int:project_id>/budget/categories/<int:category_id>", methods=["DELETE"])
def delete_category(project_id, category_id):
    load_project(project_id, write=True)
    budget_service.delete_category(budget_service.get_category(project_id, category_id))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": category_id})


# ═══════════════════════════════════════════════════════════════════════════
#  EXPENSES
# ═══════════════════════════════════════════════════════════════════════════

@budget_bp.route("/projects/<int:project_id>/expenses", methods=["GET"])
def list_expenses(project_id):
    load_project(project_id)
    query = budget_service.list_expenses(
        project_id,
        status=request.args.get("status"),
        category_id=request.args.get("category_id", type=int),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [e.to_dict() for e in items], "total": total})


@budget_bp.route("/projects/<int:project_id>/expenses", methods=["POST"])
def create_expense(project_id):
    project = load_project(project_id, write=True)
    expense = budget_service.create_expense(project, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(expense.to_dict()), 201


@budget_bp.route("/projects/<int:project_id>/expenses/stats", methods=["GET"])
def expense_stats(project_id):
    load_project(project_id)
    return jsonify(budget_service.expense_stats(project_id))


@budget_bp.route("/projects/<int:project_id>/expenses/<int:expense_id>", methods=["GET"])
def get_expense(project_id, expense_id):
    load_project(project_id)
    return jsonify(budget_service.get_expense(project_id, expense_id).to_dict())


@budget_bp.route("/projects/<int:project_id>/expenses/<int:expense_id>", methods=["PUT"])
def update_expense(project_id, expense_id):
    project = load_project(project_id, write=True)
    expense = budget_service.get_expense(project_id, expense_id)
    budget_service.update_expense(project, expense, json_body(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(expense.to_dict())


@budget_bp.route("/projects/<int:project_id>/expenses/<int:expense_id>", methods=["DELETE"])
def delete_expense(project_id, expense_id):
    project = load_project(project_id, write=True)
    expense = budget_service.get_expense(project_id, expense_id)
    budget_service.delete_expense(project, expense, current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True, "id": expense_id})
