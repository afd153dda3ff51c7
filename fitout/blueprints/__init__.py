"""
Fit-Out Dashboard
Blueprint registry and shared request helpers.
"""

from flask import request

from fitout.auth import current_user
from fitout.services import project_service


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def load_project(project_id, *, write=False):
    """Project visible to (or writable by) the current user; raises on denial."""
    return project_service.get_project_for_user(project_id, current_user(), write=write)


def all_blueprints():
    """Every API blueprint, in registration order."""
    from fitout.blueprints.ai_bp import ai_bp
    from fitout.blueprints.baseline_bp import baseline_bp
    from fitout.blueprints.boq_bp import boq_bp
    from fitout.blueprints.budget_bp import budget_bp
    from fitout.blueprints.bulk_import_bp import bulk_import_bp
    from fitout.blueprints.document_bp import document_bp
    from fitout.blueprints.export_bp import export_bp
    from fitout.blueprints.ffe_bp import ffe_bp
    from fitout.blueprints.health_bp import health_bp
    from fitout.blueprints.milestone_bp import milestone_bp
    from fitout.blueprints.notification_bp import notification_bp
    from fitout.blueprints.procurement_bp import procurement_bp
    from fitout.blueprints.project_bp import project_bp
    from fitout.blueprints.sprint_bp import sprint_bp
    from fitout.blueprints.task_bp import task_bp
    from fitout.blueprints.template_bp import template_bp
    from fitout.blueprints.user_bp import user_bp

    return [
        health_bp, user_bp, project_bp, task_bp, milestone_bp, budget_bp,
        procurement_bp, ffe_bp, baseline_bp, document_bp, export_bp,
        notification_bp, ai_bp, bulk_import_bp, template_bp, boq_bp, sprint_bp,
    ]
