"""
AI Blueprint — project assistant chat and generated reports.

Endpoints:
    CHAT       /api/v1/ai/chat                                 POST
               /api/v1/ai/chat/history                         GET, DELETE  (?project_id=)

    REPORTS    /api/v1/projects/<pid>/ai/summary               POST
               /api/v1/projects/<pid>/ai/weekly-report         POST
               /api/v1/projects/<pid>/ai/reports               GET  (?type=)

    TEMPLATES  /api/v1/ai/template-suggestions                 POST

    USAGE      /api/v1/ai/usage                                GET  (admin)

A provider failure after retries answers 503 ERR_AI_UNAVAILABLE; the stored
user message and the failed usage record are still committed.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func

from fitout.ai.assistants import ProjectChatAssistant, ReportWriter, TemplateAdvisor
from fitout.ai.gateway import LLMGateway
from fitout.ai.prompt_registry import PromptRegistry
from fitout.auth import admin_required, current_user
from fitout.blueprints import json_body, load_project, paginate_query
from fitout.core.exceptions import AIProviderError
from fitout.models.ai import REPORT_TYPES, AIUsageLog
from fitout.services import template_service
from fitout.utils.errors import E, api_error
from fitout.utils.helpers import db_commit_or_error, parse_int, require_choice

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai_bp", __name__, url_prefix="/api/v1")

# ── Rate limiting ─────────────────────────────────────────────────────────
from fitout import limiter  # noqa: E402

_ai_generate_limit = limiter.shared_limit("30/minute", scope="ai_generate")


# ── Lazy singletons stored on Flask app (test-isolation safe) ───────────────

def _get_gateway():
    if not hasattr(current_app, "_ai_gateway"):
        current_app._ai_gateway = LLMGateway(app=current_app)
    return current_app._ai_gateway


def _get_prompt_registry():
    if not hasattr(current_app, "_ai_prompt_registry"):
        current_app._ai_prompt_registry = PromptRegistry(current_app.config.get("AI_PROMPTS_DIR"))
    return current_app._ai_prompt_registry


def _get_chat_assistant():
    if not hasattr(current_app, "_ai_chat_assistant"):
        current_app._ai_chat_assistant = ProjectChatAssistant(
            gateway=_get_gateway(),
            prompt_registry=_get_prompt_registry(),
            history_limit=current_app.config.get("AI_CHAT_HISTORY_LIMIT", 10),
        )
    return current_app._ai_chat_assistant


def _get_report_writer():
    if not hasattr(current_app, "_ai_report_writer"):
        current_app._ai_report_writer = ReportWriter(
            gateway=_get_gateway(),
            prompt_registry=_get_prompt_registry(),
        )
    return current_app._ai_report_writer


def _get_template_advisor():
    if not hasattr(current_app, "_ai_template_advisor"):
        current_app._ai_template_advisor = TemplateAdvisor(
            gateway=_get_gateway(),
            prompt_registry=_get_prompt_registry(),
        )
    return current_app._ai_template_advisor


def _ai_unavailable(exc):
    """Keep what was recorded before the provider failed, then answer 503."""
    logger.error("AI provider unavailable: %s", exc)
    err = db_commit_or_error()
    if err:
        return err
    return api_error(E.AI_UNAVAILABLE, "AI service is temporarily unavailable. Please try again later.")


# ══════════════════════════════════════════════════════════════════════════════
# CHAT
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/ai/chat", methods=["POST"])
@_ai_generate_limit
def chat():
    data = json_body()
    project_id = parse_int(data.get("project_id"), "project_id")
    project = load_project(project_id) if project_id else None

    try:
        result = _get_chat_assistant().chat(current_user(), data.get("message"), project)
    except AIProviderError as exc:
        return _ai_unavailable(exc)
    if result["error"]:
        return api_error(E.VALIDATION_REQUIRED, result["error"])

    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result), 200


@ai_bp.route("/ai/chat/history", methods=["GET"])
def chat_history():
    project_id = request.args.get("project_id", type=int)
    if project_id:
        load_project(project_id)
    limit = min(request.args.get("limit", 50, type=int), 500)
    messages = ProjectChatAssistant.get_history(current_user().id, project_id, limit=limit)
    return jsonify([m.to_dict() for m in messages])


@ai_bp.route("/ai/chat/history", methods=["DELETE"])
def clear_chat_history():
    project_id = request.args.get("project_id", type=int)
    count = ProjectChatAssistant.clear_history(current_user().id, project_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": count})


# ══════════════════════════════════════════════════════════════════════════════
# REPORTS
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/projects/<int:project_id>/ai/summary", methods=["POST"])
@_ai_generate_limit
def generate_summary(project_id):
    project = load_project(project_id)
    try:
        result = _get_report_writer().summary(project, current_user())
    except AIProviderError as exc:
        return _ai_unavailable(exc)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result), 200


@ai_bp.route("/projects/<int:project_id>/ai/weekly-report", methods=["POST"])
@_ai_generate_limit
def generate_weekly_report(project_id):
    project = load_project(project_id)
    try:
        result = _get_report_writer().weekly_report(project, current_user())
    except AIProviderError as exc:
        return _ai_unavailable(exc)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result), 200


@ai_bp.route("/projects/<int:project_id>/ai/reports", methods=["GET"])
def list_reports(project_id):
    load_project(project_id)
    report_type = request.args.get("type")
    if report_type:
        require_choice(report_type, REPORT_TYPES, "type")
    items, total = paginate_query(ReportWriter.list_reports(project_id, report_type))
    return jsonify({"items": [r.to_dict() for r in items], "total": total})


# ══════════════════════════════════════════════════════════════════════════════
# TEMPLATE SUGGESTIONS
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/ai/template-suggestions", methods=["POST"])
@_ai_generate_limit
def template_suggestions():
    """Rank the caller's visible templates for a described project."""
    data = json_body()
    description = (data.get("description") or "").strip()
    if not description:
        return api_error(E.VALIDATION_REQUIRED, "description is required")

    user = current_user()
    templates = template_service.list_templates(user).all()
    try:
        suggestions = _get_template_advisor().suggest(
            user, templates,
            description=description,
            project_type=data.get("project_type") or "",
            budget=data.get("budget"),
            location=data.get("location") or "",
        )
    except AIProviderError as exc:
        return _ai_unavailable(exc)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"suggestions": suggestions, "candidates": len(templates)}), 200


# ══════════════════════════════════════════════════════════════════════════════
# USAGE
# ══════════════════════════════════════════════════════════════════════════════

@ai_bp.route("/ai/usage", methods=["GET"])
@admin_required
def usage():
    """Token / cost log with totals (?project_id=, ?purpose=)."""
    q = AIUsageLog.query
    project_id = request.args.get("project_id", type=int)
    if project_id:
        q = q.filter(AIUsageLog.project_id == project_id)
    purpose = request.args.get("purpose")
    if purpose:
        q = q.filter(AIUsageLog.purpose == purpose)

    totals = q.with_entities(
        func.count(AIUsageLog.id),
        func.coalesce(func.sum(AIUsageLog.total_tokens), 0),
        func.coalesce(func.sum(AIUsageLog.cost_usd), 0.0),
    ).one()
    failed = q.filter(AIUsageLog.success.is_(False)).count()

    items, total = paginate_query(q.order_by(AIUsageLog.created_at.desc(), AIUsageLog.id.desc()))
    return jsonify({
        "items": [u.to_dict() for u in items],
        "total": total,
        "summary": {
            "calls": totals[0],
            "failed_calls": failed,
            "total_tokens": int(totals[1] or 0),
            "total_cost_usd": round(float(totals[2] or 0.0), 6),
            "providers": _get_gateway().available_providers,
        },
    })
