"""
Fit-Out Dashboard
Flask Application Factory.

Usage:
    from fitout import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from fitout.auth import init_auth
from fitout.config import config
from fitout.core.exceptions import (
    AIProviderError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from fitout.middleware.logging_config import configure_logging
from fitout.middleware.timing import init_request_timing
from fitout.models import db
from fitout.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """Create and configure the Flask application."""
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(config[config_name]())

    configure_logging(app)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in \
            app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()] if cors_origins != "*" else "*"
    CORS(app, resources={r"/api/*": {"origins": origins}})

    init_request_timing(app)
    init_auth(app)

    # ── Models (table registration) ──────────────────────────────────────
    with app.app_context():
        from fitout.models import (  # noqa: F401
            activity, ai, baseline, budget, document, ffe, milestone,
            notification, procurement, project, sprint, task, template, user,
        )
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from fitout.blueprints import all_blueprints

    for bp in all_blueprints():
        app.register_blueprint(bp)

    _register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-admin")
    @click.argument("open_id")
    @click.option("--name", default="Administrator")
    @click.option("--email", default=None)
    def create_admin_cmd(open_id, name, email):
        """Create (or promote) a platform admin keyed by OPEN_ID."""
        from fitout.services.user_service import upsert_user
        user = upsert_user(open_id, name=name, email=email, login_method="cli", role="admin")
        db.session.commit()
        logger.info("Admin user ready: id=%s open_id=%s", user.id, user.open_id)
        click.echo(f"Admin user {user.id} ({user.open_id}) ready.")

    return app


def _register_error_handlers(app):
    """Map service exceptions and HTTP errors to the standard JSON error body."""

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(e), details={"field": e.field})

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(e):
        db.session.rollback()
        return api_error(E.FORBIDDEN, str(e))

    @app.errorhandler(AIProviderError)
    def handle_ai_provider(e):
        logger.error("AI provider error: %s", e)
        return api_error(E.AI_UNAVAILABLE, "AI service is temporarily unavailable. Please try again later.")

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return api_error(E.NOT_FOUND, "Not found")
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", retry_after=e.description)

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
