"""
QA Coverage Tracker
Flask Application Factory.

Usage:
    from coverage_tracker import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from coverage_tracker.config import config
from coverage_tracker.models import db
from coverage_tracker.middleware.jwt_auth import init_jwt_middleware
from coverage_tracker.middleware.logging_config import configure_logging
from coverage_tracker.middleware.rate_limiter import init_rate_limits
from coverage_tracker.middleware.timing import init_request_timing
from coverage_tracker.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    default_limits=[],                     # no global limit; applied per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.jwt_user_id) ─────────────────────────
    init_jwt_middleware(app)

    # ── Error handlers (service exceptions → JSON) ───────────────────────
    register_error_handlers(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from coverage_tracker.models import story as _story_models  # noqa: F401
    from coverage_tracker.models import user as _user_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if app.config["SQLALCHEMY_DATABASE_URI"] == config["development"].SQLALCHEMY_DATABASE_URI:
        os.makedirs(app.instance_path, exist_ok=True)
    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from coverage_tracker.blueprints.analytics_bp import analytics_bp
    from coverage_tracker.blueprints.auth_bp import auth_bp
    from coverage_tracker.blueprints.health_bp import health_bp
    from coverage_tracker.blueprints.story_bp import story_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(story_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-user")
    @click.argument("username")
    @click.password_option()
    @click.option("--role", default="manager", show_default=True,
                  type=click.Choice(["manager", "engineer", "reviewer"]))
    @click.option("--email", default=None)
    def create_user_cmd(username, password, role, email):
        """Create a user account (e.g. the first manager)."""
        from coverage_tracker.repositories import request_repositories
        from coverage_tracker.services.user_service import UserServiceError, register_user

        try:
            user = register_user(
                request_repositories(), username, password, email=email, role=role,
            )
        except UserServiceError as e:
            raise click.ClickException(e.message)
        click.echo(f"Created {user.role.value} '{user.username}' ({user.id})")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
