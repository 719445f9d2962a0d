"""
Feature Catalogue
Flask Application Factory.

Usage:
    from feature_catalogue import create_app
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

from feature_catalogue.config import config
from feature_catalogue.models import db
from feature_catalogue.auth import init_auth
from feature_catalogue.middleware.logging_config import configure_logging
from feature_catalogue.middleware.timing import init_request_timing
from feature_catalogue.middleware.rate_limiter import init_rate_limits

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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
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
    os.makedirs(app.instance_path, exist_ok=True)

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

    # ── Authentication middleware (admin routes) ─────────────────────────
    init_auth(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from feature_catalogue.models import catalogue as _catalogue_models    # noqa: F401
    from feature_catalogue.models import legacy as _legacy_models          # noqa: F401
    from feature_catalogue.models import assessment as _assessment_models  # noqa: F401
    from feature_catalogue.models import audit as _audit_models            # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from feature_catalogue.blueprints.catalogue_bp import catalogue_bp
    from feature_catalogue.blueprints.admin_bp import admin_bp
    from feature_catalogue.blueprints.bulk_upload_bp import bulk_upload_bp
    from feature_catalogue.blueprints.audit_bp import audit_bp
    from feature_catalogue.blueprints.assessment_bp import assessment_bp
    from feature_catalogue.blueprints.legacy_bp import legacy_bp

    app.register_blueprint(catalogue_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(bulk_upload_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(assessment_bp)
    app.register_blueprint(legacy_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("replace-catalogue")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @click.option("--actor", default="CLI", show_default=True, help="Name recorded in the audit log.")
    def replace_catalogue_cmd(path, actor):
        """Archive the current catalogue and load a new one from PATH (.xlsx or .csv)."""
        from feature_catalogue.services.bulk_ingestion_service import CatalogueUploadError, parse_upload
        from feature_catalogue.services.catalogue_replacement_service import replace_catalogue

        with open(path, "rb") as fh:
            content = fh.read()
        try:
            result = replace_catalogue(parse_upload(path, content), actor=actor)
        except CatalogueUploadError as exc:
            raise click.ClickException(exc.message)

        results = result["results"]
        click.echo(
            f"Archived {result['archivedCount']} features as legacy set {result['legacySetId']}; "
            f"inserted {results['inserted']}, skipped {results['skipped']}."
        )
        for err in results["errors"]:
            click.echo(f"  row {err['row']}: {err['message']}")

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Feature Catalogue"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Uploaded file is too large"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
