"""
ProSync — project tracking with weighted stage progress and snapshot sync.
Flask Application Factory.

Usage:
    from prosync import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from prosync.auth import init_auth
from prosync.config import config
from prosync.middleware.logging_config import configure_logging
from prosync.middleware.rate_limiter import init_rate_limits
from prosync.middleware.timing import init_request_timing
from prosync.models import db
from prosync.utils.errors import register_error_handlers

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
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def init_services(app):
    """Build the backend, repositories and sync coordinator into ``app.extensions``."""
    from prosync.integrations.remote_gateway import FileSink, RemoteSnapshotClient, RemoteWriteHandle
    from prosync.services.backends import create_backend
    from prosync.services.change_feed import ChangeFeed
    from prosync.services.repository import AgendaRepository, ProjectRepository, UserRepository
    from prosync.services.stages import build_stage_table
    from prosync.services.sync_service import SyncCoordinator

    cfg = app.config
    backend = create_backend(cfg)
    feed = ChangeFeed()
    users = UserRepository(
        backend,
        delete_policy=cfg["USER_DELETE_POLICY"],
        bootstrap_password=cfg["BOOTSTRAP_ADMIN_PASSWORD"],
        password_rounds=cfg["BCRYPT_ROUNDS"],
    )
    projects = ProjectRepository(backend, feed=feed)
    agenda = AgendaRepository(backend)

    timeout = cfg["REMOTE_TIMEOUT_SECONDS"]
    remote = RemoteSnapshotClient(cfg["REMOTE_SNAPSHOT_URL"], timeout=timeout) \
        if cfg.get("REMOTE_SNAPSHOT_URL") else None
    write_handle = RemoteWriteHandle(cfg["REMOTE_WRITE_URL"], cfg.get("REMOTE_WRITE_TOKEN"), timeout=timeout) \
        if cfg.get("REMOTE_WRITE_URL") else None
    sync = SyncCoordinator(
        users, projects, agenda, FileSink(cfg["EXPORT_DIR"]),
        remote=remote, write_handle=write_handle,
        display_seconds=cfg["SYNC_SUCCESS_DISPLAY_SECONDS"],
    )

    app.extensions.update({
        "backend": backend,
        "change_feed": feed,
        "stages": build_stage_table(cfg.get("STAGE_WEIGHTS")),
        "users": users,
        "projects": projects,
        "agenda": agenda,
        "sync": sync,
    })
    logger.info("Storage backend: %s", backend.name)


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

    init_request_timing(app)
    init_auth(app)
    register_error_handlers(app)

    # ── Tables (CREATE IF NOT EXISTS) ────────────────────────────────────
    from prosync.models import tracking as _tracking_models  # noqa: F401

    if app.config["STORAGE_BACKEND"] == "relational":
        with app.app_context():
            db.create_all()

    init_services(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from prosync.blueprints.agenda_bp import agenda_bp
    from prosync.blueprints.auth_bp import auth_bp
    from prosync.blueprints.health_bp import health_bp
    from prosync.blueprints.projects_bp import projects_bp
    from prosync.blueprints.sync_bp import sync_bp
    from prosync.blueprints.users_bp import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(agenda_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(health_bp)

    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    from prosync.commands import register_commands
    register_commands(app)

    # ── Background jobs ──────────────────────────────────────────────────
    from prosync.services import scheduled_jobs  # noqa: F401  (registers jobs)
    from prosync.services.scheduler_service import SchedulerService

    scheduler = SchedulerService(app)
    interval = app.config.get("AUTO_SYNC_INTERVAL_SECONDS", 0)
    if interval > 0 and not app.config.get("TESTING"):
        scheduler.start_interval("auto_sync_change_script", interval)

    return app
