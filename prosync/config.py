"""
ProSync — configuration classes for the Flask app factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import json
import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when no DATABASE_URL is set
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'prosync_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _database_url(default=None):
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    raw = os.getenv("DATABASE_URL", "")
    return raw.replace("postgres://", "postgresql://", 1) if raw else default


def _stage_weights():
    raw = os.getenv("STAGE_WEIGHTS", "")
    return json.loads(raw) if raw else None


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # Storage: "local" (JSON files) or "relational" (SQLAlchemy)
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORE_DIR = os.getenv("LOCAL_STORE_DIR", os.path.join(basedir, "instance", "store"))
    EXPORT_DIR = os.getenv("EXPORT_DIR", os.path.join(basedir, "instance", "exports"))
    STAGE_WEIGHTS = _stage_weights()   # e.g. {"FINALIZATION": 0.4, "EXECUTION": 0.35}

    # Remote snapshot / direct write
    REMOTE_SNAPSHOT_URL = os.getenv("REMOTE_SNAPSHOT_URL")
    REMOTE_WRITE_URL = os.getenv("REMOTE_WRITE_URL")
    REMOTE_WRITE_TOKEN = os.getenv("REMOTE_WRITE_TOKEN")
    REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "30"))

    # Sync
    AUTO_SYNC_INTERVAL_SECONDS = int(os.getenv("AUTO_SYNC_INTERVAL_SECONDS", "0"))  # 0 disables
    SYNC_SUCCESS_DISPLAY_SECONDS = float(os.getenv("SYNC_SUCCESS_DISPLAY_SECONDS", "3"))

    # Users / sessions
    USER_DELETE_POLICY = os.getenv("USER_DELETE_POLICY", "hard")
    BOOTSTRAP_ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD", "admin")
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    SESSION_REMEMBER_SECONDS = int(os.getenv("SESSION_REMEMBER_SECONDS", str(30 * 24 * 3600)))
    SESSION_DEFAULT_SECONDS = int(os.getenv("SESSION_DEFAULT_SECONDS", str(4 * 3600)))
    LOGIN_RATE_LIMIT = os.getenv("LOGIN_RATE_LIMIT", "10 per minute")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    LOG_LEVEL = os.getenv("LOG_LEVEL")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STORAGE_BACKEND = "relational"
    AUTO_SYNC_INTERVAL_SECONDS = 0
    SYNC_SUCCESS_DISPLAY_SECONDS = 0
    BCRYPT_ROUNDS = 4
    RATELIMIT_ENABLED = False
    STAGE_WEIGHTS = None


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _database_url()
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    # Override engine options with PostgreSQL statement timeout
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
    }

    def __init__(self):
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if self.STORAGE_BACKEND == "relational" and not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required for the relational backend")
        if not self.SQLALCHEMY_DATABASE_URI:
            # Flask-SQLAlchemy needs a URI even when the local backend is used.
            self.SQLALCHEMY_DATABASE_URI = "sqlite://"
            self.SQLALCHEMY_ENGINE_OPTIONS = {}


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
