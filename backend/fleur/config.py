# backend/fleur/config.py
from __future__ import annotations
import os


def _engine_options(database_uri: str, timeout_seconds: float) -> dict:
    """
    Bound every store call by timeout_seconds. Hitting the bound raises
    OperationalError, which run_with_retry reports as a retryable failure.
    """
    if database_uri.startswith("sqlite"):
        # busy timeout on the file lock
        return {"connect_args": {"timeout": timeout_seconds}}

    options = {"pool_pre_ping": True, "pool_timeout": timeout_seconds}
    if database_uri.startswith("postgresql"):
        ms = int(timeout_seconds * 1000)
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={ms} -c lock_timeout={ms}",
        }
    elif database_uri.startswith("mysql"):
        seconds = max(1, int(timeout_seconds))
        options["connect_args"] = {
            "connect_timeout": seconds,
            "read_timeout": seconds,
            "write_timeout": seconds,
        }
    return options


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fleur.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///fleur.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Store request timeout; a timed-out write is retried, then reported as retryable
    DB_TIMEOUT_SECONDS = float(os.environ.get("DB_TIMEOUT_SECONDS", "5"))
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI, DB_TIMEOUT_SECONDS)
    PERSISTENCE_RETRY_ATTEMPTS = int(os.environ.get("PERSISTENCE_RETRY_ATTEMPTS", "3"))

    # "orphan" keeps the legacy behaviour (products keep deleted option values),
    # "block" refuses to delete an option that products still reference.
    TAXONOMY_DELETE_POLICY = os.environ.get("TAXONOMY_DELETE_POLICY", "orphan")

    # Role value that may provision employee accounts
    ADMIN_ROLE = os.environ.get("ADMIN_ROLE", "admin")

    # Service-account credential (JSON string) required for privileged provisioning
    PROVISIONING_CREDENTIALS = os.environ.get("PROVISIONING_CREDENTIALS")

    MIN_PASSWORD_LENGTH = int(os.environ.get("MIN_PASSWORD_LENGTH", "6"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    PERSISTENCE_RETRY_ATTEMPTS = 3
    BCRYPT_ROUNDS = 4
    PROVISIONING_CREDENTIALS = (
        '{"type": "service_account", "project_id": "fleur-test", '
        '"client_email": "provisioner@fleur-test.local"}'
    )
    LOG_LEVEL = "DEBUG"
