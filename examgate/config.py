"""
Application Configuration
Handles environment-specific settings
"""

import os


def database_url():
    """DATABASE_URL, or a PostgreSQL URL assembled from DB_* variables"""
    url = os.getenv("DATABASE_URL")
    if not url:
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "")
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "examgate")
        credentials = f"{user}:{password}" if password else user
        url = f"postgresql+psycopg2://{credentials}@{host}:{port}/{name}"

    # Fix Render / Heroku old postgres:// url
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def cors_origins():
    """Comma-separated SOCKETIO_CORS_ALLOWED_ORIGINS; unset means same origin only"""
    raw = os.getenv("SOCKETIO_CORS_ALLOWED_ORIGINS", "").strip()
    if not raw:
        return None
    if raw == "*":
        return "*"
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Config:
    """Base configuration"""

    # ================= SECURITY =================
    SECRET_KEY = os.getenv("SECRET_KEY", "examgate_secret_key_change_later")

    # ================= DATABASE =================
    SQLALCHEMY_DATABASE_URI = database_url()

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
        "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
        "pool_pre_ping": True,
    }

    # ================= SESSION =================
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = os.getenv(
        "SESSION_COOKIE_SECURE", "False"
    ).lower() == "true"

    # ================= SOCKET.IO =================
    SOCKETIO_ASYNC_MODE = "threading"
    SOCKETIO_CORS_ALLOWED_ORIGINS = cors_origins()

    # ================= APP =================
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Kolkata")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # ================= CODE EXECUTION =================
    EXECUTION_API_URL = os.getenv(
        "EXECUTION_API_URL", "https://api.jdoodle.com/v1/execute"
    )
    EXECUTION_CLIENT_ID = os.getenv("EXECUTION_CLIENT_ID", "")
    EXECUTION_CLIENT_SECRET = os.getenv("EXECUTION_CLIENT_SECRET", "")
    EXECUTION_VERSION_INDEX = os.getenv("EXECUTION_VERSION_INDEX", "4")
    EXECUTION_TIMEOUT_SECONDS = float(os.getenv("EXECUTION_TIMEOUT_SECONDS", 10))
    EXECUTION_DEFAULT_LANGUAGE = os.getenv("EXECUTION_DEFAULT_LANGUAGE", "nodejs")

    # ================= SCORING =================
    SCORING_MAX_WORKERS = int(os.getenv("SCORING_MAX_WORKERS", 4))
    FINALIZE_TIMEOUT_SECONDS = float(os.getenv("FINALIZE_TIMEOUT_SECONDS", 30))
    ATTEMPT_GRACE_SECONDS = int(os.getenv("ATTEMPT_GRACE_SECONDS", 60))

    # ================= PROCTORING =================
    PROCTOR_MAX_WARNINGS = int(os.getenv("PROCTOR_MAX_WARNINGS", 3))
    PROCTOR_COUNTDOWN_SECONDS = float(os.getenv("PROCTOR_COUNTDOWN_SECONDS", 10))


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    """Testing configuration (in-memory SQLite)"""
    TESTING = True
    SECRET_KEY = "examgate-testing"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False
    EXECUTION_CLIENT_ID = "test-client"
    EXECUTION_CLIENT_SECRET = "test-secret"
    FINALIZE_TIMEOUT_SECONDS = 5


# ================= CONFIG MAP =================
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config():
    """Return config class based on FLASK_ENV"""
    env = os.getenv("FLASK_ENV", "development").lower()
    return config.get(env, config["default"])
