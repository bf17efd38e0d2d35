import os


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


class Config:
    # Base directory of the backend (one level above this `rfx` package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    ENV_NAME = (os.getenv("RFX_ENV", "dev") or "dev").strip().lower()
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "rfx.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or f"sqlite:///{_default_sqlite_path}"
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS: comma-separated origins for the admin frontend
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

    # Proof uploads (stored on local disk, served from /api/uploads/proofs)
    UPLOAD_DIR = os.getenv("UPLOAD_DIR") or os.path.join(BACKEND_DIR, "uploads", "proofs")
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024
    ALLOWED_PROOF_EXTENSIONS = {"jpg", "jpeg", "png", "gif"}

    # Task completion engine
    ENGINE_MAX_RETRIES = _int_env("ENGINE_MAX_RETRIES", 3)
    TOKEN_SYMBOL = "RFX"

    # Scheduled participation reconciliation
    ENABLE_SCHEDULER = _bool_env("ENABLE_SCHEDULER", False)
    RECONCILE_INTERVAL_MINUTES = _int_env("RECONCILE_INTERVAL_MINUTES", 60)

    JWT_TTL_SECONDS = 60 * 60 * 24 * 7
