import os
import subprocess

from flask import Flask, jsonify
from sqlalchemy import text

from rfx.config import Config
from rfx.errors import register_error_handlers
from rfx.extensions import db, migrate, cors, login_manager


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    env = (app.config.get("ENV_NAME") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (app.config.get("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16 or secret == "dev-secret":
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Ensure instance dir exists for SQLite paths
    database_url = app.config["SQLALCHEMY_DATABASE_URI"]
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        os.makedirs(os.path.dirname(database_url.replace("sqlite:///", "", 1)) or ".", exist_ok=True)

    # CORS configuration
    cors_origins = (app.config.get("CORS_ORIGINS") or "").strip()
    origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    if not origins and env not in ("prod", "production"):
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from rfx import auth  # noqa: F401  (registers the request loader)
    from rfx import models  # noqa: F401
    from rfx.segments.segment_campaigns import campaigns_bp
    from rfx.segments.segment_campaign_admin import campaign_admin_bp
    from rfx.segments.segment_user import user_bp

    register_error_handlers(app)

    # Register API routes
    app.register_blueprint(campaigns_bp)
    app.register_blueprint(campaign_admin_bp)
    app.register_blueprint(user_bp)

    if env == "dev":
        from rfx.devtools import dev
        app.register_blueprint(dev)

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception:
            app.logger.exception("health check: database unreachable")
            db_state = "fail"
        return jsonify({
            "ok": True,
            "service": "rfx-backend",
            "env": env,
            "db": db_state,
        })

    @app.get("/api/version")
    def version():
        def _get_alembic_head() -> str:
            try:
                from alembic.config import Config as AlembicConfig
                from alembic.script import ScriptDirectory
                migrations_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "migrations"))
                cfg = AlembicConfig(os.path.join(migrations_dir, "alembic.ini"))
                cfg.set_main_option("script_location", migrations_dir)
                heads = ScriptDirectory.from_config(cfg).get_heads()
                return heads[0] if heads else "unknown"
            except Exception:
                return "unknown"

        def _get_git_sha() -> str:
            try:
                repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
                out = subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=repo_root, stderr=subprocess.DEVNULL)
                return out.decode().strip()
            except Exception:
                return "unknown"

        return jsonify({
            "ok": True,
            "alembic_head": _get_alembic_head(),
            "git_sha": _get_git_sha(),
        })

    if app.config.get("ENABLE_SCHEDULER"):
        from rfx.jobs.scheduler import start_scheduler
        start_scheduler(app)

    return app
