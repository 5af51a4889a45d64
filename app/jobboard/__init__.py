import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, request

from app.jobboard.config import load_config
from app.jobboard.constants import DEV_ENV
from app.jobboard.db import init_db, teardown_db_session
from app.jobboard.identity import identity_provider_from_config
from app.jobboard.middleware import init_middleware
from app.jobboard.rendering import TemplateRenderer, render_page
from app.jobboard.routes import bp as routes_bp
from app.jobboard.auth import bp as auth_bp
from app.jobboard.admin import bp as admin_bp
from app.jobboard.tasks import bp as tasks_bp


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, app.config.get("LOG_LEVEL") or "INFO", logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=app.config["JWT_TTL_HOURS"])
    _configure_logging(app)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        for key in ("SECRET_KEY", "JWT_KEY"):
            if not app.config.get(key) or str(app.config[key]) in ("", "change-me"):
                raise RuntimeError(f"{key} must be set to a strong value in production (not default).")
        if not app.config.get("MACHINE_TOKEN"):
            app.logger.warning("MACHINE_TOKEN is not set; machine endpoints will reject every request")

    init_db(app)

    # Broken templates abort startup; in dev the set is reloaded on write.
    app.extensions["template_renderer"] = TemplateRenderer(app.config["TEMPLATES_DIR"], watch=env == DEV_ENV)
    app.extensions["identity_provider"] = identity_provider_from_config(app.config)

    init_middleware(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(tasks_bp, url_prefix="/x")

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        if request.path.startswith(("/api/", "/x/")):
            return {"error": "bad request"}, 400
        return render_page("errors/400.html", status=400)

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        if request.path.startswith(("/api/", "/x/")):
            return {"error": "unauthorized"}, 401
        return render_page("errors/401.html", status=401)

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if request.path.startswith(("/api/", "/x/")):
            return {"error": "not found"}, 404
        return render_page("errors/404.html", status=404)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 path=%s", request.path)
        return render_page("errors/500.html", status=500)

    logging.getLogger(__name__).info("create_app() complete; env=%s templates=%s", env, app.config["TEMPLATES_DIR"])

    return app
