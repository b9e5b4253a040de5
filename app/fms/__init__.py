import logging
import os
from datetime import timedelta

from flask import Flask, flash, g, redirect, render_template, request, session, url_for
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from app.fms.config import load_config
from app.fms.db import init_db, teardown_db_session
from app.fms.errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from app.fms.routes import bp as routes_bp
from app.fms.auth import bp as auth_bp, load_current_user
from app.fms.modules.facilities.admin import bp as facilities_bp
from app.fms.modules.occupancy.admin import bp as occupancy_bp
from app.fms.modules.accounts.admin import bp as accounts_bp
from app.fms.modules.facilities.service import format_price

logger = logging.getLogger(__name__)


def _rollback_request_session() -> None:
    s = getattr(g, "db_session", None)
    if s is not None:
        s.rollback()


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    from app.fms.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_user() -> dict:
        return {"current_user": getattr(g, "current_user", None)}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "—"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    app.add_template_filter(format_price, "price")

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/register run before a session exists.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(facilities_bp, url_prefix="/facilities")
    app.register_blueprint(occupancy_bp)
    app.register_blueprint(accounts_bp, url_prefix="/account")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    # ---------- Domain errors ----------
    @app.errorhandler(NotFoundError)
    def _err_not_found(e: NotFoundError):
        _rollback_request_session()
        return render_template("errors/404.html", message=str(e)), 404

    @app.errorhandler(ForbiddenError)
    def _err_forbidden(e: ForbiddenError):
        _rollback_request_session()
        app.logger.warning(
            "Forbidden: %s user_id=%s request_id=%s",
            e,
            getattr(getattr(g, "current_user", None), "id", None),
            getattr(g, "request_id", None),
        )
        return render_template("errors/403.html", message=str(e)), 403

    @app.errorhandler(ValidationError)
    def _err_validation(e: ValidationError):
        _rollback_request_session()
        return render_template("errors/400.html", message=str(e), errors=e.errors), 400

    def _storage_unavailable(e: BaseException):
        _rollback_request_session()
        app.logger.error(
            "Storage error: %s (request_id=%s)", e, getattr(g, "request_id", None), exc_info=e
        )
        return render_template("errors/503.html"), 503

    @app.errorhandler(StorageError)
    def _err_storage(e: StorageError):
        return _storage_unavailable(e)

    @app.errorhandler(SQLAlchemyError)
    def _err_sqlalchemy(e: SQLAlchemyError):
        return _storage_unavailable(e)

    # ---------- HTTP errors ----------
    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html", message=None), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        return render_template("errors/403.html", message=None), 403

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return render_template("errors/400.html", message=getattr(e, "description", None)), 400

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        flash("Request too large.", "danger")
        referrer = request.referrer
        if referrer and referrer.startswith(request.host_url):
            return redirect(referrer), 302
        return redirect(url_for("routes.index")), 302

    logger.info("create_app() complete; app ready to serve")

    return app
