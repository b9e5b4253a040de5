from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.fms.db import db_session
from app.fms.errors import ValidationError
from app.fms.models import User
from app.fms.modules.accounts.service import authenticate, register_user
from app.fms.utils import utcnow

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    cutoff = utcnow() - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(utcnow())


def _safe_next(nxt: str) -> str | None:
    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id for log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    s = db_session()
    user = authenticate(s, email, password)
    if user is None:
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))

    session.clear()
    session["user_id"] = user.id
    _login_attempts[ip].clear()
    current_app.logger.info("Login ok (user_id=%s)", user.id)
    return redirect(_safe_next(nxt) or url_for("routes.index"))


@bp.get("/register")
def register_get():
    return render_template("auth/register.html")


@bp.post("/register")
def register_post():
    s = db_session()
    try:
        user = register_user(
            s,
            request.form.get("name"),
            request.form.get("email"),
            request.form.get("password"),
        )
    except ValidationError as e:
        for err in e.errors:
            flash(err, "danger")
        return redirect(url_for("auth.register_get"))
    s.commit()

    session.clear()
    session["user_id"] = user.id
    flash("Welcome! Your account has been created.", "success")
    return redirect(url_for("routes.index"))


@bp.get("/logout")
def logout():
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
