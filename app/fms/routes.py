from flask import Blueprint, render_template

from app.fms.db import db_session
from app.fms.modules.facilities.service import browse_vacant, site_stats

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    s = db_session()
    return render_template("public/index.html", stats=site_stats(s))


@bp.get("/browse")
def browse():
    """Vacant units across all facilities. Open to anonymous visitors."""
    s = db_session()
    return render_template("public/browse.html", listings=browse_vacant(s))


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access.
    """
    return "ok", 200
