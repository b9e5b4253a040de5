from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, session, url_for

from app.fms.db import db_session
from app.fms.errors import ValidationError
from app.fms.modules.accounts.service import delete_user
from app.fms.modules.facilities.service import owner_dashboard, units_occupied_by
from app.fms.ownership import current_user, login_required

bp = Blueprint("accounts", __name__)


@bp.get("/")
@login_required
def account_index():
    s = db_session()
    user = current_user()
    return render_template(
        "account/index.html",
        user=user,
        facilities=owner_dashboard(s, user.id),
        occupied=units_occupied_by(s, user.id),
    )


@bp.post("/delete")
@login_required
def account_delete():
    s = db_session()
    user = current_user()
    try:
        released = delete_user(s, user.id)
    except ValidationError as e:
        for err in e.errors:
            flash(err, "danger")
        return redirect(url_for("accounts.account_index"))
    s.commit()

    session.clear()
    if released:
        flash(f"Account deleted. {released} unit(s) released.", "success")
    else:
        flash("Account deleted.", "success")
    return redirect(url_for("routes.index"))
