from __future__ import annotations

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for

from app.fms.db import db_session
from app.fms.modules.facilities.service import units_occupied_by
from app.fms.modules.occupancy.service import occupy, vacate
from app.fms.ownership import current_user_id, login_required
from app.fms.utils import parse_int

bp = Blueprint("occupancy", __name__)


@bp.post("/units/<int:unit_id>/occupy")
@login_required
def unit_occupy(unit_id: int):
    s = db_session()
    caller_id = current_user_id()
    try:
        occupant_id = parse_int(request.form.get("occupant_id"))
    except ValueError:
        abort(400)
    if occupant_id is None:
        occupant_id = caller_id

    unit = occupy(s, unit_id, occupant_id, caller_id)
    s.commit()

    flash(f"You now occupy unit {unit.unit_number} at {unit.facility.name}.", "success")
    return redirect(url_for("occupancy.my_units"))


@bp.post("/units/<int:unit_id>/vacate")
@login_required
def unit_vacate(unit_id: int):
    s = db_session()
    caller_id = current_user_id()
    unit = vacate(s, unit_id, caller_id)
    s.commit()

    flash(f"Unit {unit.unit_number} is now vacant.", "success")
    if unit.facility.owner_id == caller_id:
        return redirect(url_for("facilities.unit_detail_view", unit_id=unit.id))
    return redirect(url_for("occupancy.my_units"))


@bp.get("/my-units")
@login_required
def my_units():
    s = db_session()
    units = units_occupied_by(s, current_user_id())
    return render_template("occupancy/my_units.html", units=units)
