from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for

from app.fms.db import db_session
from app.fms.errors import ValidationError
from app.fms.modules.facilities.service import (
    create_facility,
    create_unit,
    delete_facility,
    delete_unit,
    facility_detail,
    owner_dashboard,
    owner_units,
    unit_detail,
    update_facility,
    update_unit,
)
from app.fms.ownership import current_user_id, get_owned_facility, get_owned_unit, login_required

bp = Blueprint("facilities", __name__)

FACILITY_FORM_FIELDS = ("name", "address", "city", "postal_code", "country", "description")
UNIT_FORM_FIELDS = ("unit_number", "description", "size_square_meters", "monthly_price")


def _form_payload(fields: tuple[str, ...]) -> dict:
    return {f: request.form.get(f) for f in fields}


def _flash_errors(e: ValidationError) -> None:
    for err in e.errors:
        flash(err, "danger")


# ---------- Facilities ----------
@bp.get("/")
@login_required
def facilities_list():
    s = db_session()
    return render_template("facilities/list.html", summaries=owner_dashboard(s, current_user_id()))


@bp.get("/new")
@login_required
def facilities_new_get():
    return render_template("facilities/form.html", facility=None, form={})


@bp.post("/new")
@login_required
def facilities_new_post():
    s = db_session()
    payload = _form_payload(FACILITY_FORM_FIELDS)
    try:
        facility = create_facility(s, payload, current_user_id())
    except ValidationError as e:
        _flash_errors(e)
        return render_template("facilities/form.html", facility=None, form=payload), 400
    s.commit()

    flash(f"Facility '{facility.name}' created.", "success")
    return redirect(url_for("facilities.facility_detail_view", facility_id=facility.id))


@bp.get("/<int:facility_id>")
@login_required
def facility_detail_view(facility_id: int):
    s = db_session()
    facility, units = facility_detail(s, facility_id, current_user_id())
    return render_template("facilities/detail.html", facility=facility, units=units)


@bp.get("/<int:facility_id>/edit")
@login_required
def facility_edit_get(facility_id: int):
    s = db_session()
    facility = get_owned_facility(s, facility_id, current_user_id())
    form = {f: getattr(facility, f) or "" for f in FACILITY_FORM_FIELDS}
    return render_template("facilities/form.html", facility=facility, form=form)


@bp.post("/<int:facility_id>/edit")
@login_required
def facility_edit_post(facility_id: int):
    s = db_session()
    payload = _form_payload(FACILITY_FORM_FIELDS)
    try:
        update_facility(s, facility_id, payload, current_user_id())
    except ValidationError as e:
        _flash_errors(e)
        return redirect(url_for("facilities.facility_edit_get", facility_id=facility_id))
    s.commit()

    flash("Facility updated.", "success")
    return redirect(url_for("facilities.facility_detail_view", facility_id=facility_id))


@bp.post("/<int:facility_id>/delete")
@login_required
def facility_delete(facility_id: int):
    s = db_session()
    delete_facility(s, facility_id, current_user_id())
    s.commit()

    flash("Facility deleted.", "success")
    return redirect(url_for("facilities.facilities_list"))


# ---------- Units ----------
@bp.get("/units")
@login_required
def units_list():
    s = db_session()
    facility_id = request.args.get("facility_id", type=int)
    facility, units = owner_units(s, current_user_id(), facility_id)
    return render_template("units/list.html", facility=facility, units=units)


@bp.get("/<int:facility_id>/units/new")
@login_required
def unit_new_get(facility_id: int):
    s = db_session()
    facility = get_owned_facility(s, facility_id, current_user_id())
    return render_template("units/form.html", facility=facility, unit=None, form={})


@bp.post("/<int:facility_id>/units/new")
@login_required
def unit_new_post(facility_id: int):
    s = db_session()
    payload = _form_payload(UNIT_FORM_FIELDS)
    try:
        unit = create_unit(s, facility_id, payload, current_user_id())
    except ValidationError as e:
        _flash_errors(e)
        facility = get_owned_facility(s, facility_id, current_user_id())
        return render_template("units/form.html", facility=facility, unit=None, form=payload), 400
    s.commit()

    flash(f"Unit '{unit.unit_number}' created.", "success")
    return redirect(url_for("facilities.facility_detail_view", facility_id=facility_id))


@bp.get("/units/<int:unit_id>")
@login_required
def unit_detail_view(unit_id: int):
    s = db_session()
    unit = unit_detail(s, unit_id, current_user_id())
    return render_template("units/detail.html", unit=unit)


@bp.get("/units/<int:unit_id>/edit")
@login_required
def unit_edit_get(unit_id: int):
    s = db_session()
    unit = get_owned_unit(s, unit_id, current_user_id())
    form = {f: getattr(unit, f) if getattr(unit, f) is not None else "" for f in UNIT_FORM_FIELDS}
    return render_template("units/form.html", facility=unit.facility, unit=unit, form=form)


@bp.post("/units/<int:unit_id>/edit")
@login_required
def unit_edit_post(unit_id: int):
    s = db_session()
    payload = _form_payload(UNIT_FORM_FIELDS)
    try:
        update_unit(s, unit_id, payload, current_user_id())
    except ValidationError as e:
        _flash_errors(e)
        return redirect(url_for("facilities.unit_edit_get", unit_id=unit_id))
    s.commit()

    flash("Unit updated.", "success")
    return redirect(url_for("facilities.unit_detail_view", unit_id=unit_id))


@bp.post("/units/<int:unit_id>/delete")
@login_required
def unit_delete(unit_id: int):
    s = db_session()
    facility_id = delete_unit(s, unit_id, current_user_id())
    s.commit()

    flash("Unit deleted.", "success")
    return redirect(url_for("facilities.facility_detail_view", facility_id=facility_id))
