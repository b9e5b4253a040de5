"""
Ownership-scoped access to facilities and storage units.

Every owner-only read filters on owner_id inside the query, so a record that
belongs to someone else looks exactly like a record that does not exist.
"""
from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, redirect, request, url_for
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.fms.errors import NotFoundError
from app.fms.models import User
from app.fms.modules.facilities.models import Facility, StorageUnit


def owned_facilities_stmt(caller_id: int) -> Select:
    return select(Facility).where(Facility.owner_id == caller_id).order_by(Facility.name.asc(), Facility.id.asc())


def owned_units_stmt(caller_id: int, facility_id: int | None = None) -> Select:
    stmt = (
        select(StorageUnit)
        .join(Facility, StorageUnit.facility_id == Facility.id)
        .where(Facility.owner_id == caller_id)
    )
    if facility_id is not None:
        stmt = stmt.where(StorageUnit.facility_id == facility_id)
    return stmt.order_by(Facility.name.asc(), Facility.id.asc(), StorageUnit.id.asc())


def get_owned_facility(s: Session, facility_id: int, caller_id: int | None) -> Facility:
    if caller_id is None:
        raise NotFoundError("Facility not found.")
    facility = s.scalars(
        select(Facility).where(Facility.id == facility_id, Facility.owner_id == caller_id)
    ).one_or_none()
    if facility is None:
        raise NotFoundError("Facility not found.")
    return facility


def get_owned_unit(s: Session, unit_id: int, caller_id: int | None) -> StorageUnit:
    if caller_id is None:
        raise NotFoundError("Storage unit not found.")
    unit = s.scalars(
        select(StorageUnit)
        .join(Facility, StorageUnit.facility_id == Facility.id)
        .where(StorageUnit.id == unit_id, Facility.owner_id == caller_id)
    ).one_or_none()
    if unit is None:
        raise NotFoundError("Storage unit not found.")
    return unit


def units_of_facility(s: Session, facility_id: int) -> list[StorageUnit]:
    """Units in insertion order. Callers must already hold the facility via get_owned_facility."""
    return list(s.scalars(select(StorageUnit).where(StorageUnit.facility_id == facility_id).order_by(StorageUnit.id.asc())))


def vacant_units_stmt() -> Select:
    """Public listing; carries no occupant data."""
    return (
        select(StorageUnit)
        .where(StorageUnit.is_occupied.is_(False))
        .order_by(StorageUnit.facility_id.asc(), StorageUnit.id.asc())
    )


def occupied_by_stmt(caller_id: int) -> Select:
    return (
        select(StorageUnit)
        .join(Facility, StorageUnit.facility_id == Facility.id)
        .where(StorageUnit.occupant_id == caller_id)
        .order_by(Facility.name.asc(), Facility.id.asc(), StorageUnit.id.asc())
    )


def can_vacate(*, caller_id: int | None, occupant_id: int | None, owner_id: int | None) -> bool:
    if caller_id is None:
        return False
    return caller_id == occupant_id or caller_id == owner_id


def can_occupy(*, caller_id: int | None, requested_occupant_id: int | None) -> bool:
    # Self-service only: nobody books a unit on behalf of another account.
    return caller_id is not None and caller_id == requested_occupant_id


def current_user() -> User | None:
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user


def current_user_id() -> int | None:
    user = current_user()
    return user.id if user else None


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_user() is None:
            nxt = request.full_path or request.path
            # Avoid trailing '?' from full_path when there is no query string.
            if nxt.endswith("?"):
                nxt = nxt[:-1]
            return redirect(url_for("auth.login_get", next=nxt))
        return fn(*args, **kwargs)

    return wrapped
