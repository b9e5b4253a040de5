"""
Facility and storage-unit catalog.

Every mutation goes through the ownership lookups, so a caller can only touch
records under facilities they own. Occupancy columns are never written here;
see app.fms.modules.occupancy.service for that.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.fms.errors import NotFoundError, ValidationError
from app.fms.models import User
from app.fms.ownership import (
    get_owned_facility,
    get_owned_unit,
    owned_facilities_stmt,
    owned_units_stmt,
    occupied_by_stmt,
    units_of_facility,
    vacant_units_stmt,
)
from app.fms.utils import clean_str, parse_decimal, parse_float, utcnow

from .models import Facility, StorageUnit

logger = logging.getLogger(__name__)

FACILITY_FIELDS = ("name", "address", "city", "postal_code", "country", "description")
FACILITY_MAX_LENGTHS = {
    "name": 200,
    "address": 300,
    "city": 100,
    "postal_code": 20,
    "country": 100,
    "description": 500,
}
UNIT_MAX_LENGTHS = {
    "unit_number": 50,
    "description": 200,
}
# Numeric(18, 2) leaves 16 integer digits.
MAX_MONTHLY_PRICE = Decimal(10) ** 16


def _label(field: str) -> str:
    return field.replace("_", " ").capitalize()


def _check_lengths(payload: dict, limits: dict[str, int]) -> list[str]:
    errors = []
    for field, limit in limits.items():
        value = clean_str(payload.get(field))
        if value and len(value) > limit:
            errors.append(f"{_label(field)} must be at most {limit} characters.")
    return errors


# ---------- Facilities ----------

def validate_facility_payload(payload: dict) -> list[str]:
    """Validate facility creation/update payload. Returns list of errors."""
    errors = []
    if not clean_str(payload.get("name")):
        errors.append("Name is required.")
    if not clean_str(payload.get("address")):
        errors.append("Address is required.")
    errors.extend(_check_lengths(payload, FACILITY_MAX_LENGTHS))
    return errors


def create_facility(s: Session, payload: dict, caller_id: int) -> Facility:
    """Create a facility owned by the caller."""
    errors = validate_facility_payload(payload)
    if errors:
        raise ValidationError(errors)
    if s.get(User, caller_id) is None:
        raise NotFoundError("User not found.")

    facility = Facility(
        name=clean_str(payload.get("name")),
        address=clean_str(payload.get("address")),
        city=clean_str(payload.get("city")),
        postal_code=clean_str(payload.get("postal_code")),
        country=clean_str(payload.get("country")),
        description=clean_str(payload.get("description")),
        owner_id=caller_id,
        created_at=utcnow(),
    )
    s.add(facility)
    s.flush()
    logger.info("Facility created (facility_id=%s owner_id=%s)", facility.id, caller_id)
    return facility


def update_facility(s: Session, facility_id: int, payload: dict, caller_id: int) -> Facility:
    """Update an owned facility. Owner and creation time are not editable."""
    facility = get_owned_facility(s, facility_id, caller_id)
    errors = validate_facility_payload(payload)
    if errors:
        raise ValidationError(errors)

    changed = []
    for field in FACILITY_FIELDS:
        new_value = clean_str(payload.get(field))
        if new_value != getattr(facility, field):
            setattr(facility, field, new_value)
            changed.append(field)
    s.flush()
    logger.info("Facility updated (facility_id=%s fields=%s)", facility.id, ",".join(changed) or "-")
    return facility


def delete_facility(s: Session, facility_id: int, caller_id: int) -> None:
    """Delete an owned facility together with all of its units."""
    facility = get_owned_facility(s, facility_id, caller_id)
    removed = s.execute(
        delete(StorageUnit).where(StorageUnit.facility_id == facility.id).execution_options(synchronize_session=False)
    ).rowcount
    s.delete(facility)
    s.flush()
    logger.info("Facility deleted (facility_id=%s units_removed=%s)", facility_id, removed)


@dataclass(frozen=True)
class FacilitySummary:
    facility: Facility
    unit_count: int
    occupied_count: int

    @property
    def vacant_count(self) -> int:
        return self.unit_count - self.occupied_count


def owner_dashboard(s: Session, caller_id: int) -> list[FacilitySummary]:
    """Caller's facilities with unit and occupancy counts."""
    facilities = list(s.scalars(owned_facilities_stmt(caller_id)))
    if not facilities:
        return []
    counts = {
        row.facility_id: (row.total, row.occupied or 0)
        for row in s.execute(
            select(
                StorageUnit.facility_id,
                func.count(StorageUnit.id).label("total"),
                func.sum(case((StorageUnit.is_occupied.is_(True), 1), else_=0)).label("occupied"),
            )
            .where(StorageUnit.facility_id.in_([f.id for f in facilities]))
            .group_by(StorageUnit.facility_id)
        )
    }
    return [
        FacilitySummary(facility=f, unit_count=counts.get(f.id, (0, 0))[0], occupied_count=counts.get(f.id, (0, 0))[1])
        for f in facilities
    ]


def facility_detail(s: Session, facility_id: int, caller_id: int | None) -> tuple[Facility, list[StorageUnit]]:
    """Owner-only view including occupant identities."""
    facility = get_owned_facility(s, facility_id, caller_id)
    return facility, units_of_facility(s, facility.id)


# ---------- Storage units ----------

def validate_unit_payload(payload: dict) -> list[str]:
    """Validate unit creation/update payload. Returns list of errors."""
    errors = []
    if not clean_str(payload.get("unit_number")):
        errors.append("Unit number is required.")

    raw_size = payload.get("size_square_meters")
    try:
        size = parse_float(raw_size)
    except ValueError:
        errors.append("Size must be a number.")
    else:
        if size is None:
            errors.append("Size is required.")
        elif size <= 0:
            errors.append("Size must be greater than 0.")

    try:
        price = parse_decimal(payload.get("monthly_price"))
    except ValueError:
        errors.append("Monthly price must be a number.")
    else:
        if price is None:
            errors.append("Monthly price is required.")
        elif price < 0:
            errors.append("Monthly price must be non-negative.")
        elif price >= MAX_MONTHLY_PRICE:
            errors.append("Monthly price is too large.")

    errors.extend(_check_lengths(payload, UNIT_MAX_LENGTHS))
    return errors


def _unit_number_taken(s: Session, facility_id: int, unit_number: str, exclude_unit_id: int | None = None) -> bool:
    stmt = select(StorageUnit.id).where(
        StorageUnit.facility_id == facility_id,
        StorageUnit.unit_number == unit_number,
    )
    if exclude_unit_id is not None:
        stmt = stmt.where(StorageUnit.id != exclude_unit_id)
    return s.scalar(stmt.limit(1)) is not None


def _flush_unit(s: Session, unit_number: str) -> None:
    # Two concurrent submits with the same number can both pass the pre-check.
    try:
        s.flush()
    except IntegrityError as e:
        s.rollback()
        raise ValidationError(f"Unit number '{unit_number}' already exists in this facility.") from e


def create_unit(s: Session, facility_id: int, payload: dict, caller_id: int | None) -> StorageUnit:
    """Create a vacant unit under an owned facility."""
    facility = get_owned_facility(s, facility_id, caller_id)
    errors = validate_unit_payload(payload)
    if errors:
        raise ValidationError(errors)

    unit_number = clean_str(payload.get("unit_number"))
    if _unit_number_taken(s, facility.id, unit_number):
        raise ValidationError(f"Unit number '{unit_number}' already exists in this facility.")

    unit = StorageUnit(
        facility_id=facility.id,
        unit_number=unit_number,
        description=clean_str(payload.get("description")),
        size_square_meters=parse_float(payload.get("size_square_meters")),
        monthly_price=parse_decimal(payload.get("monthly_price")),
        is_occupied=False,
        occupant_id=None,
        occupied_at=None,
        created_at=utcnow(),
    )
    s.add(unit)
    _flush_unit(s, unit_number)
    logger.info("Storage unit created (unit_id=%s facility_id=%s)", unit.id, facility.id)
    return unit


def update_unit(s: Session, unit_id: int, payload: dict, caller_id: int | None) -> StorageUnit:
    """Edit descriptive fields. Facility and occupancy stay as they are."""
    unit = get_owned_unit(s, unit_id, caller_id)
    errors = validate_unit_payload(payload)
    if errors:
        raise ValidationError(errors)

    unit_number = clean_str(payload.get("unit_number"))
    if unit_number != unit.unit_number and _unit_number_taken(s, unit.facility_id, unit_number, exclude_unit_id=unit.id):
        raise ValidationError(f"Unit number '{unit_number}' already exists in this facility.")

    unit.unit_number = unit_number
    unit.description = clean_str(payload.get("description"))
    unit.size_square_meters = parse_float(payload.get("size_square_meters"))
    unit.monthly_price = parse_decimal(payload.get("monthly_price"))
    _flush_unit(s, unit_number)
    logger.info("Storage unit updated (unit_id=%s)", unit.id)
    return unit


def delete_unit(s: Session, unit_id: int, caller_id: int | None) -> int:
    """Delete an owned unit. Returns the parent facility id."""
    unit = get_owned_unit(s, unit_id, caller_id)
    facility_id = unit.facility_id
    s.delete(unit)
    s.flush()
    logger.info("Storage unit deleted (unit_id=%s facility_id=%s)", unit_id, facility_id)
    return facility_id


def unit_detail(s: Session, unit_id: int, caller_id: int | None) -> StorageUnit:
    return get_owned_unit(s, unit_id, caller_id)


def owner_units(s: Session, caller_id: int, facility_id: int | None = None) -> tuple[Facility | None, list[StorageUnit]]:
    """Units across the caller's facilities; narrowed to one owned facility when given."""
    facility = None
    if facility_id is not None:
        facility = get_owned_facility(s, facility_id, caller_id)
    return facility, list(s.scalars(owned_units_stmt(caller_id, facility_id)))


def units_occupied_by(s: Session, caller_id: int) -> list[StorageUnit]:
    return list(s.scalars(occupied_by_stmt(caller_id)))


# ---------- Public views ----------

def browse_vacant(s: Session) -> list[tuple[Facility, list[StorageUnit]]]:
    """Every facility with its vacant units; facilities with none still appear."""
    facilities = list(s.scalars(select(Facility).order_by(Facility.name.asc(), Facility.id.asc())))
    by_facility: dict[int, list[StorageUnit]] = {f.id: [] for f in facilities}
    for unit in s.scalars(vacant_units_stmt()):
        by_facility.setdefault(unit.facility_id, []).append(unit)
    return [(f, by_facility[f.id]) for f in facilities]


@dataclass(frozen=True)
class SiteStats:
    total_facilities: int
    total_units: int
    occupied_units: int
    total_users: int

    @property
    def available_units(self) -> int:
        return self.total_units - self.occupied_units

    @property
    def occupancy_rate(self) -> float:
        if self.total_units <= 0:
            return 0.0
        return self.occupied_units / self.total_units * 100


def site_stats(s: Session) -> SiteStats:
    return SiteStats(
        total_facilities=s.scalar(select(func.count(Facility.id))) or 0,
        total_units=s.scalar(select(func.count(StorageUnit.id))) or 0,
        occupied_units=s.scalar(select(func.count(StorageUnit.id)).where(StorageUnit.is_occupied.is_(True))) or 0,
        total_users=s.scalar(select(func.count(User.id))) or 0,
    )


def format_price(value: Decimal | None) -> str:
    if value is None:
        return "—"
    return f"{value:,.2f}"
