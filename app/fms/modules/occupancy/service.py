"""
Occupancy service: the Vacant <-> Occupied lifecycle of a storage unit.

Only two transitions exist:
    occupy  Vacant   -> Occupied   (self-service)
    vacate  Occupied -> Vacant     (occupant or facility owner)

Both end in a single conditional UPDATE that only matches the row while it is
still in the expected prior state, so two callers racing for the same unit
cannot both win. The service flushes but never commits; the caller owns the
transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.fms.errors import ForbiddenError, NotFoundError, StorageError
from app.fms.models import User
from app.fms.modules.facilities.models import Facility, StorageUnit
from app.fms.ownership import can_occupy, can_vacate
from app.fms.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccupancyState:
    is_occupied: bool
    occupant_id: int | None = None
    occupied_at: datetime | None = None

    @classmethod
    def vacant(cls) -> "OccupancyState":
        return cls(False, None, None)

    @classmethod
    def occupied_by(cls, occupant_id: int, at: datetime | None = None) -> "OccupancyState":
        return cls(True, occupant_id, at or utcnow())

    @classmethod
    def of(cls, unit: StorageUnit) -> "OccupancyState":
        return cls(unit.is_occupied, unit.occupant_id, unit.occupied_at)


# ---------- Persistence lookups ----------

def find_unit_by_id(s: Session, unit_id: int) -> StorageUnit | None:
    return s.get(StorageUnit, unit_id)


def find_user_by_id(s: Session, user_id: int) -> User | None:
    user = s.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def find_facility_owner_id_for_unit(s: Session, unit_id: int) -> int | None:
    return s.scalar(
        select(Facility.owner_id)
        .join(StorageUnit, StorageUnit.facility_id == Facility.id)
        .where(StorageUnit.id == unit_id)
    )


def update_unit_if_occupancy_state_matches(
    s: Session,
    unit_id: int,
    expected: OccupancyState,
    new: OccupancyState,
) -> bool:
    """
    Compare-and-set on the occupancy columns. Returns False when the row no
    longer matches `expected` (or is gone).
    """
    stmt = (
        update(StorageUnit)
        .where(StorageUnit.id == unit_id)
        .where(StorageUnit.is_occupied.is_(expected.is_occupied))
        .values(
            is_occupied=new.is_occupied,
            occupant_id=new.occupant_id,
            occupied_at=new.occupied_at,
        )
        .execution_options(synchronize_session=False)
    )
    if expected.occupant_id is not None:
        stmt = stmt.where(StorageUnit.occupant_id == expected.occupant_id)
    try:
        result = s.execute(stmt)
    except SQLAlchemyError as e:
        s.rollback()
        logger.exception("Occupancy update failed (unit_id=%s)", unit_id)
        raise StorageError(f"Could not update storage unit {unit_id}.") from e
    return result.rowcount == 1


def _reload(s: Session, unit: StorageUnit) -> StorageUnit:
    try:
        s.refresh(unit)
    except SQLAlchemyError as e:
        s.rollback()
        raise StorageError(f"Could not reload storage unit {unit.id}.") from e
    return unit


# ---------- Transitions ----------

def occupy(s: Session, unit_id: int, requested_occupant_id: int, caller_id: int | None) -> StorageUnit:
    unit = find_unit_by_id(s, unit_id)
    if unit is None:
        raise NotFoundError("Storage unit not found.")
    # Mismatched caller is refused whether or not the unit is free.
    if not can_occupy(caller_id=caller_id, requested_occupant_id=requested_occupant_id):
        raise ForbiddenError("You can only occupy a unit for yourself.")
    if unit.is_occupied:
        raise NotFoundError("Storage unit is already occupied.")
    if find_user_by_id(s, requested_occupant_id) is None:
        raise NotFoundError("Occupant not found.")

    applied = update_unit_if_occupancy_state_matches(
        s,
        unit_id,
        expected=OccupancyState.vacant(),
        new=OccupancyState.occupied_by(requested_occupant_id),
    )
    if not applied:
        # Someone else got there between our read and the update.
        logger.info("Occupy lost race (unit_id=%s caller_id=%s)", unit_id, caller_id)
        raise NotFoundError("Storage unit is already occupied.")

    logger.info("Unit occupied (unit_id=%s occupant_id=%s)", unit_id, requested_occupant_id)
    return _reload(s, unit)


def vacate(s: Session, unit_id: int, caller_id: int | None) -> StorageUnit:
    unit = find_unit_by_id(s, unit_id)
    if unit is None:
        raise NotFoundError("Storage unit not found.")
    if not unit.is_occupied:
        raise NotFoundError("Storage unit is already vacant.")

    owner_id = find_facility_owner_id_for_unit(s, unit_id)
    if not can_vacate(caller_id=caller_id, occupant_id=unit.occupant_id, owner_id=owner_id):
        raise ForbiddenError("Only the occupant or the facility owner can vacate this unit.")

    previous = OccupancyState.of(unit)
    applied = update_unit_if_occupancy_state_matches(s, unit_id, expected=previous, new=OccupancyState.vacant())
    if not applied:
        logger.info("Vacate lost race (unit_id=%s caller_id=%s)", unit_id, caller_id)
        raise NotFoundError("Storage unit is already vacant.")

    logger.info(
        "Unit vacated (unit_id=%s previous_occupant_id=%s by=%s)",
        unit_id,
        previous.occupant_id,
        "owner" if caller_id == owner_id and caller_id != previous.occupant_id else "occupant",
    )
    return _reload(s, unit)


def vacate_all_for_occupant(s: Session, occupant_id: int) -> int:
    """Clear every unit held by `occupant_id`. Used when the account goes away."""
    stmt = (
        update(StorageUnit)
        .where(StorageUnit.occupant_id == occupant_id)
        .where(StorageUnit.is_occupied.is_(True))
        .values(is_occupied=False, occupant_id=None, occupied_at=None)
        .execution_options(synchronize_session=False)
    )
    try:
        result = s.execute(stmt)
    except SQLAlchemyError as e:
        s.rollback()
        raise StorageError(f"Could not release units held by user {occupant_id}.") from e
    return result.rowcount or 0
