from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fms.models import Base
from app.fms.utils import utcnow

if TYPE_CHECKING:
    from app.fms.models import User


class Facility(Base):
    __tablename__ = "facilities"
    __table_args__ = (
        Index("idx_facilities_owner", "owner_id"),
        Index("idx_facilities_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Required
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(300), nullable=False)

    # Optional location/details
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    # Set once at creation; owners with facilities cannot be deleted.
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    # Many-to-one only. Units of a facility are queried by facility_id.
    owner: Mapped["User"] = relationship("User", lazy="joined")

    def __repr__(self) -> str:
        return f"<Facility id={self.id} name={self.name!r} owner_id={self.owner_id}>"


class StorageUnit(Base):
    __tablename__ = "storage_units"
    __table_args__ = (
        UniqueConstraint("facility_id", "unit_number", name="uq_storage_units_facility_unit_number"),
        CheckConstraint(
            "(is_occupied AND occupant_id IS NOT NULL AND occupied_at IS NOT NULL)"
            " OR (NOT is_occupied AND occupant_id IS NULL AND occupied_at IS NULL)",
            name="ck_storage_units_occupancy_consistent",
        ),
        CheckConstraint("monthly_price >= 0", name="ck_storage_units_price_non_negative"),
        Index("idx_storage_units_facility", "facility_id"),
        Index("idx_storage_units_occupant", "occupant_id"),
        Index("idx_storage_units_is_occupied", "is_occupied"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)
    size_square_meters: Mapped[float] = mapped_column(Float, nullable=False)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    # Occupancy: written only by the occupancy service, always together.
    is_occupied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    occupant_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    occupied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False)

    facility: Mapped[Facility] = relationship(Facility, lazy="joined")
    occupant: Mapped["User | None"] = relationship("User", lazy="joined")

    @property
    def occupancy_state(self) -> str:
        return "Occupied" if self.is_occupied else "Vacant"

    def __repr__(self) -> str:
        return f"<StorageUnit id={self.id} facility_id={self.facility_id} unit_number={self.unit_number!r}>"
