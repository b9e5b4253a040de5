"""
Seed demo users, facilities and storage units.

Idempotent: does nothing once any user exists. Demo accounts share the
password from SEED_PASSWORD (default "change-me-please").

Usage:
  python scripts/init_db.py
"""
import logging
import os
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from sqlalchemy import func, select
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.fms.models import User  # noqa: E402
from app.fms.modules.facilities.models import Facility, StorageUnit  # noqa: E402
from app.fms.utils import utcnow  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

logger = logging.getLogger("fms.seed")

SAMPLE_USERS = [
    ("John Smith", "john.smith@email.com", 30),
    ("Sarah Johnson", "sarah.johnson@email.com", 25),
    ("Mike Wilson", "mike.wilson@email.com", 20),
    ("Emma Davis", "emma.davis@email.com", 15),
]

# name, description, address, city, postal code, owner index, age in days
SAMPLE_FACILITIES = [
    (
        "Downtown Storage Center",
        "Modern storage facility in the heart of downtown with 24/7 access and security.",
        "123 Main Street", "New York", "10001", 0, 20,
    ),
    (
        "Suburban Storage Solutions",
        "Family-friendly storage facility with easy parking and ground-level units.",
        "456 Oak Avenue", "Brooklyn", "11201", 1, 15,
    ),
    (
        "Industrial Storage Complex",
        "Large-scale storage facility perfect for business and commercial use.",
        "789 Industrial Blvd", "Queens", "11101", 0, 10,
    ),
]

# prefix, label, count, size step, base price, price step, occupied count, days per step
SAMPLE_UNIT_RUNS = [
    ("A", "Small", 10, 5, 50, 10, 6, 2),
    ("B", "Medium", 8, 8, 80, 15, 3, 3),
    ("C", "Large", 6, 15, 150, 25, 2, 4),
]


def seed_sample_data(*, database_url: str | None = None) -> None:
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///fms.db").strip()
    password = os.environ.get("SEED_PASSWORD") or "change-me-please"
    now = utcnow()

    with script_session(db_url) as s:
        if (s.scalar(select(func.count(User.id))) or 0) > 0:
            logger.info("Users already present; skipping sample data.")
            return

        users = [
            User(
                name=name,
                email=email,
                password_hash=generate_password_hash(password),
                is_active=True,
                created_at=now - timedelta(days=age),
            )
            for name, email, age in SAMPLE_USERS
        ]
        s.add_all(users)
        s.flush()

        facilities = []
        for name, description, address, city, postal_code, owner_idx, age in SAMPLE_FACILITIES:
            facilities.append(
                Facility(
                    name=name,
                    description=description,
                    address=address,
                    city=city,
                    postal_code=postal_code,
                    country="USA",
                    owner_id=users[owner_idx].id,
                    created_at=now - timedelta(days=age),
                )
            )
        s.add_all(facilities)
        s.flush()

        units = []
        for facility, (prefix, label, count, size_step, base, step, occupied, days) in zip(facilities, SAMPLE_UNIT_RUNS):
            for i in range(1, count + 1):
                is_occupied = i <= occupied
                units.append(
                    StorageUnit(
                        facility_id=facility.id,
                        unit_number=f"{prefix}{i:02d}",
                        description=f"{label} storage unit - {i * size_step} sq meters",
                        size_square_meters=float(i * size_step),
                        monthly_price=Decimal(base + i * step),
                        is_occupied=is_occupied,
                        occupant_id=users[(i - 1) % len(users)].id if is_occupied else None,
                        occupied_at=now - timedelta(days=i * days) if is_occupied else None,
                        created_at=facility.created_at + timedelta(days=5),
                    )
                )
        s.add_all(units)

    logger.info("Seeded %s users, %s facilities, %s units.", len(users), len(facilities), len(units))


def main() -> None:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), format="%(levelname)s %(name)s: %(message)s")
    seed_sample_data(database_url=None)


if __name__ == "__main__":
    main()
