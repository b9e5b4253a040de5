"""Create users, facilities and storage_units tables.

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1f3c9d2e7b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "facilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(300), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="RESTRICT"),
    )
    op.create_index("idx_facilities_owner", "facilities", ["owner_id"])
    op.create_index("idx_facilities_name", "facilities", ["name"])

    op.create_table(
        "storage_units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("unit_number", sa.String(50), nullable=False),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("size_square_meters", sa.Float(), nullable=False),
        sa.Column("monthly_price", sa.Numeric(18, 2), nullable=False),
        sa.Column("is_occupied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("occupant_id", sa.Integer(), nullable=True),
        sa.Column("occupied_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("facility_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["occupant_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("facility_id", "unit_number", name="uq_storage_units_facility_unit_number"),
        sa.CheckConstraint(
            "(is_occupied AND occupant_id IS NOT NULL AND occupied_at IS NOT NULL)"
            " OR (NOT is_occupied AND occupant_id IS NULL AND occupied_at IS NULL)",
            name="ck_storage_units_occupancy_consistent",
        ),
        sa.CheckConstraint("monthly_price >= 0", name="ck_storage_units_price_non_negative"),
    )
    op.create_index("idx_storage_units_facility", "storage_units", ["facility_id"])
    op.create_index("idx_storage_units_occupant", "storage_units", ["occupant_id"])
    op.create_index("idx_storage_units_is_occupied", "storage_units", ["is_occupied"])


def downgrade() -> None:
    op.drop_index("idx_storage_units_is_occupied", table_name="storage_units")
    op.drop_index("idx_storage_units_occupant", table_name="storage_units")
    op.drop_index("idx_storage_units_facility", table_name="storage_units")
    op.drop_table("storage_units")
    op.drop_index("idx_facilities_name", table_name="facilities")
    op.drop_index("idx_facilities_owner", table_name="facilities")
    op.drop_table("facilities")
    op.drop_table("users")
