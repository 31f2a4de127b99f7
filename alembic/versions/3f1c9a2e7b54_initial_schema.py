"""initial_schema

Revision ID: 3f1c9a2e7b54
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the land-registry tables (farmers, mayors, parcels), the audit log,
the settings table and their enum types.  Designed to run against a
PostgreSQL 16 + PostGIS 3.4 server; the uuid-ossp and postgis extensions
are enabled here if missing.
"""

from collections.abc import Sequence

import geoalchemy2
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2e7b54"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# ── Enum type names (PostgreSQL CREATE TYPE) ────────────────────────────────
ENUM_SUBSCRIPTION_STATUS = postgresql.ENUM(
    "PENDING", "ACTIVE", "INACTIVE", name="subscription_status", create_type=False
)
ENUM_LOG_TYPE = postgresql.ENUM(
    "SYSTEM",
    "USER_ACTION",
    "ASSIGNMENT",
    "PARCEL_UPLOAD",
    name="log_type",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── 1. Create enum types ────────────────────────────────────────────
    ENUM_SUBSCRIPTION_STATUS.create(op.get_bind(), checkfirst=True)
    ENUM_LOG_TYPE.create(op.get_bind(), checkfirst=True)

    # ── 2. Accounts ─────────────────────────────────────────────────────

    # farmers
    op.create_table(
        "farmers",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("uuid_generate_v4()"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("company_code", sa.String(64), nullable=False),
        sa.Column("village", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("color", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_code"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_farmers_village", "farmers", ["village"])

    # mayors
    op.create_table(
        "mayors",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("uuid_generate_v4()"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("village", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column(
            "subscription_status",
            ENUM_SUBSCRIPTION_STATUS,
            server_default="PENDING",
            nullable=False,
        ),
        sa.Column(
            "subscription_end_date", sa.DateTime(timezone=True), nullable=True
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("village"),
        sa.UniqueConstraint("email"),
    )

    # ── 3. Parcels ──────────────────────────────────────────────────────
    op.create_table(
        "parcels",
        sa.Column("id", sa.String(128), nullable=False),
        sa.Column("village", sa.String(255), nullable=False),
        sa.Column("area", sa.Float(), nullable=False),
        sa.Column("coordinates", postgresql.JSONB(), nullable=False),
        sa.Column(
            "boundary",
            geoalchemy2.types.Geography(
                geometry_type="POLYGON",
                srid=4326,
                from_text="ST_GeogFromText",
            ),
            nullable=True,
        ),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "cultivator_id", postgresql.UUID(as_uuid=True), nullable=True
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["owner_id"], ["farmers.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["cultivator_id"], ["farmers.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_parcels_village", "parcels", ["village"])
    op.create_index("ix_parcels_owner_id", "parcels", ["owner_id"])
    op.create_index("ix_parcels_cultivator_id", "parcels", ["cultivator_id"])

    # ── 4. Audit log & settings ─────────────────────────────────────────
    op.create_table(
        "log_entries",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("type", ENUM_LOG_TYPE, nullable=False),
        sa.Column("actor", sa.String(320), nullable=False),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_log_entries_timestamp", "log_entries", ["timestamp"])
    op.create_index("ix_log_entries_type", "log_entries", ["type"])

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    # ── Drop tables in reverse dependency order ─────────────────────────
    op.drop_table("app_settings")
    op.drop_table("log_entries")
    op.drop_table("parcels")
    op.drop_table("mayors")
    op.drop_table("farmers")

    # ── Drop enum types ─────────────────────────────────────────────────
    ENUM_LOG_TYPE.drop(op.get_bind(), checkfirst=True)
    ENUM_SUBSCRIPTION_STATUS.drop(op.get_bind(), checkfirst=True)
