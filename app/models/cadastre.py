"""Farmer, Mayor, Parcel ORM models — the village land registry.

Parcels are keyed by their externally supplied cadastral code.  ``coordinates``
is the authoritative WGS84 ring (``[[lon, lat], ...]``, closed) that the map
renderer consumes; ``boundary`` mirrors it as a PostGIS geography so spatial
queries do not need to decode JSON.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from geoalchemy2 import Geography
from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from app.models.enums import SubscriptionStatusEnum

# ═══════════════════════════════════════════════════════════════════════════
# Farmer
# ═══════════════════════════════════════════════════════════════════════════


class Farmer(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A farmer account, scoped to exactly one village."""

    __tablename__ = "farmers"
    __table_args__ = (Index("ix_farmers_village", "village"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    village: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(
        String(320), unique=True, nullable=True
    )
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    color: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Farmer id={self.id} name={self.name!r} village={self.village!r}>"


# ═══════════════════════════════════════════════════════════════════════════
# Mayor
# ═══════════════════════════════════════════════════════════════════════════


class Mayor(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Village administrator — at most one per village."""

    __tablename__ = "mayors"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    village: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False
    )
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    subscription_status: Mapped[SubscriptionStatusEnum] = mapped_column(
        Enum(
            SubscriptionStatusEnum,
            name="subscription_status",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=SubscriptionStatusEnum.PENDING,
        server_default=SubscriptionStatusEnum.PENDING.value,
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Mayor id={self.id} village={self.village!r} "
            f"status={self.subscription_status}>"
        )


# ═══════════════════════════════════════════════════════════════════════════
# Parcel
# ═══════════════════════════════════════════════════════════════════════════


class Parcel(Base, TimestampMixin):
    """A cadastral land unit.

    ``owner_id`` / ``cultivator_id`` are written only by the assignment
    engine; parcel ingestion never touches them.
    """

    __tablename__ = "parcels"
    __table_args__ = (
        Index("ix_parcels_village", "village"),
        Index("ix_parcels_owner_id", "owner_id"),
        Index("ix_parcels_cultivator_id", "cultivator_id"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    village: Mapped[str] = mapped_column(String(255), nullable=False)
    area: Mapped[float] = mapped_column(Float, nullable=False)
    coordinates: Mapped[list[list[float]]] = mapped_column(
        JSONB, nullable=False
    )
    boundary: Mapped[Any] = mapped_column(
        Geography(geometry_type="POLYGON", srid=4326),
        nullable=True,
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("farmers.id", ondelete="SET NULL"),
        nullable=True,
    )
    cultivator_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("farmers.id", ondelete="SET NULL"),
        nullable=True,
    )

    # ── Relationships ────────────────────────────────────────────────────
    owner: Mapped[Farmer | None] = relationship(
        foreign_keys=[owner_id],
        lazy="selectin",
    )
    cultivator: Mapped[Farmer | None] = relationship(
        foreign_keys=[cultivator_id],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Parcel id={self.id!r} village={self.village!r} "
            f"owner={self.owner_id} cultivator={self.cultivator_id}>"
        )
