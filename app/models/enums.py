"""PostgreSQL-backed enum types for all ORM models.

Each StrEnum maps 1:1 to a PostgreSQL CREATE TYPE ... AS ENUM.
These are separate from the Pydantic StrEnum in app/config.py —
config enums validate settings, ORM enums type database columns.
"""

from enum import StrEnum

# ── Account enums ───────────────────────────────────────────────────────────


class SubscriptionStatusEnum(StrEnum):
    """Mayor subscription lifecycle."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


# ── Audit enums ─────────────────────────────────────────────────────────────


class LogTypeEnum(StrEnum):
    """Audit log categories."""

    SYSTEM = "SYSTEM"
    USER_ACTION = "USER_ACTION"
    ASSIGNMENT = "ASSIGNMENT"
    PARCEL_UPLOAD = "PARCEL_UPLOAD"


# ── Auth enums ──────────────────────────────────────────────────────────────


class UserRoleEnum(StrEnum):
    """Caller roles carried in access tokens."""

    admin = "admin"
    mayor = "mayor"
    farmer = "farmer"
