"""ORM model registry — importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.  Application code can also do::

    from app.models import Farmer, Mayor, Parcel, ...
"""

# ── Audit & settings ────────────────────────────────────────────────────────
from app.models.audit import AppSetting, LogEntry

# ── Base & Mixins ───────────────────────────────────────────────────────────
from app.models.base import (
    AppendOnlyMixin,
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

# ── Land registry ───────────────────────────────────────────────────────────
from app.models.cadastre import Farmer, Mayor, Parcel

# ── Enums ───────────────────────────────────────────────────────────────────
from app.models.enums import LogTypeEnum, SubscriptionStatusEnum, UserRoleEnum

__all__ = [
    "AppSetting",
    "AppendOnlyMixin",
    # Base & mixins
    "Base",
    # Land registry
    "Farmer",
    # Audit
    "LogEntry",
    # Enums
    "LogTypeEnum",
    "Mayor",
    "Parcel",
    "SubscriptionStatusEnum",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "UserRoleEnum",
]
