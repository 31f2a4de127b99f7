"""LogEntry and AppSetting ORM models — audit trail and persisted site settings."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import AppendOnlyMixin, Base
from app.models.enums import LogTypeEnum


class LogEntry(Base, AppendOnlyMixin):
    """Append-only audit record.  Rows are inserted, read and bulk-cleared, never updated."""

    __tablename__ = "log_entries"

    type: Mapped[LogTypeEnum] = mapped_column(
        Enum(
            LogTypeEnum,
            name="log_type",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        index=True,
    )
    actor: Mapped[str] = mapped_column(String(320), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<LogEntry id={self.id} type={self.type} action={self.action!r}>"


class AppSetting(Base):
    """Key/value row for process-independent site settings (e.g. ``site_name``)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AppSetting key={self.key!r} value={self.value!r}>"
