"""Append-only audit log: best-effort writes, typed reads and administrative clear."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session_factory
from app.models.audit import LogEntry
from app.models.enums import LogTypeEnum

logger = structlog.get_logger("agricad.audit")


class AuditLogService:
	"""Audit writes run in their own session.

	A rolled-back request transaction therefore still leaves its failure
	record behind, and a failed audit write is logged rather than raised so
	it never replaces the outcome of the operation being audited.
	"""

	def __init__(
		self,
		db: AsyncSession | None = None,
		session_factory: Callable[[], Any] = async_session_factory,
	):
		self.db = db
		self.session_factory = session_factory

	async def record(
		self,
		log_type: LogTypeEnum,
		actor: str,
		action: str,
		details: str = "",
	) -> None:
		try:
			async with self.session_factory() as session:
				session.add(LogEntry(type=log_type, actor=actor, action=action, details=details))
				await session.commit()
		except (SQLAlchemyError, OSError) as exc:
			logger.warning(
				"audit_write_failed",
				log_type=log_type.value,
				actor=actor,
				action=action,
				error=str(exc),
			)

	async def list_entries(self, log_type: LogTypeEnum | None = None, limit: int = 200) -> list[LogEntry]:
		stmt = select(LogEntry).order_by(LogEntry.timestamp.desc(), LogEntry.id.desc()).limit(limit)
		if log_type is not None:
			stmt = stmt.where(LogEntry.type == log_type)
		rows = await self._session().execute(stmt)
		return list(rows.scalars().all())

	async def clear(self, actor: str) -> int:
		db = self._session()
		count_row = await db.execute(select(func.count()).select_from(LogEntry))
		deleted = int(count_row.scalar_one())
		await db.execute(delete(LogEntry))
		await db.commit()
		logger.info("audit_log_cleared", actor=actor, deleted=deleted)
		await self.record(LogTypeEnum.SYSTEM, actor, "Logs Cleared", f"Deleted {deleted} log entries.")
		return deleted

	def _session(self) -> AsyncSession:
		if self.db is None:
			raise RuntimeError("AuditLogService read operations require a request session")
		return self.db
