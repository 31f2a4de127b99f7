"""Persisted site settings and administrative data reset."""

from __future__ import annotations

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import StoreError, ValidationError
from app.models.audit import AppSetting
from app.models.cadastre import Farmer, Mayor, Parcel
from app.models.enums import LogTypeEnum
from app.services.audit_service import AuditLogService

logger = structlog.get_logger("agricad.settings")

SITE_NAME_KEY = "site_name"
SITE_NAME_MIN_LENGTH = 3
SITE_NAME_MAX_LENGTH = 50


class SettingsService:
	def __init__(self, db: AsyncSession, audit: AuditLogService | None = None):
		self.db = db
		self.audit = audit or AuditLogService()

	async def get_site_name(self) -> str:
		setting = await self.db.get(AppSetting, SITE_NAME_KEY)
		if setting is None:
			return get_settings().default_site_name
		return setting.value

	async def update_site_name(self, site_name: str, actor: str) -> str:
		name = site_name.strip()
		if not SITE_NAME_MIN_LENGTH <= len(name) <= SITE_NAME_MAX_LENGTH:
			raise ValidationError(
				f"site name must be between {SITE_NAME_MIN_LENGTH} and {SITE_NAME_MAX_LENGTH} characters"
			)

		setting = await self.db.get(AppSetting, SITE_NAME_KEY)
		previous = setting.value if setting is not None else get_settings().default_site_name
		if setting is None:
			self.db.add(AppSetting(key=SITE_NAME_KEY, value=name))
		else:
			setting.value = name
		try:
			await self.db.commit()
		except SQLAlchemyError as exc:
			await self.db.rollback()
			raise StoreError("site name could not be saved") from exc

		await self.audit.record(
			LogTypeEnum.SYSTEM,
			actor,
			"Site Name Updated",
			f"Site name changed from {previous!r} to {name!r}.",
		)
		return name

	async def clear_application_data(self, actor: str) -> dict[str, int]:
		"""Delete every parcel, farmer and mayor in one transaction.  Audit logs are kept."""
		counts: dict[str, int] = {}
		try:
			for key, model in (("parcels", Parcel), ("farmers", Farmer), ("mayors", Mayor)):
				row = await self.db.execute(select(func.count()).select_from(model))
				counts[key] = int(row.scalar_one())
				await self.db.execute(delete(model))
			await self.db.commit()
		except SQLAlchemyError as exc:
			await self.db.rollback()
			await self.audit.record(LogTypeEnum.SYSTEM, actor, "Clear Data Failed", "Database error, nothing deleted.")
			raise StoreError("application data could not be cleared") from exc

		logger.warning("application_data_cleared", actor=actor, **counts)
		await self.audit.record(
			LogTypeEnum.SYSTEM,
			actor,
			"Application Data Cleared",
			", ".join(f"{key}: {value}" for key, value in counts.items()),
		)
		return counts
