"""Mayor account and subscription management."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.passwords import hash_password
from app.errors import NotFoundError, StoreError, UniquenessViolationError, ValidationError
from app.models.cadastre import Mayor
from app.models.enums import LogTypeEnum, SubscriptionStatusEnum
from app.schemas.account import MayorCreate, MayorStatusUpdate, MayorUpdate
from app.services.audit_service import AuditLogService

logger = structlog.get_logger("agricad.mayors")


class MayorService:
	def __init__(self, db: AsyncSession, audit: AuditLogService | None = None):
		self.db = db
		self.audit = audit or AuditLogService()

	async def list_mayors(self) -> list[Mayor]:
		rows = await self.db.execute(select(Mayor).order_by(Mayor.village, Mayor.name))
		return list(rows.scalars().all())

	async def get_mayor(self, mayor_id: uuid.UUID) -> Mayor:
		mayor = await self.db.get(Mayor, mayor_id)
		if mayor is None:
			raise NotFoundError(f"mayor {mayor_id} not found")
		return mayor

	async def create_mayor(self, payload: MayorCreate, actor: str) -> Mayor:
		try:
			password_hash = hash_password(payload.password)
			await self._ensure_unique(email=payload.email, village=payload.village.strip())
			mayor = Mayor(
				name=payload.name.strip(),
				village=payload.village.strip(),
				email=payload.email,
				password_hash=password_hash,
				subscription_status=SubscriptionStatusEnum.PENDING,
			)
			self.db.add(mayor)
			await self._commit()
			await self.db.refresh(mayor)
		except (ValidationError, UniquenessViolationError, StoreError) as exc:
			await self._audit_failure("Add Mayor Failed", actor, f"Mayor: {payload.name}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Add Mayor Failed", actor, f"Mayor: {payload.name}.") from exc

		logger.info("mayor_created", mayor_id=str(mayor.id), village=mayor.village)
		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Mayor Added",
			f"Mayor: {mayor.name}, village {mayor.village}.",
		)
		return mayor

	async def update_mayor_details(self, mayor_id: uuid.UUID, payload: MayorUpdate, actor: str) -> Mayor:
		try:
			mayor = await self.get_mayor(mayor_id)
			changes: list[str] = []
			if payload.email is not None and payload.email != mayor.email:
				await self._ensure_unique(email=payload.email, exclude_id=mayor.id)
				changes.append(f"email: {mayor.email!r} -> {payload.email!r}")
				mayor.email = payload.email
			if payload.name is not None and payload.name.strip() != mayor.name:
				changes.append(f"name: {mayor.name!r} -> {payload.name.strip()!r}")
				mayor.name = payload.name.strip()
			if changes:
				await self._commit()
				await self.db.refresh(mayor)
		except (LookupError, ValueError, StoreError) as exc:
			await self._audit_failure("Update Mayor Failed", actor, f"Mayor {mayor_id}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Update Mayor Failed", actor, f"Mayor {mayor_id}.") from exc

		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Mayor Updated",
			f"Mayor: {mayor.name}. Changes: {'; '.join(changes) if changes else 'none'}",
		)
		return mayor

	async def update_mayor_status(self, mayor_id: uuid.UUID, payload: MayorStatusUpdate, actor: str) -> Mayor:
		try:
			mayor = await self.get_mayor(mayor_id)
			mayor.subscription_status = payload.status
			if "subscription_end_date" in payload.model_fields_set:
				mayor.subscription_end_date = payload.subscription_end_date
			await self._commit()
			await self.db.refresh(mayor)
		except (LookupError, StoreError) as exc:
			await self._audit_failure("Update Mayor Status Failed", actor, f"Mayor {mayor_id}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Update Mayor Status Failed", actor, f"Mayor {mayor_id}.") from exc

		end_date = mayor.subscription_end_date.date().isoformat() if mayor.subscription_end_date else "none"
		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Mayor Status Updated",
			f"Mayor: {mayor.name}. Status: {mayor.subscription_status.value}, ends {end_date}.",
		)
		return mayor

	async def delete_mayor(self, mayor_id: uuid.UUID, actor: str) -> None:
		try:
			mayor = await self.get_mayor(mayor_id)
			name, village = mayor.name, mayor.village
			await self.db.delete(mayor)
			await self._commit()
		except (LookupError, StoreError) as exc:
			await self._audit_failure("Delete Mayor Failed", actor, f"Mayor {mayor_id}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Delete Mayor Failed", actor, f"Mayor {mayor_id}.") from exc

		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Mayor Deleted",
			f"Mayor: {name}, village {village}.",
		)

	async def _ensure_unique(
		self,
		email: str | None = None,
		village: str | None = None,
		exclude_id: uuid.UUID | None = None,
	) -> None:
		clauses = []
		if email:
			clauses.append(Mayor.email == email)
		if village:
			clauses.append(Mayor.village == village)
		if not clauses:
			return
		stmt = select(Mayor.email, Mayor.village).where(or_(*clauses))
		if exclude_id is not None:
			stmt = stmt.where(Mayor.id != exclude_id)
		rows = await self.db.execute(stmt)
		existing = rows.first()
		if existing is None:
			return
		if email and existing.email == email:
			raise UniquenessViolationError(f"email {email!r} is already registered")
		raise UniquenessViolationError(f"village {village!r} already has a mayor")

	async def _commit(self) -> None:
		try:
			await self.db.commit()
		except IntegrityError as exc:
			await self.db.rollback()
			raise UniquenessViolationError("email or village is already registered") from exc
		except SQLAlchemyError as exc:
			await self.db.rollback()
			raise StoreError("mayor changes could not be saved") from exc

	async def _audit_failure(self, action: str, actor: str, details: str) -> None:
		await self.audit.record(LogTypeEnum.USER_ACTION, actor, action, details)

	async def _store_failure(self, action: str, actor: str, details: str) -> StoreError:
		await self.db.rollback()
		await self._audit_failure(action, actor, f"{details} Store unavailable.")
		return StoreError("mayor store is unavailable")
