"""Farmer account management."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.passwords import hash_password
from app.errors import (
	AccessDeniedError,
	NotFoundError,
	StoreError,
	UniquenessViolationError,
	ValidationError,
)
from app.models.cadastre import Farmer, Parcel
from app.models.enums import LogTypeEnum
from app.schemas.account import FarmerCreate, FarmerUpdate
from app.services.audit_service import AuditLogService

logger = structlog.get_logger("agricad.farmers")

DEFAULT_COLORS: tuple[str, ...] = (
	"hsl(217, 91%, 60%)",
	"hsl(122, 39%, 49%)",
	"hsl(40, 90%, 60%)",
	"hsl(0, 70%, 65%)",
	"hsl(260, 60%, 60%)",
	"hsl(180, 50%, 50%)",
	"hsl(30, 90%, 55%)",
	"hsl(320, 70%, 60%)",
)

_UPDATABLE_FIELDS = ("name", "company_code", "village", "email", "phone", "color")


class FarmerService:
	"""Farmer CRUD.  Every mutation, successful or not, leaves a USER_ACTION audit entry."""

	def __init__(self, db: AsyncSession, audit: AuditLogService | None = None):
		self.db = db
		self.audit = audit or AuditLogService()

	async def list_farmers(self, village: str | None = None) -> list[Farmer]:
		stmt = select(Farmer).order_by(Farmer.name)
		if village is not None:
			stmt = stmt.where(Farmer.village == village)
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_farmer(self, farmer_id: uuid.UUID, scope_village: str | None = None) -> Farmer:
		farmer = await self.db.get(Farmer, farmer_id)
		if farmer is None:
			raise NotFoundError(f"farmer {farmer_id} not found")
		if scope_village is not None and farmer.village != scope_village:
			raise AccessDeniedError(f"farmer {farmer_id} is not in village {scope_village!r}")
		return farmer

	async def create_farmer(self, payload: FarmerCreate, actor: str) -> Farmer:
		try:
			password_hash = hash_password(payload.password)
			await self._ensure_unique(payload.company_code, payload.email)
			color = payload.color or await self._next_default_color()
			farmer = Farmer(
				name=payload.name.strip(),
				company_code=payload.company_code.strip(),
				village=payload.village.strip(),
				email=payload.email,
				phone=payload.phone,
				color=color,
				password_hash=password_hash,
			)
			self.db.add(farmer)
			await self._commit()
			await self.db.refresh(farmer)
		except (ValidationError, UniquenessViolationError, StoreError) as exc:
			await self._audit_failure("Add Farmer Failed", actor, f"Farmer: {payload.name}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Add Farmer Failed", actor, f"Farmer: {payload.name}.") from exc

		logger.info("farmer_created", farmer_id=str(farmer.id), village=farmer.village)
		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Farmer Added",
			f"Farmer: {farmer.name} ({farmer.company_code}), village {farmer.village}.",
		)
		return farmer

	async def update_farmer(
		self,
		farmer_id: uuid.UUID,
		payload: FarmerUpdate,
		actor: str,
		scope_village: str | None = None,
	) -> Farmer:
		try:
			farmer = await self.get_farmer(farmer_id, scope_village)
			changes = {
				name: value
				for name, value in payload.model_dump(exclude_unset=True).items()
				if name in _UPDATABLE_FIELDS and getattr(farmer, name) != value
			}
			for required in ("name", "company_code", "village"):
				if required in changes and changes[required] is None:
					del changes[required]

			if "village" in changes:
				if scope_village is not None:
					raise AccessDeniedError("mayors cannot move farmers to another village")
				if await self._holds_parcels(farmer.id):
					raise ValidationError("farmer holds parcels; unassign them before changing village")
			await self._ensure_unique(
				changes.get("company_code"),
				changes.get("email"),
				exclude_id=farmer.id,
			)

			diff = [f"{name}: {getattr(farmer, name)!r} -> {value!r}" for name, value in sorted(changes.items())]
			for name, value in changes.items():
				setattr(farmer, name, value)
			if changes:
				await self._commit()
				await self.db.refresh(farmer)
		except (LookupError, ValueError, PermissionError, StoreError) as exc:
			await self._audit_failure("Update Farmer Failed", actor, f"Farmer {farmer_id}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Update Farmer Failed", actor, f"Farmer {farmer_id}.") from exc

		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Farmer Updated",
			f"Farmer: {farmer.name}. Changes: {'; '.join(diff) if diff else 'none'}",
		)
		return farmer

	async def delete_farmer(
		self,
		farmer_id: uuid.UUID,
		actor: str,
		scope_village: str | None = None,
	) -> None:
		try:
			farmer = await self.get_farmer(farmer_id, scope_village)
			name = farmer.name
			await self.db.execute(
				update(Parcel).where(Parcel.owner_id == farmer.id).values(owner_id=None)
			)
			await self.db.execute(
				update(Parcel).where(Parcel.cultivator_id == farmer.id).values(cultivator_id=None)
			)
			await self.db.delete(farmer)
			await self._commit()
		except (LookupError, PermissionError, StoreError) as exc:
			await self._audit_failure("Delete Farmer Failed", actor, f"Farmer {farmer_id}. {exc}")
			raise
		except SQLAlchemyError as exc:
			raise await self._store_failure("Delete Farmer Failed", actor, f"Farmer {farmer_id}.") from exc

		logger.info("farmer_deleted", farmer_id=str(farmer_id))
		await self.audit.record(
			LogTypeEnum.USER_ACTION,
			actor,
			"Farmer Deleted",
			f"Farmer: {name} ({farmer_id}). Parcel assignments cleared.",
		)

	async def _ensure_unique(
		self,
		company_code: str | None,
		email: str | None,
		exclude_id: uuid.UUID | None = None,
	) -> None:
		clauses = []
		if company_code:
			clauses.append(Farmer.company_code == company_code.strip())
		if email:
			clauses.append(Farmer.email == email)
		if not clauses:
			return
		stmt = select(Farmer.company_code, Farmer.email).where(or_(*clauses))
		if exclude_id is not None:
			stmt = stmt.where(Farmer.id != exclude_id)
		rows = await self.db.execute(stmt)
		existing = rows.first()
		if existing is None:
			return
		if company_code and existing.company_code == company_code.strip():
			raise UniquenessViolationError(f"company code {company_code!r} is already registered")
		raise UniquenessViolationError(f"email {email!r} is already registered")

	async def _next_default_color(self) -> str:
		row = await self.db.execute(select(func.count()).select_from(Farmer))
		return DEFAULT_COLORS[int(row.scalar_one()) % len(DEFAULT_COLORS)]

	async def _holds_parcels(self, farmer_id: uuid.UUID) -> bool:
		row = await self.db.execute(
			select(func.count())
			.select_from(Parcel)
			.where(or_(Parcel.owner_id == farmer_id, Parcel.cultivator_id == farmer_id))
		)
		return int(row.scalar_one()) > 0

	async def _commit(self) -> None:
		try:
			await self.db.commit()
		except IntegrityError as exc:
			await self.db.rollback()
			raise UniquenessViolationError("company code or email is already registered") from exc
		except SQLAlchemyError as exc:
			await self.db.rollback()
			raise StoreError("farmer changes could not be saved") from exc

	async def _audit_failure(self, action: str, actor: str, details: str) -> None:
		await self.audit.record(LogTypeEnum.USER_ACTION, actor, action, details)

	async def _store_failure(self, action: str, actor: str, details: str) -> StoreError:
		await self.db.rollback()
		await self._audit_failure(action, actor, f"{details} Store unavailable.")
		return StoreError("farmer store is unavailable")
