"""Parcel owner/cultivator assignment: conflict detection and transactional commit."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence

import structlog
from redis.asyncio import Redis
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AccessDeniedError, InvalidParcelIdsError, NotFoundError, StoreError
from app.models.cadastre import Farmer, Parcel
from app.models.enums import LogTypeEnum
from app.schemas.assignment import (
	AssignmentPlanRead,
	AssignmentPreview,
	AssignmentResult,
	ConflictRead,
)
from app.services.audit_service import AuditLogService
from app.services.events import publish_village_event
from app.services.reconcile import (
	AssignmentPlan,
	AssignmentRole,
	Conflict,
	ParcelClaim,
	Resolution,
	apply_resolutions,
	build_plan,
	find_conflicts,
	find_invalid_ids,
)

logger = structlog.get_logger("agricad.assignment")

ResolutionMap = Mapping[tuple[str, AssignmentRole], Resolution]


def _format_ids(ids: Iterable[str]) -> str:
	return "[" + ", ".join(sorted(ids)) + "]"


def _plan_read(plan: AssignmentPlan) -> AssignmentPlanRead:
	return AssignmentPlanRead(
		owner_removals=plan.owner_removals,
		cultivator_removals=plan.cultivator_removals,
		owner_grants=plan.owner_grants,
		cultivator_grants=plan.cultivator_grants,
	)


class AssignmentService:
	"""Reconciles a farmer's desired owned/cultivated parcel sets against the registry.

	``detect_conflicts`` is read-only.  ``commit_resolved`` re-reads the
	affected parcels ``FOR UPDATE`` and applies the whole plan in one
	transaction.  ``assign_parcels`` chains the two.
	"""

	def __init__(
		self,
		db: AsyncSession,
		redis_client: Redis | None = None,
		audit: AuditLogService | None = None,
	):
		self.db = db
		self.redis_client = redis_client
		self.audit = audit or AuditLogService()

	async def detect_conflicts(
		self,
		farmer_id: uuid.UUID,
		owned_ids: Iterable[str],
		cultivated_ids: Iterable[str],
		actor: str,
		scope_village: str | None = None,
	) -> AssignmentPreview:
		farmer = await self._resolve_farmer(farmer_id, actor, scope_village)
		owned, cultivated = set(owned_ids), set(cultivated_ids)
		claims = await self._load_claims(farmer, owned | cultivated)
		await self._ensure_valid(farmer, owned, cultivated, claims, actor)

		conflicts = find_conflicts(farmer.id, owned, cultivated, claims)
		return AssignmentPreview(
			farmer_id=farmer.id,
			village=farmer.village,
			conflicts=[self._conflict_read(conflict, farmer) for conflict in conflicts],
			plan=_plan_read(build_plan(farmer.id, owned, cultivated, claims)),
		)

	async def commit_resolved(
		self,
		farmer_id: uuid.UUID,
		owned_ids: Iterable[str],
		cultivated_ids: Iterable[str],
		actor: str,
		resolutions: ResolutionMap | None = None,
		scope_village: str | None = None,
		force: bool = True,
		recheck_conflicts: bool = False,
	) -> AssignmentResult:
		"""Apply the desired sets, after folding in any per-conflict resolutions.

		With ``recheck_conflicts`` the conflict scan is repeated under the row
		locks, and any conflict that appeared since the preview aborts the
		commit with a ``conflicts`` result.
		"""
		farmer = await self._resolve_farmer(farmer_id, actor, scope_village)
		owned, cultivated = set(owned_ids), set(cultivated_ids)

		try:
			claims = await self._load_claims(farmer, owned | cultivated, lock=True)
			await self._ensure_valid(farmer, owned, cultivated, claims, actor)

			if recheck_conflicts:
				conflicts = find_conflicts(farmer.id, owned, cultivated, claims)
				if conflicts:
					await self.db.rollback()
					return self._conflict_result(farmer, conflicts)

			if resolutions:
				owned, cultivated = apply_resolutions(farmer.id, owned, cultivated, claims, resolutions)

			plan = build_plan(farmer.id, owned, cultivated, claims)
			if plan.is_empty and not owned and not cultivated:
				await self.db.rollback()
				return AssignmentResult(farmer_id=farmer.id, status="noop", forced=force)

			await self._apply_plan(farmer.id, plan)
			await self.db.commit()
		except InvalidParcelIdsError:
			await self.db.rollback()
			raise
		except SQLAlchemyError as exc:
			await self.db.rollback()
			logger.error("assignment_commit_failed", farmer_id=str(farmer.id), error=str(exc))
			await self.audit.record(
				LogTypeEnum.ASSIGNMENT,
				actor,
				"Failed Assignment",
				f"Farmer: {farmer.name}. Database error, no changes applied.",
			)
			raise StoreError("parcel assignment could not be saved; no changes were applied") from exc

		logger.info(
			"parcels_assigned",
			farmer_id=str(farmer.id),
			village=farmer.village,
			owned=len(owned),
			cultivated=len(cultivated),
			changed=len(plan.touched_ids),
			force=force,
		)
		await self.audit.record(
			LogTypeEnum.ASSIGNMENT,
			actor,
			"Assigned Parcels",
			f"Farmer: {farmer.name}. Owned: {_format_ids(owned)} "
			f"Cultivated: {_format_ids(cultivated)} Force: {'yes' if force else 'no'}",
		)
		await publish_village_event(
			self.redis_client,
			farmer.village,
			"parcels_assigned",
			farmer_id=str(farmer.id),
			parcel_ids=plan.touched_ids,
		)
		return AssignmentResult(
			farmer_id=farmer.id,
			status="ok",
			owned_parcel_ids=sorted(owned),
			cultivated_parcel_ids=sorted(cultivated),
			plan=_plan_read(plan),
			forced=force,
		)

	async def assign_parcels(
		self,
		farmer_id: uuid.UUID,
		owned_ids: Iterable[str],
		cultivated_ids: Iterable[str],
		actor: str,
		force: bool = False,
		scope_village: str | None = None,
	) -> AssignmentResult:
		owned, cultivated = set(owned_ids), set(cultivated_ids)
		if not force:
			preview = await self.detect_conflicts(farmer_id, owned, cultivated, actor, scope_village)
			if preview.conflicts:
				return AssignmentResult(
					farmer_id=preview.farmer_id,
					status="conflicts",
					conflicts=preview.conflicts,
					plan=preview.plan,
				)
		return await self.commit_resolved(
			farmer_id,
			owned,
			cultivated,
			actor,
			scope_village=scope_village,
			force=force,
			recheck_conflicts=not force,
		)

	async def _resolve_farmer(
		self,
		farmer_id: uuid.UUID,
		actor: str,
		scope_village: str | None,
	) -> Farmer:
		farmer = await self.db.get(Farmer, farmer_id)
		if farmer is None:
			await self.audit.record(
				LogTypeEnum.ASSIGNMENT,
				actor,
				"Failed Assignment",
				f"Farmer {farmer_id} not found.",
			)
			raise NotFoundError(f"farmer {farmer_id} not found")
		if scope_village is not None and farmer.village != scope_village:
			await self.audit.record(
				LogTypeEnum.ASSIGNMENT,
				actor,
				"Failed Assignment",
				f"Farmer: {farmer.name} is outside village {scope_village}.",
			)
			raise AccessDeniedError(f"farmer {farmer_id} is not in village {scope_village!r}")
		return farmer

	async def _load_claims(
		self,
		farmer: Farmer,
		requested_ids: set[str],
		lock: bool = False,
	) -> dict[str, ParcelClaim]:
		stmt = (
			select(Parcel)
			.where(
				Parcel.village == farmer.village,
				or_(
					Parcel.id.in_(sorted(requested_ids)),
					Parcel.owner_id == farmer.id,
					Parcel.cultivator_id == farmer.id,
				),
			)
			.order_by(Parcel.id)
		)
		if lock:
			stmt = stmt.with_for_update()
		rows = await self.db.execute(stmt)
		claims: dict[str, ParcelClaim] = {}
		for parcel in rows.scalars().all():
			claims[parcel.id] = ParcelClaim(
				parcel_id=parcel.id,
				owner_id=parcel.owner_id,
				cultivator_id=parcel.cultivator_id,
				owner_name=parcel.owner.name if parcel.owner is not None else None,
				cultivator_name=parcel.cultivator.name if parcel.cultivator is not None else None,
			)
		return claims

	async def _ensure_valid(
		self,
		farmer: Farmer,
		owned: set[str],
		cultivated: set[str],
		claims: Mapping[str, ParcelClaim],
		actor: str,
	) -> None:
		invalid = find_invalid_ids(owned, cultivated, claims)
		if not invalid:
			return
		await self.audit.record(
			LogTypeEnum.ASSIGNMENT,
			actor,
			"Failed Assignment",
			f"Farmer: {farmer.name}. Parcels not found in {farmer.village}: {_format_ids(invalid)}",
		)
		raise InvalidParcelIdsError(invalid)

	async def _apply_plan(self, farmer_id: uuid.UUID, plan: AssignmentPlan) -> None:
		if plan.owner_removals:
			await self.db.execute(
				update(Parcel)
				.where(Parcel.id.in_(plan.owner_removals), Parcel.owner_id == farmer_id)
				.values(owner_id=None)
			)
		if plan.cultivator_removals:
			await self.db.execute(
				update(Parcel)
				.where(Parcel.id.in_(plan.cultivator_removals), Parcel.cultivator_id == farmer_id)
				.values(cultivator_id=None)
			)
		if plan.owner_grants:
			await self.db.execute(
				update(Parcel).where(Parcel.id.in_(plan.owner_grants)).values(owner_id=farmer_id)
			)
		if plan.cultivator_grants:
			await self.db.execute(
				update(Parcel).where(Parcel.id.in_(plan.cultivator_grants)).values(cultivator_id=farmer_id)
			)

	def _conflict_result(self, farmer: Farmer, conflicts: Sequence[Conflict]) -> AssignmentResult:
		return AssignmentResult(
			farmer_id=farmer.id,
			status="conflicts",
			conflicts=[self._conflict_read(conflict, farmer) for conflict in conflicts],
		)

	@staticmethod
	def _conflict_read(conflict: Conflict, farmer: Farmer) -> ConflictRead:
		return ConflictRead(
			parcel_id=conflict.parcel_id,
			role=conflict.role,
			current_farmer_id=conflict.current_farmer_id,
			current_farmer_name=conflict.current_farmer_name,
			attempted_farmer_id=farmer.id,
			attempted_farmer_name=farmer.name,
		)
