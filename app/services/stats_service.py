"""Registry statistics for admin, mayor and farmer dashboards (data only)."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AccessDeniedError, NotFoundError
from app.models.cadastre import Farmer, Mayor, Parcel
from app.models.enums import SubscriptionStatusEnum
from app.schemas.admin import (
	FarmerAreaStat,
	FarmerStats,
	GlobalStats,
	VillageStats,
	VillageSummary,
)

SIZE_BUCKETS: tuple[tuple[str, float], ...] = (
	("0-1 ha", 1),
	("1-5 ha", 5),
	("5-10 ha", 10),
	("10-20 ha", 20),
)
SIZE_BUCKET_OVERFLOW = "20+ ha"


@dataclass(slots=True, frozen=True)
class ParcelAreaRow:
	area: float
	owner_id: uuid.UUID | None
	cultivator_id: uuid.UUID | None


def size_bucket(area: float) -> str:
	for label, upper in SIZE_BUCKETS:
		if area <= upper:
			return label
	return SIZE_BUCKET_OVERFLOW


def size_distribution(areas: Iterable[float]) -> dict[str, int]:
	counts = {label: 0 for label, _ in SIZE_BUCKETS}
	counts[SIZE_BUCKET_OVERFLOW] = 0
	for area in areas:
		counts[size_bucket(area)] += 1
	return counts


def area_totals(
	parcels: Iterable[ParcelAreaRow],
	farmer_ids: Iterable[uuid.UUID],
) -> dict[uuid.UUID, tuple[float, float]]:
	"""Map each farmer id to its (owned_area, cultivated_area)."""
	totals = {farmer_id: [0.0, 0.0] for farmer_id in farmer_ids}
	for parcel in parcels:
		if parcel.owner_id in totals:
			totals[parcel.owner_id][0] += parcel.area
		if parcel.cultivator_id in totals:
			totals[parcel.cultivator_id][1] += parcel.area
	return {farmer_id: (owned, cultivated) for farmer_id, (owned, cultivated) in totals.items()}


class StatsService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def global_stats(self) -> GlobalStats:
		parcel_rows = await self.db.execute(
			select(Parcel.village, func.count(Parcel.id), func.coalesce(func.sum(Parcel.area), 0.0))
			.group_by(Parcel.village)
			.order_by(Parcel.village)
		)
		farmer_rows = await self.db.execute(
			select(Farmer.village, func.count(Farmer.id)).group_by(Farmer.village)
		)
		mayor_rows = await self.db.execute(
			select(Mayor.subscription_status, func.count(Mayor.id)).group_by(Mayor.subscription_status)
		)

		farmer_counts = {village: int(count) for village, count in farmer_rows.all()}
		status_counts = {status.value: 0 for status in SubscriptionStatusEnum}
		for status, count in mayor_rows.all():
			status_counts[SubscriptionStatusEnum(status).value] = int(count)

		return GlobalStats(
			villages=[
				VillageSummary(
					village=village,
					parcel_count=int(count),
					total_area=round(float(total), 4),
					farmer_count=farmer_counts.get(village, 0),
				)
				for village, count, total in parcel_rows.all()
			],
			mayor_status_counts=status_counts,
		)

	async def village_stats(self, village: str) -> VillageStats:
		parcels = await self._village_parcels(village)
		farmers = await self._village_farmers(village)
		totals = area_totals(parcels, [farmer_id for farmer_id, _ in farmers])

		farmer_stats = [
			FarmerAreaStat(
				farmer_id=farmer_id,
				name=name,
				owned_area=round(totals[farmer_id][0], 4),
				cultivated_area=round(totals[farmer_id][1], 4),
			)
			for farmer_id, name in farmers
		]
		farmer_stats.sort(key=lambda stat: stat.owned_area, reverse=True)
		assigned = sum(1 for parcel in parcels if parcel.owner_id is not None)

		return VillageStats(
			village=village,
			parcel_count=len(parcels),
			total_area=round(sum(parcel.area for parcel in parcels), 4),
			assigned_count=assigned,
			unassigned_count=len(parcels) - assigned,
			farmers=farmer_stats,
			size_distribution=size_distribution(parcel.area for parcel in parcels),
		)

	async def farmer_stats(self, farmer_id: uuid.UUID, scope_village: str | None = None) -> FarmerStats:
		farmer = await self.db.get(Farmer, farmer_id)
		if farmer is None:
			raise NotFoundError(f"farmer {farmer_id} not found")
		if scope_village is not None and farmer.village != scope_village:
			raise AccessDeniedError(f"farmer {farmer_id} is not in village {scope_village!r}")

		parcels = await self._village_parcels(farmer.village)
		farmers = await self._village_farmers(farmer.village)
		totals = area_totals(parcels, [fid for fid, _ in farmers] + [farmer.id])
		owned_area, cultivated_area = totals[farmer.id]
		farmer_count = max(len(farmers), 1)

		return FarmerStats(
			farmer_id=farmer.id,
			village=farmer.village,
			owned_area=round(owned_area, 4),
			cultivated_area=round(cultivated_area, 4),
			owned_count=sum(1 for parcel in parcels if parcel.owner_id == farmer.id),
			cultivated_count=sum(1 for parcel in parcels if parcel.cultivator_id == farmer.id),
			village_average_owned_area=round(sum(o for o, _ in totals.values()) / farmer_count, 4),
			village_average_cultivated_area=round(sum(c for _, c in totals.values()) / farmer_count, 4),
		)

	async def _village_parcels(self, village: str) -> list[ParcelAreaRow]:
		rows = await self.db.execute(
			select(Parcel.area, Parcel.owner_id, Parcel.cultivator_id).where(Parcel.village == village)
		)
		return [
			ParcelAreaRow(area=float(area), owner_id=owner_id, cultivator_id=cultivator_id)
			for area, owner_id, cultivator_id in rows.all()
		]

	async def _village_farmers(self, village: str) -> list[tuple[uuid.UUID, str]]:
		rows = await self.db.execute(
			select(Farmer.id, Farmer.name).where(Farmer.village == village).order_by(Farmer.name)
		)
		return [(farmer_id, name) for farmer_id, name in rows.all()]
