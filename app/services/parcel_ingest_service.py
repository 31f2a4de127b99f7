"""Parcel batch ingestion: CSV parsing, per-row validation, reprojection and upsert."""

from __future__ import annotations

import csv
import io
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from geoalchemy2.shape import from_shape
from redis.asyncio import Redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import ValidationError
from app.models.cadastre import Parcel
from app.models.enums import LogTypeEnum
from app.schemas.parcel import BatchError, BatchResult, ParcelRowIn
from app.services.audit_service import AuditLogService
from app.services.events import publish_village_event
from app.services.geometry import parse_polygon_wkt, ring_to_polygon, validate_ring
from app.services.projection import RingTransformer, get_transformer, reproject_ring

logger = structlog.get_logger("agricad.ingest")

REQUIRED_COLUMNS = ("parcel_id", "area_hectares", "projected_polygon", "village")


@dataclass(slots=True, frozen=True)
class ParcelCandidate:
	parcel_id: str
	village: str
	area: float
	projected_ring: list[list[float]]


def _coerce_area(raw: Any) -> float:
	if isinstance(raw, bool) or raw is None:
		raise ValidationError("area must be a positive number")
	if isinstance(raw, str):
		raw = raw.strip().replace(",", ".")
	try:
		area = float(raw)
	except (TypeError, ValueError) as exc:
		raise ValidationError("area must be a positive number") from exc
	if not math.isfinite(area) or area <= 0:
		raise ValidationError("area must be a positive number")
	return area


def validate_row(row: ParcelRowIn) -> ParcelCandidate:
	"""Check one raw row in order: id, village, area, geometry."""
	parcel_id = row.parcel_id.strip() if isinstance(row.parcel_id, str) else ""
	if not parcel_id:
		raise ValidationError("parcel id is missing or empty")

	village = row.village.strip() if isinstance(row.village, str) else ""
	if not village:
		raise ValidationError("village is missing or empty")

	area = _coerce_area(row.area_hectares)

	polygon = row.projected_polygon
	if isinstance(polygon, str):
		ring = parse_polygon_wkt(polygon)
	elif isinstance(polygon, list):
		ring = polygon
	else:
		raise ValidationError("polygon is missing")

	return ParcelCandidate(
		parcel_id=parcel_id,
		village=village,
		area=area,
		projected_ring=validate_ring(ring),
	)


def parse_parcel_csv(text: str) -> list[ParcelRowIn]:
	"""Parse an uploaded CSV into raw rows.  Only the header is validated here."""
	reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
	header = [name.strip() for name in reader.fieldnames or []]
	missing = [column for column in REQUIRED_COLUMNS if column not in header]
	if missing:
		raise ValidationError(f"CSV is missing required columns: {', '.join(missing)}")
	reader.fieldnames = header

	rows: list[ParcelRowIn] = []
	for record in reader:
		if not any((value or "").strip() for value in record.values() if isinstance(value, str)):
			continue
		rows.append(
			ParcelRowIn(
				parcel_id=record.get("parcel_id"),
				village=record.get("village"),
				area_hectares=record.get("area_hectares"),
				projected_polygon=record.get("projected_polygon"),
			)
		)
	return rows


class ParcelIngestService:
	"""Row-isolated parcel upsert.

	Each row commits on its own so a bad row never blocks the rest.  Upsert
	writes village, area and geometry only; owner and cultivator belong to the
	assignment service and are never touched here.
	"""

	def __init__(
		self,
		db: AsyncSession,
		redis_client: Redis | None = None,
		audit: AuditLogService | None = None,
		transformer: RingTransformer | None = None,
	):
		self.db = db
		self.redis_client = redis_client
		self.audit = audit or AuditLogService()
		if transformer is None:
			settings = get_settings()
			transformer = get_transformer(settings.source_crs, settings.target_crs)
		self.transformer = transformer

	async def ingest_csv(self, text: str, actor: str) -> BatchResult:
		try:
			rows = parse_parcel_csv(text)
		except ValidationError as exc:
			await self.audit.record(LogTypeEnum.PARCEL_UPLOAD, actor, "Batch Process Failed", str(exc))
			raise
		return await self.ingest_parcel_batch(rows, actor)

	async def ingest_parcel_batch(self, rows: Sequence[ParcelRowIn], actor: str) -> BatchResult:
		processed = 0
		errors: list[BatchError] = []
		touched: dict[str, list[str]] = {}

		for idx, row in enumerate(rows):
			row_id = row.parcel_id.strip() if isinstance(row.parcel_id, str) and row.parcel_id.strip() else None
			try:
				candidate = validate_row(row)
				coordinates = validate_ring(reproject_ring(candidate.projected_ring, self.transformer))
				await self._upsert(candidate, coordinates)
				await self.db.commit()
			except ValidationError as exc:
				errors.append(BatchError(id=row_id, error=str(exc)))
				logger.warning("parcel_row_rejected", row=idx + 1, parcel_id=row_id, error=str(exc))
				continue
			except SQLAlchemyError as exc:
				await self.db.rollback()
				errors.append(BatchError(id=row_id, error="database error while saving parcel"))
				logger.warning("parcel_row_store_failed", row=idx + 1, parcel_id=row_id, error=str(exc))
				continue

			processed += 1
			touched.setdefault(candidate.village, []).append(candidate.parcel_id)

		result = BatchResult(processed_count=processed, failed_count=len(errors), errors=errors)
		await self._record_summary(result, len(rows), actor)
		for village, parcel_ids in touched.items():
			await publish_village_event(self.redis_client, village, "parcels_upserted", parcel_ids=parcel_ids)
		return result

	async def _upsert(self, candidate: ParcelCandidate, coordinates: list[list[float]]) -> Parcel:
		boundary = from_shape(ring_to_polygon(coordinates), srid=4326)
		parcel = await self.db.get(Parcel, candidate.parcel_id)
		if parcel is None:
			parcel = Parcel(
				id=candidate.parcel_id,
				village=candidate.village,
				area=candidate.area,
				coordinates=coordinates,
				boundary=boundary,
				owner_id=None,
				cultivator_id=None,
			)
			self.db.add(parcel)
		else:
			assigned = parcel.owner_id is not None or parcel.cultivator_id is not None
			if assigned and parcel.village != candidate.village:
				raise ValidationError(
					f"parcel is assigned in {parcel.village}; unassign it before moving it to {candidate.village}"
				)
			parcel.village = candidate.village
			parcel.area = candidate.area
			parcel.coordinates = coordinates
			parcel.boundary = boundary
		await self.db.flush()
		return parcel

	async def _record_summary(self, result: BatchResult, total: int, actor: str) -> None:
		if result.errors:
			first = result.errors[0]
			await self.audit.record(
				LogTypeEnum.PARCEL_UPLOAD,
				actor,
				"Batch Process With Errors",
				f"Processed {result.processed_count} of {total} parcels, {result.failed_count} failed. "
				f"First error ({first.id or 'no id'}): {first.error}",
			)
			return
		await self.audit.record(
			LogTypeEnum.PARCEL_UPLOAD,
			actor,
			"Batch Process Success",
			f"Processed {result.processed_count} parcels.",
		)
