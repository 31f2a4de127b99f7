"""Parcel routes — reads, batch ingestion and village map rendering."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import (
	Principal,
	ensure_village_access,
	get_current_principal,
	require_role,
	village_scope,
)
from app.config import get_settings
from app.database import get_db
from app.errors import StoreError
from app.models.enums import UserRoleEnum
from app.schemas.parcel import BatchResult, MapRender, ParcelBatchRequest, ParcelRead
from app.services.map_render import RenderOptions, Viewport
from app.services.parcel_ingest_service import ParcelIngestService
from app.services.parcel_service import ParcelService

router = APIRouter(tags=["parcels"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, HTTPException):
		return exc
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, PermissionError):
		return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, StoreError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="parcel failure")


@router.get("/parcels", response_model=list[ParcelRead])
async def list_parcels(
	village: str | None = None,
	owner_id: uuid.UUID | None = None,
	cultivator_id: uuid.UUID | None = None,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(get_current_principal),
) -> list[ParcelRead]:
	try:
		scope = village_scope(principal)
		if scope is not None:
			if village is not None:
				ensure_village_access(principal, village)
			village = scope
		parcels = await ParcelService(db).list_parcels(village, owner_id, cultivator_id)
		return [ParcelRead.model_validate(parcel) for parcel in parcels]
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/parcels/{parcel_id}", response_model=ParcelRead)
async def get_parcel(
	parcel_id: str,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(get_current_principal),
) -> ParcelRead:
	try:
		parcel = await ParcelService(db).get_parcel(parcel_id)
		ensure_village_access(principal, parcel.village)
		return ParcelRead.model_validate(parcel)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/parcels/upload", response_model=BatchResult)
async def upload_parcels(
	request: Request,
	file: UploadFile = File(...),
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(require_role(UserRoleEnum.admin)),
) -> BatchResult:
	max_bytes = get_settings().upload_max_bytes
	raw = await file.read(max_bytes + 1)
	if len(raw) > max_bytes:
		raise HTTPException(
			status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
			detail=f"upload exceeds {max_bytes} bytes",
		)
	try:
		text = raw.decode("utf-8")
	except UnicodeDecodeError as exc:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV must be UTF-8 encoded") from exc

	service = ParcelIngestService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.ingest_csv(text, principal.actor_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/parcels/batch", response_model=BatchResult)
async def ingest_parcel_batch(
	payload: ParcelBatchRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(require_role(UserRoleEnum.admin)),
) -> BatchResult:
	service = ParcelIngestService(db, getattr(request.app.state, "redis", None))
	try:
		return await service.ingest_parcel_batch(payload.rows, principal.actor_id)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/villages/{village}/map", response_model=MapRender)
async def village_map(
	village: str,
	zoom: float = Query(ge=0, le=24),
	min_lon: float = Query(ge=-180, le=180),
	min_lat: float = Query(ge=-90, le=90),
	max_lon: float = Query(ge=-180, le=180),
	max_lat: float = Query(ge=-90, le=90),
	highlight_farmer_id: uuid.UUID | None = None,
	show_all_colors: bool = False,
	selected_parcel_id: str | None = None,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(get_current_principal),
) -> MapRender:
	try:
		ensure_village_access(principal, village)
		if min_lon > max_lon or min_lat > max_lat:
			raise ValueError("viewport minimum must not exceed maximum")
		options = RenderOptions(
			zoom=zoom,
			viewport=Viewport(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat),
			highlight_farmer_id=highlight_farmer_id,
			show_all_colors=show_all_colors,
			selected_parcel_id=selected_parcel_id,
		)
		return await ParcelService(db).render_village_map(village, options)
	except Exception as exc:
		raise _map_error(exc) from exc
