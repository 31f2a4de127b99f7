"""Statistics routes, scoped by principal."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import (
	FarmerPrincipal,
	Principal,
	ensure_village_access,
	get_current_principal,
	require_role,
	village_scope,
)
from app.database import get_db
from app.errors import AccessDeniedError
from app.models.enums import UserRoleEnum
from app.schemas.admin import FarmerStats, GlobalStats, VillageStats
from app.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["stats"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, PermissionError):
		return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="stats failure")


@router.get("/global", response_model=GlobalStats)
async def global_stats(
	db: AsyncSession = Depends(get_db),
	_principal: Principal = Depends(require_role(UserRoleEnum.admin)),
) -> GlobalStats:
	try:
		return await StatsService(db).global_stats()
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/villages/{village}", response_model=VillageStats)
async def village_stats(
	village: str,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(require_role(UserRoleEnum.admin, UserRoleEnum.mayor)),
) -> VillageStats:
	try:
		ensure_village_access(principal, village)
		return await StatsService(db).village_stats(village)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/farmers/{farmer_id}", response_model=FarmerStats)
async def farmer_stats(
	farmer_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(get_current_principal),
) -> FarmerStats:
	try:
		if isinstance(principal, FarmerPrincipal) and principal.farmer_id != farmer_id:
			raise AccessDeniedError("farmers may only read their own statistics")
		return await StatsService(db).farmer_stats(farmer_id, village_scope(principal))
	except Exception as exc:
		raise _map_error(exc) from exc
