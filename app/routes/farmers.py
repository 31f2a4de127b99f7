"""Farmer account routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
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
from app.errors import AccessDeniedError, StoreError, UniquenessViolationError
from app.models.enums import UserRoleEnum
from app.schemas.account import FarmerCreate, FarmerRead, FarmerUpdate
from app.services.farmer_service import FarmerService

router = APIRouter(prefix="/farmers", tags=["farmers"])

_managers = require_role(UserRoleEnum.admin, UserRoleEnum.mayor)


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, PermissionError):
		return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
	if isinstance(exc, UniquenessViolationError):
		return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, StoreError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="farmer failure")


@router.get("", response_model=list[FarmerRead])
async def list_farmers(
	village: str | None = None,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_managers),
) -> list[FarmerRead]:
	try:
		scope = village_scope(principal)
		if scope is not None:
			if village is not None:
				ensure_village_access(principal, village)
			village = scope
		farmers = await FarmerService(db).list_farmers(village)
		return [FarmerRead.model_validate(farmer) for farmer in farmers]
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("", response_model=FarmerRead, status_code=status.HTTP_201_CREATED)
async def create_farmer(
	payload: FarmerCreate,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_managers),
) -> FarmerRead:
	try:
		ensure_village_access(principal, payload.village.strip())
		farmer = await FarmerService(db).create_farmer(payload, principal.actor_id)
		return FarmerRead.model_validate(farmer)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{farmer_id}", response_model=FarmerRead)
async def get_farmer(
	farmer_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(get_current_principal),
) -> FarmerRead:
	try:
		if isinstance(principal, FarmerPrincipal) and principal.farmer_id != farmer_id:
			raise AccessDeniedError("farmers may only read their own account")
		farmer = await FarmerService(db).get_farmer(farmer_id, village_scope(principal))
		return FarmerRead.model_validate(farmer)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.patch("/{farmer_id}", response_model=FarmerRead)
async def update_farmer(
	farmer_id: uuid.UUID,
	payload: FarmerUpdate,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_managers),
) -> FarmerRead:
	try:
		farmer = await FarmerService(db).update_farmer(
			farmer_id,
			payload,
			principal.actor_id,
			scope_village=village_scope(principal),
		)
		return FarmerRead.model_validate(farmer)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.delete("/{farmer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_farmer(
	farmer_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_managers),
) -> Response:
	try:
		await FarmerService(db).delete_farmer(
			farmer_id,
			principal.actor_id,
			scope_village=village_scope(principal),
		)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)
