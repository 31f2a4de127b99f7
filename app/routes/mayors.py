"""Mayor account routes (admin only)."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal, require_role
from app.database import get_db
from app.errors import StoreError, UniquenessViolationError
from app.models.enums import UserRoleEnum
from app.schemas.account import MayorCreate, MayorRead, MayorStatusUpdate, MayorUpdate
from app.services.mayor_service import MayorService

router = APIRouter(prefix="/mayors", tags=["mayors"])

_admin = require_role(UserRoleEnum.admin)


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, UniquenessViolationError):
		return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, StoreError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="mayor failure")


@router.get("", response_model=list[MayorRead])
async def list_mayors(
	db: AsyncSession = Depends(get_db),
	_principal: Principal = Depends(_admin),
) -> list[MayorRead]:
	try:
		return [MayorRead.model_validate(mayor) for mayor in await MayorService(db).list_mayors()]
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("", response_model=MayorRead, status_code=status.HTTP_201_CREATED)
async def create_mayor(
	payload: MayorCreate,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> MayorRead:
	try:
		mayor = await MayorService(db).create_mayor(payload, principal.actor_id)
		return MayorRead.model_validate(mayor)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/{mayor_id}", response_model=MayorRead)
async def get_mayor(
	mayor_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	_principal: Principal = Depends(_admin),
) -> MayorRead:
	try:
		return MayorRead.model_validate(await MayorService(db).get_mayor(mayor_id))
	except Exception as exc:
		raise _map_error(exc) from exc


@router.patch("/{mayor_id}", response_model=MayorRead)
async def update_mayor(
	mayor_id: uuid.UUID,
	payload: MayorUpdate,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> MayorRead:
	try:
		mayor = await MayorService(db).update_mayor_details(mayor_id, payload, principal.actor_id)
		return MayorRead.model_validate(mayor)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.patch("/{mayor_id}/status", response_model=MayorRead)
async def update_mayor_status(
	mayor_id: uuid.UUID,
	payload: MayorStatusUpdate,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> MayorRead:
	try:
		mayor = await MayorService(db).update_mayor_status(mayor_id, payload, principal.actor_id)
		return MayorRead.model_validate(mayor)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.delete("/{mayor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mayor(
	mayor_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> Response:
	try:
		await MayorService(db).delete_mayor(mayor_id, principal.actor_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)
