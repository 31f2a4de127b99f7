"""Parcel assignment routes — conflict preview and commit."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal, require_role, village_scope
from app.database import get_db
from app.errors import InvalidParcelIdsError, StoreError
from app.models.enums import UserRoleEnum
from app.schemas.assignment import (
	AssignmentCommitRequest,
	AssignmentPreview,
	AssignmentRequest,
	AssignmentResult,
)
from app.services.assignment_service import AssignmentService

router = APIRouter(prefix="/farmers", tags=["assignments"])

_assigners = require_role(UserRoleEnum.admin, UserRoleEnum.mayor)


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, InvalidParcelIdsError):
		return HTTPException(
			status_code=status.HTTP_400_BAD_REQUEST,
			detail={"error": "invalid_parcel_ids", "message": str(exc), "parcel_ids": exc.parcel_ids},
		)
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, PermissionError):
		return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, StoreError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="assignment failure")


@router.post("/{farmer_id}/assignments/preview", response_model=AssignmentPreview)
async def preview_assignment(
	farmer_id: uuid.UUID,
	payload: AssignmentRequest,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_assigners),
) -> AssignmentPreview:
	service = AssignmentService(db)
	try:
		return await service.detect_conflicts(
			farmer_id,
			payload.owned_parcel_ids,
			payload.cultivated_parcel_ids,
			principal.actor_id,
			scope_village=village_scope(principal),
		)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/{farmer_id}/assignments", response_model=AssignmentResult)
async def commit_assignment(
	farmer_id: uuid.UUID,
	payload: AssignmentCommitRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_assigners),
) -> AssignmentResult:
	service = AssignmentService(db, getattr(request.app.state, "redis", None))
	try:
		if payload.resolutions:
			return await service.commit_resolved(
				farmer_id,
				payload.owned_parcel_ids,
				payload.cultivated_parcel_ids,
				principal.actor_id,
				resolutions={(item.parcel_id, item.role): item.resolution for item in payload.resolutions},
				scope_village=village_scope(principal),
			)
		return await service.assign_parcels(
			farmer_id,
			payload.owned_parcel_ids,
			payload.cultivated_parcel_ids,
			principal.actor_id,
			force=payload.force,
			scope_village=village_scope(principal),
		)
	except Exception as exc:
		raise _map_error(exc) from exc
