"""Administrative routes — audit log, site settings, data reset."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal, require_role
from app.database import get_db
from app.errors import StoreError
from app.models.enums import LogTypeEnum, UserRoleEnum
from app.schemas.admin import ClearResult, LogEntryRead, SiteNameRead, SiteNameUpdate
from app.services.audit_service import AuditLogService
from app.services.settings_service import SettingsService

router = APIRouter(tags=["admin"])

_admin = require_role(UserRoleEnum.admin)


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	if isinstance(exc, StoreError):
		return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="admin failure")


@router.get("/logs", response_model=list[LogEntryRead])
async def list_logs(
	log_type: LogTypeEnum | None = Query(default=None, alias="type"),
	limit: int = Query(default=200, ge=1, le=1000),
	db: AsyncSession = Depends(get_db),
	_principal: Principal = Depends(_admin),
) -> list[LogEntryRead]:
	try:
		entries = await AuditLogService(db).list_entries(log_type, limit)
		return [LogEntryRead.model_validate(entry) for entry in entries]
	except Exception as exc:
		raise _map_error(exc) from exc


@router.delete("/logs", response_model=ClearResult)
async def clear_logs(
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> ClearResult:
	try:
		deleted = await AuditLogService(db).clear(principal.actor_id)
		return ClearResult(deleted={"log_entries": deleted})
	except Exception as exc:
		raise _map_error(exc) from exc


@router.get("/settings/site-name", response_model=SiteNameRead)
async def get_site_name(db: AsyncSession = Depends(get_db)) -> SiteNameRead:
	try:
		return SiteNameRead(site_name=await SettingsService(db).get_site_name())
	except Exception as exc:
		raise _map_error(exc) from exc


@router.put("/settings/site-name", response_model=SiteNameRead)
async def update_site_name(
	payload: SiteNameUpdate,
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> SiteNameRead:
	try:
		name = await SettingsService(db).update_site_name(payload.site_name, principal.actor_id)
		return SiteNameRead(site_name=name)
	except Exception as exc:
		raise _map_error(exc) from exc


@router.post("/admin/clear-data", response_model=ClearResult)
async def clear_application_data(
	db: AsyncSession = Depends(get_db),
	principal: Principal = Depends(_admin),
) -> ClearResult:
	try:
		counts = await SettingsService(db).clear_application_data(principal.actor_id)
		return ClearResult(deleted=counts)
	except Exception as exc:
		raise _map_error(exc) from exc
