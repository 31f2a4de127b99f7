"""Authentication dependencies — principal decoding, role and village checks.

Access tokens are decoded once, at the boundary, into one of three principal
types.  Handlers branch on the type instead of comparing role strings.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import unquote

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer

from app.auth.jwt import AuthError, decode_token
from app.errors import AccessDeniedError
from app.models.enums import UserRoleEnum

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True, frozen=True)
class AdminPrincipal:
	subject: str

	@property
	def role(self) -> UserRoleEnum:
		return UserRoleEnum.admin

	@property
	def actor_id(self) -> str:
		return f"admin:{self.subject}"


@dataclass(slots=True, frozen=True)
class MayorPrincipal:
	subject: str
	village: str

	@property
	def role(self) -> UserRoleEnum:
		return UserRoleEnum.mayor

	@property
	def actor_id(self) -> str:
		return f"mayor:{self.subject}"


@dataclass(slots=True, frozen=True)
class FarmerPrincipal:
	farmer_id: uuid.UUID
	village: str

	@property
	def role(self) -> UserRoleEnum:
		return UserRoleEnum.farmer

	@property
	def actor_id(self) -> str:
		return f"farmer:{self.farmer_id}"


Principal = AdminPrincipal | MayorPrincipal | FarmerPrincipal


def _raise_auth(exc: AuthError) -> HTTPException:
	return HTTPException(
		status_code=exc.status_code,
		detail={"error": exc.code, "message": exc.detail},
	)


def _claim_village(payload: dict[str, Any]) -> str:
	village = payload.get("village")
	if not isinstance(village, str) or not village.strip():
		raise AuthError(code="token_invalid", detail="Token village is missing")
	return village


def principal_from_claims(payload: dict[str, Any]) -> Principal:
	role = payload.get("role")
	subject = str(payload["sub"])
	if role == UserRoleEnum.admin:
		return AdminPrincipal(subject=subject)
	if role == UserRoleEnum.mayor:
		return MayorPrincipal(subject=subject, village=_claim_village(payload))
	if role == UserRoleEnum.farmer:
		try:
			farmer_id = uuid.UUID(subject)
		except ValueError as exc:
			raise AuthError(code="token_invalid", detail="Token subject is invalid") from exc
		return FarmerPrincipal(farmer_id=farmer_id, village=_claim_village(payload))
	raise AuthError(code="token_invalid", detail="Token role is invalid")


def principal_from_token(token: str) -> Principal:
	return principal_from_claims(decode_token(token, expected_type="access"))


async def get_current_principal(request: Request) -> Principal:
	credentials = await bearer_scheme(request)
	if credentials is None or credentials.scheme.lower() != "bearer":
		raise _raise_auth(AuthError(code="auth_required", detail="Bearer token is required"))
	try:
		return principal_from_token(credentials.credentials)
	except AuthError as exc:
		raise _raise_auth(exc) from exc


def require_role(*allowed: UserRoleEnum) -> Callable[..., Any]:
	allowed_set = set(allowed)

	async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
		if principal.role not in allowed_set:
			raise HTTPException(
				status_code=status.HTTP_403_FORBIDDEN,
				detail={"error": "forbidden", "message": "Insufficient role"},
			)
		return principal

	return dependency


def village_scope(principal: Principal) -> str | None:
	"""Village a principal is confined to; ``None`` for admins."""
	if isinstance(principal, AdminPrincipal):
		return None
	return principal.village


def ensure_village_access(principal: Principal, village: str) -> None:
	scope = village_scope(principal)
	if scope is not None and scope != village:
		raise AccessDeniedError(f"access to village {village!r} is not permitted")


def extract_request_village(request: Request) -> str | None:
	village = request.path_params.get("village") or request.query_params.get("village")
	if village is None:
		match = re.search(r"/api/v1/(?:villages|stats/villages)/([^/]+)(?:/|$)", request.url.path)
		if match is not None:
			village = unquote(match.group(1))
	if village is None or not str(village).strip():
		return None
	return str(village)
