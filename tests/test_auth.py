from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

import pytest
from fastapi import HTTPException, Request
from httpx import AsyncClient

from app.auth.dependencies import (
    AdminPrincipal,
    FarmerPrincipal,
    MayorPrincipal,
    ensure_village_access,
    principal_from_claims,
    require_role,
    village_scope,
)
from app.auth.jwt import AuthError, create_access_token, decode_token
from app.auth.passwords import hash_password, pwd_context
from app.errors import AccessDeniedError, ValidationError
from app.main import app
from app.middleware.rate_limit import caller_key
from app.models.enums import UserRoleEnum
from app.schemas.parcel import MapRender
from app.services.parcel_service import ParcelService


@pytest.mark.asyncio
async def test_missing_jwt_rejected_on_protected_endpoint(auth_client: AsyncClient) -> None:
    response = await auth_client.get("/api/v1/parcels")
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "auth_required"


@pytest.mark.asyncio
async def test_invalid_jwt_rejected(auth_client: AsyncClient) -> None:
    response = await auth_client.get("/api/v1/parcels", headers={"Authorization": "Bearer not.a.token"})
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "token_invalid"


def test_jwt_create_decode_roundtrip() -> None:
    token = create_access_token("mayor@test.local", UserRoleEnum.mayor, village="Valea Mare", expires_minutes=5)
    payload = decode_token(token, expected_type="access")
    assert payload["sub"] == "mayor@test.local"
    assert payload["typ"] == "access"
    assert payload["role"] == "mayor"
    assert payload["village"] == "Valea Mare"


def test_decode_invalid_token_raises_auth_error() -> None:
    with pytest.raises(AuthError):
        decode_token("invalid.token.payload", expected_type="access")


def test_principal_variants_from_claims() -> None:
    farmer_id = uuid4()

    admin = principal_from_claims({"sub": "root", "role": "admin"})
    mayor = principal_from_claims({"sub": "m@x.ro", "role": "mayor", "village": "Valea Mare"})
    farmer = principal_from_claims({"sub": str(farmer_id), "role": "farmer", "village": "Valea Mare"})

    assert admin == AdminPrincipal(subject="root")
    assert mayor == MayorPrincipal(subject="m@x.ro", village="Valea Mare")
    assert farmer == FarmerPrincipal(farmer_id=farmer_id, village="Valea Mare")
    assert admin.actor_id == "admin:root"
    assert farmer.actor_id == f"farmer:{farmer_id}"
    assert village_scope(admin) is None
    assert village_scope(mayor) == "Valea Mare"


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "m@x.ro", "role": "mayor"},
        {"sub": "m@x.ro", "role": "mayor", "village": "  "},
        {"sub": "not-a-uuid", "role": "farmer", "village": "Valea Mare"},
        {"sub": "root", "role": "superuser"},
    ],
)
def test_malformed_claims_are_rejected(claims: dict[str, str]) -> None:
    with pytest.raises(AuthError):
        principal_from_claims(claims)


def test_village_access_is_confined_for_mayors() -> None:
    mayor = MayorPrincipal(subject="m@x.ro", village="Valea Mare")
    ensure_village_access(AdminPrincipal(subject="root"), "Dealu Mic")
    ensure_village_access(mayor, "Valea Mare")
    with pytest.raises(AccessDeniedError):
        ensure_village_access(mayor, "Dealu Mic")


@pytest.mark.asyncio
async def test_require_role_dependency() -> None:
    dependency = require_role(UserRoleEnum.admin)

    with pytest.raises(HTTPException) as excinfo:
        await dependency(MayorPrincipal(subject="m@x.ro", village="Valea Mare"))
    assert excinfo.value.status_code == 403

    admin = AdminPrincipal(subject="root")
    assert await dependency(admin) is admin


@pytest.mark.asyncio
async def test_farmer_token_forbidden_on_admin_routes(auth_client: AsyncClient, farmer_token: str) -> None:
    response = await auth_client.get("/api/v1/mayors", headers={"Authorization": f"Bearer {farmer_token}"})
    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "forbidden"


@pytest.mark.asyncio
async def test_mayor_token_cannot_read_other_village_map(auth_client: AsyncClient, mayor_token: str) -> None:
    response = await auth_client.get(
        "/api/v1/villages/Dealu Mic/map",
        params={"zoom": 14, "min_lon": 24, "min_lat": 45, "max_lon": 25, "max_lat": 46},
        headers={"Authorization": f"Bearer {mayor_token}"},
    )
    assert response.status_code == 403


def test_password_hashing_enforces_minimum_length() -> None:
    with pytest.raises(ValidationError):
        hash_password("short")
    hashed = hash_password("long-enough-secret")
    assert pwd_context.verify("long-enough-secret", hashed)


@pytest.mark.asyncio
async def test_map_rate_limit_per_village(fake_redis: object, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    app.state.redis = fake_redis

    @dataclass
    class _SettingsStub:
        rate_limit_user_per_minute: int = 100
        rate_limit_map_per_minute: int = 1
        rate_limit_assign_per_minute: int = 100
        rate_limit_ingest_per_minute: int = 100

    async def fake_render(self: ParcelService, village: str, options: object) -> MapRender:
        return MapRender(village=village, zoom=12, lod="culled")

    monkeypatch.setattr("app.middleware.rate_limit.get_settings", lambda: _SettingsStub())
    monkeypatch.setattr(ParcelService, "render_village_map", fake_render)

    params = {"zoom": 12, "min_lon": 24, "min_lat": 45, "max_lon": 25, "max_lat": 46}
    first = await client.get("/api/v1/villages/Valea Mare/map", params=params)
    second = await client.get("/api/v1/villages/Valea Mare/map", params=params)
    other = await client.get("/api/v1/villages/Dealu Mic/map", params=params)

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json()["detail"]["error"] == "rate_limited"
    assert second.json()["detail"]["bucket"] == "map"
    assert other.status_code == 200


@pytest.mark.asyncio
async def test_assignment_rate_limit_is_per_principal(
    fake_redis: object,
    client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
    mayor_token: str,
    admin_token: str,
) -> None:
    app.state.redis = fake_redis

    @dataclass
    class _SettingsStub:
        rate_limit_user_per_minute: int = 100
        rate_limit_map_per_minute: int = 100
        rate_limit_assign_per_minute: int = 1
        rate_limit_ingest_per_minute: int = 100

    monkeypatch.setattr("app.middleware.rate_limit.get_settings", lambda: _SettingsStub())

    # An unparseable farmer id fails validation after the quota is counted.
    path = "/api/v1/farmers/not-a-uuid/assignments"
    first = await client.post(path, json={}, headers={"Authorization": f"Bearer {mayor_token}"})
    second = await client.post(path, json={}, headers={"Authorization": f"Bearer {mayor_token}"})
    other = await client.post(path, json={}, headers={"Authorization": f"Bearer {admin_token}"})
    reads = await client.get("/health")

    assert first.status_code == 422
    assert second.status_code == 429
    assert second.json()["detail"]["bucket"] == "assign"
    assert other.status_code == 422
    assert reads.status_code == 200
    assert any(":mayor:mayor@test.local:" in key for key in fake_redis._counter)


def test_caller_key_falls_back_to_client_address() -> None:
    request = Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/api/v1/parcels",
            "headers": [(b"authorization", b"Bearer not.a.token")],
            "client": ("10.0.0.7", 5000),
            "query_string": b"",
        }
    )

    assert caller_key(request) == "anonymous:10.0.0.7"


@pytest.mark.asyncio
async def test_request_id_is_propagated(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"x-request-id": "req-123"})
    assert response.status_code == 200
    assert response.headers.get("x-request-id") == "req-123"
    assert response.json()["service"] == "agricad"
