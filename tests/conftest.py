"""Shared pytest fixtures — async test client, fake DB session, fake Redis, principals."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.auth.dependencies import (
	AdminPrincipal,
	FarmerPrincipal,
	MayorPrincipal,
	Principal,
	get_current_principal,
)
from app.auth.jwt import create_access_token
from app.database import get_db
from app.main import app
from app.models.enums import LogTypeEnum, UserRoleEnum

VILLAGE = "Valea Mare"
OTHER_VILLAGE = "Dealu Mic"


class FakeResult:
	"""Enough of SQLAlchemy's ``Result`` for the services under test."""

	def __init__(self, rows: list[Any] | None = None, scalar: Any = None) -> None:
		self.rows = rows or []
		self.scalar = scalar

	def scalars(self) -> FakeResult:
		return self

	def all(self) -> list[Any]:
		return list(self.rows)

	def first(self) -> Any:
		return self.rows[0] if self.rows else None

	def scalar_one(self) -> Any:
		return self.scalar


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock(return_value=FakeResult())
		self.get = AsyncMock(return_value=None)
		self.flush = AsyncMock()
		self.refresh = AsyncMock()
		self.delete = AsyncMock()
		self.add = MagicMock()


class FakeAudit:
	"""Collects audit records in memory instead of opening a session."""

	def __init__(self) -> None:
		self.records: list[tuple[LogTypeEnum, str, str, str]] = []

	async def record(self, log_type: LogTypeEnum, actor: str, action: str, details: str = "") -> None:
		self.records.append((log_type, actor, action, details))

	@property
	def actions(self) -> list[str]:
		return [action for _, _, action, _ in self.records]


class FakePubSub:
	def __init__(self, payloads: list[dict[str, Any]]) -> None:
		self.payloads = payloads
		self.index = 0
		self.subscribed_channel: str | None = None
		self.unsubscribed_channel: str | None = None
		self.closed = False

	async def subscribe(self, _channel: str) -> None:
		self.subscribed_channel = _channel
		return None

	async def get_message(self, ignore_subscribe_messages: bool, timeout: float) -> dict[str, Any] | None:
		if self.index >= len(self.payloads):
			return None
		message = self.payloads[self.index]
		self.index += 1
		return message

	async def unsubscribe(self, _channel: str) -> None:
		self.unsubscribed_channel = _channel
		return None

	async def close(self) -> None:
		self.closed = True
		return None


class FakeRedis:
	def __init__(self, payloads: list[dict[str, Any]] | None = None) -> None:
		self.payloads = payloads or []
		self.publish = AsyncMock()
		self._counter: dict[str, int] = {}
		self.incr = AsyncMock(side_effect=self._incr)
		self.expire = AsyncMock(return_value=True)
		self.last_pubsub: FakePubSub | None = None

	async def _incr(self, key: str) -> int:
		value = self._counter.get(key, 0) + 1
		self._counter[key] = value
		return value

	def pubsub(self) -> FakePubSub:
		self.last_pubsub = FakePubSub(self.payloads)
		return self.last_pubsub


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides and service tests."""
	return FakeAsyncSession()


@pytest.fixture
def fake_audit() -> FakeAudit:
	return FakeAudit()


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Reusable fake Redis client with async publish and pubsub behavior."""
	return FakeRedis()


@pytest.fixture
def admin_principal() -> AdminPrincipal:
	return AdminPrincipal(subject="admin@test.local")


@pytest.fixture
def mayor_principal() -> MayorPrincipal:
	return MayorPrincipal(subject="mayor@test.local", village=VILLAGE)


@pytest.fixture
def farmer_principal() -> FarmerPrincipal:
	return FarmerPrincipal(farmer_id=uuid.UUID("22222222-2222-2222-2222-222222222222"), village=VILLAGE)


@pytest.fixture
def act_as() -> Any:
	"""Swap the principal seen by route dependencies for the rest of the test."""

	def _set(principal: Principal) -> None:
		async def override_principal() -> Principal:
			return principal

		app.dependency_overrides[get_current_principal] = override_principal

	return _set


@asynccontextmanager
async def _noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
	yield


@pytest.fixture
async def client(
	fake_db_session: FakeAsyncSession,
	admin_principal: AdminPrincipal,
) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled, DB mocked and an admin principal."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	async def override_principal() -> Principal:
		return admin_principal

	app.dependency_overrides[get_db] = override_get_db
	app.dependency_overrides[get_current_principal] = override_principal
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan
	app.state.redis = None

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
async def auth_client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with DB override only (real auth dependencies active)."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan
	app.state.redis = None

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
def admin_token() -> str:
	return create_access_token("admin@test.local", UserRoleEnum.admin, expires_minutes=30)


@pytest.fixture
def mayor_token() -> str:
	return create_access_token("mayor@test.local", UserRoleEnum.mayor, village=VILLAGE, expires_minutes=30)


@pytest.fixture
def farmer_token(farmer_principal: FarmerPrincipal) -> str:
	return create_access_token(
		str(farmer_principal.farmer_id),
		UserRoleEnum.farmer,
		village=VILLAGE,
		expires_minutes=30,
	)
