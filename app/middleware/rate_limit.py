"""Redis-backed request quotas.

Requests fall into one of four buckets, each with its own per-minute quota:

* ``assign``: assignment previews and commits, counted per caller.
* ``ingest``: parcel CSV uploads and JSON batches, counted per caller.
* ``map``: village map renders, counted per village and caller.
* ``village``: any other request that names a village.

The caller is the decoded principal's actor id; requests without a valid
bearer token share the ``anonymous`` counter of their client address.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.dependencies import extract_request_village, principal_from_token
from app.auth.jwt import AuthError
from app.config import get_settings

logger = structlog.get_logger("agricad.rate_limit")

_ASSIGNMENT_PATH = re.compile(r"^/api/v1/farmers/[^/]+/assignments(?:/preview)?/?$")
_INGEST_PATH = re.compile(r"^/api/v1/parcels/(?:upload|batch)/?$")
_MAP_PATH = re.compile(r"^/api/v1/villages/[^/]+/map/?$")


@dataclass(slots=True, frozen=True)
class QuotaBucket:
	name: str
	scope: str
	quota: int

	def key(self, caller: str, minute_bucket: str) -> str:
		return f"ratelimit:{self.name}:{self.scope}:{caller}:{minute_bucket}"


def classify_request(request: Request, settings: Any) -> QuotaBucket | None:
	path = request.url.path
	if request.method == "POST" and _ASSIGNMENT_PATH.match(path):
		return QuotaBucket("assign", "all", settings.rate_limit_assign_per_minute)
	if request.method == "POST" and _INGEST_PATH.match(path):
		return QuotaBucket("ingest", "all", settings.rate_limit_ingest_per_minute)

	village = extract_request_village(request)
	if village is None:
		return None
	if request.method == "GET" and _MAP_PATH.match(path):
		return QuotaBucket("map", village, settings.rate_limit_map_per_minute)
	return QuotaBucket("village", village, settings.rate_limit_user_per_minute)


def caller_key(request: Request) -> str:
	auth_header = request.headers.get("authorization", "")
	if auth_header.lower().startswith("bearer "):
		try:
			return principal_from_token(auth_header[7:].strip()).actor_id
		except AuthError:
			return _anonymous_key(request)
	return _anonymous_key(request)


def _anonymous_key(request: Request) -> str:
	host = request.client.host if request.client else "unknown"
	return f"anonymous:{host}"


class RateLimitMiddleware(BaseHTTPMiddleware):
	"""Per-bucket quota limiter backed by Redis atomic counters."""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		if self._is_bypass_path(request.url.path):
			return await call_next(request)

		redis_client = getattr(request.app.state, "redis", None)
		if redis_client is None:
			return await call_next(request)

		bucket = classify_request(request, get_settings())
		if bucket is None:
			return await call_next(request)

		caller = caller_key(request)
		minute_bucket = datetime.now(UTC).strftime("%Y%m%d%H%M")
		current = await redis_client.incr(bucket.key(caller, minute_bucket))
		if current == 1:
			await redis_client.expire(bucket.key(caller, minute_bucket), 65)

		if current > bucket.quota:
			logger.warning("rate_limited", bucket=bucket.name, scope=bucket.scope, caller=caller)
			return JSONResponse(
				status_code=429,
				content={
					"detail": {
						"error": "rate_limited",
						"message": f"{bucket.name} quota exceeded",
						"bucket": bucket.name,
						"scope": bucket.scope,
						"quota": bucket.quota,
					}
				},
			)

		return await call_next(request)

	@staticmethod
	def _is_bypass_path(path: str) -> bool:
		return path.startswith(("/docs", "/redoc", "/openapi", "/health"))
