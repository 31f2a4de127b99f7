"""Structured JSON logging with request ID propagation."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.dependencies import extract_request_village
from app.config import LogFormat, get_settings

_configured = False
_SENSITIVE_KEYS = frozenset({"password", "password_hash", "token", "authorization"})


def redact_sensitive(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
	"""Mask credential-bearing keys before rendering."""
	for key in _SENSITIVE_KEYS.intersection(event_dict):
		event_dict[key] = "***"
	return event_dict


def configure_structured_logging() -> None:
	"""Configure stdlib + structlog once for API process."""
	global _configured
	if _configured:
		return

	settings = get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	shared_processors: list[Any] = [
		structlog.contextvars.merge_contextvars,
		structlog.processors.add_log_level,
		structlog.processors.TimeStamper(fmt="iso", utc=True),
		redact_sensitive,
	]

	if settings.log_format == LogFormat.json:
		renderer: Any = structlog.processors.JSONRenderer()
		logging.basicConfig(level=log_level, format="%(message)s")
	else:
		renderer = structlog.dev.ConsoleRenderer()
		logging.basicConfig(level=log_level)

	structlog.configure(
		processors=[
			*shared_processors,
			structlog.processors.format_exc_info,
			renderer,
		],
		wrapper_class=structlog.make_filtering_bound_logger(log_level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Attach request IDs (and the village, when the path names one) and log per-request timing."""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
		request.state.request_id = request_id

		structlog.contextvars.clear_contextvars()
		context: dict[str, Any] = {"request_id": request_id}
		village = extract_request_village(request)
		if village is not None:
			context["village"] = village
		structlog.contextvars.bind_contextvars(**context)

		logger = structlog.get_logger("agricad.request")
		start = time.perf_counter()

		try:
			response = await call_next(request)
		except Exception as exc:
			logger.exception(
				"http_request_failed",
				method=request.method,
				path=request.url.path,
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
				error=str(exc),
			)
			raise

		response.headers["x-request-id"] = request_id
		if request.url.path != "/health":
			logger.info(
				"http_request",
				method=request.method,
				path=request.url.path,
				status_code=response.status_code,
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
			)
		return response
