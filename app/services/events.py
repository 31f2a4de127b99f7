"""Village live-feed events published to Redis pub/sub."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger("agricad.events")


def village_channel(village: str) -> str:
	return f"village:{village}:live"


async def publish_village_event(
	redis_client: Redis | None,
	village: str,
	event_type: str,
	**fields: Any,
) -> None:
	"""Publish after a committed change; a Redis failure is logged and dropped."""
	if redis_client is None:
		return
	payload = {
		"event_type": event_type,
		"village": village,
		"published_at": datetime.now(UTC).isoformat(),
		**fields,
	}
	try:
		await redis_client.publish(village_channel(village), json.dumps(payload, default=str))
	except RedisError as exc:
		logger.warning("event_publish_failed", village=village, event_type=event_type, error=str(exc))
