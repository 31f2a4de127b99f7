"""WebSocket live feed of parcel changes per village."""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.auth.dependencies import Principal, principal_from_token, village_scope
from app.auth.jwt import AuthError
from app.services.events import village_channel

router = APIRouter(tags=["websocket"])


def _authenticate_token(token: str) -> Principal | None:
	try:
		return principal_from_token(token)
	except AuthError:
		return None


@router.websocket("/ws/villages/{village}/live")
async def ws_village_feed(websocket: WebSocket, village: str) -> None:
	await websocket.accept()

	token = websocket.query_params.get("token")
	if token is None or not token.strip():
		await websocket.send_json({"error": "auth_required"})
		await websocket.close(code=1008)
		return
	principal = _authenticate_token(token.strip())
	if principal is None:
		await websocket.send_json({"error": "auth_invalid"})
		await websocket.close(code=1008)
		return

	scope = village_scope(principal)
	if scope is not None and scope != village:
		await websocket.send_json({"error": "village_forbidden"})
		await websocket.close(code=1008)
		return

	redis_client = getattr(websocket.app.state, "redis", None)
	if redis_client is None:
		await websocket.send_json({"error": "redis_unavailable"})
		await websocket.close(code=1011)
		return

	channel = village_channel(village)
	pubsub = redis_client.pubsub()
	await pubsub.subscribe(channel)

	try:
		while True:
			message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
			if message is not None and message.get("type") == "message":
				payload = message.get("data")
				if isinstance(payload, bytes):
					payload = payload.decode("utf-8")
				if isinstance(payload, str):
					try:
						await websocket.send_json(json.loads(payload))
					except json.JSONDecodeError:
						await websocket.send_text(payload)
			await asyncio.sleep(0.05)
	except WebSocketDisconnect:
		return
	finally:
		await pubsub.unsubscribe(channel)
		await pubsub.close()
