# fleettrack/services/realtime_ws/routes.py
"""
WebSocket endpoint подписки на обновления позиций.

WS /ws/vehicles — события {"event": "vehicle-update", "data": {...}}.
История не повторяется: подписчик получает только события после подключения.

Входящие сообщения:
- {"action": "ping"} → {"type": "pong"}
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fleettrack.common.logger import log_debug
from fleettrack.services.realtime_ws.connection_manager import SubscriberRegistry

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws/vehicles")
async def websocket_vehicles(websocket: WebSocket) -> None:
    registry: SubscriberRegistry = websocket.app.state.registry
    subscriber = await registry.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_client_message(registry, subscriber.subscriber_id, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await registry.disconnect(subscriber.subscriber_id)


async def _handle_client_message(registry: SubscriberRegistry, subscriber_id: int, raw: str) -> None:
    """Обработать сообщение от клиента. Непонятные сообщения игнорируются."""
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError:
        await log_debug(f"Подписчик #{subscriber_id}: не JSON сообщение", logger_name="realtime_ws")
        return

    if not isinstance(data, dict):
        return

    if data.get("action") == "ping":
        await registry.send_personal(subscriber_id, {"type": "pong"})
