"""
Обработка сообщений WebSocket: turn_taken, turn_error, resign.
Подключение сразу получает слот в реестре или отказ.
"""
import json
import logging
import uuid

import anyio
from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from .registry import (
    CLOSE_GOING_AWAY,
    CLOSE_INTERNAL_ERROR,
    Dispatch,
    Rejection,
    SlotAssignment,
    registry,
)
from .ws_manager import manager

logger = logging.getLogger(__name__)


def handle_ws_message(raw: str, endpoint_id: str) -> Dispatch:
    """
    Разбирает одно сообщение игрока и передаёт его в реестр.
    Нечитаемый кадр считается сбоем канала ввода, как turn_error.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("WS: invalid JSON from %s: %s", endpoint_id, e)
        return registry.turn_error(endpoint_id, f"invalid JSON: {e}")
    if not isinstance(data, dict):
        logger.warning("WS: non-object frame from %s", endpoint_id)
        return registry.turn_error(endpoint_id, "frame is not a JSON object")
    t = data.get("type")
    logger.info("WS: msg from %s type=%s", endpoint_id, t)
    if t == "turn_taken":
        return registry.submit_move(endpoint_id, data.get("position"))
    if t == "turn_error":
        return registry.turn_error(endpoint_id, data.get("error"))
    if t == "resign":
        return registry.resign(endpoint_id)
    logger.warning("WS: unknown message type %s from %s", t, endpoint_id)
    return Dispatch()


async def ws_connect_and_loop(ws: WebSocket) -> None:
    """
    Слот выдаётся до accept, чтобы порядок подключений совпадал с порядком слотов.
    Дальше цикл приёма сообщений, пока реестр не закроет соединение.
    """
    endpoint_id = str(uuid.uuid4())
    admission = None
    # Код, с которым закрыть своё соединение, если клиент ещё на связи
    close_code: int | None = CLOSE_GOING_AWAY
    try:
        async with manager.lock:
            admission = registry.connect(endpoint_id)
            await ws.accept()
            manager.connect(ws, endpoint_id)
            await manager.deliver(admission)
        if isinstance(admission, Rejection):
            logger.info("WS: rejected endpoint=%s: %s", endpoint_id, admission.reason)
            return
        logger.info("WS: endpoint=%s took %s slot", endpoint_id, admission.slot.value)
        while manager.is_connected(endpoint_id):
            msg = await ws.receive_text()
            async with manager.lock:
                await manager.deliver(handle_ws_message(msg, endpoint_id))
    except WebSocketDisconnect as e:
        close_code = None
        logger.info("WS: client disconnected code=%s reason=%s endpoint=%s", e.code, e.reason or "", endpoint_id)
    except Exception as e:
        close_code = CLOSE_INTERNAL_ERROR
        logger.exception("WS: error endpoint=%s: %s", endpoint_id, e)
    finally:
        # Уход игрока закрывает и соперника: задача может быть уже отменена
        with anyio.CancelScope(shield=True):
            await _release(endpoint_id, admission, close_code)
        logger.info("WS: disconnected endpoint=%s", endpoint_id)


async def _release(endpoint_id: str, admission: Dispatch | None, close_code: int | None) -> None:
    if close_code is not None:
        await manager.close_endpoint(endpoint_id, close_code)
    manager.disconnect(endpoint_id)
    if isinstance(admission, SlotAssignment):
        async with manager.lock:
            await manager.deliver(registry.disconnect(endpoint_id))
