"""
Менеджер WebSocket: подключения по endpoint_id, доставка конвертов и закрытие соединений.
"""
import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from .registry import Dispatch

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, ws: WebSocket, endpoint_id: str):
        self.ws = ws
        self.endpoint_id = endpoint_id


class WSManager:
    def __init__(self):
        self._by_endpoint: dict[str, Connection] = {}
        # Одно событие и доставка его уведомлений за раз
        self.lock = asyncio.Lock()

    def connect(self, ws: WebSocket, endpoint_id: str) -> None:
        self._by_endpoint[endpoint_id] = Connection(ws, endpoint_id)

    def disconnect(self, endpoint_id: str) -> None:
        self._by_endpoint.pop(endpoint_id, None)

    def is_connected(self, endpoint_id: str) -> bool:
        return endpoint_id in self._by_endpoint

    def reset(self) -> None:
        self._by_endpoint.clear()
        self.lock = asyncio.Lock()

    async def send_to_endpoint(self, endpoint_id: str, payload: dict[str, Any]) -> bool:
        conn = self._by_endpoint.get(endpoint_id)
        if not conn:
            return False
        try:
            await conn.ws.send_json(payload)
            return True
        except Exception as e:
            logger.warning("send_to_endpoint %s: %s", endpoint_id, e)
            return False

    async def close_endpoint(self, endpoint_id: str, code: int) -> None:
        conn = self._by_endpoint.pop(endpoint_id, None)
        if not conn:
            return
        try:
            await conn.ws.close(code=code)
        except Exception as e:
            logger.debug("close_endpoint %s: %s", endpoint_id, e)

    async def deliver(self, dispatch: Dispatch) -> None:
        for envelope in dispatch.envelopes:
            await self.send_to_endpoint(envelope.endpoint_id, envelope.payload)
        for endpoint_id in dispatch.closing:
            await self.close_endpoint(endpoint_id, dispatch.close_code)


manager = WSManager()
