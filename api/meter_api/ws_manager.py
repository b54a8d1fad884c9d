
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WSManager:
    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()

    @property
    def count(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._connections.add(ws)
        logger.info("viewer connected (%d open)", self.count)

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self._connections:
            self._connections.discard(ws)
            logger.info("viewer disconnected (%d open)", self.count)

    async def broadcast_json(self, payload) -> None:
        # best-effort broadcast; a viewer that fails to receive is dropped
        for ws in list(self._connections):
            try:
                await ws.send_json(payload)
            except Exception:
                logger.debug("send to viewer failed, dropping it", exc_info=True)
                self.disconnect(ws)
