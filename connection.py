import asyncio
import json
import uuid
from typing import Optional

from fastapi import WebSocket

from constants import ANONYMOUS_NAME, OUTBOX_MAXSIZE
from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """One client's duplex message channel as seen by the relay.

    Subclasses implement `send`. Connections hash by identity, so they can be
    used directly as keys in the registry's membership index.
    """

    def __init__(self, connection_id: Optional[str] = None):
        self.connection_id = connection_id or str(uuid.uuid4())
        self.display_name = ANONYMOUS_NAME
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self):
        self._open = False

    def send(self, payload: dict):
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.connection_id[:8]} ({self.display_name})>"


class WebSocketConnection(Connection):
    """Connection backed by a FastAPI WebSocket.

    `send` only enqueues; `pump` runs as a task for the lifetime of the socket
    and writes queued frames in order.
    """

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None, maxsize: int = OUTBOX_MAXSIZE):
        super().__init__(connection_id)
        self.websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    @property
    def pending(self) -> int:
        return self._outbox.qsize()

    def send(self, payload: dict):
        if not self.is_open:
            return
        try:
            self._outbox.put_nowait(json.dumps(payload))
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.connection_id}, dropping {payload.get('type')!r} frame")

    async def pump(self):
        while True:
            text = await self._outbox.get()
            try:
                await self.websocket.send_text(text)
            except Exception as e:
                # Closed or broken socket; the receive side reports the departure
                logger.warning(f"Error sending to connection {self.connection_id}: {e}")
                self.close()
                return
