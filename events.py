import asyncio
from dataclasses import dataclass
from typing import Optional, Union

from connection import Connection
from logging_config import get_logger
from registry import RoomRegistry
from relay import DisconnectHandler, MessageRouter

logger = get_logger(__name__)


@dataclass(frozen=True)
class Inbound:
    connection: Connection
    raw: str


@dataclass(frozen=True)
class Closed:
    connection: Connection


Event = Union[Inbound, Closed]


class RelayLoop:
    """Single consumer of connection events.

    Every room mutation and fan-out happens inside `process`, called from one
    task for one event at a time, so no two events ever touch the registry
    concurrently.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry
        self.router = MessageRouter(registry)
        self.disconnect_handler = DisconnectHandler(registry)
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self.run())
        logger.info("Relay loop started")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Relay loop stopped")

    def submit(self, event: Event):
        if self._queue is None:
            raise RuntimeError("Relay loop is not running")
        self._queue.put_nowait(event)

    async def drain(self):
        """Wait until every submitted event has been processed."""
        if self._queue is not None:
            await self._queue.join()

    def process(self, event: Event):
        if isinstance(event, Inbound):
            self.router.handle(event.connection, event.raw)
        elif isinstance(event, Closed):
            self.disconnect_handler.handle(event.connection)
        else:
            logger.warning(f"Unknown relay event: {event!r}")

    async def run(self):
        while True:
            event = await self._queue.get()
            try:
                self.process(event)
            except Exception as e:
                logger.error(f"Error processing {type(event).__name__} for {event.connection!r}: {e}", exc_info=True)
            finally:
                self._queue.task_done()
