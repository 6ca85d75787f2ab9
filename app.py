from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from typing import Optional
from routers.rooms import rooms_router
from connection import WebSocketConnection
from events import Closed, Inbound, RelayLoop
from registry import RoomRegistry
import asyncio
from constants import LOG_FILE, LOG_LEVEL, STATIC_DIR
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.relay_loop.start()
    try:
        yield
    finally:
        await app.state.relay_loop.stop()


async def websocket_endpoint(websocket: WebSocket):
    """Duplex channel for one client.

    Frames are handed to the relay loop as events; replies come back through
    the connection's outbox, written by its pump task.
    """
    relay_loop: RelayLoop = websocket.app.state.relay_loop

    await websocket.accept()
    connection = WebSocketConnection(websocket)
    logger.info(f"WebSocket connection {connection.connection_id} accepted")
    writer = asyncio.create_task(connection.pump())

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection.connection_id}")
                break

            text = message.get("text")
            if text is None and message.get("bytes") is not None:
                try:
                    text = message["bytes"].decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning(f"Dropping undecodable binary frame from connection {connection.connection_id}")
                    continue
            if text is None:
                continue

            relay_loop.submit(Inbound(connection, text))
    except Exception as e:
        logger.error(f"Error receiving message from connection {connection.connection_id}: {e}", exc_info=True)
    finally:
        connection.close()
        relay_loop.submit(Closed(connection))
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        logger.info(f"WebSocket connection {connection.connection_id} closed")


def create_app(registry: Optional[RoomRegistry] = None) -> FastAPI:
    app = FastAPI(title="SyncStream", lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if registry is None:
        registry = RoomRegistry()
    app.state.registry = registry
    app.state.relay_loop = RelayLoop(app.state.registry)

    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    # Mounted last so API and WebSocket routes take precedence over "/"
    if STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")
    else:
        logger.warning(f"Static directory {STATIC_DIR} not found, client UI will not be served")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
