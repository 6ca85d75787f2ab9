import json

from connection import Connection
from constants import SYSTEM_SENDER
from errors import MalformedMessage, NotHost, RelayError
from logging_config import get_logger
from registry import RoomRegistry
from schemas.messages import (
    ChatBroadcast,
    ChatMessage,
    CreateMessage,
    ErrorReply,
    JoinMessage,
    LastSync,
    LoadVideoBroadcast,
    LoadVideoMessage,
    RoomCreated,
    SyncBroadcast,
    SyncInitial,
    SyncInitialData,
    SyncMessage,
    parse_inbound,
)

logger = get_logger(__name__)


def _reject_constant(token: str):
    # NaN and Infinity are accepted by json.loads but are not JSON
    raise MalformedMessage(f"Invalid JSON constant: {token}")


def system_notice(text: str) -> dict:
    return ChatBroadcast(sender=SYSTEM_SENDER, text=text, isSystem=True).to_payload()


class MessageRouter:
    """Interprets inbound frames for one connection and fans out the results.

    Every RelayError raised by a handler becomes a single `error` reply to the
    sender; nothing here ever broadcasts an error.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry
        self._handlers = {
            "create": self.handle_create,
            "join": self.handle_join,
            "load_video": self.handle_load_video,
            "sync": self.handle_sync,
            "chat": self.handle_chat,
        }

    def handle(self, connection: Connection, raw: str):
        try:
            message = self.parse(connection, raw)
        except MalformedMessage as e:
            logger.warning(f"Dropping message from connection {connection.connection_id}: {e}")
            return

        logger.debug(f"Routing {message.type!r} from connection {connection.connection_id}")
        try:
            self._handlers[message.type](connection, message)
        except RelayError as e:
            logger.info(f"Rejected {message.type!r} from connection {connection.connection_id}: {e.message}")
            connection.send(ErrorReply(message=e.message).to_payload())

    def parse(self, connection: Connection, raw: str):
        try:
            data = json.loads(raw, parse_constant=_reject_constant)
        except (json.JSONDecodeError, TypeError) as e:
            raise MalformedMessage(f"Invalid JSON: {raw!r}") from e
        if not isinstance(data, dict):
            raise MalformedMessage(f"Expected a JSON object, got {type(data).__name__}")

        # Any message may carry the sender's display name, whatever its type
        sender = data.get("sender")
        if isinstance(sender, str) and sender:
            connection.display_name = sender

        return parse_inbound(data)

    def handle_create(self, connection: Connection, message: CreateMessage):
        code = self.registry.create_room(connection)
        connection.send(RoomCreated(code=code).to_payload())

    def handle_join(self, connection: Connection, message: JoinMessage):
        room = self.registry.add_member(message.code, connection)

        if room.video is not None and room.video.video_url:
            last_sync = room.video.last_sync
            connection.send(SyncInitial(
                code=room.code,
                data=SyncInitialData(
                    videoUrl=room.video.video_url,
                    lastSync=LastSync(action=last_sync.action, time=last_sync.time) if last_sync else None,
                ),
            ).to_payload())

        self.registry.publish(room.code, system_notice(f"{connection.display_name} joined"))
        logger.info(f"{connection.display_name} joined room {room.code}")

    def handle_load_video(self, connection: Connection, message: LoadVideoMessage):
        if message.code is None:
            return

        room = self.registry.get_room(message.code)
        if room is None or not room.is_host(connection):
            raise NotHost()

        room.load_video(message.url)
        self.registry.publish(room.code, LoadVideoBroadcast(sender=connection.display_name, url=message.url).to_payload())
        logger.info(f"Host loaded a video in room {room.code}")

    def handle_sync(self, connection: Connection, message: SyncMessage):
        # Non-host and unknown-room syncs are dropped without a reply
        if message.code is None:
            return
        room = self.registry.get_room(message.code)
        if room is None or not room.is_host(connection):
            logger.debug(f"Ignoring sync from non-host connection {connection.connection_id} for room {message.code}")
            return

        room.record_sync(message.action, message.time)
        self.registry.publish(
            room.code,
            SyncBroadcast(action=message.action, time=message.time).to_payload(),
            exclude=connection,
        )

    def handle_chat(self, connection: Connection, message: ChatMessage):
        if message.code is None:
            return
        delivered = self.registry.publish(
            message.code,
            ChatBroadcast(sender=connection.display_name, text=message.text).to_payload(),
        )
        if not delivered:
            logger.debug(f"Chat for room {message.code} had no recipients")


class DisconnectHandler:
    """Removes a closed connection from its room, closing the room if it was the host."""

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    def handle(self, connection: Connection):
        connection.close()

        room = self.registry.find_room_by_connection(connection)
        if room is None:
            return

        name = connection.display_name
        self.registry.remove_member(connection)

        if room.is_host(connection):
            self.registry.publish(room.code, system_notice(f"Host ({name}) left — room closed"))
            self.registry.destroy_room(room.code)
            logger.info(f"Room {room.code} closed, host {name} left")
        else:
            self.registry.publish(room.code, system_notice(f"{name} left"))
            logger.info(f"{name} left room {room.code}")
