import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from connection import Connection
from constants import ROOM_CODE_MAX, ROOM_CODE_MIN
from errors import AlreadyInRoom, RegistryFull, RoomNotFound
from logging_config import get_logger

logger = get_logger(__name__)

ROOM_CODE_SPACE = ROOM_CODE_MAX - ROOM_CODE_MIN + 1


def generate_room_code() -> str:
    return str(random.randint(ROOM_CODE_MIN, ROOM_CODE_MAX))


@dataclass
class SyncPoint:
    action: str
    time: float


@dataclass
class VideoState:
    video_url: str
    last_sync: Optional[SyncPoint] = None


@dataclass(eq=False)
class Room:
    code: str
    host: Connection
    members: List[Connection] = field(default_factory=list)
    video: Optional[VideoState] = None

    def is_host(self, connection: Connection) -> bool:
        return connection is self.host

    def has_member(self, connection: Connection) -> bool:
        return any(member is connection for member in self.members)

    def load_video(self, url: str):
        self.video = VideoState(video_url=url)

    def record_sync(self, action: str, time: float):
        if self.video is None:
            # Host sent playback state before loading anything; nothing to attach it to
            return
        self.video.last_sync = SyncPoint(action=action, time=time)


class RoomRegistry:
    """Live rooms keyed by code, plus a connection -> code index for O(1)
    lookups on disconnect. The index never owns a room."""

    def __init__(self, code_factory: Callable[[], str] = generate_room_code):
        self._rooms: Dict[str, Room] = {}
        self._memberships: Dict[Connection, str] = {}
        self._code_factory = code_factory

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: str) -> bool:
        return code in self._rooms

    def codes(self) -> List[str]:
        return list(self._rooms)

    def _generate_code(self) -> str:
        if len(self._rooms) >= ROOM_CODE_SPACE:
            raise RegistryFull()
        while True:
            code = self._code_factory()
            if code not in self._rooms:
                return code
            logger.debug(f"Room code {code} already taken, drawing again")

    def create_room(self, host: Connection) -> str:
        if host in self._memberships:
            logger.info(f"Connection {host.connection_id} tried to create a room while in room {self._memberships[host]}")
            raise AlreadyInRoom()

        code = self._generate_code()
        self._rooms[code] = Room(code=code, host=host, members=[host])
        self._memberships[host] = code
        logger.info(f"Room {code} created by {host.display_name} ({host.connection_id})")
        return code

    def get_room(self, code: Optional[str]) -> Optional[Room]:
        if code is None:
            return None
        return self._rooms.get(code)

    def find_room_by_connection(self, connection: Connection) -> Optional[Room]:
        code = self._memberships.get(connection)
        if code is None:
            return None
        return self._rooms.get(code)

    def add_member(self, code: Optional[str], connection: Connection) -> Room:
        """Add `connection` to room `code`. Joining the room it is already in is a no-op."""
        room = self.get_room(code)
        if room is None:
            logger.debug(f"Join failed: room {code} not found")
            raise RoomNotFound()

        current = self._memberships.get(connection)
        if current is not None and current != code:
            logger.info(f"Connection {connection.connection_id} tried to join room {code} while in room {current}")
            raise AlreadyInRoom()

        if not room.has_member(connection):
            room.members.append(connection)
            self._memberships[connection] = code
            logger.debug(f"Added {connection.connection_id} to room {code} (members: {len(room.members)})")
        else:
            logger.debug(f"Connection {connection.connection_id} already a member of room {code}")
        return room

    def remove_member(self, connection: Connection) -> Optional[Room]:
        code = self._memberships.pop(connection, None)
        if code is None:
            return None
        room = self._rooms.get(code)
        if room is None:
            return None
        room.members = [member for member in room.members if member is not connection]
        logger.debug(f"Removed {connection.connection_id} from room {code} (members: {len(room.members)})")
        return room

    def destroy_room(self, code: str):
        room = self._rooms.pop(code, None)
        if room is None:
            logger.debug(f"Destroy ignored: room {code} not found")
            return
        for member in room.members:
            if self._memberships.get(member) == code:
                del self._memberships[member]
        if self._memberships.get(room.host) == code:
            del self._memberships[room.host]
        logger.info(f"Room {code} destroyed ({len(room.members)} member(s) evicted)")

    def publish(self, code: str, message: dict, exclude: Optional[Connection] = None) -> int:
        """Deliver `message` to every open member of room `code`.

        Closed channels are skipped; the disconnect path cleans them up.
        Returns the number of members the message was handed to.
        """
        room = self._rooms.get(code)
        if room is None:
            return 0
        delivered = 0
        for member in list(room.members):
            if member is exclude or not member.is_open:
                continue
            member.send(message)
            delivered += 1
        return delivered
