from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from typing import Annotated, Literal, Optional, Union

from errors import MalformedMessage


# Inbound messages (client -> server)

class InboundMessage(BaseModel):
    """Base for client messages. `sender` is read off the raw payload by the
    router before validation, so it is not modelled here."""


class RoomMessage(InboundMessage):
    """Inbound message that names a room by code."""

    code: Optional[str] = None

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, value):
        # Clients may send the room code as a JSON number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class CreateMessage(InboundMessage):
    type: Literal["create"]


class JoinMessage(RoomMessage):
    type: Literal["join"]


class LoadVideoMessage(RoomMessage):
    type: Literal["load_video"]
    url: str


class SyncMessage(RoomMessage):
    type: Literal["sync"]
    action: str
    time: float = Field(allow_inf_nan=False)


class ChatMessage(RoomMessage):
    type: Literal["chat"]
    text: str


Inbound = Annotated[
    Union[CreateMessage, JoinMessage, LoadVideoMessage, SyncMessage, ChatMessage],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(Inbound)


def parse_inbound(data: dict):
    """Validate a decoded JSON object into one of the inbound message models.

    Raises MalformedMessage for unknown types and missing or mistyped fields.
    """
    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid {data.get('type', 'untyped')!r} message: {e.error_count()} error(s)") from e


# Outbound messages (server -> client)

class OutboundMessage(BaseModel):

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class RoomCreated(OutboundMessage):
    type: Literal["room_created"] = "room_created"
    code: str


class ErrorReply(OutboundMessage):
    type: Literal["error"] = "error"
    message: str


class LastSync(BaseModel):
    action: str
    time: float = Field(allow_inf_nan=False)


class SyncInitialData(BaseModel):
    videoUrl: str
    lastSync: Optional[LastSync] = None


class SyncInitial(OutboundMessage):
    type: Literal["sync_initial"] = "sync_initial"
    code: str
    data: SyncInitialData

    def to_payload(self) -> dict:
        # lastSync is sent as an explicit null
        return self.model_dump()


class ChatBroadcast(OutboundMessage):
    type: Literal["chat"] = "chat"
    sender: str
    text: str
    isSystem: Optional[bool] = None


class LoadVideoBroadcast(OutboundMessage):
    type: Literal["load_video"] = "load_video"
    sender: str
    url: str


class SyncBroadcast(OutboundMessage):
    type: Literal["sync"] = "sync"
    action: str
    time: float = Field(allow_inf_nan=False)
