import json

import pytest

from connection import Connection
from registry import RoomRegistry
from relay import DisconnectHandler, MessageRouter


class FakeConnection(Connection):
    """In-memory connection that records every payload handed to it."""

    def __init__(self, name=None):
        super().__init__()
        self.sent = []
        if name:
            self.display_name = name

    def send(self, payload):
        self.sent.append(payload)

    def of_type(self, message_type):
        return [payload for payload in self.sent if payload["type"] == message_type]

    def chat_texts(self):
        return [payload["text"] for payload in self.of_type("chat")]


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def router(registry):
    return MessageRouter(registry)


@pytest.fixture
def disconnect(registry):
    return DisconnectHandler(registry)


@pytest.fixture
def connect():
    def _connect(name=None):
        return FakeConnection(name)
    return _connect


@pytest.fixture
def send(router):
    """Route a message dict (or a raw string) as if it arrived on `connection`."""
    def _send(connection, message):
        raw = message if isinstance(message, str) else json.dumps(message)
        router.handle(connection, raw)
    return _send


@pytest.fixture
def room_with_host(connect, send):
    """A room hosted by "A"; returns (code, host)."""
    host = connect()
    send(host, {"type": "create", "sender": "A"})
    code = host.sent[-1]["code"]
    host.sent.clear()
    return code, host
