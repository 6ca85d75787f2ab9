class RelayError(Exception):
    """Base class for errors that are reported back to the sending client."""

    message = "Request failed."

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class AlreadyInRoom(RelayError):
    message = "You are already in a room."


class RoomNotFound(RelayError):
    message = "Room not found."


class NotHost(RelayError):
    message = "Only the host can load a video."


class RegistryFull(RelayError):
    message = "No free room codes, try again later."


class MalformedMessage(RelayError):
    """Inbound payload could not be decoded or validated. Never sent to clients."""

    message = "Malformed message."
