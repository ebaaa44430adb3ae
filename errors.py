class ChatError(Exception):
    """Base class for failures reported back to the originating connection.

    ``message`` is safe to show to the client.
    """

    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChatError):
    default_message = "Invalid request"


class ParseError(ChatError):
    default_message = "Invalid message format"


class DuplicateRoom(ChatError):
    default_message = "Room already exists"


class DuplicateUser(ChatError):
    default_message = "Username already exists"


class TransportError(ChatError):
    default_message = "Connection lost"
