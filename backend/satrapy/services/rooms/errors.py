"""Request-level failures raised by the room domain.

They never leave the RoomService facade: it converts them into a
notification for the caller's connection.
"""


class GameError(Exception):
    code = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'text': self.message, 'code': self.code}


class NotFound(GameError):
    code = 'not_found'


class Forbidden(GameError):
    code = 'forbidden'


class CapacityExceeded(GameError):
    code = 'capacity_exceeded'


class InsufficientResource(GameError):
    code = 'insufficient_resource'


class PreconditionFailed(GameError):
    code = 'precondition_failed'


class InvalidRequest(GameError):
    code = 'invalid_request'


class RoomCodeExhausted(PreconditionFailed):
    code = 'room_code_exhausted'


def require_id(value, what='player id'):
    """Client-supplied ids must be non-empty strings before they touch any lookup."""
    if not isinstance(value, str) or not value:
        raise InvalidRequest(f'{what} must be a non-empty string')
    return value
