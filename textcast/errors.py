"""Errors raised by the media server client and the queue controllers."""


class TextCastError(Exception):
    """Base exception for TextCast operations."""

    pass


class Unauthorized(TextCastError):
    """Raised when the credential is missing or rejected by the server."""

    def __init__(self, message: str = None):
        super().__init__(message or 'Unauthorized - please log in again')


class NetworkError(TextCastError):
    """Raised when the request never produced an HTTP response."""

    pass


class InvalidResponse(TextCastError):
    """Raised when the server answered with a body we cannot decode."""

    pass


class ServerError(TextCastError):
    """Raised for non-2xx responses."""

    def __init__(self, status_code: int, message: str = ''):
        self.status_code = status_code
        self.message = message
        super().__init__(f'Server error ({status_code}): {message}')


class Cancelled(TextCastError):
    """Raised when a request was superseded by a newer one."""

    pass


class MalformedIdentifier(TextCastError):
    """Raised when a composite id lacks the container/child separator."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f'Invalid item ID format: {item_id}')
