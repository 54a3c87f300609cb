"""
Domain errors raised by the paste store and lifecycle engine.
The HTTP layer maps them to status codes in main.py.
"""
from typing import Optional


class PasteError(Exception):
    """Base class for every paste lifecycle error."""

    status_code = 500
    detail = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.detail)
        self.message = message or self.detail


class PasteNotFoundError(PasteError):
    """Token absent, expired or burned. Deliberately indistinguishable to clients."""

    status_code = 404
    detail = "Paste not found, expired, or view limit exceeded"

    def __init__(self, token: str, message: Optional[str] = None):
        super().__init__(message)
        self.token = token


class PasteGoneError(PasteNotFoundError):
    """Token existed but its view budget is exhausted."""


class EmptyContentError(PasteError):
    status_code = 400
    detail = "content is required and must be non-empty"


class InvalidChoiceError(PasteError):
    """A requested expiry, burn or token-length option is not offered."""

    status_code = 400

    def __init__(self, field: str, value, allowed):
        super().__init__(f"{field} must be one of {list(allowed)}, got {value!r}")
        self.field = field
        self.value = value
        self.allowed = allowed


class ContentTooLargeError(PasteError):
    status_code = 413

    def __init__(self, length: int, limit: int):
        super().__init__(f"content is {length} characters, the limit is {limit}")
        self.length = length
        self.limit = limit


class StorageFullError(PasteError):
    """Configured capacity reached. New writes are rejected, nothing is evicted."""

    status_code = 507
    detail = "Storage is full, try again after some pastes expire"


class ConflictError(PasteError):
    """Token already taken. Recovered by the token retry loop, never surfaced."""

    status_code = 409

    def __init__(self, token: str):
        super().__init__(f"token {token!r} already exists")
        self.token = token


class TokenSpaceExhaustedError(PasteError):
    """Every retry collided: the token alphabet/length is too small for the load."""

    detail = "Could not allocate a unique token"


class StoreUnavailableError(PasteError):
    status_code = 503
    detail = "Paste storage is unavailable"
