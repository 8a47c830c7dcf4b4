"""
Custom exceptions for the application.

Every error raised by the chat core is resolved to a single failure event
for the requesting connection. ``code`` is the machine-readable kind sent
along with the human-readable message.
"""

from enum import Enum
from typing import Any, Optional


class AuthFailure(str, Enum):
    """Why an identity or access check failed."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ALREADY_AUTHENTICATED = "ALREADY_AUTHENTICATED"
    NOT_A_MEMBER = "NOT_A_MEMBER"


class NotFoundKind(str, Enum):
    """Which resource could not be found."""

    USER = "USER"
    PARTNER = "PARTNER"
    CHAT = "CHAT"


class ConflictKind(str, Enum):
    """Which write conflicted."""

    ALREADY_MEMBER = "ALREADY_MEMBER"
    CREATE_FAILED = "CREATE_FAILED"


class ParleyError(Exception):
    """Base exception for parley."""

    code = "ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class AuthError(ParleyError):
    """Not authenticated, bad credentials, or not a member of the chat."""

    def __init__(self, reason: AuthFailure, message: str, details: Optional[Any] = None):
        super().__init__(message, details)
        self.reason = reason
        self.code = reason.value


class NotFoundError(ParleyError):
    """Resource not found."""

    def __init__(self, kind: NotFoundKind, message: str, details: Optional[Any] = None):
        super().__init__(message, details)
        self.kind = kind
        self.code = kind.value


class ValidationError(ParleyError):
    """Oversized, empty or malformed input."""

    code = "VALIDATION"


class ConflictError(ParleyError):
    """Duplicate membership or a failed create."""

    def __init__(self, kind: ConflictKind, message: str, details: Optional[Any] = None):
        super().__init__(message, details)
        self.kind = kind
        self.code = kind.value


class StorageError(ParleyError):
    """Transaction fault in the data store."""

    code = "STORAGE"
