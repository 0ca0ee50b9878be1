"""Message service exception hierarchy."""

from typing import Optional


class MessageServiceError(Exception):
    """Base exception for all message service errors."""


class ValidationError(MessageServiceError):
    """Message text rejected before any store mutation."""

    def __init__(self, message: str, field: str = "text"):
        self.field = field
        super().__init__(message)


class StoreUnavailable(MessageServiceError):
    """Row store could not be reached or did not answer in time."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Row store unavailable during {operation}: {reason}")


class CacheUnavailable(MessageServiceError):
    """Cache backend could not be reached or did not answer in time."""

    def __init__(self, operation: str, key: str, reason: str):
        self.operation = operation
        self.key = key
        self.reason = reason
        super().__init__(f"Cache unavailable during {operation} of '{key}': {reason}")


class InvalidationFailure(MessageServiceError):
    """Cache delete failed after a durable write.

    Reported, never raised to callers: the entry corrects itself once its TTL lapses.
    """

    def __init__(self, key: str, message_id: Optional[int], cause: BaseException):
        self.key = key
        self.message_id = message_id
        self.cause = cause
        super().__init__(f"Failed to invalidate '{key}' after message {message_id}: {cause}")
