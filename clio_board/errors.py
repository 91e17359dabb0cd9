"""
Error taxonomy for board operations.

NotFound and InvalidArgument are deterministic and carry enough detail for the
caller to correct the request. StorageFailure means the whole unit of work was
rolled back; nothing it touched is visible.
"""
import logging
from functools import wraps


class BoardError(Exception):
    """Base class for all board errors."""
    pass


class NotFound(BoardError):
    """Raised when an id does not resolve to a live (or, for restore, archived) row."""
    pass


class InvalidArgument(BoardError):
    """Raised when a column, position, field or value is malformed."""
    pass


class Conflict(BoardError):
    """Raised when the entity exists but is in the wrong state for the operation."""
    pass


class StorageFailure(BoardError):
    """Raised when the store aborts a transaction or the connection is lost."""
    pass


def log_failures(operation: str, log: logging.Logger):
    """Decorator: log a failed board operation, then let the error propagate."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except StorageFailure as e:
                log.error(f"{operation} failed, rolled back: {e}")
                raise
            except BoardError as e:
                log.warning(f"{operation} rejected: {e}")
                raise
        return wrapper
    return decorator
