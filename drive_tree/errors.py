"""
Error taxonomy for namespace operations.

Every failure that crosses the client boundary is one of these. Load errors are
stored on the tree node that failed and re-raised to whoever awaited the load;
mutation errors are raised once to the caller and never retried.
"""

from typing import Optional


class NamespaceError(Exception):
    """Base class for all namespace failures."""

    def __init__(self, message: str = "", path=None, status: Optional[int] = None):
        super().__init__(message or self.__class__.__name__)
        self.path = path
        self.status = status


class NotFound(NamespaceError):
    """The path (or the parent of a new entry) does not exist."""


class AlreadyExists(NamespaceError):
    """An entry with the requested name already exists."""


class PermissionDenied(NamespaceError):
    """The server refused the operation for this caller."""


class InvalidName(NamespaceError):
    """Empty, reserved or malformed entry name."""


class TransportError(NamespaceError):
    """Connection refused, reset or timed out."""


class Conflict(NamespaceError):
    """A concurrent mutation raced the cached view of the namespace."""


class StorageLimitExceeded(NamespaceError):
    """Upload would exceed the server's storage quota."""


class ServerError(NamespaceError):
    """Unexpected server-side failure (5xx or unmapped status)."""


_STATUS_ERRORS = {
    400: InvalidName,
    401: PermissionDenied,
    403: PermissionDenied,
    404: NotFound,
    409: AlreadyExists,
    412: Conflict,
    413: StorageLimitExceeded,
    422: InvalidName,
}


def error_for_status(status: int, path=None, detail: str = "") -> NamespaceError:
    """Translate an HTTP error status into the matching NamespaceError."""
    error_cls = _STATUS_ERRORS.get(status, ServerError)
    where = f" {path}" if path is not None else ""
    message = f"HTTP {status}{where}"
    if detail:
        message = f"{message}: {detail}"
    return error_cls(message, path=path, status=status)
