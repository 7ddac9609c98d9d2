"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Import results copy .message VERBATIM into errors[] - the UI shows it to
    # the user as-is, so keep these messages specific and actionable. Don't raise this base
    # class directly, always use a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity (root folder, album, download, ...) is not found."""

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None) -> None:
        super().__init__(message or f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input fails validation (e.g. unknown naming-template variables)."""

    pass


class PathInaccessibleException(DomainException):
    """Path does not exist or we lack permission to read it.

    Yo, the hint is the actionable part! For download imports it tells the user to set up
    Remote Path Mapping, because 9 times out of 10 the download client runs in Docker and
    reports a path that only exists inside its container.
    """

    def __init__(self, path: str, hint: str | None = None) -> None:
        message = f"Path not accessible: {path}."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.path = path
        self.hint = hint


class PathTimeoutException(DomainException):
    """Path probe exceeded its time bound - usually unmounted/hung network storage.

    Deliberately NOT a subclass of PathInaccessibleException: "not found" and "not
    responding" need different fixes, and callers must be able to tell them apart.
    """

    def __init__(self, path: str, timeout: float) -> None:
        super().__init__(
            f"Path not responding: {path}. Network storage may not be mounted "
            f"or is unresponsive (no answer within {timeout:g}s)."
        )
        self.path = path
        self.timeout = timeout


class NoMatchFoundException(DomainException):
    """Content could not be matched to any library entity."""

    pass


class NoFilesFoundException(DomainException):
    """A download/path contained no files of the expected media type."""

    pass


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "NoFilesFoundException",
    "NoMatchFoundException",
    "PathInaccessibleException",
    "PathTimeoutException",
    "ValidationException",
]
