"""
Typed outcomes raised by the service layer.

Services raise these; the handler registered in main.py turns them
into an HTTP status code and an {"error": message} body.
"""
from fastapi import status


class ServiceError(Exception):
    """Base class for every rejection reported to a caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    """No token, unknown token, or session store unavailable."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class InvalidInput(ServiceError):
    """Client input error. Never retried."""

    status_code = status.HTTP_400_BAD_REQUEST


class MissingName(InvalidInput):
    message = "Missing name"


class InvalidType(InvalidInput):
    message = "Missing type"


class MissingData(InvalidInput):
    message = "Missing data"


class InvalidData(InvalidInput):
    message = "Invalid data"


class HierarchyError(InvalidInput):
    """The claimed parent cannot hold children."""


class ParentNotFound(HierarchyError):
    message = "Parent not found"


class ParentNotFolder(HierarchyError):
    message = "Parent is not a folder"


class NotFound(ServiceError):
    """
    Record absent or owned by someone else.
    The two cases are reported identically.
    """

    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class FolderHasNoContent(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "A folder doesn't have content"


class StorageFault(ServiceError):
    """The byte store failed to persist content."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Unable to store file content"
