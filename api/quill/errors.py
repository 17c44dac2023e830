"""Error taxonomy shared by services and routers.

Services raise these; ``quill.main`` renders them as RFC 7807 problem bodies.
"""

from __future__ import annotations

from fastapi import status


class QuillError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Internal Server Error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.title)
        self.detail = detail or self.title


class Conflict(QuillError):
    """A unique key is already taken."""

    status_code = status.HTTP_409_CONFLICT
    title = "Conflict"


class NotFound(QuillError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    title = "Not Found"


class Unauthorized(QuillError):
    """Bad credential or identity assertion."""

    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Unauthorized"


class Forbidden(Unauthorized):
    """Authenticated, but not the owner of the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    title = "Forbidden"


class BadRequest(QuillError):
    """Invalid input combination."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Bad Request"


class Internal(QuillError):
    """Unexpected store or collaborator failure."""


class ServiceUnavailable(QuillError):
    """An optional backing service is not reachable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    title = "Service Unavailable"
