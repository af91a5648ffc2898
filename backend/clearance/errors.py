"""Error taxonomy for the clearance workflow.

Every error is an ``HTTPException`` so services can raise them directly and
FastAPI renders ``{"detail": ...}`` with the right status code. Each carries
a message fit to show the end user.
"""
from fastapi import HTTPException, status


class ClearanceError(HTTPException):
    """Base class — subclasses pin the HTTP status code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, headers: dict[str, str] | None = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class UnauthorizedError(ClearanceError):
    """No credential, or an invalid/expired one."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(ClearanceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ClearanceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidArgumentError(ClearanceError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(ClearanceError):
    """A state-machine precondition was violated (duplicates, already decided, finalized)."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(ClearanceError):
    """Operation is not valid for the aggregate's current state."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
