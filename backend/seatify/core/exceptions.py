"""
Domain error taxonomy.

Services raise these instead of HTTPException so the same rules apply to the
HTTP routes, the auto check-in page and the scheduler. The API layer renders
every SeatifyError as {"success": false, "code": ..., "message": ...}.
"""

from typing import Optional

from fastapi import status


class SeatifyError(Exception):
    code = "ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        return {"success": False, "code": self.code, "message": self.message}


class NotFoundError(SeatifyError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SeatifyError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(SeatifyError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(SeatifyError):
    code = "INVALID_STATE"
    status_code = status.HTTP_409_CONFLICT


class MalformedTokenError(SeatifyError):
    code = "MALFORMED_TOKEN"
    status_code = status.HTTP_400_BAD_REQUEST
