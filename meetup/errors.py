"""Typed failures raised by the meeting, participation and attendance managers.

Each failure is an ``HTTPException`` so routers can let it propagate and the
application-level handler renders it; ``code`` gives clients a stable key that
does not depend on the human-readable detail.
"""

from typing import Optional

from fastapi import HTTPException, status


class MeetupError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "MEETUP_ERROR"
    default_detail = "Request could not be completed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFoundError(MeetupError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_detail = "Resource not found"


class ForbiddenError(MeetupError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_detail = "You do not have permission to perform this action"


class InvalidStateError(MeetupError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_STATE"
    default_detail = "The resource is not in a state that allows this action"


class InvalidTransitionError(InvalidStateError):
    code = "INVALID_TRANSITION"
    default_detail = "This participant status change is not allowed"


class CapacityExceededError(MeetupError):
    status_code = status.HTTP_409_CONFLICT
    code = "CAPACITY_EXCEEDED"
    default_detail = "The meeting is already at capacity"


class DuplicateApplicationError(MeetupError):
    status_code = status.HTTP_409_CONFLICT
    code = "DUPLICATE_APPLICATION"
    default_detail = "An application for this meeting is already pending"


class AlreadyJoinedError(MeetupError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_JOINED"
    default_detail = "You are already a participant of this meeting"


class InvalidInputError(MeetupError):
    status_code = 422
    code = "INVALID_INPUT"
    default_detail = "The request contains invalid values"
