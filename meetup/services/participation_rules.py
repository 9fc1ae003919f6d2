"""Participant status transitions.

Every status change a participant record can undergo is listed in
``TRANSITIONS``; managers resolve an event against the record's current status
here and never test statuses ad hoc. A current status of ``None`` means no
record exists yet for the (meeting, user) pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from meetup.errors import (
    AlreadyJoinedError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    MeetupError,
)
from meetup.models.notification import NotificationPriority, NotificationType
from meetup.models.participant import ParticipantStatus


class ParticipationEvent(str, Enum):
    APPLY = "apply"
    APPLY_AUTO = "apply_auto"
    HOST_APPROVE = "host_approve"
    HOST_REJECT = "host_reject"
    HOST_KICK = "host_kick"
    SELF_CANCEL = "self_cancel"
    SELF_WITHDRAW = "self_withdraw"
    MEETING_CANCELLED = "meeting_cancelled"


class Recipient(str, Enum):
    HOST = "host"
    PARTICIPANT = "participant"


@dataclass(frozen=True)
class NotificationEffect:
    type: NotificationType
    recipient: Recipient
    priority: NotificationPriority = NotificationPriority.NORMAL


@dataclass(frozen=True)
class Transition:
    target: ParticipantStatus
    # +1 takes a capacity slot, -1 gives one back.
    slot_delta: int = 0
    notify: Optional[NotificationEffect] = None

    @property
    def acquires_slot(self) -> bool:
        return self.slot_delta > 0

    @property
    def releases_slot(self) -> bool:
        return self.slot_delta < 0


_NOTIFY_HOST_NEW_APPLICATION = NotificationEffect(
    NotificationType.NEW_APPLICATION, Recipient.HOST
)
_NOTIFY_AUTO_APPROVED = NotificationEffect(
    NotificationType.PARTICIPANT_APPROVED, Recipient.PARTICIPANT
)

_TO_PENDING = Transition(ParticipantStatus.PENDING, notify=_NOTIFY_HOST_NEW_APPLICATION)
_TO_APPROVED_AUTO = Transition(
    ParticipantStatus.APPROVED, slot_delta=1, notify=_NOTIFY_AUTO_APPROVED
)

TRANSITIONS: Dict[Tuple[Optional[ParticipantStatus], ParticipationEvent], Transition] = {
    (None, ParticipationEvent.APPLY): _TO_PENDING,
    (None, ParticipationEvent.APPLY_AUTO): _TO_APPROVED_AUTO,
    (ParticipantStatus.REJECTED, ParticipationEvent.APPLY): _TO_PENDING,
    (ParticipantStatus.REJECTED, ParticipationEvent.APPLY_AUTO): _TO_APPROVED_AUTO,
    (ParticipantStatus.CANCELLED, ParticipationEvent.APPLY): _TO_PENDING,
    (ParticipantStatus.CANCELLED, ParticipationEvent.APPLY_AUTO): _TO_APPROVED_AUTO,
    (ParticipantStatus.PENDING, ParticipationEvent.HOST_APPROVE): Transition(
        ParticipantStatus.APPROVED,
        slot_delta=1,
        notify=NotificationEffect(
            NotificationType.PARTICIPANT_APPROVED,
            Recipient.PARTICIPANT,
            NotificationPriority.HIGH,
        ),
    ),
    (ParticipantStatus.PENDING, ParticipationEvent.HOST_REJECT): Transition(
        ParticipantStatus.REJECTED,
        notify=NotificationEffect(
            NotificationType.PARTICIPANT_REJECTED,
            Recipient.PARTICIPANT,
            NotificationPriority.HIGH,
        ),
    ),
    (ParticipantStatus.PENDING, ParticipationEvent.SELF_CANCEL): Transition(
        ParticipantStatus.CANCELLED
    ),
    (ParticipantStatus.APPROVED, ParticipationEvent.HOST_KICK): Transition(
        ParticipantStatus.KICKED,
        slot_delta=-1,
        notify=NotificationEffect(
            NotificationType.PARTICIPANT_KICKED,
            Recipient.PARTICIPANT,
            NotificationPriority.HIGH,
        ),
    ),
    (ParticipantStatus.APPROVED, ParticipationEvent.SELF_WITHDRAW): Transition(
        ParticipantStatus.CANCELLED,
        slot_delta=-1,
        notify=NotificationEffect(NotificationType.MEMBER_WITHDRAWN, Recipient.HOST),
    ),
    (ParticipantStatus.PENDING, ParticipationEvent.MEETING_CANCELLED): Transition(
        ParticipantStatus.CANCELLED
    ),
    (ParticipantStatus.APPROVED, ParticipationEvent.MEETING_CANCELLED): Transition(
        ParticipantStatus.CANCELLED,
        slot_delta=-1,
        notify=NotificationEffect(
            NotificationType.MEETING_CANCELLED,
            Recipient.PARTICIPANT,
            NotificationPriority.CRITICAL,
        ),
    ),
}

# Why an application is refused, keyed by the record's current status.
APPLY_REFUSALS: Dict[ParticipantStatus, Tuple[Type[MeetupError], str]] = {
    ParticipantStatus.PENDING: (
        DuplicateApplicationError,
        "An application for this meeting is already pending",
    ),
    ParticipantStatus.APPROVED: (
        AlreadyJoinedError,
        "You are already a participant of this meeting",
    ),
    ParticipantStatus.KICKED: (
        ForbiddenError,
        "You were removed from this meeting and cannot apply again",
    ),
    ParticipantStatus.ATTENDED: (
        InvalidStateError,
        "You have already attended this meeting",
    ),
}

HOST_EVENTS: Dict[ParticipantStatus, ParticipationEvent] = {
    ParticipantStatus.APPROVED: ParticipationEvent.HOST_APPROVE,
    ParticipantStatus.REJECTED: ParticipationEvent.HOST_REJECT,
    ParticipantStatus.KICKED: ParticipationEvent.HOST_KICK,
}

_APPLY_EVENTS = {ParticipationEvent.APPLY, ParticipationEvent.APPLY_AUTO}


def _as_status(value) -> Optional[ParticipantStatus]:
    if value is None or isinstance(value, ParticipantStatus):
        return value
    return ParticipantStatus(value)


def resolve(current, event: ParticipationEvent) -> Transition:
    """Return the transition for ``event`` from ``current`` or raise the typed refusal."""
    status = _as_status(current)
    transition = TRANSITIONS.get((status, event))
    if transition is not None:
        return transition

    if event in _APPLY_EVENTS and status in APPLY_REFUSALS:
        error_cls, detail = APPLY_REFUSALS[status]
        raise error_cls(detail)

    source = status.value if status else "NONE"
    raise InvalidTransitionError(
        f"Cannot {event.value.replace('_', ' ')} a participant in status {source}"
    )


def host_event_for(target) -> ParticipationEvent:
    """Map a host-requested target status onto its event; other targets are not host moves."""
    status = _as_status(target)
    event = HOST_EVENTS.get(status)
    if event is None:
        raise InvalidTransitionError(
            f"Hosts cannot move a participant to {status.value if status else 'NONE'}"
        )
    return event
