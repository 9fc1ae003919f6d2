import pytest

from meetup.errors import (
    AlreadyJoinedError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
)
from meetup.models.notification import NotificationPriority, NotificationType
from meetup.models.participant import ParticipantStatus
from meetup.services.participation_rules import (
    TRANSITIONS,
    ParticipationEvent,
    Recipient,
    host_event_for,
    resolve,
)


def test_first_application_waits_for_host():
    transition = resolve(None, ParticipationEvent.APPLY)
    assert transition.target == ParticipantStatus.PENDING
    assert transition.slot_delta == 0
    assert transition.notify.type == NotificationType.NEW_APPLICATION
    assert transition.notify.recipient == Recipient.HOST


def test_auto_approved_application_takes_a_slot():
    transition = resolve(None, ParticipationEvent.APPLY_AUTO)
    assert transition.target == ParticipantStatus.APPROVED
    assert transition.acquires_slot
    assert transition.notify.recipient == Recipient.PARTICIPANT


@pytest.mark.parametrize("previous", ["REJECTED", "CANCELLED"])
def test_reapplication_after_rejection_or_cancellation(previous):
    assert resolve(previous, ParticipationEvent.APPLY).target == ParticipantStatus.PENDING
    assert (
        resolve(previous, ParticipationEvent.APPLY_AUTO).target
        == ParticipantStatus.APPROVED
    )


@pytest.mark.parametrize(
    "current, error_cls",
    [
        (ParticipantStatus.PENDING, DuplicateApplicationError),
        (ParticipantStatus.APPROVED, AlreadyJoinedError),
        (ParticipantStatus.KICKED, ForbiddenError),
        (ParticipantStatus.ATTENDED, InvalidStateError),
    ],
)
def test_application_refusals(current, error_cls):
    for event in (ParticipationEvent.APPLY, ParticipationEvent.APPLY_AUTO):
        with pytest.raises(error_cls):
            resolve(current, event)


def test_host_decisions_notify_participant_with_high_priority():
    for event in (ParticipationEvent.HOST_APPROVE, ParticipationEvent.HOST_REJECT):
        effect = resolve(ParticipantStatus.PENDING, event).notify
        assert effect.recipient == Recipient.PARTICIPANT
        assert effect.priority == NotificationPriority.HIGH

    kick = resolve(ParticipantStatus.APPROVED, ParticipationEvent.HOST_KICK)
    assert kick.target == ParticipantStatus.KICKED
    assert kick.releases_slot
    assert kick.notify.priority == NotificationPriority.HIGH


def test_kicked_is_terminal():
    assert not [key for key in TRANSITIONS if key[0] == ParticipantStatus.KICKED]
    for event in ParticipationEvent:
        with pytest.raises((InvalidTransitionError, ForbiddenError)):
            resolve(ParticipantStatus.KICKED, event)


def test_withdraw_only_from_approved():
    transition = resolve(ParticipantStatus.APPROVED, ParticipationEvent.SELF_WITHDRAW)
    assert transition.target == ParticipantStatus.CANCELLED
    assert transition.releases_slot
    assert transition.notify.type == NotificationType.MEMBER_WITHDRAWN

    with pytest.raises(InvalidTransitionError):
        resolve(ParticipantStatus.PENDING, ParticipationEvent.SELF_WITHDRAW)


def test_cancel_application_only_from_pending():
    transition = resolve(ParticipantStatus.PENDING, ParticipationEvent.SELF_CANCEL)
    assert transition.target == ParticipantStatus.CANCELLED
    assert transition.notify is None

    for current in (ParticipantStatus.APPROVED, ParticipantStatus.CANCELLED):
        with pytest.raises(InvalidTransitionError):
            resolve(current, ParticipationEvent.SELF_CANCEL)


def test_illegal_host_move_is_an_invalid_state():
    with pytest.raises(InvalidTransitionError) as excinfo:
        resolve(ParticipantStatus.REJECTED, ParticipationEvent.HOST_APPROVE)
    assert isinstance(excinfo.value, InvalidStateError)
    assert excinfo.value.code == "INVALID_TRANSITION"


def test_meeting_cancellation_notifies_only_approved_members():
    approved = resolve(ParticipantStatus.APPROVED, ParticipationEvent.MEETING_CANCELLED)
    assert approved.notify.priority == NotificationPriority.CRITICAL
    assert approved.releases_slot

    pending = resolve(ParticipantStatus.PENDING, ParticipationEvent.MEETING_CANCELLED)
    assert pending.target == ParticipantStatus.CANCELLED
    assert pending.notify is None


def test_host_event_for_rejects_non_host_targets():
    assert host_event_for("APPROVED") == ParticipationEvent.HOST_APPROVE
    assert host_event_for(ParticipantStatus.KICKED) == ParticipationEvent.HOST_KICK
    with pytest.raises(InvalidTransitionError):
        host_event_for(ParticipantStatus.CANCELLED)
