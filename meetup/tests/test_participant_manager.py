from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from meetup.data.participant_manager import ParticipantManager
from meetup.errors import (
    AlreadyJoinedError,
    CapacityExceededError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
)
from meetup.models.activity import ActivityAttendance, AttendanceStatus, MeetingActivity
from meetup.models.notification import Notification
from meetup.models.participant import Participant, ParticipantStatus


@pytest.fixture
def participant_manager(db_session: Session) -> ParticipantManager:
    return ParticipantManager(db=db_session)


@pytest.fixture
def members(make_user):
    return [make_user(f"usr-member-{index}", f"Member {index}") for index in range(3)]


def _notifications(db: Session, user_id: str, notification_type: str):
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.type == notification_type)
        .all()
    )


def test_apply_creates_pending_record_and_tells_host(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting()

    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    assert participant.status == ParticipantStatus.PENDING.value
    assert participant.participant_id.startswith("PRT-")
    new_application = _notifications(db_session, host.user_id, "NEW_APPLICATION")
    assert len(new_application) == 1
    assert "Member 0" in new_application[0].message


def test_full_meeting_refuses_third_applicant(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting(capacity=2)
    first = participant_manager.apply(meeting.meeting_id, members[0].user_id)
    second = participant_manager.apply(meeting.meeting_id, members[1].user_id)

    for applicant in (first, second):
        approved = participant_manager.update_status(
            meeting.meeting_id,
            applicant.participant_id,
            host.user_id,
            ParticipantStatus.APPROVED,
        )
        assert approved.status == ParticipantStatus.APPROVED.value

    with pytest.raises(CapacityExceededError):
        participant_manager.apply(meeting.meeting_id, members[2].user_id)

    db_session.refresh(meeting)
    assert meeting.approved_count == 2
    assert (
        db_session.query(Participant)
        .filter(Participant.user_id == members[2].user_id)
        .count()
        == 0
    )


def test_approving_past_capacity_fails_and_keeps_pending(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting(capacity=2)
    applications = [
        participant_manager.apply(meeting.meeting_id, member.user_id) for member in members
    ]
    for applicant in applications[:2]:
        participant_manager.update_status(
            meeting.meeting_id, applicant.participant_id, host.user_id, ParticipantStatus.APPROVED
        )

    with pytest.raises(CapacityExceededError):
        participant_manager.update_status(
            meeting.meeting_id,
            applications[2].participant_id,
            host.user_id,
            ParticipantStatus.APPROVED,
        )

    db_session.refresh(applications[2])
    assert applications[2].status == ParticipantStatus.PENDING.value
    assert _notifications(db_session, members[2].user_id, "PARTICIPANT_APPROVED") == []


def test_host_approval_sends_exactly_one_high_notification(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting()
    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    participant_manager.update_status(
        meeting.meeting_id, participant.participant_id, host.user_id, ParticipantStatus.APPROVED
    )

    delivered = _notifications(db_session, members[0].user_id, "PARTICIPANT_APPROVED")
    assert len(delivered) == 1
    assert delivered[0].priority == "HIGH"
    assert delivered[0].data["meeting_id"] == meeting.meeting_id


@pytest.mark.parametrize("auto_approve", [False, True])
@pytest.mark.parametrize("blocked_by_host", [True, False])
def test_block_relation_refuses_application(
    participant_manager, make_meeting, members, host, block, auto_approve, blocked_by_host
):
    meeting = make_meeting(auto_approve=auto_approve)
    if blocked_by_host:
        block(host.user_id, members[0].user_id)
    else:
        block(members[0].user_id, host.user_id)

    with pytest.raises(ForbiddenError):
        participant_manager.apply(meeting.meeting_id, members[0].user_id)


def test_host_cannot_apply_to_own_meeting(participant_manager, make_meeting, host):
    meeting = make_meeting()
    with pytest.raises(InvalidStateError):
        participant_manager.apply(meeting.meeting_id, host.user_id)


def test_apply_to_unknown_meeting(participant_manager, members):
    with pytest.raises(NotFoundError):
        participant_manager.apply("MTG19990101-0001", members[0].user_id)


def test_repeat_applications_are_refused(participant_manager, make_meeting, members, host):
    meeting = make_meeting()
    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    with pytest.raises(DuplicateApplicationError):
        participant_manager.apply(meeting.meeting_id, members[0].user_id)

    participant_manager.update_status(
        meeting.meeting_id, participant.participant_id, host.user_id, ParticipantStatus.APPROVED
    )
    with pytest.raises(AlreadyJoinedError):
        participant_manager.apply(meeting.meeting_id, members[0].user_id)


def test_auto_approve_takes_a_slot_immediately(
    db_session, participant_manager, make_meeting, members
):
    meeting = make_meeting(auto_approve=True)

    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    assert participant.status == ParticipantStatus.APPROVED.value
    db_session.refresh(meeting)
    assert meeting.approved_count == 1
    assert len(_notifications(db_session, members[0].user_id, "PARTICIPANT_APPROVED")) == 1


def test_reapply_after_rejection_reuses_the_record(
    participant_manager, make_meeting, members, host
):
    meeting = make_meeting()
    first = participant_manager.apply(meeting.meeting_id, members[0].user_id)
    participant_manager.update_status(
        meeting.meeting_id, first.participant_id, host.user_id, ParticipantStatus.REJECTED
    )

    again = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    assert again.participant_id == first.participant_id
    assert again.status == ParticipantStatus.PENDING.value
    assert again.reviewed_at is None


def test_kicked_member_can_never_return(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting()
    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)
    participant_manager.update_status(
        meeting.meeting_id, participant.participant_id, host.user_id, ParticipantStatus.APPROVED
    )
    kicked = participant_manager.update_status(
        meeting.meeting_id, participant.participant_id, host.user_id, ParticipantStatus.KICKED
    )
    assert kicked.status == ParticipantStatus.KICKED.value
    db_session.refresh(meeting)
    assert meeting.approved_count == 0

    with pytest.raises(ForbiddenError):
        participant_manager.apply(meeting.meeting_id, members[0].user_id)
    with pytest.raises(InvalidTransitionError):
        participant_manager.update_status(
            meeting.meeting_id,
            participant.participant_id,
            host.user_id,
            ParticipantStatus.APPROVED,
        )


def test_kick_retracts_attendance(db_session, participant_manager, make_meeting, members, host):
    meeting = make_meeting()
    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)
    participant_manager.update_status(
        meeting.meeting_id, participant.participant_id, host.user_id, ParticipantStatus.APPROVED
    )
    activity = MeetingActivity(
        activity_id=f"{meeting.meeting_id}-ACT-0001",
        meeting_id=meeting.meeting_id,
        title="Saturday walk",
        date=datetime.now(timezone.utc) + timedelta(days=3),
        created_by_id=host.user_id,
    )
    db_session.add(activity)
    db_session.add(
        ActivityAttendance(
            activity_id=activity.activity_id,
            user_id=members[0].user_id,
            status=AttendanceStatus.ATTENDING.value,
        )
    )
    db_session.commit()

    participant_manager.update_status(
        meeting.meeting_id, participant.participant_id, host.user_id, ParticipantStatus.KICKED
    )

    record = (
        db_session.query(ActivityAttendance)
        .filter(ActivityAttendance.user_id == members[0].user_id)
        .one()
    )
    assert record.status == AttendanceStatus.NOT_ATTENDING.value


def test_only_host_decides(participant_manager, make_meeting, members):
    meeting = make_meeting()
    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    with pytest.raises(ForbiddenError):
        participant_manager.update_status(
            meeting.meeting_id,
            participant.participant_id,
            members[1].user_id,
            ParticipantStatus.APPROVED,
        )


def test_host_cannot_move_participant_to_cancelled(
    participant_manager, make_meeting, members, host
):
    meeting = make_meeting()
    participant = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    with pytest.raises(InvalidTransitionError):
        participant_manager.update_status(
            meeting.meeting_id,
            participant.participant_id,
            host.user_id,
            ParticipantStatus.CANCELLED,
        )


def test_withdraw_frees_the_slot_and_forwards_reason(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting(auto_approve=True)
    participant_manager.apply(meeting.meeting_id, members[0].user_id)

    withdrawn = participant_manager.withdraw(
        meeting.meeting_id, members[0].user_id, "Moving to another city"
    )

    assert withdrawn.status == ParticipantStatus.CANCELLED.value
    assert withdrawn.withdraw_reason == "Moving to another city"
    assert withdrawn.withdrawn_at is not None
    db_session.refresh(meeting)
    assert meeting.approved_count == 0
    notice = _notifications(db_session, host.user_id, "MEMBER_WITHDRAWN")
    assert len(notice) == 1
    assert notice[0].data["reason"] == "Moving to another city"


def test_withdraw_reason_length_is_bounded(participant_manager, make_meeting, members):
    meeting = make_meeting(auto_approve=True)
    participant_manager.apply(meeting.meeting_id, members[0].user_id)

    with pytest.raises(InvalidInputError):
        participant_manager.withdraw(meeting.meeting_id, members[0].user_id, "x" * 201)


def test_withdraw_requires_approval(participant_manager, make_meeting, members):
    meeting = make_meeting()
    participant_manager.apply(meeting.meeting_id, members[0].user_id)

    with pytest.raises(InvalidTransitionError):
        participant_manager.withdraw(meeting.meeting_id, members[0].user_id)


def test_cancel_application_only_while_pending(
    db_session, participant_manager, make_meeting, members
):
    meeting = make_meeting()
    participant_manager.apply(meeting.meeting_id, members[0].user_id)

    cancelled = participant_manager.cancel_application(meeting.meeting_id, members[0].user_id)
    assert cancelled.status == ParticipantStatus.CANCELLED.value

    with pytest.raises(InvalidStateError):
        participant_manager.cancel_application(meeting.meeting_id, members[0].user_id)
    with pytest.raises(NotFoundError):
        participant_manager.cancel_application(meeting.meeting_id, members[1].user_id)


def test_participant_lists(participant_manager, make_meeting, members, host):
    meeting = make_meeting()
    for member in members:
        participant_manager.apply(meeting.meeting_id, member.user_id)

    listed = participant_manager.find_by_meeting(meeting.meeting_id, host.user_id)
    assert {item.user_id for item in listed} == {member.user_id for member in members}
    assert (
        participant_manager.find_by_meeting(
            meeting.meeting_id, host.user_id, ParticipantStatus.APPROVED
        )
        == []
    )
    with pytest.raises(ForbiddenError):
        participant_manager.find_by_meeting(meeting.meeting_id, members[0].user_id)

    mine = participant_manager.find_my_participations(members[0].user_id)
    assert [item.meeting_id for item in mine] == [meeting.meeting_id]


def test_bulk_approval_stops_at_capacity_and_reports_each_item(
    db_session, participant_manager, make_meeting, members, host
):
    meeting = make_meeting(capacity=2)
    applications = [
        participant_manager.apply(meeting.meeting_id, member.user_id) for member in members
    ]
    ids = [application.participant_id for application in applications]

    result = participant_manager.bulk_review(
        meeting.meeting_id, host.user_id, ids + ["PRT-missing", ids[0]], ParticipantStatus.APPROVED
    )

    assert (result.succeeded, result.failed) == (2, 2)
    assert [item.participant_id for item in result.results] == ids + ["PRT-missing"]
    assert [item.status for item in result.results[:2]] == [ParticipantStatus.APPROVED] * 2
    assert [item.code for item in result.results[2:]] == ["CAPACITY_EXCEEDED", "NOT_FOUND"]

    db_session.refresh(meeting)
    db_session.refresh(applications[2])
    assert meeting.approved_count == 2
    assert applications[2].status == ParticipantStatus.PENDING.value
    assert len(_notifications(db_session, members[0].user_id, "PARTICIPANT_APPROVED")) == 1


def test_bulk_rejection_skips_records_that_moved_on(
    participant_manager, make_meeting, members, host
):
    meeting = make_meeting()
    first = participant_manager.apply(meeting.meeting_id, members[0].user_id)
    second = participant_manager.apply(meeting.meeting_id, members[1].user_id)
    participant_manager.cancel_application(meeting.meeting_id, members[1].user_id)

    result = participant_manager.bulk_review(
        meeting.meeting_id,
        host.user_id,
        [first.participant_id, second.participant_id],
        ParticipantStatus.REJECTED,
    )

    assert result.results[0].status == ParticipantStatus.REJECTED
    assert result.results[1].success is False
    assert result.results[1].code == "INVALID_TRANSITION"


def test_bulk_review_is_host_only_and_never_kicks(
    participant_manager, make_meeting, members
):
    meeting = make_meeting()
    application = participant_manager.apply(meeting.meeting_id, members[0].user_id)

    with pytest.raises(ForbiddenError):
        participant_manager.bulk_review(
            meeting.meeting_id,
            members[1].user_id,
            [application.participant_id],
            ParticipantStatus.APPROVED,
        )
    with pytest.raises(InvalidInputError):
        participant_manager.bulk_review(
            meeting.meeting_id,
            meeting.host_id,
            [application.participant_id],
            ParticipantStatus.KICKED,
        )
