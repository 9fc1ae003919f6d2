import logging
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from meetup.config.loader import get_participation_settings
from meetup.data.access import (
    MEETING_VISIBLE,
    get_meeting_or_404,
    is_blocked,
    require_host,
    require_user,
    write_transaction,
)
from meetup.data.notification_manager import NotificationManager
from meetup.database import get_db
from meetup.errors import (
    CapacityExceededError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    MeetupError,
    NotFoundError,
)
from meetup.models.activity import ActivityAttendance, AttendanceStatus, MeetingActivity
from meetup.models.meeting import Meeting, MeetingStatus
from meetup.models.participant import Participant, ParticipantStatus
from meetup.schemas.participant import BulkReviewItem, BulkReviewResult
from meetup.services import capacity_guard
from meetup.services.participation_rules import (
    ParticipationEvent,
    Recipient,
    Transition,
    host_event_for,
    resolve,
)
from meetup.utils.datetimes import utcnow
from meetup.utils.identifiers import generate_participant_id

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


def perform_transition(
    db: Session,
    notifications: NotificationManager,
    meeting: Meeting,
    participant: Participant,
    transition: Transition,
    actor: Optional[str] = None,
    data: Optional[dict] = None,
) -> None:
    """Apply a resolved transition inside the caller's transaction.

    Slot movement, the status overwrite and the notification row all land in
    the same session, so they commit or roll back together.
    """
    previous = participant.status
    if transition.acquires_slot:
        capacity_guard.acquire(db, meeting.meeting_id)
    elif transition.releases_slot:
        capacity_guard.release(db, meeting.meeting_id)

    participant.status = transition.target.value

    if transition.notify is not None:
        effect = transition.notify
        recipient_id = (
            meeting.host_id if effect.recipient == Recipient.HOST else participant.user_id
        )
        payload = {"meeting_id": meeting.meeting_id}
        payload.update(data or {})
        notifications.enqueue_event(
            recipient_id,
            effect.type,
            effect.priority,
            meeting_title=meeting.title,
            actor=actor,
            data=payload,
        )

    audit_logger.info(
        "participant_transition meeting=%s user=%s from=%s to=%s",
        meeting.meeting_id,
        participant.user_id,
        previous or "NONE",
        participant.status,
    )


class ParticipantManager:
    """Participant admission and departures for meetings."""

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationManager(db)

    def _get_record(self, meeting_id: str, user_id: str) -> Optional[Participant]:
        return (
            self.db.query(Participant)
            .filter(Participant.meeting_id == meeting_id, Participant.user_id == user_id)
            .one_or_none()
        )

    def apply(self, meeting_id: str, user_id: str) -> Participant:
        """Apply to a meeting, landing on PENDING or, under auto-approve, APPROVED.

        Raises:
            NotFoundError: meeting or user does not exist.
            InvalidStateError: caller hosts the meeting or it is not recruiting.
            ForbiddenError: a block exists either way, or the caller was kicked.
            DuplicateApplicationError / AlreadyJoinedError: nothing to do.
            CapacityExceededError: the meeting is full.
        """
        with write_transaction(self.db, "apply to the meeting"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            applicant = require_user(self.db, user_id)

            if meeting.host_id == user_id:
                raise InvalidStateError("Hosts cannot apply to their own meeting")
            if meeting.status != MeetingStatus.RECRUITING.value:
                raise InvalidStateError("This meeting is not recruiting participants")
            if is_blocked(self.db, user_id, meeting.host_id):
                logger.info(
                    "Application from %s to meeting %s refused by block relation",
                    user_id,
                    meeting_id,
                )
                raise ForbiddenError("You cannot apply to this meeting")

            participant = self._get_record(meeting_id, user_id)
            event = (
                ParticipationEvent.APPLY_AUTO
                if meeting.auto_approve
                else ParticipationEvent.APPLY
            )
            transition = resolve(participant.status if participant else None, event)
            # A full meeting takes no applications at all; the guard still decides approvals.
            if meeting.approved_count >= meeting.capacity:
                raise CapacityExceededError("The meeting is full")

            is_new = participant is None
            if is_new:
                participant = Participant(
                    participant_id=generate_participant_id(),
                    meeting_id=meeting_id,
                    user_id=user_id,
                )
            else:
                participant.withdraw_reason = None
                participant.withdrawn_at = None
                participant.reviewed_at = None

            perform_transition(
                self.db,
                self.notifications,
                meeting,
                participant,
                transition,
                actor=applicant.nickname,
            )
            if is_new:
                self.db.add(participant)
            try:
                self.db.flush()
            except IntegrityError:
                # Lost a race with a concurrent first application for the same pair.
                raise DuplicateApplicationError()

        self.db.refresh(participant)
        return participant

    def update_status(
        self,
        meeting_id: str,
        participant_id: str,
        caller_id: str,
        target: ParticipantStatus,
    ) -> Participant:
        """Host decision on a participant: approve, reject or kick."""
        with write_transaction(self.db, "update the participant status"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            require_host(meeting, caller_id)

            participant = (
                self.db.query(Participant)
                .filter(
                    Participant.participant_id == participant_id,
                    Participant.meeting_id == meeting_id,
                )
                .one_or_none()
            )
            if participant is None:
                raise NotFoundError("Participant not found")

            transition = resolve(participant.status, host_event_for(target))
            perform_transition(self.db, self.notifications, meeting, participant, transition)
            participant.reviewed_at = utcnow()

            if transition.target == ParticipantStatus.KICKED:
                self._retract_attendance(meeting_id, participant.user_id)

        self.db.refresh(participant)
        return participant

    def bulk_review(
        self,
        meeting_id: str,
        caller_id: str,
        participant_ids: List[str],
        target: ParticipantStatus,
    ) -> BulkReviewResult:
        """Approve or reject several applications, one transaction per participant.

        Each decision runs through ``update_status`` and so through the capacity
        guard. A refused item is reported in the result and does not undo the
        decisions before it. Repeated ids are reviewed once.
        """
        target = ParticipantStatus(target)
        if target not in (ParticipantStatus.APPROVED, ParticipantStatus.REJECTED):
            raise InvalidInputError("Bulk review can only approve or reject applications")

        meeting = get_meeting_or_404(self.db, meeting_id)
        require_host(meeting, caller_id)

        results: List[BulkReviewItem] = []
        for participant_id in dict.fromkeys(participant_ids):
            try:
                participant = self.update_status(meeting_id, participant_id, caller_id, target)
            except MeetupError as exc:
                results.append(
                    BulkReviewItem(
                        participant_id=participant_id,
                        success=False,
                        code=exc.code,
                        detail=exc.detail,
                    )
                )
                continue
            results.append(
                BulkReviewItem(
                    participant_id=participant_id,
                    success=True,
                    status=participant.status,
                )
            )

        succeeded = sum(1 for item in results if item.success)
        logger.info(
            "Bulk review on meeting %s to %s: %d succeeded, %d failed",
            meeting_id,
            target.value,
            succeeded,
            len(results) - succeeded,
        )
        return BulkReviewResult(
            succeeded=succeeded, failed=len(results) - succeeded, results=results
        )

    def _retract_attendance(self, meeting_id: str, user_id: str) -> int:
        """Mark every answer of a removed member on this meeting's activities as not attending."""
        records = (
            self.db.query(ActivityAttendance)
            .join(MeetingActivity, MeetingActivity.activity_id == ActivityAttendance.activity_id)
            .filter(
                MeetingActivity.meeting_id == meeting_id,
                ActivityAttendance.user_id == user_id,
                ActivityAttendance.status != AttendanceStatus.NOT_ATTENDING.value,
            )
            .all()
        )
        now = utcnow()
        for record in records:
            record.status = AttendanceStatus.NOT_ATTENDING.value
            record.responded_at = now
        return len(records)

    def withdraw(
        self, meeting_id: str, user_id: str, reason: Optional[str] = None
    ) -> Participant:
        """Leave a meeting the caller was approved for; the host is told why."""
        max_length = get_participation_settings()["withdraw_reason_max_length"]
        if reason is not None and len(reason) > max_length:
            raise InvalidInputError(
                f"Withdraw reason must be at most {max_length} characters"
            )

        with write_transaction(self.db, "withdraw from the meeting"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            participant = (
                self.db.query(Participant)
                .options(joinedload(Participant.user))
                .filter(Participant.meeting_id == meeting_id, Participant.user_id == user_id)
                .one_or_none()
            )
            if participant is None:
                raise NotFoundError("You have not joined this meeting")

            transition = resolve(participant.status, ParticipationEvent.SELF_WITHDRAW)
            perform_transition(
                self.db,
                self.notifications,
                meeting,
                participant,
                transition,
                actor=participant.user.nickname if participant.user else None,
                data={"reason": reason},
            )
            participant.withdraw_reason = reason
            participant.withdrawn_at = utcnow()

        self.db.refresh(participant)
        return participant

    def cancel_application(self, meeting_id: str, user_id: str) -> Participant:
        """Take back an application that is still waiting for the host."""
        with write_transaction(self.db, "cancel the application"):
            meeting = get_meeting_or_404(self.db, meeting_id)
            participant = self._get_record(meeting_id, user_id)
            if participant is None:
                raise NotFoundError("Application not found")

            transition = resolve(participant.status, ParticipationEvent.SELF_CANCEL)
            perform_transition(self.db, self.notifications, meeting, participant, transition)

        self.db.refresh(participant)
        return participant

    def find_by_meeting(
        self,
        meeting_id: str,
        caller_id: str,
        status: Optional[ParticipantStatus] = None,
    ) -> List[Participant]:
        meeting = get_meeting_or_404(self.db, meeting_id)
        require_host(meeting, caller_id)

        query = (
            self.db.query(Participant)
            .options(joinedload(Participant.user))
            .filter(Participant.meeting_id == meeting_id)
        )
        if status is not None:
            query = query.filter(Participant.status == ParticipantStatus(status).value)
        return query.order_by(
            Participant.created_at.asc(), Participant.participant_id.asc()
        ).all()

    def find_my_participations(
        self, user_id: str, status: Optional[ParticipantStatus] = None
    ) -> List[Participant]:
        query = (
            self.db.query(Participant)
            .join(Meeting, Meeting.meeting_id == Participant.meeting_id)
            .options(joinedload(Participant.meeting), joinedload(Participant.user))
            .filter(Participant.user_id == user_id, MEETING_VISIBLE)
        )
        if status is not None:
            query = query.filter(Participant.status == ParticipantStatus(status).value)
        return query.order_by(
            Participant.created_at.desc(), Participant.participant_id.desc()
        ).all()


def get_participant_manager(db: Session = Depends(get_db)) -> ParticipantManager:
    """Dependency provider for ParticipantManager."""
    return ParticipantManager(db=db)
