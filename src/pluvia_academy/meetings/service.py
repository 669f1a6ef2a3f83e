from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..attendance.model import AttendanceWrite
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import Clock, now_utc
from ..common.validators import (
    optional_positive_int,
    optional_text,
    require_choice,
    require_datetime,
    require_id,
    require_non_empty,
)
from ..core.constants import DEFAULT_MEETING_DURATION_MINUTES
from ..core.enums import AttendanceStatus, MeetingStatus, Role
from ..core.exceptions import ConflictError, DependencyError, ForbiddenError, NotFoundError, ValidationError
from ..database.connection import TransactionManager
from ..enrollments.model import RosterEntry
from ..enrollments.repository import EnrollmentRepository
from ..punishment.service import PunishmentEngine
from ..users.model import Actor
from .model import Meeting
from .repository import MeetingRepository

logger = logging.getLogger(__name__)

_STATUS_ORDER = [MeetingStatus.SCHEDULED, MeetingStatus.ONGOING, MeetingStatus.COMPLETED]


@dataclass(frozen=True)
class CreateMeetingRequest:
    course_id: int
    title: str
    scheduled_at: datetime
    duration_minutes: int = DEFAULT_MEETING_DURATION_MINUTES
    description: Optional[str] = None
    meet_link: Optional[str] = None

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "CreateMeetingRequest":
        return cls(
            course_id=require_id(payload.get("course_id"), "course_id"),
            title=require_non_empty(payload.get("title"), "title"),
            scheduled_at=require_datetime(payload.get("scheduled_at"), "scheduled_at"),
            duration_minutes=optional_positive_int(
                payload.get("duration_minutes"), "duration_minutes", DEFAULT_MEETING_DURATION_MINUTES
            ),
            description=optional_text(payload.get("description"), "description"),
            meet_link=optional_text(payload.get("meet_link"), "meet_link"),
        )


class MeetingService:
    def __init__(
        self,
        meetings: MeetingRepository,
        enrollments: EnrollmentRepository,
        attendance: AttendanceRepository,
        engine: PunishmentEngine,
        transactions: TransactionManager,
        *,
        clock: Clock = now_utc,
    ):
        self._meetings = meetings
        self._enrollments = enrollments
        self._attendance = attendance
        self._engine = engine
        self._tx = transactions
        self._clock = clock

    def create_meeting(self, req: CreateMeetingRequest, actor: Actor) -> Meeting:
        """Create a meeting and seed an `absent` row for every active member."""

        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can create meetings")

        now = self._clock()
        with self._tx.transaction():
            meeting = self._meetings.create(
                course_id=req.course_id,
                title=req.title,
                scheduled_at=req.scheduled_at,
                duration_minutes=req.duration_minutes,
                created_by=actor.user_id,
                created_at=now,
                description=req.description,
                meet_link=req.meet_link,
            )
            members = self._enrollments.list_active_for_course(req.course_id)
            seeded = self._attendance.seed_absent(
                [
                    AttendanceWrite(
                        meeting_id=meeting.meeting_id,
                        user_id=e.user_id,
                        course_id=req.course_id,
                        status=AttendanceStatus.ABSENT,
                        marked_by=None,
                        marked_at=now,
                    )
                    for e in members
                ]
            )

        logger.info(
            "Meeting created meeting_id=%s course_id=%s by user_id=%s (%s absent rows seeded)",
            meeting.meeting_id,
            req.course_id,
            actor.user_id,
            seeded,
        )
        return meeting

    def delete_meeting(self, meeting_id: int, actor: Actor) -> None:
        meeting = self._meetings.get_by_id(meeting_id)
        if not meeting:
            raise NotFoundError("Meeting not found")
        if actor.role != Role.ADMIN and meeting.created_by != actor.user_id:
            raise ForbiddenError("Only the meeting creator or an admin can delete it")

        self._meetings.delete(meeting_id)
        logger.info("Meeting deleted meeting_id=%s by user_id=%s", meeting_id, actor.user_id)

        # the member histories lost a meeting
        for enrollment in self._enrollments.list_active_for_course(meeting.course_id):
            try:
                self._engine.recompute(enrollment.user_id, meeting.course_id, triggered_by=actor.user_id)
            except (DependencyError, ConflictError, NotFoundError):
                logger.warning(
                    "Recompute after meeting delete failed user_id=%s course_id=%s",
                    enrollment.user_id,
                    meeting.course_id,
                )

    def list_for_course(self, course_id: int) -> Sequence[Meeting]:
        return self._meetings.list_for_course(course_id)

    def list_students(self, course_id: int, actor: Actor) -> Sequence[RosterEntry]:
        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can view the course roster")
        return self._enrollments.list_roster(course_id)

    def set_status(self, meeting_id: int, status_value: Any, actor: Actor) -> Meeting:
        """Move a meeting forward along scheduled -> ongoing -> completed."""

        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can change meeting status")
        status = require_choice(status_value, "status", MeetingStatus)

        meeting = self._meetings.get_by_id(meeting_id)
        if not meeting:
            raise NotFoundError("Meeting not found")
        if _STATUS_ORDER.index(status) < _STATUS_ORDER.index(meeting.status):
            raise ValidationError(f"Meeting cannot go back from {meeting.status.value} to {status.value}")

        if status != meeting.status:
            self._meetings.set_status(meeting_id, status)
            logger.info("Meeting meeting_id=%s status %s -> %s", meeting_id, meeting.status.value, status.value)
        return self._meetings.get_by_id(meeting_id) or meeting
