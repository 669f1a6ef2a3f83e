"""Self check-in when a member opens the live class of a course."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from ..common.datetime_utils import Clock, now_utc
from ..core.constants import AUTO_JOIN_WINDOW_MINUTES
from ..core.enums import AttendanceStatus, AutoJoinOutcome, MeetingStatus
from ..core.exceptions import ForbiddenError, NotFoundError
from ..database.connection import TransactionManager
from ..enrollments.repository import EnrollmentRepository
from ..materials.service import MaterialAccessGuard
from ..meetings.model import Meeting
from ..meetings.repository import MeetingRepository
from ..punishment.model import PunishmentSnapshot
from ..punishment.service import PunishmentEngine
from .model import AttendanceWrite
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutoJoinResult:
    outcome: AutoJoinOutcome
    meeting_id: int
    current_status: Optional[AttendanceStatus] = None
    punishment: Optional[PunishmentSnapshot] = None


class AutoJoinService:
    def __init__(
        self,
        enrollments: EnrollmentRepository,
        meetings: MeetingRepository,
        attendance: AttendanceRepository,
        engine: PunishmentEngine,
        guard: MaterialAccessGuard,
        transactions: TransactionManager,
        *,
        clock: Clock = now_utc,
        window_minutes: int = AUTO_JOIN_WINDOW_MINUTES,
    ):
        self._enrollments = enrollments
        self._meetings = meetings
        self._attendance = attendance
        self._engine = engine
        self._guard = guard
        self._tx = transactions
        self._clock = clock
        self._window = timedelta(minutes=int(window_minutes))

    def _current_meeting(self, course_id: int) -> Meeting:
        meeting = self._meetings.latest_with_status(course_id, (MeetingStatus.SCHEDULED, MeetingStatus.ONGOING))
        if meeting is None:
            meeting = self._meetings.latest_with_status(course_id, (MeetingStatus.COMPLETED,))
        if meeting is None:
            raise NotFoundError("No meeting found for this course")
        return meeting

    def join(self, user_id: int, course_id: int) -> AutoJoinResult:
        enrollment = self._enrollments.get(user_id, course_id)
        if not enrollment or not enrollment.is_active:
            raise ForbiddenError("You are not enrolled in this course")

        meeting = self._current_meeting(course_id)
        if self._clock() > meeting.created_at + self._window:
            return AutoJoinResult(outcome=AutoJoinOutcome.TIME_EXPIRED, meeting_id=meeting.meeting_id)

        with self._tx.transaction():
            locked = self._enrollments.get_for_update(user_id, course_id) or enrollment
            existing = self._attendance.get(meeting.meeting_id, user_id)
            if existing and existing.status == AttendanceStatus.PRESENT:
                return AutoJoinResult(
                    outcome=AutoJoinOutcome.ALREADY_MARKED,
                    meeting_id=meeting.meeting_id,
                    current_status=existing.status,
                )
            if existing and existing.status != AttendanceStatus.ABSENT:
                return AutoJoinResult(
                    outcome=AutoJoinOutcome.ALREADY_SET,
                    meeting_id=meeting.meeting_id,
                    current_status=existing.status,
                )

            self._attendance.upsert(
                AttendanceWrite(
                    meeting_id=meeting.meeting_id,
                    user_id=user_id,
                    course_id=course_id,
                    status=AttendanceStatus.PRESENT,
                    marked_by=user_id,
                    marked_at=self._clock(),
                    notes=existing.notes if existing else None,
                )
            )
            snapshot = self._engine.reset_on_presence(locked, meeting=meeting, triggered_by=user_id)
            self._guard.lift_for_meeting(user_id, meeting.meeting_id)

        logger.info("Auto-join marked user_id=%s present for meeting_id=%s", user_id, meeting.meeting_id)
        return AutoJoinResult(
            outcome=AutoJoinOutcome.MARKED_PRESENT,
            meeting_id=meeting.meeting_id,
            current_status=AttendanceStatus.PRESENT,
            punishment=snapshot,
        )
