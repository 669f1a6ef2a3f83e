from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from ..common.datetime_utils import Clock, now_utc
from ..common.validators import optional_text, require_choice, require_id
from ..core.enums import AttendanceStatus, MeetingStatus
from ..core.exceptions import ConflictError, DependencyError, ForbiddenError, NotFoundError, ValidationError
from ..database.connection import TransactionManager
from ..enrollments.repository import EnrollmentRepository
from ..materials.service import MaterialAccessGuard
from ..meetings.model import Meeting
from ..meetings.repository import MeetingRepository
from ..punishment.model import PunishmentSnapshot
from ..punishment.service import PunishmentEngine
from ..users.model import Actor
from .model import AttendanceRecord, AttendanceWrite, MeetingAttendanceRow
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkAttendanceRequest:
    meeting_id: int
    user_id: int
    status: AttendanceStatus
    notes: Optional[str] = None

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "MarkAttendanceRequest":
        return cls(
            meeting_id=require_id(payload.get("meeting_id"), "meeting_id"),
            user_id=require_id(payload.get("user_id"), "user_id"),
            status=require_choice(payload.get("status"), "status", AttendanceStatus),
            notes=optional_text(payload.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class BulkMarkEntry:
    user_id: int
    status: AttendanceStatus
    notes: Optional[str] = None


@dataclass(frozen=True)
class BulkMarkRequest:
    meeting_id: int
    entries: Tuple[BulkMarkEntry, ...]

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "BulkMarkRequest":
        meeting_id = require_id(payload.get("meeting_id"), "meeting_id")
        raw = payload.get("attendance_list")
        if not isinstance(raw, list):
            raise ValidationError("attendance_list must be a list")

        entries = []
        seen = set()
        for i, item in enumerate(raw):
            if not isinstance(item, Mapping):
                raise ValidationError(f"attendance_list[{i}] must be an object")
            entry = BulkMarkEntry(
                user_id=require_id(item.get("user_id"), f"attendance_list[{i}].user_id"),
                status=require_choice(item.get("status"), f"attendance_list[{i}].status", AttendanceStatus),
                notes=optional_text(item.get("notes"), f"attendance_list[{i}].notes"),
            )
            if entry.user_id in seen:
                raise ValidationError(f"attendance_list has user_id {entry.user_id} more than once")
            seen.add(entry.user_id)
            entries.append(entry)

        return cls(meeting_id=meeting_id, entries=tuple(entries))


@dataclass(frozen=True)
class MarkResult:
    record: AttendanceRecord
    punishment: Optional[PunishmentSnapshot] = None


class AttendanceService:
    """Records meeting attendance and drives the punishment and restriction updates."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        meetings: MeetingRepository,
        enrollments: EnrollmentRepository,
        engine: PunishmentEngine,
        guard: MaterialAccessGuard,
        transactions: TransactionManager,
        *,
        clock: Clock = now_utc,
    ):
        self._attendance = attendance
        self._meetings = meetings
        self._enrollments = enrollments
        self._engine = engine
        self._guard = guard
        self._tx = transactions
        self._clock = clock

    def _get_meeting(self, meeting_id: int) -> Meeting:
        meeting = self._meetings.get_by_id(meeting_id)
        if not meeting:
            raise NotFoundError("Meeting not found")
        return meeting

    def mark_attendance(self, req: MarkAttendanceRequest, actor: Actor) -> MarkResult:
        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can mark attendance")

        meeting = self._get_meeting(req.meeting_id)

        with self._tx.transaction():
            # enrollment lock first: every writer of the counters takes it in this order
            enrollment = self._enrollments.get_for_update(req.user_id, meeting.course_id)
            previous = self._attendance.get(meeting.meeting_id, req.user_id)
            record = self._attendance.upsert(
                AttendanceWrite(
                    meeting_id=meeting.meeting_id,
                    user_id=req.user_id,
                    course_id=meeting.course_id,
                    status=req.status,
                    marked_by=actor.user_id,
                    marked_at=self._clock(),
                    notes=req.notes,
                )
            )

            snapshot = None
            if enrollment is not None:
                snapshot = self._engine.apply_mark(
                    enrollment,
                    meeting=meeting,
                    previous=previous,
                    status=req.status,
                    marker_id=actor.user_id,
                )
            self._guard.on_mark(
                req.user_id,
                course_id=meeting.course_id,
                meeting_id=meeting.meeting_id,
                status=req.status,
            )

        logger.info(
            "Attendance marked meeting_id=%s user_id=%s status=%s by user_id=%s",
            meeting.meeting_id,
            req.user_id,
            req.status.value,
            actor.user_id,
        )
        return MarkResult(record=record, punishment=snapshot)

    def bulk_mark_attendance(self, req: BulkMarkRequest, actor: Actor) -> int:
        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can mark attendance")

        meeting = self._get_meeting(req.meeting_id)
        now = self._clock()
        rows = [
            AttendanceWrite(
                meeting_id=meeting.meeting_id,
                user_id=e.user_id,
                course_id=meeting.course_id,
                status=e.status,
                marked_by=actor.user_id,
                marked_at=now,
                notes=e.notes,
            )
            for e in req.entries
        ]

        with self._tx.transaction():
            updated = self._attendance.bulk_upsert(rows)
            self._meetings.set_status(meeting.meeting_id, MeetingStatus.COMPLETED)

        failed = 0
        for entry in req.entries:
            try:
                self._sync_member(meeting, entry.user_id, entry.status, actor)
            except (DependencyError, ConflictError):
                failed += 1
                logger.warning(
                    "Punishment sync failed meeting_id=%s user_id=%s; next recompute repairs it",
                    meeting.meeting_id,
                    entry.user_id,
                )

        logger.info(
            "Bulk attendance meeting_id=%s: %s rows by user_id=%s (%s sync failures)",
            meeting.meeting_id,
            updated,
            actor.user_id,
            failed,
        )
        return updated

    def _sync_member(self, meeting: Meeting, user_id: int, status: AttendanceStatus, actor: Actor) -> None:
        with self._tx.transaction():
            enrollment = self._enrollments.get_for_update(user_id, meeting.course_id)
            if enrollment is not None:
                self._engine.recompute_locked(enrollment, triggered_by=actor.user_id)
            self._guard.on_mark(user_id, course_id=meeting.course_id, meeting_id=meeting.meeting_id, status=status)

    def list_for_meeting(self, meeting_id: int) -> Sequence[MeetingAttendanceRow]:
        self._get_meeting(meeting_id)
        return self._attendance.list_for_meeting(meeting_id)
