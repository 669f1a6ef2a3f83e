from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one member's outcome for one meeting.

    Unique per (meeting_id, user_id). Rows seeded at meeting creation have
    `marked_by=None` and status ABSENT.
    """

    attendance_id: int
    meeting_id: int
    user_id: int
    course_id: int
    status: AttendanceStatus
    marked_at: datetime
    marked_by: Optional[int] = None
    notes: Optional[str] = None

    @property
    def is_explicit(self) -> bool:
        return self.marked_by is not None


@dataclass(frozen=True)
class AttendanceWrite:
    """One row of an upsert batch."""

    meeting_id: int
    user_id: int
    course_id: int
    status: AttendanceStatus
    marked_by: Optional[int]
    marked_at: datetime
    notes: Optional[str] = None


@dataclass(frozen=True)
class MeetingAttendanceRow:
    """Read-model for the attendance-taking screen."""

    attendance_id: int
    user_id: int
    full_name: str
    email: str
    status: AttendanceStatus
    marked_by: Optional[int]
    marked_at: datetime
    notes: Optional[str] = None
