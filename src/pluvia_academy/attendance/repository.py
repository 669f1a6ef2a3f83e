from __future__ import annotations

from typing import Dict, Optional, Protocol, Sequence

from .model import AttendanceRecord, AttendanceWrite, MeetingAttendanceRow


class AttendanceRepository(Protocol):
    def get(self, meeting_id: int, user_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def upsert(self, row: AttendanceWrite) -> AttendanceRecord:
        """Insert or overwrite the row keyed on (meeting_id, user_id); last write wins."""

        raise NotImplementedError

    def bulk_upsert(self, rows: Sequence[AttendanceWrite]) -> int:
        raise NotImplementedError

    def seed_absent(self, rows: Sequence[AttendanceWrite]) -> int:
        """Insert default rows, leaving any existing (meeting, user) row untouched."""

        raise NotImplementedError

    def list_for_meeting(self, meeting_id: int) -> Sequence[MeetingAttendanceRow]:
        raise NotImplementedError

    def list_for_user_in_course(self, user_id: int, course_id: int) -> Sequence[AttendanceRecord]:
        """Every row of one member in a course, most recently marked first."""

        raise NotImplementedError

    def statuses_for_user(self, user_id: int, meeting_ids: Sequence[int]) -> Dict[int, AttendanceRecord]:
        """Rows of one user for the given meetings, keyed by meeting_id."""

        raise NotImplementedError
