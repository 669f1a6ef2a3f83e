from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import MeetingStatus
from .model import Meeting


class MeetingRepository(Protocol):
    def create(
        self,
        *,
        course_id: int,
        title: str,
        scheduled_at: datetime,
        duration_minutes: int,
        created_by: Optional[int],
        created_at: datetime,
        description: Optional[str] = None,
        meet_link: Optional[str] = None,
    ) -> Meeting:
        raise NotImplementedError

    def get_by_id(self, meeting_id: int) -> Optional[Meeting]:
        raise NotImplementedError

    def delete(self, meeting_id: int) -> bool:
        raise NotImplementedError

    def list_for_course(self, course_id: int) -> Sequence[Meeting]:
        """All meetings of a course, oldest first."""

        raise NotImplementedError

    def list_held_for_course(self, course_id: int, *, as_of: datetime) -> Sequence[Meeting]:
        """Meetings already held at `as_of`, newest first (ties: newest created first).

        Held means scheduled at or before `as_of`, or started/completed early.
        """

        raise NotImplementedError

    def latest_with_status(self, course_id: int, statuses: Iterable[MeetingStatus]) -> Optional[Meeting]:
        """Most recently scheduled meeting whose status is one of `statuses`."""

        raise NotImplementedError

    def set_status(self, meeting_id: int, status: MeetingStatus) -> bool:
        raise NotImplementedError
