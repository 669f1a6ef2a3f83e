from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import MeetingStatus


@dataclass(frozen=True)
class Meeting:
    """A scheduled live session of a course."""

    meeting_id: int
    course_id: int
    title: str
    scheduled_at: datetime
    created_at: datetime
    status: MeetingStatus = MeetingStatus.SCHEDULED
    duration_minutes: int = 60
    created_by: Optional[int] = None
    description: Optional[str] = None
    meet_link: Optional[str] = None

    def sort_key(self) -> tuple:
        """Chronological key; creation time and id break schedule ties."""
        return (self.scheduled_at, self.created_at, self.meeting_id)

    def is_held(self, as_of: datetime) -> bool:
        return self.scheduled_at <= as_of or self.status != MeetingStatus.SCHEDULED
