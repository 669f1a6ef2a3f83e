from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import PunishmentTier
from .model import Enrollment, RosterEntry


class EnrollmentRepository(Protocol):
    def get(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        raise NotImplementedError

    def get_for_update(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        """Read the row and hold its lock until the surrounding transaction ends."""

        raise NotImplementedError

    def list_active_for_course(self, course_id: int) -> Sequence[Enrollment]:
        raise NotImplementedError

    def list_roster(self, course_id: int) -> Sequence[RosterEntry]:
        raise NotImplementedError

    def update_punishment(
        self,
        *,
        enrollment_id: int,
        consecutive_absence: int,
        punishment_status: PunishmentTier,
        updated_at: datetime,
    ) -> bool:
        raise NotImplementedError

    def reset_punishment(self, *, enrollment_id: int, reset_at: datetime) -> bool:
        """Zero the counters; meetings scheduled up to `reset_at` no longer count."""

        raise NotImplementedError
