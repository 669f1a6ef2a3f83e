from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import EnrollmentStatus, PunishmentTier


@dataclass(frozen=True)
class Enrollment:
    """A (user, course) membership carrying the punishment counters.

    `consecutive_absence` and `punishment_status` are written only by the
    punishment engine.
    """

    enrollment_id: int
    user_id: int
    course_id: int
    status: EnrollmentStatus
    consecutive_absence: int = 0
    punishment_status: PunishmentTier = PunishmentTier.NONE
    punishment_updated_at: Optional[datetime] = None
    punishment_reset_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE


@dataclass(frozen=True)
class RosterEntry:
    """Read-model for the lecturer dashboard (member name + punishment state)."""

    enrollment_id: int
    user_id: int
    full_name: str
    email: str
    consecutive_absence: int
    punishment_status: PunishmentTier
    punishment_updated_at: Optional[datetime]
