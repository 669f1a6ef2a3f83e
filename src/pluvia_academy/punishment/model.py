from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..core.enums import PunishmentAction, PunishmentTier
from ..enrollments.model import Enrollment


@dataclass(frozen=True)
class PunishmentLog:
    """Append-only audit entry written on every tier transition and manual reset."""

    log_id: int
    user_id: int
    course_id: int
    enrollment_id: int
    action: PunishmentAction
    new_status: PunishmentTier
    consecutive_absence: int
    created_at: datetime
    triggered_by: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class PunishmentSnapshot:
    enrollment_id: int
    user_id: int
    course_id: int
    consecutive_absence: int
    punishment_status: PunishmentTier
    punishment_updated_at: Optional[datetime] = None

    @classmethod
    def of(cls, enrollment: Enrollment) -> "PunishmentSnapshot":
        return cls(
            enrollment_id=enrollment.enrollment_id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            consecutive_absence=enrollment.consecutive_absence,
            punishment_status=enrollment.punishment_status,
            punishment_updated_at=enrollment.punishment_updated_at,
        )


@dataclass(frozen=True)
class PunishmentStatusView:
    """Answer of the status endpoint: fresh counters plus recent log entries."""

    snapshot: PunishmentSnapshot
    logs: List[PunishmentLog] = field(default_factory=list)


@dataclass(frozen=True)
class Banner:
    status: PunishmentTier
    consecutive_absence: int
    can_access: bool
    title: str = ""
    message: str = ""
    hint: str = ""
