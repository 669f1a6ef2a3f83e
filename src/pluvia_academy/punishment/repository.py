from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import PunishmentAction, PunishmentTier
from .model import PunishmentLog


class PunishmentLogRepository(Protocol):
    def append(
        self,
        *,
        user_id: int,
        course_id: int,
        enrollment_id: int,
        action: PunishmentAction,
        new_status: PunishmentTier,
        consecutive_absence: int,
        triggered_by: Optional[int],
        notes: Optional[str],
        created_at: datetime,
    ) -> int:
        raise NotImplementedError

    def list_for_course(
        self,
        course_id: int,
        *,
        user_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Sequence[PunishmentLog]:
        """Newest first."""

        raise NotImplementedError
