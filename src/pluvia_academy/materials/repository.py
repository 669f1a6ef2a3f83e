from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Material, MaterialAccessRestriction


class MaterialRepository(Protocol):
    def get_by_id(self, material_id: int) -> Optional[Material]:
        raise NotImplementedError

    def list_ids_for_course(self, course_id: int) -> Sequence[int]:
        raise NotImplementedError


class RestrictionRepository(Protocol):
    def create_if_absent(
        self,
        *,
        user_id: int,
        course_id: int,
        material_id: int,
        meeting_id: int,
        reason: str,
        created_at: datetime,
    ) -> bool:
        """Insert an active restriction unless one is already active for (user, material).

        Returns True only when a row was inserted (first restriction wins).
        """

        raise NotImplementedError

    def lift_for_meeting(self, *, user_id: int, meeting_id: int, lifted_at: datetime) -> int:
        raise NotImplementedError

    def get_active(self, user_id: int, material_id: int) -> Optional[MaterialAccessRestriction]:
        raise NotImplementedError


class ManualUnlockRepository(Protocol):
    """Progress records: their existence grants access regardless of attendance."""

    def exists(self, user_id: int, material_id: int) -> bool:
        raise NotImplementedError

    def grant(self, *, user_id: int, material_id: int, granted_by: Optional[int], created_at: datetime) -> bool:
        raise NotImplementedError

    def revoke(self, user_id: int, material_id: int) -> bool:
        raise NotImplementedError
