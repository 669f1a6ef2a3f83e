from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AccessReason


@dataclass(frozen=True)
class Material:
    material_id: int
    course_id: int
    title: str
    ordinal: int = 0


@dataclass(frozen=True)
class MaterialAccessRestriction:
    """Lock on one material for one member, created by a missed meeting.

    Active while `lifted_at` is None; at most one active row per (user, material).
    """

    restriction_id: int
    user_id: int
    course_id: int
    material_id: int
    meeting_id: Optional[int]
    reason: str
    created_at: datetime
    lifted_at: Optional[datetime] = None
    meeting_title: Optional[str] = None
    meeting_scheduled_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.lifted_at is None


@dataclass(frozen=True)
class AccessDecision:
    can_access: bool
    reason: AccessReason
    restriction: Optional[MaterialAccessRestriction] = None
