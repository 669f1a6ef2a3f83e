from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import Clock, now_utc
from ..common.validators import require_id
from ..core.constants import ABSENCE_RESTRICTION_REASON
from ..core.enums import AccessReason, AttendanceStatus
from ..core.exceptions import DependencyError, ForbiddenError, NotFoundError
from ..users.model import Actor
from .model import AccessDecision, MaterialAccessRestriction
from .repository import ManualUnlockRepository, MaterialRepository, RestrictionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManualUnlockRequest:
    user_id: int
    material_id: int

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "ManualUnlockRequest":
        return cls(
            user_id=require_id(payload.get("user_id"), "user_id"),
            material_id=require_id(payload.get("material_id"), "material_id"),
        )


class MaterialAccessGuard:
    """Decides material access and keeps the restriction rows behind it.

    Access follows the member's attendance history in the material's course:
    one present/permitted/sick record anywhere in the course unlocks every
    material, an exclusively-absent history locks them. Restriction rows carry
    the originating meeting for UI messaging and are repaired on read.
    """

    def __init__(
        self,
        materials: MaterialRepository,
        restrictions: RestrictionRepository,
        unlocks: ManualUnlockRepository,
        attendance: AttendanceRepository,
        *,
        clock: Clock = now_utc,
    ):
        self._materials = materials
        self._restrictions = restrictions
        self._unlocks = unlocks
        self._attendance = attendance
        self._clock = clock

    # ---- restriction maintenance ----

    def on_mark(self, user_id: int, *, course_id: int, meeting_id: int, status: AttendanceStatus) -> int:
        """Apply one mark to the restriction set. Returns rows created or lifted."""

        if status == AttendanceStatus.ABSENT:
            return self.restrict_for_meeting(user_id, course_id=course_id, meeting_id=meeting_id)
        return self.lift_for_meeting(user_id, meeting_id)

    def restrict_for_meeting(self, user_id: int, *, course_id: int, meeting_id: int) -> int:
        """Create-if-absent one restriction per course material. Per-row failures are skipped."""

        now = self._clock()
        created = failed = 0
        for material_id in self._materials.list_ids_for_course(course_id):
            try:
                inserted = self._restrictions.create_if_absent(
                    user_id=user_id,
                    course_id=course_id,
                    material_id=material_id,
                    meeting_id=meeting_id,
                    reason=ABSENCE_RESTRICTION_REASON,
                    created_at=now,
                )
            except DependencyError:
                failed += 1
                logger.warning(
                    "Restriction insert failed user_id=%s material_id=%s meeting_id=%s; left for repair",
                    user_id,
                    material_id,
                    meeting_id,
                )
                continue
            if inserted:
                created += 1

        if failed:
            logger.warning(
                "Restriction fan-out partial for user_id=%s meeting_id=%s: %s created, %s failed",
                user_id,
                meeting_id,
                created,
                failed,
            )
        return created

    def lift_for_meeting(self, user_id: int, meeting_id: int) -> int:
        lifted = self._restrictions.lift_for_meeting(user_id=user_id, meeting_id=meeting_id, lifted_at=self._clock())
        if lifted:
            logger.info("Lifted %s restrictions user_id=%s meeting_id=%s", lifted, user_id, meeting_id)
        return lifted

    def repair_restrictions(self, user_id: int, course_id: int) -> int:
        """Bring restriction rows back in line with the member's attendance rows.

        Restrictions of excused meetings are lifted; absent meetings get any
        missing rows created. Returns the number of rows created.
        """

        created = 0
        for record in self._attendance.list_for_user_in_course(user_id, course_id):
            if record.status == AttendanceStatus.ABSENT:
                created += self.restrict_for_meeting(user_id, course_id=course_id, meeting_id=record.meeting_id)
            else:
                self.lift_for_meeting(user_id, record.meeting_id)
        return created

    # ---- access check ----

    def check_access(self, user_id: int, material_id: int) -> AccessDecision:
        if self._unlocks.exists(user_id, material_id):
            return AccessDecision(can_access=True, reason=AccessReason.MANUAL_ACCESS_GRANTED)

        material = self._materials.get_by_id(material_id)
        if not material:
            raise NotFoundError("Material not found")

        records = self._attendance.list_for_user_in_course(user_id, material.course_id)
        if any(r.status.is_excusing for r in records):
            return AccessDecision(can_access=True, reason=AccessReason.VALID_ATTENDANCE)

        restriction = self._restrictions.get_active(user_id, material_id)
        absences = [r for r in records if r.status == AttendanceStatus.ABSENT]
        if restriction is None and absences:
            restriction = self._heal(user_id, material.course_id, material_id, absences[0].meeting_id)

        if restriction is not None or absences:
            return AccessDecision(
                can_access=False,
                reason=AccessReason.ABSENT_NO_ACCESS,
                restriction=restriction,
            )

        return AccessDecision(can_access=True, reason=AccessReason.NO_ATTENDANCE_HISTORY)

    def _heal(
        self, user_id: int, course_id: int, material_id: int, meeting_id: int
    ) -> Optional[MaterialAccessRestriction]:
        try:
            self._restrictions.create_if_absent(
                user_id=user_id,
                course_id=course_id,
                material_id=material_id,
                meeting_id=meeting_id,
                reason=ABSENCE_RESTRICTION_REASON,
                created_at=self._clock(),
            )
            restriction = self._restrictions.get_active(user_id, material_id)
        except DependencyError:
            logger.warning(
                "Could not re-create restriction user_id=%s material_id=%s meeting_id=%s",
                user_id,
                material_id,
                meeting_id,
            )
            return None
        logger.info("Re-created missing restriction user_id=%s material_id=%s", user_id, material_id)
        return restriction

    # ---- manual unlocks ----

    def grant_manual_unlock(self, req: ManualUnlockRequest, actor: Actor) -> bool:
        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can unlock materials")
        if not self._materials.get_by_id(req.material_id):
            raise NotFoundError("Material not found")

        created = self._unlocks.grant(
            user_id=req.user_id,
            material_id=req.material_id,
            granted_by=actor.user_id,
            created_at=self._clock(),
        )
        logger.info(
            "Manual unlock user_id=%s material_id=%s by user_id=%s (new=%s)",
            req.user_id,
            req.material_id,
            actor.user_id,
            created,
        )
        return created

    def revoke_manual_unlock(self, user_id: int, material_id: int, actor: Actor) -> bool:
        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can revoke unlocks")
        removed = self._unlocks.revoke(user_id, material_id)
        if not removed:
            raise NotFoundError("Manual unlock not found")
        logger.info("Revoked manual unlock user_id=%s material_id=%s by user_id=%s", user_id, material_id, actor.user_id)
        return removed
