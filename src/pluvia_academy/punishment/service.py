from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import Clock, now_utc
from ..common.validators import optional_text, require_id
from ..core.constants import (
    AUTO_JOIN_NOTE,
    AUTO_TRIGGER_NOTE,
    DEFAULT_PUNISHMENT_LOG_LIMIT,
    MANUAL_RESET_NOTE,
    RECALCULATION_NOTE,
)
from ..core.enums import AttendanceStatus, PunishmentAction, PunishmentTier
from ..core.exceptions import ConflictError, DependencyError, ForbiddenError, NotFoundError
from ..database.connection import TransactionManager
from ..enrollments.model import Enrollment, RosterEntry
from ..enrollments.repository import EnrollmentRepository
from ..materials.service import MaterialAccessGuard
from ..meetings.model import Meeting
from ..meetings.repository import MeetingRepository
from ..users.model import Actor
from .banner import build_banner, no_banner
from .model import Banner, PunishmentLog, PunishmentSnapshot, PunishmentStatusView
from .repository import PunishmentLogRepository
from .tiers import count_trailing_absences, next_consecutive_absence, order_meetings_newest_first, tier_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResetPunishmentRequest:
    user_id: int
    course_id: int
    notes: Optional[str] = None

    @classmethod
    def parse(cls, payload: Mapping[str, Any]) -> "ResetPunishmentRequest":
        return cls(
            user_id=require_id(payload.get("user_id"), "user_id"),
            course_id=require_id(payload.get("course_id"), "course_id"),
            notes=optional_text(payload.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class ReconcileReport:
    course_id: int
    enrollments_checked: int
    tiers_changed: int
    restrictions_created: int


class PunishmentEngine:
    """Maintains `consecutive_absence` / `punishment_status` on enrollments.

    Two paths keep the counters in step with attendance:

    * `apply_mark` folds one new mark in, inside the mark transaction while
      the enrollment row is locked: an excusing mark on the member's latest
      held meeting resets the counter, any other mark recounts the history;
    * `recompute` rebuilds it from the held-meeting history and repairs any
      drift left by the incremental path.

    Every tier transition appends a punishment log entry.
    """

    def __init__(
        self,
        enrollments: EnrollmentRepository,
        meetings: MeetingRepository,
        attendance: AttendanceRepository,
        logs: PunishmentLogRepository,
        transactions: TransactionManager,
        *,
        guard: Optional[MaterialAccessGuard] = None,
        clock: Clock = now_utc,
        log_limit: int = DEFAULT_PUNISHMENT_LOG_LIMIT,
    ):
        self._enrollments = enrollments
        self._meetings = meetings
        self._attendance = attendance
        self._logs = logs
        self._tx = transactions
        self._guard = guard
        self._clock = clock
        self._log_limit = int(log_limit)

    # ---- incremental path ----

    def apply_mark(
        self,
        enrollment: Enrollment,
        *,
        meeting: Meeting,
        previous: Optional[AttendanceRecord],
        status: AttendanceStatus,
        marker_id: Optional[int],
    ) -> PunishmentSnapshot:
        """Fold one new mark into the counter. Caller holds the enrollment lock."""

        if previous is not None and previous.is_explicit and previous.status == status:
            return PunishmentSnapshot.of(enrollment)

        if status.is_excusing and self._is_latest_held(enrollment, meeting):
            count = next_consecutive_absence(enrollment.consecutive_absence, status)
        else:
            # the stored counter may already include this meeting
            count = self.count_from_history(enrollment)
        return self._store(
            enrollment,
            count,
            action=PunishmentAction.AUTO,
            triggered_by=marker_id,
            notes=AUTO_TRIGGER_NOTE,
        )

    def reset_on_presence(
        self, enrollment: Enrollment, *, meeting: Meeting, triggered_by: Optional[int]
    ) -> PunishmentSnapshot:
        """Zero the counter after a join-time presence. Caller holds the enrollment lock."""

        count = 0 if self._is_latest_held(enrollment, meeting) else self.count_from_history(enrollment)
        return self._store(
            enrollment,
            count,
            action=PunishmentAction.AUTO_JOIN,
            triggered_by=triggered_by,
            notes=AUTO_JOIN_NOTE,
        )

    def _held_meetings(self, enrollment: Enrollment) -> List[Meeting]:
        """Meetings that count for one member, newest first.

        A meeting counts once it is held, or earlier when the member already
        has an explicit excusing mark for it (early auto-join, pre-approved
        leave).
        """

        held = list(self._meetings.list_held_for_course(enrollment.course_id, as_of=self._clock()))
        known = {m.meeting_id for m in held}
        for record in self._attendance.list_for_user_in_course(enrollment.user_id, enrollment.course_id):
            if record.meeting_id in known or not (record.is_explicit and record.status.is_excusing):
                continue
            meeting = self._meetings.get_by_id(record.meeting_id)
            if meeting is not None:
                held.append(meeting)
                known.add(meeting.meeting_id)

        since = enrollment.punishment_reset_at
        if since is not None:
            # a manual reset forgives everything scheduled up to it
            held = [m for m in held if m.scheduled_at > since]
        return order_meetings_newest_first(held)

    def _is_latest_held(self, enrollment: Enrollment, meeting: Meeting) -> bool:
        held = self._held_meetings(enrollment)
        return bool(held) and held[0].meeting_id == meeting.meeting_id

    # ---- full recomputation ----

    def count_from_history(self, enrollment: Enrollment) -> int:
        held = self._held_meetings(enrollment)
        if not held:
            return 0
        records = self._attendance.statuses_for_user(enrollment.user_id, [m.meeting_id for m in held])
        statuses = []
        for meeting in held:
            record = records.get(meeting.meeting_id)
            statuses.append(record.status if record else None)
        return count_trailing_absences(statuses)

    def recompute(self, user_id: int, course_id: int, *, triggered_by: Optional[int] = None) -> PunishmentSnapshot:
        with self._tx.transaction():
            enrollment = self._enrollments.get_for_update(user_id, course_id)
            if not enrollment:
                raise NotFoundError("Enrollment not found")
            return self.recompute_locked(enrollment, triggered_by=triggered_by)

    def recompute_locked(self, enrollment: Enrollment, *, triggered_by: Optional[int] = None) -> PunishmentSnapshot:
        count = self.count_from_history(enrollment)
        return self._store(
            enrollment,
            count,
            action=PunishmentAction.RECALCULATED,
            triggered_by=triggered_by,
            notes=RECALCULATION_NOTE,
        )

    # ---- manual reset ----

    def reset_punishment(self, req: ResetPunishmentRequest, actor: Actor) -> PunishmentSnapshot:
        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can reset punishments")

        with self._tx.transaction():
            enrollment = self._enrollments.get_for_update(req.user_id, req.course_id)
            if not enrollment:
                raise NotFoundError("Enrollment not found")

            now = self._clock()
            self._enrollments.reset_punishment(enrollment_id=enrollment.enrollment_id, reset_at=now)
            self._logs.append(
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                enrollment_id=enrollment.enrollment_id,
                action=PunishmentAction.MANUAL_RESET,
                new_status=PunishmentTier.NONE,
                consecutive_absence=0,
                triggered_by=actor.user_id,
                notes=req.notes or MANUAL_RESET_NOTE,
                created_at=now,
            )

        logger.info(
            "Punishment reset user_id=%s course_id=%s by user_id=%s (was %s/%s)",
            req.user_id,
            req.course_id,
            actor.user_id,
            enrollment.punishment_status.value,
            enrollment.consecutive_absence,
        )
        return PunishmentSnapshot(
            enrollment_id=enrollment.enrollment_id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            consecutive_absence=0,
            punishment_status=PunishmentTier.NONE,
            punishment_updated_at=now,
        )

    # ---- queries ----

    def get_status(self, user_id: int, course_id: int, *, limit: Optional[int] = None) -> PunishmentStatusView:
        snapshot = self.recompute(user_id, course_id)
        logs = self._logs.list_for_course(course_id, user_id=user_id, limit=limit or self._log_limit)
        return PunishmentStatusView(snapshot=snapshot, logs=list(logs))

    def course_roster(self, course_id: int) -> Sequence[RosterEntry]:
        return self._enrollments.list_roster(course_id)

    def list_logs(
        self, course_id: int, *, user_id: Optional[int] = None, limit: Optional[int] = None
    ) -> Sequence[PunishmentLog]:
        return self._logs.list_for_course(course_id, user_id=user_id, limit=limit)

    def banner(self, user_id: int, course_id: int) -> Banner:
        """Banner for the member UI. Lookup failures show no banner."""

        try:
            snapshot = self.recompute(user_id, course_id)
        except NotFoundError:
            return no_banner()
        except (DependencyError, ConflictError):
            logger.warning(
                "Punishment lookup failed for banner user_id=%s course_id=%s; showing none",
                user_id,
                course_id,
            )
            return no_banner()
        return build_banner(snapshot)

    # ---- sweep ----

    def reconcile_course(self, course_id: int, actor: Actor) -> ReconcileReport:
        """Recompute every active enrollment of a course and repair restriction rows."""

        if not actor.is_staff:
            raise ForbiddenError("Only lecturers or admins can reconcile a course")

        checked = changed = created = 0
        for enrollment in self._enrollments.list_active_for_course(course_id):
            with self._tx.transaction():
                locked = self._enrollments.get_for_update(enrollment.user_id, course_id)
                if not locked:
                    continue
                snapshot = self.recompute_locked(locked, triggered_by=actor.user_id)
                if self._guard is not None:
                    created += self._guard.repair_restrictions(locked.user_id, course_id)
            checked += 1
            if snapshot.punishment_status != locked.punishment_status:
                changed += 1

        logger.info(
            "Reconciled course_id=%s: %s enrollments, %s tier changes, %s restrictions created",
            course_id,
            checked,
            changed,
            created,
        )
        return ReconcileReport(
            course_id=course_id,
            enrollments_checked=checked,
            tiers_changed=changed,
            restrictions_created=created,
        )

    # ---- write-back ----

    def _store(
        self,
        enrollment: Enrollment,
        count: int,
        *,
        action: PunishmentAction,
        triggered_by: Optional[int],
        notes: str,
    ) -> PunishmentSnapshot:
        tier = tier_for(count)
        if count == enrollment.consecutive_absence and tier == enrollment.punishment_status:
            return PunishmentSnapshot.of(enrollment)

        now = self._clock()
        self._enrollments.update_punishment(
            enrollment_id=enrollment.enrollment_id,
            consecutive_absence=count,
            punishment_status=tier,
            updated_at=now,
        )

        if tier != enrollment.punishment_status:
            self._logs.append(
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                enrollment_id=enrollment.enrollment_id,
                action=action,
                new_status=tier,
                consecutive_absence=count,
                triggered_by=triggered_by,
                notes=notes,
                created_at=now,
            )
            logger.info(
                "Punishment tier user_id=%s course_id=%s: %s -> %s (consecutive_absence=%s, action=%s)",
                enrollment.user_id,
                enrollment.course_id,
                enrollment.punishment_status.value,
                tier.value,
                count,
                action.value,
            )

        return PunishmentSnapshot(
            enrollment_id=enrollment.enrollment_id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            consecutive_absence=count,
            punishment_status=tier,
            punishment_updated_at=now,
        )
