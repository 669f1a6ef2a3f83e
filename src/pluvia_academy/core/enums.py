from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles used for authorisation."""

    MEMBER = "member"
    LECTURER = "lecturer"
    ADMIN = "admin"

    @property
    def is_staff(self) -> bool:
        return self in (Role.LECTURER, Role.ADMIN)


class AttendanceStatus(str, Enum):
    """Outcome recorded for one member at one meeting."""

    PRESENT = "present"
    ABSENT = "absent"
    PERMITTED = "permitted"
    SICK = "sick"

    @property
    def is_excusing(self) -> bool:
        # present counts as excusing too: it ends an absence streak
        return self is not AttendanceStatus.ABSENT


class PunishmentTier(str, Enum):
    """Escalation level derived from consecutive absences (ordered)."""

    NONE = "none"
    WARNING_1 = "warning_1"
    WARNING_2 = "warning_2"
    SUSPENDED = "suspended"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = [PunishmentTier.NONE, PunishmentTier.WARNING_1, PunishmentTier.WARNING_2, PunishmentTier.SUSPENDED]


class PunishmentAction(str, Enum):
    """What produced a punishment log entry."""

    AUTO = "auto"
    RECALCULATED = "recalculated"
    AUTO_JOIN = "auto_join"
    MANUAL_RESET = "manual_reset"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class MeetingStatus(str, Enum):
    """Meeting lifecycle: scheduled -> ongoing -> completed."""

    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class AutoJoinOutcome(str, Enum):
    MARKED_PRESENT = "marked_present"
    ALREADY_MARKED = "already_marked"
    ALREADY_SET = "already_set"
    TIME_EXPIRED = "time_expired"


class AccessReason(str, Enum):
    MANUAL_ACCESS_GRANTED = "manual_access_granted"
    VALID_ATTENDANCE = "valid_attendance"
    NO_ATTENDANCE_HISTORY = "no_attendance_history"
    ABSENT_NO_ACCESS = "absent_no_access"
    ACCESS_CHECK_FAILED = "access_check_failed"
