"""Member-facing banner text for each punishment tier."""

from __future__ import annotations

from ..core.constants import SUSPENSION_THRESHOLD
from ..core.enums import PunishmentTier
from .model import Banner, PunishmentSnapshot


def no_banner() -> Banner:
    return Banner(status=PunishmentTier.NONE, consecutive_absence=0, can_access=True)


def build_banner(snapshot: PunishmentSnapshot) -> Banner:
    tier = snapshot.punishment_status
    count = snapshot.consecutive_absence

    if tier == PunishmentTier.WARNING_1:
        return Banner(
            status=tier,
            consecutive_absence=count,
            can_access=True,
            title="Attendance warning",
            message=f"You have missed {count} meeting in a row.",
            hint="Join the next meeting to clear this warning.",
        )
    if tier == PunishmentTier.WARNING_2:
        return Banner(
            status=tier,
            consecutive_absence=count,
            can_access=True,
            title="Second attendance warning",
            message=f"You have missed {count} meetings in a row.",
            hint="One more absence and your access to this course will be suspended.",
        )
    if tier == PunishmentTier.SUSPENDED:
        return Banner(
            status=tier,
            consecutive_absence=count,
            can_access=False,
            title="Course access suspended",
            message=f"You have missed {SUSPENSION_THRESHOLD} or more meetings in a row.",
            hint="Contact your lecturer to have your access restored.",
        )
    return Banner(status=PunishmentTier.NONE, consecutive_absence=count, can_access=True)
