"""Pure rules of the punishment ladder.

none -(absent)-> warning_1 -(absent)-> warning_2 -(absent)-> suspended, and
any present/permitted/sick mark drops straight back to none.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..core.constants import SUSPENSION_THRESHOLD
from ..core.enums import AttendanceStatus, PunishmentTier
from ..meetings.model import Meeting


def tier_for(consecutive_absence: int) -> PunishmentTier:
    if consecutive_absence < 0:
        raise ValueError("consecutive_absence cannot be negative")
    if consecutive_absence == 0:
        return PunishmentTier.NONE
    if consecutive_absence == 1:
        return PunishmentTier.WARNING_1
    if consecutive_absence < SUSPENSION_THRESHOLD:
        return PunishmentTier.WARNING_2
    return PunishmentTier.SUSPENDED


def next_consecutive_absence(current: int, status: AttendanceStatus) -> int:
    """Counter after one more mark on the newest meeting."""
    if status.is_excusing:
        return 0
    return max(0, int(current)) + 1


def count_trailing_absences(statuses_newest_first: Iterable[Optional[AttendanceStatus]]) -> int:
    """Count absences from the newest meeting backwards.

    `None` stands for a meeting without an attendance row; meetings are seeded
    with an absent row for every member, so a missing row counts as absent.
    """

    count = 0
    for status in statuses_newest_first:
        if status is not None and status.is_excusing:
            break
        count += 1
    return count


def order_meetings_newest_first(meetings: Sequence[Meeting]) -> List[Meeting]:
    return sorted(meetings, key=lambda m: m.sort_key(), reverse=True)
