from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import EnrollmentStatus, PunishmentTier
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Enrollment, RosterEntry
from .repository import EnrollmentRepository

_COLUMNS = (
    "enrollment_id, user_id, course_id, status, consecutive_absence, "
    "punishment_status, punishment_updated_at, punishment_reset_at"
)


def _to_enrollment(row: Dict[str, Any]) -> Enrollment:
    return Enrollment(
        enrollment_id=int(row["enrollment_id"]),
        user_id=int(row["user_id"]),
        course_id=int(row["course_id"]),
        status=EnrollmentStatus(row["status"]),
        consecutive_absence=int(row.get("consecutive_absence") or 0),
        punishment_status=PunishmentTier(row.get("punishment_status") or PunishmentTier.NONE.value),
        punishment_updated_at=row.get("punishment_updated_at"),
        punishment_reset_at=row.get("punishment_reset_at"),
    )


class MySQLEnrollmentRepository(EnrollmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory, operation="enrollments.get") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM enrollments WHERE user_id=%s AND course_id=%s",
                (int(user_id), int(course_id)),
            )
            row = fetchone(cur)
            return _to_enrollment(row) if row else None

    def get_for_update(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        with db_cursor(self._conn_factory, operation="enrollments.get_for_update") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM enrollments WHERE user_id=%s AND course_id=%s FOR UPDATE",
                (int(user_id), int(course_id)),
            )
            row = fetchone(cur)
            return _to_enrollment(row) if row else None

    def list_active_for_course(self, course_id: int) -> Sequence[Enrollment]:
        with db_cursor(self._conn_factory, operation="enrollments.list_active_for_course") as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM enrollments
                WHERE course_id=%s AND status='active'
                ORDER BY enrollment_id ASC
                """,
                (int(course_id),),
            )
            return [_to_enrollment(r) for r in fetchall(cur)]

    def list_roster(self, course_id: int) -> Sequence[RosterEntry]:
        with db_cursor(self._conn_factory, operation="enrollments.list_roster") as (_, cur):
            cur.execute(
                """
                SELECT e.enrollment_id, e.user_id, u.full_name, u.email,
                       e.consecutive_absence, e.punishment_status, e.punishment_updated_at
                FROM enrollments e
                JOIN users u ON u.user_id = e.user_id
                WHERE e.course_id=%s AND e.status='active'
                ORDER BY e.consecutive_absence DESC, u.full_name ASC
                """,
                (int(course_id),),
            )
            return [
                RosterEntry(
                    enrollment_id=int(r["enrollment_id"]),
                    user_id=int(r["user_id"]),
                    full_name=r["full_name"],
                    email=r["email"],
                    consecutive_absence=int(r.get("consecutive_absence") or 0),
                    punishment_status=PunishmentTier(r["punishment_status"]),
                    punishment_updated_at=r.get("punishment_updated_at"),
                )
                for r in fetchall(cur)
            ]

    def update_punishment(
        self,
        *,
        enrollment_id: int,
        consecutive_absence: int,
        punishment_status: PunishmentTier,
        updated_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory, operation="enrollments.update_punishment") as (_, cur):
            cur.execute(
                """
                UPDATE enrollments
                SET consecutive_absence=%s, punishment_status=%s, punishment_updated_at=%s
                WHERE enrollment_id=%s
                """,
                (int(consecutive_absence), punishment_status.value, updated_at, int(enrollment_id)),
            )
            return cur.rowcount > 0

    def reset_punishment(self, *, enrollment_id: int, reset_at: datetime) -> bool:
        with db_cursor(self._conn_factory, operation="enrollments.reset_punishment") as (_, cur):
            cur.execute(
                """
                UPDATE enrollments
                SET consecutive_absence=0, punishment_status='none',
                    punishment_updated_at=%s, punishment_reset_at=%s
                WHERE enrollment_id=%s
                """,
                (reset_at, reset_at, int(enrollment_id)),
            )
            return cur.rowcount > 0
