from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import PunishmentAction, PunishmentTier
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import PunishmentLog
from .repository import PunishmentLogRepository


class MySQLPunishmentLogRepository(PunishmentLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        with db_cursor(self._conn_factory, operation="punishment_logs.append") as (_, cur):
            cur.execute(
                """
                INSERT INTO punishment_logs(user_id, course_id, enrollment_id, action, new_status,
                                            consecutive_absence, triggered_by, notes, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    int(course_id),
                    int(enrollment_id),
                    action.value,
                    new_status.value,
                    int(consecutive_absence),
                    triggered_by,
                    notes,
                    created_at,
                ),
            )
            return int(cur.lastrowid)

    def list_for_course(
        self,
        course_id: int,
        *,
        user_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Sequence[PunishmentLog]:
        clauses = ["course_id=%s"]
        params: list[object] = [int(course_id)]
        if user_id is not None:
            clauses.append("user_id=%s")
            params.append(int(user_id))

        sql = f"""
            SELECT log_id, user_id, course_id, enrollment_id, action, new_status,
                   consecutive_absence, triggered_by, notes, created_at
            FROM punishment_logs
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, log_id DESC
        """
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory, operation="punishment_logs.list_for_course") as (_, cur):
            cur.execute(sql, tuple(params))
            return [
                PunishmentLog(
                    log_id=int(r["log_id"]),
                    user_id=int(r["user_id"]),
                    course_id=int(r["course_id"]),
                    enrollment_id=int(r["enrollment_id"]),
                    action=PunishmentAction(r["action"]),
                    new_status=PunishmentTier(r["new_status"]),
                    consecutive_absence=int(r["consecutive_absence"]),
                    triggered_by=r.get("triggered_by"),
                    notes=r.get("notes"),
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]
