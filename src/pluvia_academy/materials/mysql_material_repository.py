from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Material, MaterialAccessRestriction
from .repository import ManualUnlockRepository, MaterialRepository, RestrictionRepository


class MySQLMaterialRepository(MaterialRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, material_id: int) -> Optional[Material]:
        with db_cursor(self._conn_factory, operation="materials.get_by_id") as (_, cur):
            cur.execute(
                "SELECT material_id, course_id, title, ordinal FROM materials WHERE material_id=%s",
                (int(material_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Material(
                material_id=int(r["material_id"]),
                course_id=int(r["course_id"]),
                title=r["title"],
                ordinal=int(r.get("ordinal") or 0),
            )

    def list_ids_for_course(self, course_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory, operation="materials.list_ids_for_course") as (_, cur):
            cur.execute(
                "SELECT material_id FROM materials WHERE course_id=%s ORDER BY ordinal ASC, material_id ASC",
                (int(course_id),),
            )
            return [int(r["material_id"]) for r in fetchall(cur)]


class MySQLRestrictionRepository(RestrictionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        # uq_restriction_active turns a second active row into an ignored duplicate
        with db_cursor(self._conn_factory, operation="restrictions.create_if_absent") as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO material_access_restrictions(
                    user_id, course_id, material_id, meeting_id, reason, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(user_id), int(course_id), int(material_id), int(meeting_id), reason, created_at),
            )
            return cur.rowcount > 0

    def lift_for_meeting(self, *, user_id: int, meeting_id: int, lifted_at: datetime) -> int:
        with db_cursor(self._conn_factory, operation="restrictions.lift_for_meeting") as (_, cur):
            cur.execute(
                """
                UPDATE material_access_restrictions
                SET lifted_at=%s
                WHERE user_id=%s AND meeting_id=%s AND lifted_at IS NULL
                """,
                (lifted_at, int(user_id), int(meeting_id)),
            )
            return int(cur.rowcount)

    def get_active(self, user_id: int, material_id: int) -> Optional[MaterialAccessRestriction]:
        with db_cursor(self._conn_factory, operation="restrictions.get_active") as (_, cur):
            cur.execute(
                """
                SELECT r.restriction_id, r.user_id, r.course_id, r.material_id, r.meeting_id,
                       r.reason, r.created_at, r.lifted_at,
                       m.title AS meeting_title, m.scheduled_at AS meeting_scheduled_at
                FROM material_access_restrictions r
                LEFT JOIN meetings m ON m.meeting_id = r.meeting_id
                WHERE r.user_id=%s AND r.material_id=%s AND r.lifted_at IS NULL
                ORDER BY r.created_at DESC
                LIMIT 1
                """,
                (int(user_id), int(material_id)),
            )
            r = fetchone(cur)
            if not r:
                return None
            return MaterialAccessRestriction(
                restriction_id=int(r["restriction_id"]),
                user_id=int(r["user_id"]),
                course_id=int(r["course_id"]),
                material_id=int(r["material_id"]),
                meeting_id=r.get("meeting_id"),
                reason=r["reason"],
                created_at=r["created_at"],
                lifted_at=r.get("lifted_at"),
                meeting_title=r.get("meeting_title"),
                meeting_scheduled_at=r.get("meeting_scheduled_at"),
            )


class MySQLManualUnlockRepository(ManualUnlockRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def exists(self, user_id: int, material_id: int) -> bool:
        with db_cursor(self._conn_factory, operation="progress.exists") as (_, cur):
            cur.execute(
                "SELECT progress_id FROM progress WHERE user_id=%s AND material_id=%s LIMIT 1",
                (int(user_id), int(material_id)),
            )
            return fetchone(cur) is not None

    def grant(self, *, user_id: int, material_id: int, granted_by: Optional[int], created_at: datetime) -> bool:
        with db_cursor(self._conn_factory, operation="progress.grant") as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO progress(user_id, material_id, granted_by, created_at)
                VALUES(%s,%s,%s,%s)
                """,
                (int(user_id), int(material_id), granted_by, created_at),
            )
            return cur.rowcount > 0

    def revoke(self, user_id: int, material_id: int) -> bool:
        with db_cursor(self._conn_factory, operation="progress.revoke") as (_, cur):
            cur.execute("DELETE FROM progress WHERE user_id=%s AND material_id=%s", (int(user_id), int(material_id)))
            return cur.rowcount > 0
