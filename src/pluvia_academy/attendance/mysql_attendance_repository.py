from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import AttendanceRecord, AttendanceWrite, MeetingAttendanceRow
from .repository import AttendanceRepository

_COLUMNS = "attendance_id, meeting_id, user_id, course_id, status, marked_by, notes, marked_at"

_UPSERT_SQL = """
    INSERT INTO attendance(meeting_id, user_id, course_id, status, marked_by, notes, marked_at)
    VALUES(%s,%s,%s,%s,%s,%s,%s)
    ON DUPLICATE KEY UPDATE
        status=VALUES(status),
        marked_by=VALUES(marked_by),
        notes=VALUES(notes),
        marked_at=VALUES(marked_at)
"""


def _to_record(row: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(row["attendance_id"]),
        meeting_id=int(row["meeting_id"]),
        user_id=int(row["user_id"]),
        course_id=int(row["course_id"]),
        status=AttendanceStatus(row["status"]),
        marked_by=row.get("marked_by"),
        notes=row.get("notes"),
        marked_at=row["marked_at"],
    )


def _params(row: AttendanceWrite) -> tuple:
    return (
        int(row.meeting_id),
        int(row.user_id),
        int(row.course_id),
        row.status.value,
        row.marked_by,
        row.notes,
        row.marked_at,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, meeting_id: int, user_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory, operation="attendance.get") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance WHERE meeting_id=%s AND user_id=%s",
                (int(meeting_id), int(user_id)),
            )
            row = fetchone(cur)
            return _to_record(row) if row else None

    def upsert(self, row: AttendanceWrite) -> AttendanceRecord:
        with db_cursor(self._conn_factory, operation="attendance.upsert") as (_, cur):
            cur.execute(_UPSERT_SQL, _params(row))
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance WHERE meeting_id=%s AND user_id=%s",
                (int(row.meeting_id), int(row.user_id)),
            )
            return _to_record(fetchone(cur))

    def bulk_upsert(self, rows: Sequence[AttendanceWrite]) -> int:
        if not rows:
            return 0
        with db_cursor(self._conn_factory, operation="attendance.bulk_upsert") as (_, cur):
            cur.executemany(_UPSERT_SQL, [_params(r) for r in rows])
        return len(rows)

    def seed_absent(self, rows: Sequence[AttendanceWrite]) -> int:
        if not rows:
            return 0
        with db_cursor(self._conn_factory, operation="attendance.seed_absent") as (_, cur):
            cur.executemany(
                """
                INSERT INTO attendance(meeting_id, user_id, course_id, status, marked_by, notes, marked_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE attendance_id=attendance_id
                """,
                [_params(r) for r in rows],
            )
        return len(rows)

    def list_for_meeting(self, meeting_id: int) -> Sequence[MeetingAttendanceRow]:
        with db_cursor(self._conn_factory, operation="attendance.list_for_meeting") as (_, cur):
            cur.execute(
                """
                SELECT a.attendance_id, a.user_id, u.full_name, u.email,
                       a.status, a.marked_by, a.marked_at, a.notes
                FROM attendance a
                JOIN users u ON u.user_id = a.user_id
                WHERE a.meeting_id=%s
                ORDER BY a.status ASC, u.full_name ASC
                """,
                (int(meeting_id),),
            )
            return [
                MeetingAttendanceRow(
                    attendance_id=int(r["attendance_id"]),
                    user_id=int(r["user_id"]),
                    full_name=r["full_name"],
                    email=r["email"],
                    status=AttendanceStatus(r["status"]),
                    marked_by=r.get("marked_by"),
                    marked_at=r["marked_at"],
                    notes=r.get("notes"),
                )
                for r in fetchall(cur)
            ]

    def list_for_user_in_course(self, user_id: int, course_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory, operation="attendance.list_for_user_in_course") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance WHERE user_id=%s AND course_id=%s ORDER BY marked_at DESC, attendance_id DESC",
                (int(user_id), int(course_id)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def statuses_for_user(self, user_id: int, meeting_ids: Sequence[int]) -> Dict[int, AttendanceRecord]:
        if not meeting_ids:
            return {}
        ids = [int(m) for m in meeting_ids]
        with db_cursor(self._conn_factory, operation="attendance.statuses_for_user") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance WHERE user_id=%s AND meeting_id IN ({in_clause(ids)})",
                (int(user_id), *ids),
            )
            return {int(r["meeting_id"]): _to_record(r) for r in fetchall(cur)}
