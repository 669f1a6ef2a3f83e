from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

from ..core.enums import MeetingStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Meeting
from .repository import MeetingRepository

_COLUMNS = (
    "meeting_id, course_id, title, description, meet_link, scheduled_at, "
    "duration_minutes, status, created_by, created_at"
)
_NEWEST_FIRST = "ORDER BY scheduled_at DESC, created_at DESC, meeting_id DESC"


def _to_meeting(row: Dict[str, Any]) -> Meeting:
    return Meeting(
        meeting_id=int(row["meeting_id"]),
        course_id=int(row["course_id"]),
        title=row["title"],
        scheduled_at=row["scheduled_at"],
        created_at=row["created_at"],
        status=MeetingStatus(row["status"]),
        duration_minutes=int(row.get("duration_minutes") or 60),
        created_by=row.get("created_by"),
        description=row.get("description"),
        meet_link=row.get("meet_link"),
    )


class MySQLMeetingRepository(MeetingRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(
        self,
        *,
        course_id: int,
        title: str,
        scheduled_at: datetime,
        duration_minutes: int,
        created_by: Optional[int],
        created_at: datetime,
        description: Optional[str] = None,
        meet_link: Optional[str] = None,
    ) -> Meeting:
        with db_cursor(self._conn_factory, operation="meetings.create") as (_, cur):
            cur.execute(
                """
                INSERT INTO meetings(course_id, title, description, meet_link, scheduled_at,
                                     duration_minutes, status, created_by, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(course_id),
                    title,
                    description,
                    meet_link,
                    scheduled_at,
                    int(duration_minutes),
                    MeetingStatus.SCHEDULED.value,
                    created_by,
                    created_at,
                ),
            )
            meeting_id = int(cur.lastrowid)

        return Meeting(
            meeting_id=meeting_id,
            course_id=int(course_id),
            title=title,
            scheduled_at=scheduled_at,
            created_at=created_at,
            duration_minutes=int(duration_minutes),
            created_by=created_by,
            description=description,
            meet_link=meet_link,
        )

    def get_by_id(self, meeting_id: int) -> Optional[Meeting]:
        with db_cursor(self._conn_factory, operation="meetings.get_by_id") as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM meetings WHERE meeting_id=%s", (int(meeting_id),))
            row = fetchone(cur)
            return _to_meeting(row) if row else None

    def delete(self, meeting_id: int) -> bool:
        with db_cursor(self._conn_factory, operation="meetings.delete") as (_, cur):
            cur.execute("DELETE FROM meetings WHERE meeting_id=%s", (int(meeting_id),))
            return cur.rowcount > 0

    def list_for_course(self, course_id: int) -> Sequence[Meeting]:
        with db_cursor(self._conn_factory, operation="meetings.list_for_course") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM meetings WHERE course_id=%s ORDER BY created_at ASC, meeting_id ASC",
                (int(course_id),),
            )
            return [_to_meeting(r) for r in fetchall(cur)]

    def list_held_for_course(self, course_id: int, *, as_of: datetime) -> Sequence[Meeting]:
        with db_cursor(self._conn_factory, operation="meetings.list_held_for_course") as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM meetings WHERE course_id=%s AND (scheduled_at<=%s OR status<>%s) {_NEWEST_FIRST}",
                (int(course_id), as_of, MeetingStatus.SCHEDULED.value),
            )
            return [_to_meeting(r) for r in fetchall(cur)]

    def latest_with_status(self, course_id: int, statuses: Iterable[MeetingStatus]) -> Optional[Meeting]:
        values = [s.value for s in statuses]
        with db_cursor(self._conn_factory, operation="meetings.latest_with_status") as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM meetings
                WHERE course_id=%s AND status IN ({in_clause(values)})
                {_NEWEST_FIRST}
                LIMIT 1
                """,
                (int(course_id), *values),
            )
            row = fetchone(cur)
            return _to_meeting(row) if row else None

    def set_status(self, meeting_id: int, status: MeetingStatus) -> bool:
        with db_cursor(self._conn_factory, operation="meetings.set_status") as (_, cur):
            cur.execute("UPDATE meetings SET status=%s WHERE meeting_id=%s", (status.value, int(meeting_id)))
            return cur.rowcount > 0
