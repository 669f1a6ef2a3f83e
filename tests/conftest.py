from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from werkzeug.security import generate_password_hash

from pluvia_academy.attendance.model import AttendanceRecord, AttendanceWrite, MeetingAttendanceRow
from pluvia_academy.container import Container, wire
from pluvia_academy.core.enums import EnrollmentStatus, MeetingStatus, PunishmentTier, Role
from pluvia_academy.core.exceptions import DependencyError
from pluvia_academy.enrollments.model import Enrollment, RosterEntry
from pluvia_academy.materials.model import Material, MaterialAccessRestriction
from pluvia_academy.meetings.model import Meeting
from pluvia_academy.meetings.service import CreateMeetingRequest
from pluvia_academy.punishment.model import PunishmentLog
from pluvia_academy.users.model import Actor, User


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeTransactions:
    def __init__(self):
        self._lock = threading.RLock()
        self.opened = 0

    @contextmanager
    def transaction(self):
        with self._lock:
            self.opened += 1
            yield


class InMemoryUsers:
    def __init__(self):
        self.by_id: Dict[int, User] = {}

    def get_by_email(self, email: str) -> Optional[User]:
        for u in self.by_id.values():
            if u.email == email:
                return u
        return None


class InMemoryEnrollments:
    def __init__(self, users: InMemoryUsers):
        self._users = users
        self.rows: Dict[int, Enrollment] = {}
        self._id = 0

    def add(self, user_id: int, course_id: int, status: EnrollmentStatus = EnrollmentStatus.ACTIVE) -> Enrollment:
        self._id += 1
        e = Enrollment(enrollment_id=self._id, user_id=user_id, course_id=course_id, status=status)
        self.rows[e.enrollment_id] = e
        return e

    def get(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        for e in self.rows.values():
            if e.user_id == user_id and e.course_id == course_id:
                return e
        return None

    def get_for_update(self, user_id: int, course_id: int) -> Optional[Enrollment]:
        return self.get(user_id, course_id)

    def list_active_for_course(self, course_id: int) -> Sequence[Enrollment]:
        return [e for e in sorted(self.rows.values(), key=lambda e: e.enrollment_id) if e.course_id == course_id and e.is_active]

    def list_roster(self, course_id: int) -> Sequence[RosterEntry]:
        out = []
        for e in self.list_active_for_course(course_id):
            u = self._users.by_id[e.user_id]
            out.append(
                RosterEntry(
                    enrollment_id=e.enrollment_id,
                    user_id=e.user_id,
                    full_name=u.full_name,
                    email=u.email,
                    consecutive_absence=e.consecutive_absence,
                    punishment_status=e.punishment_status,
                    punishment_updated_at=e.punishment_updated_at,
                )
            )
        out.sort(key=lambda r: (-r.consecutive_absence, r.full_name))
        return out

    def update_punishment(
        self, *, enrollment_id: int, consecutive_absence: int, punishment_status: PunishmentTier, updated_at: datetime
    ) -> bool:
        e = self.rows.get(enrollment_id)
        if not e:
            return False
        self.rows[enrollment_id] = dataclasses.replace(
            e,
            consecutive_absence=consecutive_absence,
            punishment_status=punishment_status,
            punishment_updated_at=updated_at,
        )
        return True

    def reset_punishment(self, *, enrollment_id: int, reset_at: datetime) -> bool:
        e = self.rows.get(enrollment_id)
        if not e:
            return False
        self.rows[enrollment_id] = dataclasses.replace(
            e,
            consecutive_absence=0,
            punishment_status=PunishmentTier.NONE,
            punishment_updated_at=reset_at,
            punishment_reset_at=reset_at,
        )
        return True


class InMemoryAttendance:
    def __init__(self, users: InMemoryUsers):
        self._users = users
        self.rows: Dict[Tuple[int, int], AttendanceRecord] = {}
        self._id = 0

    def _write(self, row: AttendanceWrite) -> AttendanceRecord:
        key = (row.meeting_id, row.user_id)
        existing = self.rows.get(key)
        if existing:
            attendance_id = existing.attendance_id
        else:
            self._id += 1
            attendance_id = self._id
        rec = AttendanceRecord(
            attendance_id=attendance_id,
            meeting_id=row.meeting_id,
            user_id=row.user_id,
            course_id=row.course_id,
            status=row.status,
            marked_at=row.marked_at,
            marked_by=row.marked_by,
            notes=row.notes,
        )
        self.rows[key] = rec
        return rec

    def get(self, meeting_id: int, user_id: int) -> Optional[AttendanceRecord]:
        return self.rows.get((meeting_id, user_id))

    def upsert(self, row: AttendanceWrite) -> AttendanceRecord:
        return self._write(row)

    def bulk_upsert(self, rows: Sequence[AttendanceWrite]) -> int:
        for r in rows:
            self._write(r)
        return len(rows)

    def seed_absent(self, rows: Sequence[AttendanceWrite]) -> int:
        for r in rows:
            if (r.meeting_id, r.user_id) not in self.rows:
                self._write(r)
        return len(rows)

    def list_for_meeting(self, meeting_id: int) -> Sequence[MeetingAttendanceRow]:
        out = []
        for (m_id, user_id), r in self.rows.items():
            if m_id != meeting_id:
                continue
            u = self._users.by_id[user_id]
            out.append(
                MeetingAttendanceRow(
                    attendance_id=r.attendance_id,
                    user_id=user_id,
                    full_name=u.full_name,
                    email=u.email,
                    status=r.status,
                    marked_by=r.marked_by,
                    marked_at=r.marked_at,
                    notes=r.notes,
                )
            )
        out.sort(key=lambda r: (r.status.value, r.full_name))
        return out

    def list_for_user_in_course(self, user_id: int, course_id: int) -> Sequence[AttendanceRecord]:
        items = [r for r in self.rows.values() if r.user_id == user_id and r.course_id == course_id]
        items.sort(key=lambda r: (r.marked_at, r.attendance_id), reverse=True)
        return items

    def statuses_for_user(self, user_id: int, meeting_ids: Sequence[int]) -> Dict[int, AttendanceRecord]:
        wanted = set(meeting_ids)
        return {m_id: r for (m_id, u_id), r in self.rows.items() if u_id == user_id and m_id in wanted}

    def delete_for_meeting(self, meeting_id: int) -> None:
        for key in [k for k in self.rows if k[0] == meeting_id]:
            del self.rows[key]


class InMemoryMeetings:
    def __init__(self, attendance: InMemoryAttendance):
        self._attendance = attendance
        self.rows: Dict[int, Meeting] = {}
        self._id = 0

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
        self._id += 1
        m = Meeting(
            meeting_id=self._id,
            course_id=course_id,
            title=title,
            scheduled_at=scheduled_at,
            created_at=created_at,
            duration_minutes=duration_minutes,
            created_by=created_by,
            description=description,
            meet_link=meet_link,
        )
        self.rows[m.meeting_id] = m
        return m

    def get_by_id(self, meeting_id: int) -> Optional[Meeting]:
        return self.rows.get(meeting_id)

    def delete(self, meeting_id: int) -> bool:
        if meeting_id not in self.rows:
            return False
        del self.rows[meeting_id]
        self._attendance.delete_for_meeting(meeting_id)
        return True

    def list_for_course(self, course_id: int) -> Sequence[Meeting]:
        items = [m for m in self.rows.values() if m.course_id == course_id]
        return sorted(items, key=lambda m: (m.created_at, m.meeting_id))

    def list_held_for_course(self, course_id: int, *, as_of: datetime) -> Sequence[Meeting]:
        items = [m for m in self.rows.values() if m.course_id == course_id and m.is_held(as_of)]
        return sorted(items, key=lambda m: m.sort_key(), reverse=True)

    def latest_with_status(self, course_id, statuses) -> Optional[Meeting]:
        wanted = set(statuses)
        items = [m for m in self.rows.values() if m.course_id == course_id and m.status in wanted]
        items.sort(key=lambda m: m.sort_key(), reverse=True)
        return items[0] if items else None

    def set_status(self, meeting_id: int, status: MeetingStatus) -> bool:
        m = self.rows.get(meeting_id)
        if not m:
            return False
        self.rows[meeting_id] = dataclasses.replace(m, status=status)
        return True


class InMemoryPunishmentLogs:
    def __init__(self):
        self.entries: List[PunishmentLog] = []

    def append(
        self,
        *,
        user_id,
        course_id,
        enrollment_id,
        action,
        new_status,
        consecutive_absence,
        triggered_by,
        notes,
        created_at,
    ) -> int:
        log = PunishmentLog(
            log_id=len(self.entries) + 1,
            user_id=user_id,
            course_id=course_id,
            enrollment_id=enrollment_id,
            action=action,
            new_status=new_status,
            consecutive_absence=consecutive_absence,
            created_at=created_at,
            triggered_by=triggered_by,
            notes=notes,
        )
        self.entries.append(log)
        return log.log_id

    def list_for_course(self, course_id: int, *, user_id: Optional[int] = None, limit: Optional[int] = None):
        items = [e for e in self.entries if e.course_id == course_id and (user_id is None or e.user_id == user_id)]
        items.sort(key=lambda e: (e.created_at, e.log_id), reverse=True)
        return items[:limit] if limit else items


class InMemoryMaterials:
    def __init__(self):
        self.rows: Dict[int, Material] = {}

    def add(self, course_id: int, title: str) -> Material:
        m = Material(material_id=len(self.rows) + 1, course_id=course_id, title=title, ordinal=len(self.rows) + 1)
        self.rows[m.material_id] = m
        return m

    def get_by_id(self, material_id: int) -> Optional[Material]:
        return self.rows.get(material_id)

    def list_ids_for_course(self, course_id: int) -> Sequence[int]:
        items = [m for m in self.rows.values() if m.course_id == course_id]
        return [m.material_id for m in sorted(items, key=lambda m: (m.ordinal, m.material_id))]


class InMemoryRestrictions:
    def __init__(self, meetings: InMemoryMeetings):
        self._meetings = meetings
        self.rows: List[MaterialAccessRestriction] = []
        self.failing_materials = set()

    def active_for(self, user_id: int, material_id: int) -> List[MaterialAccessRestriction]:
        return [r for r in self.rows if r.user_id == user_id and r.material_id == material_id and r.is_active]

    def create_if_absent(self, *, user_id, course_id, material_id, meeting_id, reason, created_at) -> bool:
        if material_id in self.failing_materials:
            raise DependencyError("Datastore unavailable during restrictions.create_if_absent")
        if self.active_for(user_id, material_id):
            return False
        self.rows.append(
            MaterialAccessRestriction(
                restriction_id=len(self.rows) + 1,
                user_id=user_id,
                course_id=course_id,
                material_id=material_id,
                meeting_id=meeting_id,
                reason=reason,
                created_at=created_at,
            )
        )
        return True

    def lift_for_meeting(self, *, user_id: int, meeting_id: int, lifted_at: datetime) -> int:
        lifted = 0
        for i, r in enumerate(self.rows):
            if r.user_id == user_id and r.meeting_id == meeting_id and r.is_active:
                self.rows[i] = dataclasses.replace(r, lifted_at=lifted_at)
                lifted += 1
        return lifted

    def get_active(self, user_id: int, material_id: int) -> Optional[MaterialAccessRestriction]:
        active = self.active_for(user_id, material_id)
        if not active:
            return None
        r = active[-1]
        meeting = self._meetings.get_by_id(r.meeting_id)
        return dataclasses.replace(
            r,
            meeting_title=meeting.title if meeting else None,
            meeting_scheduled_at=meeting.scheduled_at if meeting else None,
        )


class InMemoryUnlocks:
    def __init__(self):
        self.rows = set()

    def exists(self, user_id: int, material_id: int) -> bool:
        return (user_id, material_id) in self.rows

    def grant(self, *, user_id: int, material_id: int, granted_by, created_at) -> bool:
        if (user_id, material_id) in self.rows:
            return False
        self.rows.add((user_id, material_id))
        return True

    def revoke(self, user_id: int, material_id: int) -> bool:
        if (user_id, material_id) not in self.rows:
            return False
        self.rows.remove((user_id, material_id))
        return True


START = datetime(2026, 3, 2, 9, 0, 0)
COURSE_ID = 1
OTHER_COURSE_ID = 2


class World:
    """Services wired on in-memory repositories plus a few shortcuts."""

    def __init__(self):
        self.clock = FakeClock(START)
        self.tx = FakeTransactions()
        self.users = InMemoryUsers()
        self.enrollments = InMemoryEnrollments(self.users)
        self.attendance = InMemoryAttendance(self.users)
        self.meetings = InMemoryMeetings(self.attendance)
        self.logs = InMemoryPunishmentLogs()
        self.materials = InMemoryMaterials()
        self.restrictions = InMemoryRestrictions(self.meetings)
        self.unlocks = InMemoryUnlocks()

        self.container: Container = wire(
            transactions=self.tx,
            users_repo=self.users,
            enrollments_repo=self.enrollments,
            meetings_repo=self.meetings,
            attendance_repo=self.attendance,
            punishment_logs_repo=self.logs,
            materials_repo=self.materials,
            restrictions_repo=self.restrictions,
            unlocks_repo=self.unlocks,
            clock=self.clock,
        )

        self.admin = self.add_user("Admin", Role.ADMIN)
        self.lecturer = self.add_user("Dosen", Role.LECTURER)

    @property
    def engine(self):
        return self.container.punishment_engine

    @property
    def guard(self):
        return self.container.access_guard

    @property
    def recorder(self):
        return self.container.attendance_service

    def add_user(self, name: str, role: Role = Role.MEMBER, password: str = "secret") -> Actor:
        user_id = len(self.users.by_id) + 1
        self.users.by_id[user_id] = User(
            user_id=user_id,
            full_name=name,
            email=f"{name.lower().replace(' ', '.')}@pluvia.test",
            password_hash=generate_password_hash(password, method="pbkdf2:sha256:1000"),
            role=role,
        )
        return Actor(user_id=user_id, role=role, full_name=name)

    def add_member(self, name: str, course_id: int = COURSE_ID) -> Actor:
        actor = self.add_user(name)
        self.enrollments.add(actor.user_id, course_id)
        return actor

    def enrollment(self, user_id: int, course_id: int = COURSE_ID) -> Enrollment:
        return self.enrollments.get(user_id, course_id)

    def hold_meeting(self, course_id: int = COURSE_ID, title: Optional[str] = None, **schedule_offset) -> Meeting:
        """Create a meeting scheduled now (plus any offset) and move the clock past it."""
        scheduled_at = self.clock.now + timedelta(**schedule_offset)
        meeting = self.container.meeting_service.create_meeting(
            CreateMeetingRequest(
                course_id=course_id,
                title=title or f"Meeting {len(self.meetings.rows) + 1}",
                scheduled_at=scheduled_at,
            ),
            self.lecturer,
        )
        self.clock.advance(minutes=1)
        return meeting


@pytest.fixture
def world() -> World:
    return World()
