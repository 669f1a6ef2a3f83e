from __future__ import annotations

from dataclasses import dataclass

from .attendance.auto_join import AutoJoinService
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .common.datetime_utils import Clock, now_utc
from .core.constants import AUTO_JOIN_WINDOW_MINUTES, DEFAULT_PUNISHMENT_LOG_LIMIT
from .database.connection import DBConfig, DatabaseConnection, TransactionManager
from .enrollments.mysql_enrollment_repository import MySQLEnrollmentRepository
from .enrollments.repository import EnrollmentRepository
from .materials.mysql_material_repository import (
    MySQLManualUnlockRepository,
    MySQLMaterialRepository,
    MySQLRestrictionRepository,
)
from .materials.repository import ManualUnlockRepository, MaterialRepository, RestrictionRepository
from .materials.service import MaterialAccessGuard
from .meetings.mysql_meeting_repository import MySQLMeetingRepository
from .meetings.repository import MeetingRepository
from .meetings.service import MeetingService
from .punishment.mysql_punishment_log_repository import MySQLPunishmentLogRepository
from .punishment.repository import PunishmentLogRepository
from .punishment.service import PunishmentEngine
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService


@dataclass(frozen=True)
class Container:
    transactions: TransactionManager

    users_repo: UserRepository
    enrollments_repo: EnrollmentRepository
    meetings_repo: MeetingRepository
    attendance_repo: AttendanceRepository
    punishment_logs_repo: PunishmentLogRepository
    materials_repo: MaterialRepository
    restrictions_repo: RestrictionRepository
    unlocks_repo: ManualUnlockRepository

    auth_service: AuthService
    access_guard: MaterialAccessGuard
    punishment_engine: PunishmentEngine
    attendance_service: AttendanceService
    auto_join_service: AutoJoinService
    meeting_service: MeetingService

    punishment_log_limit: int = DEFAULT_PUNISHMENT_LOG_LIMIT


def wire(
    *,
    transactions: TransactionManager,
    users_repo: UserRepository,
    enrollments_repo: EnrollmentRepository,
    meetings_repo: MeetingRepository,
    attendance_repo: AttendanceRepository,
    punishment_logs_repo: PunishmentLogRepository,
    materials_repo: MaterialRepository,
    restrictions_repo: RestrictionRepository,
    unlocks_repo: ManualUnlockRepository,
    clock: Clock = now_utc,
    auto_join_window_minutes: int = AUTO_JOIN_WINDOW_MINUTES,
    punishment_log_limit: int = DEFAULT_PUNISHMENT_LOG_LIMIT,
) -> Container:
    """Build the services on top of any set of repositories."""

    access_guard = MaterialAccessGuard(
        materials_repo,
        restrictions_repo,
        unlocks_repo,
        attendance_repo,
        clock=clock,
    )
    punishment_engine = PunishmentEngine(
        enrollments_repo,
        meetings_repo,
        attendance_repo,
        punishment_logs_repo,
        transactions,
        guard=access_guard,
        clock=clock,
        log_limit=punishment_log_limit,
    )
    attendance_service = AttendanceService(
        attendance_repo,
        meetings_repo,
        enrollments_repo,
        punishment_engine,
        access_guard,
        transactions,
        clock=clock,
    )
    auto_join_service = AutoJoinService(
        enrollments_repo,
        meetings_repo,
        attendance_repo,
        punishment_engine,
        access_guard,
        transactions,
        clock=clock,
        window_minutes=auto_join_window_minutes,
    )
    meeting_service = MeetingService(
        meetings_repo,
        enrollments_repo,
        attendance_repo,
        punishment_engine,
        transactions,
        clock=clock,
    )

    return Container(
        transactions=transactions,
        users_repo=users_repo,
        enrollments_repo=enrollments_repo,
        meetings_repo=meetings_repo,
        attendance_repo=attendance_repo,
        punishment_logs_repo=punishment_logs_repo,
        materials_repo=materials_repo,
        restrictions_repo=restrictions_repo,
        unlocks_repo=unlocks_repo,
        auth_service=AuthService(users_repo),
        access_guard=access_guard,
        punishment_engine=punishment_engine,
        attendance_service=attendance_service,
        auto_join_service=auto_join_service,
        meeting_service=meeting_service,
        punishment_log_limit=int(punishment_log_limit),
    )


def build_container(
    *,
    db_config: dict,
    auto_join_window_minutes: int = AUTO_JOIN_WINDOW_MINUTES,
    punishment_log_limit: int = DEFAULT_PUNISHMENT_LOG_LIMIT,
) -> Container:
    conn = DatabaseConnection(DBConfig.from_dict(db_config))

    return wire(
        transactions=conn,
        users_repo=MySQLUserRepository(conn),
        enrollments_repo=MySQLEnrollmentRepository(conn),
        meetings_repo=MySQLMeetingRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        punishment_logs_repo=MySQLPunishmentLogRepository(conn),
        materials_repo=MySQLMaterialRepository(conn),
        restrictions_repo=MySQLRestrictionRepository(conn),
        unlocks_repo=MySQLManualUnlockRepository(conn),
        auto_join_window_minutes=auto_join_window_minutes,
        punishment_log_limit=punishment_log_limit,
    )
