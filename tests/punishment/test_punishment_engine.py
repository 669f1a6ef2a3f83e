from __future__ import annotations

import random

import pytest

from pluvia_academy.attendance.service import MarkAttendanceRequest
from pluvia_academy.core.enums import AttendanceStatus, PunishmentAction, PunishmentTier
from pluvia_academy.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from pluvia_academy.punishment.service import ResetPunishmentRequest
from pluvia_academy.punishment.tiers import tier_for

COURSE_ID = 1
A = AttendanceStatus.ABSENT
P = AttendanceStatus.PRESENT


def _mark(world, meeting, member, status):
    return world.recorder.mark_attendance(
        MarkAttendanceRequest(meeting_id=meeting.meeting_id, user_id=member.user_id, status=status),
        world.lecturer,
    )


def test_three_absences_then_presence_walks_the_ladder(world):
    member = world.add_member("Budi")
    expected = [
        (A, 1, PunishmentTier.WARNING_1),
        (A, 2, PunishmentTier.WARNING_2),
        (A, 3, PunishmentTier.SUSPENDED),
        (P, 0, PunishmentTier.NONE),
    ]

    for status, count, tier in expected:
        meeting = world.hold_meeting()
        result = _mark(world, meeting, member, status)
        assert result.punishment.consecutive_absence == count
        assert result.punishment.punishment_status == tier
        world.clock.advance(days=7)

    enrollment = world.enrollment(member.user_id)
    assert enrollment.consecutive_absence == 0
    assert enrollment.punishment_status == PunishmentTier.NONE

    logs = world.logs.list_for_course(COURSE_ID, user_id=member.user_id)
    assert [l.new_status for l in reversed(logs)] == [
        PunishmentTier.WARNING_1,
        PunishmentTier.WARNING_2,
        PunishmentTier.SUSPENDED,
        PunishmentTier.NONE,
    ]
    last = logs[0]
    assert last.action == PunishmentAction.AUTO
    assert last.triggered_by == world.lecturer.user_id
    assert last.notes == "Auto-triggered by attendance system"


def test_recompute_is_idempotent(world):
    member = world.add_member("Citra")
    for _ in range(2):
        _mark(world, world.hold_meeting(), member, A)

    first = world.engine.recompute(member.user_id, COURSE_ID)
    logs_after_first = len(world.logs.entries)
    second = world.engine.recompute(member.user_id, COURSE_ID)

    assert first == second
    assert (second.consecutive_absence, second.punishment_status) == (2, PunishmentTier.WARNING_2)
    assert len(world.logs.entries) == logs_after_first


def test_recompute_repairs_drifted_counter(world):
    member = world.add_member("Dewi")
    _mark(world, world.hold_meeting(), member, A)
    enrollment = world.enrollment(member.user_id)
    world.enrollments.update_punishment(
        enrollment_id=enrollment.enrollment_id,
        consecutive_absence=5,
        punishment_status=PunishmentTier.SUSPENDED,
        updated_at=world.clock.now,
    )

    snapshot = world.engine.recompute(member.user_id, COURSE_ID)

    assert (snapshot.consecutive_absence, snapshot.punishment_status) == (1, PunishmentTier.WARNING_1)
    assert world.enrollment(member.user_id).punishment_status == PunishmentTier.WARNING_1
    assert world.logs.entries[-1].action == PunishmentAction.RECALCULATED


def test_unmarked_held_meetings_count_as_absences(world):
    member = world.add_member("Eka")
    _mark(world, world.hold_meeting(), member, P)
    world.hold_meeting()
    world.hold_meeting()

    snapshot = world.engine.recompute(member.user_id, COURSE_ID)

    assert snapshot.consecutive_absence == 2
    assert snapshot.punishment_status == PunishmentTier.WARNING_2


def test_future_meetings_are_not_counted(world):
    member = world.add_member("Fajar")
    meeting = world.hold_meeting(days=3)

    result = _mark(world, meeting, member, A)

    assert result.punishment.consecutive_absence == 0
    world.clock.advance(days=4)
    assert world.engine.recompute(member.user_id, COURSE_ID).consecutive_absence == 1


@pytest.mark.parametrize("seed", [1, 7, 42, 2026])
def test_random_mark_sequences_stay_in_step_with_history(world, seed):
    rng = random.Random(seed)
    member = world.add_member("Gita")
    history = []

    for _ in range(15):
        status = rng.choice([A, A, P, AttendanceStatus.PERMITTED, AttendanceStatus.SICK])
        before = world.enrollment(member.user_id).punishment_status
        snapshot = _mark(world, world.hold_meeting(), member, status).punishment
        history.append(status)

        trailing = 0
        for s in reversed(history):
            if s != A:
                break
            trailing += 1
        assert snapshot.consecutive_absence == trailing
        assert snapshot.punishment_status == tier_for(trailing)

        after = snapshot.punishment_status
        assert after == PunishmentTier.NONE or after.rank - before.rank in (0, 1)

        assert world.engine.recompute(member.user_id, COURSE_ID) == snapshot
        world.clock.advance(days=1)


def test_marking_an_older_meeting_falls_back_to_history(world):
    member = world.add_member("Hadi")
    older = world.hold_meeting()
    newer = world.hold_meeting()
    _mark(world, newer, member, A)

    result = _mark(world, older, member, P)

    # newest held meeting is still an absence
    assert result.punishment.consecutive_absence == 1
    assert result.punishment.punishment_status == PunishmentTier.WARNING_1


def test_remarking_the_same_status_changes_nothing(world):
    member = world.add_member("Indah")
    meeting = world.hold_meeting()
    _mark(world, meeting, member, A)

    again = _mark(world, meeting, member, A)

    assert again.punishment.consecutive_absence == 1
    assert len(world.logs.entries) == 1


def test_identical_schedule_times_break_ties_by_creation(world):
    member = world.add_member("Joko")
    at = world.clock.now
    first = world.hold_meeting()
    world.clock.advance(minutes=5)
    second = world.hold_meeting(minutes=-6)
    assert first.scheduled_at == second.scheduled_at == at

    _mark(world, first, member, A)
    _mark(world, second, member, P)

    snapshot = world.engine.recompute(member.user_id, COURSE_ID)
    assert snapshot.consecutive_absence == 0


def test_manual_reset_zeroes_and_logs(world):
    member = world.add_member("Kiki")
    for _ in range(3):
        _mark(world, world.hold_meeting(), member, A)

    snapshot = world.engine.reset_punishment(
        ResetPunishmentRequest(user_id=member.user_id, course_id=COURSE_ID), world.admin
    )

    assert (snapshot.consecutive_absence, snapshot.punishment_status) == (0, PunishmentTier.NONE)
    log = world.logs.entries[-1]
    assert log.action == PunishmentAction.MANUAL_RESET
    assert log.triggered_by == world.admin.user_id

    # the reset survives the recompute done on every status query
    world.clock.advance(hours=1)
    assert world.engine.get_status(member.user_id, COURSE_ID).snapshot.consecutive_absence == 0

    world.clock.advance(days=1)
    after = _mark(world, world.hold_meeting(), member, A)
    assert after.punishment.consecutive_absence == 1


def test_manual_reset_is_logged_even_without_a_tier_change(world):
    member = world.add_member("Lina")

    world.engine.reset_punishment(ResetPunishmentRequest(user_id=member.user_id, course_id=COURSE_ID), world.lecturer)

    assert [l.action for l in world.logs.entries] == [PunishmentAction.MANUAL_RESET]


def test_manual_reset_keeps_the_staff_note(world):
    member = world.add_member("Lutfi")

    world.engine.reset_punishment(
        ResetPunishmentRequest(user_id=member.user_id, course_id=COURSE_ID, notes="Doctor's letter"), world.admin
    )

    assert world.logs.entries[-1].notes == "Doctor's letter"


def test_manual_reset_requires_staff_and_enrollment(world):
    member = world.add_member("Maya")
    req = ResetPunishmentRequest(user_id=member.user_id, course_id=COURSE_ID)

    with pytest.raises(ForbiddenError):
        world.engine.reset_punishment(req, member)
    with pytest.raises(NotFoundError):
        world.engine.reset_punishment(ResetPunishmentRequest(user_id=member.user_id, course_id=99), world.admin)


def test_reset_request_validation():
    with pytest.raises(ValidationError):
        ResetPunishmentRequest.parse({"user_id": 3})
    with pytest.raises(ValidationError):
        ResetPunishmentRequest.parse({"user_id": "x", "course_id": 1})
    assert ResetPunishmentRequest.parse({"user_id": "3", "course_id": 1}) == ResetPunishmentRequest(3, 1)


def test_get_status_returns_recent_logs(world):
    member = world.add_member("Nina")
    for _ in range(3):
        _mark(world, world.hold_meeting(), member, A)

    view = world.engine.get_status(member.user_id, COURSE_ID, limit=2)

    assert view.snapshot.punishment_status == PunishmentTier.SUSPENDED
    assert [l.new_status for l in view.logs] == [PunishmentTier.SUSPENDED, PunishmentTier.WARNING_2]


def test_get_status_without_enrollment_is_not_found(world):
    with pytest.raises(NotFoundError):
        world.engine.get_status(999, COURSE_ID)


def test_banner_reflects_tier_and_hides_missing_enrollment(world):
    member = world.add_member("Oki")
    for _ in range(3):
        _mark(world, world.hold_meeting(), member, A)

    banner = world.engine.banner(member.user_id, COURSE_ID)
    assert banner.status == PunishmentTier.SUSPENDED
    assert banner.can_access is False

    assert world.engine.banner(member.user_id, 99).status == PunishmentTier.NONE


def test_course_roster_orders_by_counter(world):
    calm = world.add_member("Putri")
    absent = world.add_member("Rudi")
    meeting = world.hold_meeting()
    _mark(world, meeting, calm, P)
    _mark(world, meeting, absent, A)

    roster = world.engine.course_roster(COURSE_ID)

    assert [r.user_id for r in roster] == [absent.user_id, calm.user_id]
    assert roster[0].punishment_status == PunishmentTier.WARNING_1


def test_reconcile_course_repairs_every_member(world):
    a = world.add_member("Sari")
    b = world.add_member("Tono")
    world.hold_meeting()
    world.hold_meeting()
    world.materials.add(COURSE_ID, "Intro")

    report = world.engine.reconcile_course(COURSE_ID, world.lecturer)

    assert report.enrollments_checked == 2
    assert report.tiers_changed == 2
    assert report.restrictions_created == 2
    for member in (a, b):
        assert world.enrollment(member.user_id).punishment_status == PunishmentTier.WARNING_2


def test_reconcile_course_requires_staff(world):
    member = world.add_member("Umar")
    with pytest.raises(ForbiddenError):
        world.engine.reconcile_course(COURSE_ID, member)


def test_deleting_a_meeting_recomputes_members(world):
    member = world.add_member("Vina")
    _mark(world, world.hold_meeting(), member, A)
    meeting = world.hold_meeting()
    _mark(world, meeting, member, A)
    assert world.enrollment(member.user_id).consecutive_absence == 2

    world.container.meeting_service.delete_meeting(meeting.meeting_id, world.lecturer)

    assert world.enrollment(member.user_id).consecutive_absence == 1
    assert world.meetings.get_by_id(meeting.meeting_id) is None


def test_only_creator_or_admin_deletes_a_meeting(world):
    other = world.add_user("Dosen Lain", role=world.lecturer.role)
    meeting = world.hold_meeting()

    with pytest.raises(ForbiddenError):
        world.container.meeting_service.delete_meeting(meeting.meeting_id, other)
    world.container.meeting_service.delete_meeting(meeting.meeting_id, world.admin)
    with pytest.raises(NotFoundError):
        world.container.meeting_service.delete_meeting(meeting.meeting_id, world.admin)



def test_marking_after_a_status_query_counts_the_seeded_absence_once(world):
    member = world.add_member("Wulan")
    meeting = world.hold_meeting()
    assert world.engine.recompute(member.user_id, COURSE_ID).consecutive_absence == 1

    result = _mark(world, meeting, member, A)

    assert (result.punishment.consecutive_absence, result.punishment.punishment_status) == (1, PunishmentTier.WARNING_1)
    assert world.engine.recompute(member.user_id, COURSE_ID) == result.punishment


def test_correcting_an_excused_mark_to_absent_recounts_history(world):
    member = world.add_member("Xena")
    meetings = [world.hold_meeting() for _ in range(3)]
    for meeting, status in zip(meetings, (A, A, P)):
        _mark(world, meeting, member, status)
    assert world.enrollment(member.user_id).consecutive_absence == 0

    result = _mark(world, meetings[-1], member, A)

    assert (result.punishment.consecutive_absence, result.punishment.punishment_status) == (3, PunishmentTier.SUSPENDED)
    assert world.engine.recompute(member.user_id, COURSE_ID) == result.punishment


@pytest.mark.parametrize("seed", [3, 11, 99, 314])
def test_random_corrections_and_status_queries_agree_with_history(world, seed):
    rng = random.Random(seed)
    member = world.add_member("Yogi")
    meetings = []
    statuses = {}

    for _ in range(25):
        if not meetings or rng.random() < 0.5:
            meetings.append(world.hold_meeting())
            if rng.random() < 0.5:
                # status queries between holding and marking
                world.engine.recompute(member.user_id, COURSE_ID)
        meeting = rng.choice(meetings[-3:])
        status = rng.choice([A, A, P, AttendanceStatus.SICK])
        snapshot = _mark(world, meeting, member, status).punishment
        statuses[meeting.meeting_id] = status

        trailing = 0
        for m in reversed(meetings):
            if statuses.get(m.meeting_id, A) != A:
                break
            trailing += 1
        assert snapshot.consecutive_absence == trailing
        assert snapshot.punishment_status == tier_for(trailing)
        assert world.engine.recompute(member.user_id, COURSE_ID) == snapshot
        world.clock.advance(hours=1)


def test_excused_mark_on_an_upcoming_meeting_counts_for_that_member_only(world):
    member = world.add_member("Zaki")
    other = world.add_member("Ani")
    for _ in range(2):
        _mark(world, world.hold_meeting(), member, A)
    upcoming = world.hold_meeting(days=2)

    result = _mark(world, upcoming, member, AttendanceStatus.PERMITTED)

    assert result.punishment.consecutive_absence == 0
    assert world.engine.recompute(member.user_id, COURSE_ID).consecutive_absence == 0
    assert world.engine.recompute(other.user_id, COURSE_ID).consecutive_absence == 2
