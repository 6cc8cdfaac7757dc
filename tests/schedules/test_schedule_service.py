from datetime import date, time, timedelta

import pytest

from course_sessions.core.enums import AttendanceStatus
from course_sessions.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError

from conftest import ADMIN, MAIN_TEACHER, OTHER_TEACHER, OUTSIDER, STUDENT_A, SUBSTITUTE, TODAY


def test_admin_generates_sessions(world, container):
    result = container.schedule_service.generate_sessions(
        caller=ADMIN,
        course_id=1,
        weekdays=[1, 3, 5],
        start_time="08:00",
        end_time="10:00",
        today=TODAY,
    )

    assert result["total"] == 6
    first = result["sessions"][0]
    assert first["date"] == "2024-02-02"
    assert first["start_time"] == "08:00"
    assert first["computed_status"] == "past"


def test_teacher_cannot_generate(container):
    with pytest.raises(AuthorizationError):
        container.schedule_service.generate_sessions(
            caller=MAIN_TEACHER, course_id=1, weekdays=[1], start_time="08:00", end_time="10:00"
        )


def test_generate_conflicts_when_sessions_exist(world, container):
    world.add_session(date(2024, 2, 5))

    with pytest.raises(ConflictError):
        container.schedule_service.generate_sessions(
            caller=ADMIN, course_id=1, weekdays=[1], start_time="08:00", end_time="10:00"
        )


def test_listing_reconciles_yesterday_once(world, container):
    yesterday = world.add_session(TODAY - timedelta(days=1))

    container.schedule_service.list_sessions(caller=ADMIN, today=TODAY)
    records = world.attendance.list_for_session(yesterday.session_id)
    assert len(records) == 3
    assert {r.status for r in records} == {AttendanceStatus.ABSENT}
    assert {r.recorded_by for r in records} == {None}

    container.schedule_service.list_sessions(caller=ADMIN, today=TODAY)
    assert len(world.attendance.list_for_session(yesterday.session_id)) == 3


def test_listing_without_auto_absence_is_pure(world):
    world.add_session(TODAY - timedelta(days=1))
    service = world.container(auto_absence_on_read=False).schedule_service

    result = service.list_sessions(caller=ADMIN, today=TODAY)

    assert world.attendance.records == {}
    # Elapsed without rows is still summarised as absent.
    assert result["sessions"][0]["attendance_summary"]["status"] == "absent"


def test_listing_summary_counts(world, container):
    session = world.add_session(TODAY)
    world.mark(session, 1, AttendanceStatus.PRESENT)
    world.mark(session, 2, AttendanceStatus.LATE)

    row = container.schedule_service.list_sessions(caller=ADMIN, today=TODAY)["sessions"][0]

    summary = row["attendance_summary"]
    assert summary["total_students"] == 3
    assert summary["recorded"] == 2
    assert summary["not_recorded"] == 1
    assert (summary["present"], summary["late"], summary["absent"]) == (1, 1, 0)
    assert summary["status"] == "attended"
    assert summary["is_attendance_taken"] is True
    assert row["computed_status"] == "today"


def test_listing_filters_by_computed_status(world, container):
    world.add_session(TODAY - timedelta(days=2))
    world.add_session(TODAY)
    world.add_session(TODAY + timedelta(days=2))
    world.add_session(TODAY + timedelta(days=3), is_cancelled=True)
    service = container.schedule_service

    def statuses(status):
        rows = service.list_sessions(caller=ADMIN, computed_status=status, today=TODAY)["sessions"]
        return [r["computed_status"] for r in rows]

    assert statuses("past") == ["past"]
    assert statuses("today") == ["today"]
    assert statuses("upcoming") == ["upcoming"]
    assert statuses("cancelled") == ["cancelled"]

    with pytest.raises(ValidationError):
        service.list_sessions(caller=ADMIN, computed_status="soon", today=TODAY)


def test_listing_intersects_date_range_with_status(world, container):
    for offset in (1, 5, 10):
        world.add_session(TODAY + timedelta(days=offset))

    result = container.schedule_service.list_sessions(
        caller=ADMIN,
        computed_status="upcoming",
        to_date=(TODAY + timedelta(days=5)).isoformat(),
        today=TODAY,
    )

    assert [r["date"] for r in result["sessions"]] == [
        (TODAY + timedelta(days=1)).isoformat(),
        (TODAY + timedelta(days=5)).isoformat(),
    ]


def test_listing_orders_and_paginates(world, container):
    world.add_session(TODAY + timedelta(days=2), start_time=time(13, 0), end_time=time(15, 0))
    world.add_session(TODAY + timedelta(days=2), start_time=time(8, 0), end_time=time(10, 0))
    world.add_session(TODAY + timedelta(days=1))

    page1 = container.schedule_service.list_sessions(caller=ADMIN, page=1, limit=2, today=TODAY)
    page2 = container.schedule_service.list_sessions(caller=ADMIN, page=2, limit=2, today=TODAY)

    assert page1["pagination"] == {"total": 3, "page": 1, "limit": 2, "pages": 2}
    assert [r["session_id"] for r in page1["sessions"]] == [3, 2]
    assert [r["session_id"] for r in page2["sessions"]] == [1]


def test_teacher_scope_includes_substituted_sessions(world, container):
    own = world.add_session(TODAY)
    covered = world.add_session(TODAY, course_id=2, substitute_teacher_id=2)
    world.add_session(TODAY, course_id=2)

    main_rows = container.schedule_service.list_sessions(caller=MAIN_TEACHER, today=TODAY)["sessions"]
    sub_rows = container.schedule_service.list_sessions(caller=SUBSTITUTE, today=TODAY)["sessions"]

    assert [r["session_id"] for r in main_rows] == [own.session_id]
    assert [r["session_id"] for r in sub_rows] == [covered.session_id]


def test_student_scope_and_own_attendance(world, container):
    session = world.add_session(TODAY)
    world.add_session(TODAY, course_id=2)
    world.mark(session, 1, AttendanceStatus.PRESENT)

    rows = container.schedule_service.list_sessions(caller=STUDENT_A, today=TODAY)["sessions"]

    assert [r["session_id"] for r in rows] == [session.session_id]
    assert rows[0]["my_attendance"]["status"] == "present"

    with pytest.raises(AuthorizationError):
        container.schedule_service.list_sessions(caller=STUDENT_A, course_id=2, today=TODAY)


def test_student_sees_only_actively_enrolled_courses(world, container):
    world.add_session(TODAY)

    rows = container.schedule_service.list_sessions(caller=OUTSIDER, today=TODAY)["sessions"]

    # Dana dropped course 1 and is only active in course 2.
    assert rows == []


def test_get_session_includes_teachers(world, container):
    session = world.add_session(TODAY, substitute_teacher_id=2, internal_notes="Main teacher at conference")

    view = container.schedule_service.get_session(caller=SUBSTITUTE, session_id=session.session_id, today=TODAY)

    assert view["course"]["code"] == "PY101"
    assert view["main_teacher"]["name"] == "Main Teacher"
    assert view["substitute_teacher"] == {
        "teacher_id": 2,
        "teacher_code": "T02",
        "name": "Substitute Teacher",
        "reason": "Main teacher at conference",
    }


def test_get_session_denied_for_unrelated_teacher(world, container):
    session = world.add_session(TODAY)

    with pytest.raises(AuthorizationError):
        container.schedule_service.get_session(caller=OTHER_TEACHER, session_id=session.session_id)

    with pytest.raises(NotFoundError):
        container.schedule_service.get_session(caller=ADMIN, session_id=999)


def test_update_session_fields(world, container):
    session = world.add_session(TODAY + timedelta(days=1))

    view = container.schedule_service.update_session(
        caller=MAIN_TEACHER,
        session_id=session.session_id,
        changes={"room": "C3", "is_cancelled": True, "cancellation_reason": "Holiday", "start_time": "09:00"},
        today=TODAY,
    )

    assert view["room"] == "C3"
    assert view["computed_status"] == "cancelled"
    assert view["start_time"] == "09:00"
    assert view["session_number"] == session.session_number


def test_update_session_validation(world, container):
    session = world.add_session(TODAY)
    service = container.schedule_service

    with pytest.raises(ValidationError):
        service.update_session(caller=ADMIN, session_id=session.session_id, changes={"title": "x"})
    with pytest.raises(ValidationError):
        service.update_session(caller=ADMIN, session_id=session.session_id, changes={"end_time": "07:00"})
    with pytest.raises(ValidationError):
        service.update_session(caller=ADMIN, session_id=session.session_id, changes={"date": "13/03/2024"})
    with pytest.raises(NotFoundError):
        service.update_session(caller=ADMIN, session_id=session.session_id, changes={"substitute_teacher_id": 42})


def test_substitute_cannot_edit_other_sessions_of_course(world, container):
    world.add_session(TODAY, substitute_teacher_id=2)
    other = world.add_session(TODAY + timedelta(days=1))

    with pytest.raises(AuthorizationError):
        container.schedule_service.update_session(
            caller=SUBSTITUTE, session_id=other.session_id, changes={"room": "Z9"}
        )


def test_delete_last_session_releases_claim(world, container):
    service = container.schedule_service
    service.generate_sessions(caller=ADMIN, course_id=1, weekdays=[1], start_time="08:00", end_time="10:00")
    ids = sorted(world.sessions.sessions)

    with pytest.raises(AuthorizationError):
        service.delete_session(caller=MAIN_TEACHER, session_id=ids[0])

    for session_id in ids:
        service.delete_session(caller=ADMIN, session_id=session_id)

    assert world.sessions.claims == set()


def test_delete_sessions_by_course(world, container):
    world.add_session(TODAY)
    world.add_session(TODAY + timedelta(days=1))
    world.add_session(TODAY, course_id=2)

    result = container.schedule_service.delete_sessions_by_course(caller=ADMIN, course_id=1)

    assert result == {"deleted_count": 2}
    assert [s.course_id for s in world.sessions.sessions.values()] == [2]


def test_reconcile_is_admin_only(world, container):
    world.add_session(TODAY - timedelta(days=3))
    world.add_session(TODAY - timedelta(days=2), is_cancelled=True)

    with pytest.raises(AuthorizationError):
        container.schedule_service.reconcile_past_sessions(caller=MAIN_TEACHER, today=TODAY)

    result = container.schedule_service.reconcile_past_sessions(caller=ADMIN, today=TODAY)

    assert result == {"sessions_checked": 2, "records_created": 6}


def test_listing_backfills_cancelled_elapsed_session(world, container):
    session = world.add_session(TODAY - timedelta(days=1), is_cancelled=True)

    row = container.schedule_service.list_sessions(caller=ADMIN, today=TODAY)["sessions"][0]

    assert len(world.attendance.list_for_session(session.session_id)) == 3
    assert row["computed_status"] == "cancelled"
    assert row["attendance_summary"]["recorded"] == 3
    assert row["attendance_summary"]["is_attendance_taken"] is True
