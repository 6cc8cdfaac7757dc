from __future__ import annotations

from collections.abc import Mapping

from flask import Flask, request

from ..common.http import caller_required, current_caller, json_body, ok
from ..container import Container
from .service import record_to_view


def _entry_from_json(entry):
    if not isinstance(entry, Mapping):
        return entry
    return {
        "student_id": entry.get("studentId", entry.get("student_id")),
        "status": entry.get("status"),
        "notes": entry.get("notes"),
    }


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    @app.route("/api/attendance/schedule/<int:session_id>", methods=["GET"], endpoint="api_attendance_for_session")
    @caller_required
    def api_attendance_for_session(session_id: int):
        return ok(service.get_for_session(caller=current_caller(), session_id=session_id))

    @app.route("/api/attendance/schedule/<int:session_id>", methods=["POST"], endpoint="api_attendance_record")
    @caller_required
    def api_attendance_record(session_id: int):
        data = json_body()
        entries = data.get("attendanceList")
        if isinstance(entries, list):
            entries = [_entry_from_json(e) for e in entries]

        result = service.record_attendance(
            caller=current_caller(),
            session_id=session_id,
            entries=entries,
            mark_completed=bool(data.get("markCompleted", False)),
        )
        summary = result["summary"]
        return ok(result, message=f"Recorded {summary['successful']}/{summary['total']} attendance entries")

    @app.route(
        "/api/schedules/<int:session_id>/attendances/<int:attendance_id>",
        methods=["PUT"],
        endpoint="api_attendance_update",
    )
    @caller_required
    def api_attendance_update(session_id: int, attendance_id: int):
        record = service.update_single(
            caller=current_caller(),
            session_id=session_id,
            attendance_id=attendance_id,
            fields=json_body(),
        )
        return ok(record_to_view(record), message="Attendance updated")

    @app.route("/api/attendance/student/<int:student_id>", methods=["GET"], endpoint="api_attendance_student")
    @caller_required
    def api_attendance_student(student_id: int):
        course_id = request.args.get("courseId")
        result = service.get_student_history(
            caller=current_caller(),
            student_id=student_id,
            course_id=course_id or None,
        )
        return ok(result)
