from __future__ import annotations

from flask import Flask, request

from ..common.http import caller_required, current_caller, json_body, ok
from ..container import Container

# camelCase request keys -> service field names for per-session edits.
_UPDATE_KEYS = {
    "date": "date",
    "startTime": "start_time",
    "endTime": "end_time",
    "room": "room",
    "isCancelled": "is_cancelled",
    "cancellationReason": "cancellation_reason",
    "lessonId": "lesson_id",
    "substituteTeacherId": "substitute_teacher_id",
    "internalNotes": "internal_notes",
    "meetingUrl": "meeting_url",
}


def register(app: Flask, container: Container) -> None:
    service = container.schedule_service

    @app.route("/api/schedules/generate", methods=["POST"], endpoint="api_schedules_generate")
    @caller_required
    def api_schedules_generate():
        data = json_body()
        result = service.generate_sessions(
            caller=current_caller(),
            course_id=data.get("courseId"),
            weekdays=data.get("weekDays"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            room=data.get("room"),
        )
        return ok(result, 201, message=f"Generated {result['total']} sessions")

    @app.route("/api/schedules", methods=["GET"], endpoint="api_schedules_list")
    @caller_required
    def api_schedules_list():
        args = request.args
        result = service.list_sessions(
            caller=current_caller(),
            course_id=args.get("courseId"),
            computed_status=args.get("computedStatus"),
            from_date=args.get("fromDate"),
            to_date=args.get("toDate"),
            page=args.get("page") or 1,
            limit=args.get("limit"),
        )
        return ok(result)

    @app.route("/api/schedules/reconcile", methods=["POST"], endpoint="api_schedules_reconcile")
    @caller_required
    def api_schedules_reconcile():
        data = json_body()
        result = service.reconcile_past_sessions(
            caller=current_caller(),
            course_id=data.get("courseId"),
            session_id=data.get("sessionId"),
        )
        return ok(result)

    @app.route("/api/schedules/<int:session_id>", methods=["GET"], endpoint="api_schedules_get")
    @caller_required
    def api_schedules_get(session_id: int):
        return ok(service.get_session(caller=current_caller(), session_id=session_id))

    @app.route("/api/schedules/<int:session_id>", methods=["PUT"], endpoint="api_schedules_update")
    @caller_required
    def api_schedules_update(session_id: int):
        # Unknown keys are passed through so the service can reject them.
        changes = {_UPDATE_KEYS.get(k, k): v for k, v in json_body().items()}
        result = service.update_session(caller=current_caller(), session_id=session_id, changes=changes)
        return ok(result, message="Session updated")

    @app.route("/api/schedules/<int:session_id>", methods=["DELETE"], endpoint="api_schedules_delete")
    @caller_required
    def api_schedules_delete(session_id: int):
        result = service.delete_session(caller=current_caller(), session_id=session_id)
        return ok(result, message="Session deleted")

    @app.route("/api/schedules/course/<int:course_id>", methods=["DELETE"], endpoint="api_schedules_delete_course")
    @caller_required
    def api_schedules_delete_course(course_id: int):
        result = service.delete_sessions_by_course(caller=current_caller(), course_id=course_id)
        return ok(result, message=f"Deleted {result['deleted_count']} sessions")
