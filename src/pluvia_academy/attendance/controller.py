from __future__ import annotations

import logging

from flask import Flask

from ..common.web import json_body, login_required, ok, require_actor, staff_required
from ..container import Container
from .service import BulkMarkRequest, MarkAttendanceRequest

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/attendance/meeting/<int:meeting_id>", methods=["GET"], endpoint="attendance_list")
    @login_required
    def list_attendance(meeting_id: int):
        return ok({"attendance": container.attendance_service.list_for_meeting(meeting_id)})

    @app.route("/api/attendance/attendance/mark", methods=["POST"], endpoint="attendance_mark")
    @staff_required
    def mark_attendance():
        req = MarkAttendanceRequest.parse(json_body())
        result = container.attendance_service.mark_attendance(req, require_actor())
        return ok({"attendance": result.record, "punishment": result.punishment})

    @app.route("/api/attendance/attendance/bulk-mark", methods=["POST"], endpoint="attendance_bulk_mark")
    @staff_required
    def bulk_mark_attendance():
        req = BulkMarkRequest.parse(json_body())
        updated = container.attendance_service.bulk_mark_attendance(req, require_actor())
        return ok({"updated": updated})

    @app.route("/api/attendance/attendance/auto-join/<int:course_id>", methods=["POST"], endpoint="attendance_auto_join")
    @login_required
    def auto_join(course_id: int):
        actor = require_actor()
        result = container.auto_join_service.join(actor.user_id, course_id)
        logger.debug("Auto-join user_id=%s course_id=%s -> %s", actor.user_id, course_id, result.outcome.value)
        return ok(
            {
                "status": result.outcome,
                "meeting_id": result.meeting_id,
                "current_status": result.current_status,
                "punishment": result.punishment,
            }
        )
