from __future__ import annotations

from flask import Flask

from ..common.web import json_body, login_required, ok, require_actor, staff_required
from ..container import Container
from .service import CreateMeetingRequest


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/meetings", methods=["POST"], endpoint="meetings_create")
    @staff_required
    def create_meeting():
        req = CreateMeetingRequest.parse(json_body())
        meeting = container.meeting_service.create_meeting(req, require_actor())
        return ok({"meeting": meeting}, 201)

    @app.route("/api/attendance/meetings/<int:meeting_id>", methods=["DELETE"], endpoint="meetings_delete")
    @login_required
    def delete_meeting(meeting_id: int):
        container.meeting_service.delete_meeting(meeting_id, require_actor())
        return ok({"meeting_id": meeting_id})

    @app.route("/api/attendance/meetings/<int:meeting_id>/status", methods=["POST"], endpoint="meetings_status")
    @staff_required
    def set_meeting_status(meeting_id: int):
        meeting = container.meeting_service.set_status(meeting_id, json_body().get("status"), require_actor())
        return ok({"meeting": meeting})

    @app.route("/api/attendance/meetings/course/<int:course_id>", methods=["GET"], endpoint="meetings_list")
    @login_required
    def list_meetings(course_id: int):
        return ok({"meetings": container.meeting_service.list_for_course(course_id)})

    @app.route("/api/attendance/courses/<int:course_id>/students", methods=["GET"], endpoint="course_students")
    @staff_required
    def course_students(course_id: int):
        return ok({"students": container.meeting_service.list_students(course_id, require_actor())})
