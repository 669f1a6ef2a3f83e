from __future__ import annotations

from flask import Flask, request

from ..common.validators import optional_positive_int
from ..common.web import json_body, login_required, ok, require_actor, require_self_or_staff, staff_required
from ..container import Container
from .service import ResetPunishmentRequest


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/punishment/<int:user_id>/<int:course_id>", methods=["GET"], endpoint="punishment_status")
    @login_required
    def punishment_status(user_id: int, course_id: int):
        require_self_or_staff(user_id)
        limit = optional_positive_int(request.args.get("limit"), "limit", container.punishment_log_limit)
        view = container.punishment_engine.get_status(user_id, course_id, limit=limit)
        return ok(
            {
                "consecutive_absence": view.snapshot.consecutive_absence,
                "punishment_status": view.snapshot.punishment_status,
                "punishment_updated_at": view.snapshot.punishment_updated_at,
                "logs": view.logs,
            }
        )

    @app.route("/api/attendance/punishment/course/<int:course_id>", methods=["GET"], endpoint="punishment_course")
    @staff_required
    def punishment_course(course_id: int):
        return ok({"members": container.punishment_engine.course_roster(course_id)})

    @app.route("/api/attendance/punishment/reset", methods=["POST"], endpoint="punishment_reset")
    @staff_required
    def punishment_reset():
        req = ResetPunishmentRequest.parse(json_body())
        snapshot = container.punishment_engine.reset_punishment(req, require_actor())
        return ok({"message": "Punishment reset", "punishment": snapshot})

    @app.route("/api/attendance/punishment/logs/<int:course_id>", methods=["GET"], endpoint="punishment_logs")
    @staff_required
    def punishment_logs(course_id: int):
        user_id = request.args.get("user_id")
        logs = container.punishment_engine.list_logs(
            course_id,
            user_id=optional_positive_int(user_id, "user_id", 0) or None,
            limit=optional_positive_int(request.args.get("limit"), "limit", container.punishment_log_limit),
        )
        return ok({"logs": logs})

    @app.route("/api/attendance/punishment/reconcile/<int:course_id>", methods=["POST"], endpoint="punishment_reconcile")
    @staff_required
    def punishment_reconcile(course_id: int):
        report = container.punishment_engine.reconcile_course(course_id, require_actor())
        return ok({"report": report})

    @app.route("/api/attendance/punishment/banner/<int:course_id>", methods=["GET"], endpoint="punishment_banner")
    @login_required
    def punishment_banner(course_id: int):
        banner = container.punishment_engine.banner(require_actor().user_id, course_id)
        return ok({"banner": banner})
