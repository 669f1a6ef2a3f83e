from __future__ import annotations

import logging

from flask import Flask

from ..common.web import json_body, login_required, ok, require_actor, require_self_or_staff, staff_required
from ..container import Container
from ..core.enums import AccessReason
from ..core.exceptions import ConflictError, DependencyError
from .service import ManualUnlockRequest

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route(
        "/api/attendance/material-access/<int:user_id>/<int:material_id>",
        methods=["GET"],
        endpoint="material_access_check",
    )
    @login_required
    def check_material_access(user_id: int, material_id: int):
        require_self_or_staff(user_id)
        try:
            decision = container.access_guard.check_access(user_id, material_id)
        except (DependencyError, ConflictError):
            # deny when the answer is unknown
            logger.warning("Access check failed user_id=%s material_id=%s; denying", user_id, material_id)
            return ok({"can_access": False, "reason": AccessReason.ACCESS_CHECK_FAILED, "restriction": None})

        return ok(
            {
                "can_access": decision.can_access,
                "reason": decision.reason,
                "restriction": decision.restriction,
            }
        )

    @app.route("/api/attendance/material-access/unlock", methods=["POST"], endpoint="material_access_unlock")
    @staff_required
    def grant_unlock():
        req = ManualUnlockRequest.parse(json_body())
        created = container.access_guard.grant_manual_unlock(req, require_actor())
        return ok({"user_id": req.user_id, "material_id": req.material_id, "created": created})

    @app.route(
        "/api/attendance/material-access/unlock/<int:user_id>/<int:material_id>",
        methods=["DELETE"],
        endpoint="material_access_revoke",
    )
    @staff_required
    def revoke_unlock(user_id: int, material_id: int):
        container.access_guard.revoke_manual_unlock(user_id, material_id, require_actor())
        return ok({"user_id": user_id, "material_id": material_id})
