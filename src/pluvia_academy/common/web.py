"""Flask glue shared by the JSON controllers: session identity, guards, errors."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime
from enum import Enum
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    ConflictError,
    DependencyError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from ..users.model import Actor

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    ValidationError: 400,
    AuthenticationError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    DependencyError: 500,
}


def current_actor() -> Optional[Actor]:
    if "user_id" not in session:
        return None
    try:
        role = Role(session.get("role"))
    except ValueError:
        return None
    return Actor(user_id=int(session["user_id"]), role=role, full_name=session.get("name") or "")


def require_actor() -> Actor:
    actor = current_actor()
    if actor is None:
        raise AuthenticationError("Please log in to continue")
    return actor


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        require_actor()
        return view(*args, **kwargs)

    return wrapper


def staff_required(view):
    """Allow lecturers and admins only."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not require_actor().is_staff:
            raise ForbiddenError("Lecturer or admin role required")
        return view(*args, **kwargs)

    return wrapper


def require_self_or_staff(user_id: int) -> Actor:
    actor = require_actor()
    if actor.user_id != int(user_id) and not actor.is_staff:
        raise ForbiddenError("You can only view your own records")
    return actor


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def serialize(value: Any) -> Any:
    """Dataclasses, enums and datetimes to JSON-ready values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: serialize(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def ok(payload: Optional[Dict[str, Any]] = None, status: int = 200):
    body = {"success": True}
    body.update(serialize(payload or {}))
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    def handle_domain_error(exc: DomainError):
        status = 500
        for cls, code in _STATUS_CODES.items():
            if isinstance(exc, cls):
                status = code
                break

        body: Dict[str, Any] = {"success": False, "message": str(exc)}
        if isinstance(exc, ConflictError):
            body["retryable"] = True
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc)
            body["message"] = "Internal error, please try again later"
        return jsonify(body), status

    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return jsonify({"success": False, "message": exc.description}), exc.code
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "message": "Internal error, please try again later"}), 500

    app.register_error_handler(DomainError, handle_domain_error)
    app.register_error_handler(Exception, handle_unexpected)
