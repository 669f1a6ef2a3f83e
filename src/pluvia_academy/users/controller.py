from __future__ import annotations

from flask import Flask, session

from ..common.web import json_body, ok, require_actor
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def login():
        data = json_body()
        actor = container.auth_service.authenticate(data.get("email"), data.get("password") or "")

        session.clear()
        session["user_id"] = actor.user_id
        session["name"] = actor.full_name
        session["role"] = actor.role.value
        return ok({"user": actor})

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    def logout():
        session.clear()
        return ok()

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    def me():
        return ok({"user": require_actor()})
