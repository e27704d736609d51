"""Customer authentication routes and bearer-token helpers."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, g, jsonify, request

from storefront.services.errors import AuthError


auth_bp = Blueprint("storefront_auth", __name__, url_prefix="/api/auth")


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


def current_user() -> Dict[str, Any]:
    """Verified claims of the bearer token on this request; raises AuthError."""
    if "storefront_user" not in g:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthError("not authenticated")
        g.storefront_user = _components()["customer_service"].verify_token(token.strip())
    return g.storefront_user


def current_customer_id() -> int:
    return int(current_user()["id"])


@auth_bp.post("/register")
def register():
    payload = request.get_json(silent=True) or {}
    result = _components()["customer_service"].register(
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        email=payload.get("email"),
        password=payload.get("password"),
        phone=payload.get("phone"),
    )
    return jsonify(result), 201


@auth_bp.post("/login")
def login():
    payload = request.get_json(silent=True) or {}
    result = _components()["customer_service"].authenticate(payload.get("email"), payload.get("password"))
    return jsonify(result)


@auth_bp.get("/me")
def me():
    profile = _components()["customer_service"].get_profile(current_customer_id())
    return jsonify(profile)


@auth_bp.put("/profile")
def update_profile():
    payload = request.get_json(silent=True) or {}
    result = _components()["customer_service"].update_profile(
        current_customer_id(),
        first_name=payload.get("first_name"),
        phone=payload.get("phone"),
    )
    return jsonify(result)


@auth_bp.put("/password")
def change_password():
    payload = request.get_json(silent=True) or {}
    _components()["customer_service"].change_password(
        current_customer_id(), payload.get("current"), payload.get("new")
    )
    return jsonify({"status": "ok", "message": "password updated"})
