"""Administrative routes: catalog, discounts, orders and users."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from storefront.services.errors import ValidationError
from storefront.utils.validators import parse_flag

from .auth import current_user


admin_bp = Blueprint("storefront_admin", __name__, url_prefix="/api/admin")


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


@admin_bp.before_request
def guard_admin_routes():
    """Every administrative endpoint shares one policy: valid token and admin role."""
    user = current_user()
    if user.get("role") != "admin":
        return jsonify({"error": "admin role required"}), 403
    return None


# --- products ---

@admin_bp.post("/products")
def create_product():
    payload = request.get_json(silent=True) or {}
    product_id = _components()["catalog_service"].create_product(payload)
    return jsonify({"id": product_id}), 201


@admin_bp.put("/products/<int:product_id>")
def update_product(product_id: int):
    payload = request.get_json(silent=True) or {}
    _components()["catalog_service"].update_product(product_id, payload)
    return jsonify({"id": product_id})


@admin_bp.delete("/products/<int:product_id>")
def deactivate_product(product_id: int):
    _components()["catalog_service"].deactivate_product(product_id)
    return "", 204


@admin_bp.post("/products/bulk-discount")
def discount_all_products():
    payload = request.get_json(silent=True) or {}
    updated = _components()["catalog_service"].apply_discount_to_all_products(
        payload.get("percentage"), payload.get("activate")
    )
    return jsonify({"updated": updated})


# --- categories ---

@admin_bp.post("/categories")
def create_category():
    payload = request.get_json(silent=True) or {}
    category_id = _components()["category_service"].create_category(payload)
    return jsonify({"id": category_id}), 201


@admin_bp.put("/categories/<int:category_id>")
def update_category(category_id: int):
    payload = request.get_json(silent=True) or {}
    _components()["category_service"].update_category(category_id, payload)
    return jsonify({"id": category_id})


@admin_bp.post("/categories/<int:category_id>/discount")
def set_category_discount(category_id: int):
    payload = request.get_json(silent=True) or {}
    _components()["category_service"].set_category_discount(
        category_id, payload.get("percentage"), payload.get("activate")
    )
    return jsonify({"id": category_id})


@admin_bp.post("/categories/bulk-discount")
def discount_all_categories():
    payload = request.get_json(silent=True) or {}
    updated = _components()["category_service"].apply_discount_to_all_categories(
        payload.get("percentage"), payload.get("activate")
    )
    return jsonify({"updated": updated})


# --- orders ---

@admin_bp.get("/orders")
def list_orders():
    raw_status = request.args.get("status", "")
    orders = _components()["order_service"].list_orders(
        statuses=raw_status.split(",") if raw_status else None,
        query=request.args.get("q"),
        include_items=parse_flag(request.args.get("details", "")),
    )
    return jsonify(orders)


@admin_bp.put("/orders/<int:order_id>/status")
def update_order_status(order_id: int):
    payload = request.get_json(silent=True) or {}
    result = _components()["order_service"].update_status(order_id, str(payload.get("status") or ""))
    return jsonify(result)


# --- users ---

@admin_bp.get("/users")
def list_users():
    return jsonify(_components()["customer_service"].list_customers())


@admin_bp.post("/users")
def create_user():
    payload = request.get_json(silent=True) or {}
    customer_id = _components()["customer_service"].create_customer(
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
        email=payload.get("email"),
        password=payload.get("password"),
        role=payload.get("role") or "customer",
    )
    return jsonify({"id": customer_id}), 201


# --- images ---

@admin_bp.post("/images")
def upload_image():
    if "image" not in request.files:
        raise ValidationError("no image was uploaded")
    _, url = _components()["image_service"].save_product_image(request.files["image"])
    return jsonify({"image_url": url})
