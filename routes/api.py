"""Public catalog and customer order routes."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from storefront.services.errors import ForbiddenError
from storefront.utils.validators import as_positive_int, parse_flag

from .auth import current_customer_id, current_user


api_bp = Blueprint("storefront_api", __name__, url_prefix="/api")


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


@api_bp.get("/products")
def list_products():
    include_inactive = parse_flag(request.args.get("all", ""))
    if include_inactive and current_user().get("role") != "admin":
        raise ForbiddenError("admin role required to list inactive products")
    category_id = as_positive_int(request.args.get("category_id"))
    catalog = _components()["catalog_service"]
    return jsonify(catalog.list_products(include_inactive=include_inactive, category_id=category_id))


@api_bp.get("/products/<int:product_id>")
def get_product(product_id: int):
    return jsonify(_components()["catalog_service"].get_product(product_id))


@api_bp.get("/categories")
def list_categories():
    return jsonify(_components()["category_service"].list_categories())


@api_bp.post("/orders")
def place_order():
    customer_id = current_customer_id()
    payload = request.get_json(silent=True) or {}
    result = _components()["order_service"].place_order(customer_id, payload.get("items"))
    return jsonify(result), 201


@api_bp.get("/orders/mine")
def my_orders():
    include_items = parse_flag(request.args.get("details", ""))
    orders = _components()["order_service"].list_customer_orders(current_customer_id(), include_items=include_items)
    return jsonify(orders)
