# Overview: Flask API routes for checkout and order tracking.

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service
from ..services.order_service import InvalidOrderError
from ..services.document_store import PersistenceError

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
def create_order_route():
    """
    Checkout: persist the cart as a pending order.

    Returns orderId, orderCode and orderNumber.
    """
    data = request.get_json() or {}
    try:
        result = order_service.create_order(data)
        return jsonify(result), 201
    except InvalidOrderError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Storage unavailable"}), 503


@orders_bp.get("/track/<user_id>/<order_code>")
def track_order_route(user_id: str, order_code: str):
    """Tracking page lookup; both the owner id and the code must match."""
    try:
        orders = order_service.get_orders_by_code(order_code, user_id)
    except PersistenceError:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Storage unavailable"}), 503

    if not orders:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": orders[0], "matches": len(orders)}), 200


@orders_bp.get("/user/<user_id>")
def list_user_orders_route(user_id: str):
    try:
        orders = order_service.get_orders_for_user(user_id)
    except PersistenceError:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Storage unavailable"}), 503
    return jsonify({"orders": orders, "count": len(orders)}), 200
