# Overview: Flask API routes for checkout and order lifecycle; parses input and returns JSON responses.

# backend/cannasaas/routes/orders.py
"""Order API routes. Tenant and actor come from require_context."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_context
from ..errors import CannasaasError, NotFoundError
from ..extensions import db
from ..models import Dispensary
from ..services import order_service, order_status_service
from ..services.checkout_service import CheckoutRequest, CheckoutService
from ..services.concurrency import run_with_retry


orders_bp = Blueprint("orders", __name__, url_prefix="/api")

RETRY_HINT = "Please retry the request"


@orders_bp.post("/orders/checkout")
@require_context(customer=True)
def checkout_route():
    """
    Convert the caller's cart at a dispensary into an order.

    Body: dispensary_id, fulfillment_type (pickup|delivery), customer_name,
    customer_email, customer_phone, delivery_address, notes.
    """
    try:
        checkout_request = CheckoutRequest.from_dict(request.get_json(silent=True) or {})
        order = CheckoutService.default().checkout(g.customer_id, g.org_id, checkout_request)
        return jsonify({"order": order.to_dict()}), 201

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error", "message": RETRY_HINT}), 500


@orders_bp.get("/orders")
@require_context(customer=True)
def my_orders_route():
    dispensary_id = request.args.get("dispensary_id", type=int)
    orders = order_service.list_customer_orders(g.customer_id, dispensary_id)
    return jsonify({"orders": [o.to_dict(include_history=False) for o in orders if o.org_id == g.org_id]}), 200


@orders_bp.get("/orders/<order_id>")
@require_context()
def get_order_route(order_id: str):
    try:
        order = order_service.get_order(order_id, org_id=g.org_id)
        # Shoppers only see their own orders
        if g.customer_id is not None and order.customer_id != g.customer_id:
            raise NotFoundError(f"Order {order_id} not found")
        return jsonify({"order": order.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.get("/dispensaries/<int:dispensary_id>/orders")
@require_context()
def dispensary_orders_route(dispensary_id: int):
    try:
        dispensary = db.session.get(Dispensary, dispensary_id)
        if dispensary is None or dispensary.org_id != g.org_id:
            raise NotFoundError(f"Dispensary {dispensary_id} not found")

        status = request.args.get("status")
        if status:
            order_status_service.parse_status(status)
        orders = order_service.list_dispensary_orders(dispensary_id, status)
        return jsonify({"orders": [o.to_dict(include_history=False) for o in orders]}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.patch("/orders/<order_id>/status")
@require_context()
def update_status_route(order_id: str):
    """
    Move an order through its lifecycle.

    Body: status, notes (optional). Invalid moves return 409 with the
    allowed next states.
    """
    try:
        data = request.get_json(silent=True) or {}
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status required"}), 400

        order = run_with_retry(lambda: order_status_service.update_status(
            order_id,
            new_status,
            g.actor,
            data.get("notes"),
            org_id=g.org_id,
        ))
        return jsonify({"order": order.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error", "message": RETRY_HINT}), 500
