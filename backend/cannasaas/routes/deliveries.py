# Overview: Flask API routes for delivery handoff; driver assignment, status and location.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_context
from ..errors import CannasaasError, ValidationError
from ..services import delivery_service


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api")


def _server_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "message": "Please retry the request"}), 500


@deliveries_bp.post("/orders/<order_id>/delivery")
@require_context()
def create_delivery_route(order_id: str):
    """Body: lat, lng of the destination."""
    try:
        data = request.get_json(silent=True) or {}
        if data.get("lat") is None or data.get("lng") is None:
            raise ValidationError("lat and lng required")
        delivery = delivery_service.create_delivery(order_id, data["lat"], data["lng"], org_id=g.org_id)
        return jsonify({"delivery": delivery.to_dict()}), 201

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _server_error("Failed to create delivery")


@deliveries_bp.get("/orders/<order_id>/delivery")
@require_context()
def get_delivery_route(order_id: str):
    try:
        delivery = delivery_service.get_delivery_for_order(order_id, org_id=g.org_id)
        return jsonify({"delivery": delivery.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code


@deliveries_bp.post("/deliveries/<delivery_id>/assign")
@require_context()
def assign_driver_route(delivery_id: str):
    """Body: driver_id, driver_name."""
    try:
        data = request.get_json(silent=True) or {}
        delivery = delivery_service.assign_driver(
            delivery_id, data.get("driver_id"), data.get("driver_name"), org_id=g.org_id
        )
        return jsonify({"delivery": delivery.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _server_error("Failed to assign driver")


@deliveries_bp.patch("/deliveries/<delivery_id>/status")
@require_context()
def update_delivery_status_route(delivery_id: str):
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("status"):
            raise ValidationError("status required")
        delivery = delivery_service.update_status(delivery_id, data["status"], org_id=g.org_id)
        return jsonify({"delivery": delivery.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _server_error("Failed to update delivery status")


@deliveries_bp.post("/deliveries/<delivery_id>/location")
@require_context()
def update_location_route(delivery_id: str):
    """Body: lat, lng of the driver."""
    try:
        data = request.get_json(silent=True) or {}
        if data.get("lat") is None or data.get("lng") is None:
            raise ValidationError("lat and lng required")
        delivery = delivery_service.update_location(delivery_id, data["lat"], data["lng"], org_id=g.org_id)
        return jsonify({"delivery": delivery.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        return _server_error("Failed to update delivery location")
