# Overview: Flask API routes for inventory; manual adjustments and low-stock view.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_context
from ..errors import CannasaasError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Dispensary
from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/variants/<int:variant_id>/adjust")
@require_context()
def adjust_route(variant_id: int):
    """
    Manual stock adjustment.

    Body: delta (signed int), reason (restock|return|damage|adjust), notes.
    """
    try:
        data = request.get_json(silent=True) or {}
        delta = data.get("delta")
        reason = data.get("reason")
        if not isinstance(delta, int) or isinstance(delta, bool) or not reason:
            raise ValidationError("integer delta and reason required")

        quantity = inventory_service.record_adjustment(
            variant_id,
            delta,
            reason,
            g.actor,
            org_id=g.org_id,
            notes=data.get("notes"),
        )
        return jsonify({"variant_id": variant_id, "quantity": quantity}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error", "message": "Please retry the request"}), 500


@inventory_bp.get("/low-stock")
@require_context()
def low_stock_route():
    try:
        dispensary_id = request.args.get("dispensary_id", type=int)
        if dispensary_id is None:
            raise ValidationError("dispensary_id required")
        dispensary = db.session.get(Dispensary, dispensary_id)
        if dispensary is None or dispensary.org_id != g.org_id:
            raise NotFoundError(f"Dispensary {dispensary_id} not found")

        variants = inventory_service.list_low_stock(dispensary_id)
        return jsonify({"variants": [v.to_dict() for v in variants]}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
