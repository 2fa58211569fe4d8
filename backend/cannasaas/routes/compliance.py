# Overview: Flask API routes for compliance; authorization probe, audit log and daily reports.

from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_context
from ..errors import CannasaasError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Dispensary
from ..services import compliance_service
from cannasaas.time_utils import local_date, parse_iso_date, parse_iso_datetime


compliance_bp = Blueprint("compliance", __name__, url_prefix="/api/compliance")


def _tenant_dispensary(dispensary_id) -> Dispensary:
    if dispensary_id is None:
        raise ValidationError("dispensary_id required")
    dispensary = db.session.get(Dispensary, dispensary_id)
    if dispensary is None or dispensary.org_id != g.org_id:
        raise NotFoundError(f"Dispensary {dispensary_id} not found")
    return dispensary


def _parse(parser, value, name):
    try:
        return parser(value)
    except (ValueError, InvalidOperation):
        raise ValidationError(f"Invalid {name}: {value!r}") from None


@compliance_bp.get("/authorize")
@require_context(customer=True)
def authorize_route():
    """
    Would the caller be allowed to buy requested_grams right now?

    The decision is written to the compliance log like any other check.
    """
    try:
        requested = _parse(Decimal, request.args.get("requested_grams", "0"), "requested_grams")
        decision = compliance_service.authorize(
            g.customer_id,
            g.org_id,
            requested_grams=requested,
            dispensary_id=request.args.get("dispensary_id", type=int),
        )
        return jsonify(decision.to_dict()), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code


@compliance_bp.get("/logs")
@require_context()
def logs_route():
    try:
        dispensary = _tenant_dispensary(request.args.get("dispensary_id", type=int))
        logs = compliance_service.get_compliance_logs(
            dispensary.id,
            start=_parse(parse_iso_datetime, request.args.get("start"), "start"),
            end=_parse(parse_iso_datetime, request.args.get("end"), "end"),
            event_type=request.args.get("event_type"),
            limit=request.args.get("limit", 500, type=int),
        )
        return jsonify({"logs": [entry.to_dict() for entry in logs]}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code


@compliance_bp.post("/reports/daily")
@require_context()
def generate_daily_report_route():
    """
    Build (or rebuild) the daily sales report.

    Body: dispensary_id, date (YYYY-MM-DD, defaults to today at the dispensary).
    """
    try:
        data = request.get_json(silent=True) or {}
        dispensary = _tenant_dispensary(data.get("dispensary_id"))
        report_date = _parse(parse_iso_date, data.get("date"), "date") or local_date(dispensary.timezone)

        report = compliance_service.generate_daily_report(dispensary.id, report_date)
        return jsonify({"report": report.to_dict()}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate daily report")
        return jsonify({"error": "Internal server error", "message": "Please retry the request"}), 500


@compliance_bp.get("/reports/daily")
@require_context()
def list_daily_reports_route():
    try:
        dispensary = _tenant_dispensary(request.args.get("dispensary_id", type=int))
        start = _parse(parse_iso_date, request.args.get("start"), "start")
        end = _parse(parse_iso_date, request.args.get("end"), "end")
        if start is None or end is None:
            raise ValidationError("start and end dates required")

        reports = compliance_service.get_daily_reports(dispensary.id, start, end)
        return jsonify({"reports": [r.to_dict() for r in reports]}), 200

    except CannasaasError as e:
        return jsonify(e.to_dict()), e.status_code
