# Overview: Service-layer operations for compliance; age/ID/purchase-limit gate, audit log and daily reports.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ComplianceDeniedError, NotFoundError, ValidationError
from .tax_service import round_cents
from ..models import (
    ComplianceLog,
    Customer,
    DailySalesReport,
    Dispensary,
    Order,
    Organization,
    COMPLIANCE_EVENT_TYPES,
)
from cannasaas.time_utils import (
    calculate_age,
    local_date,
    local_day_bounds,
    local_midnight,
    to_utc_z,
    utcnow,
)
"""
Compliance Invariants (authoritative)

- The compliance log is append-only. log_event never swallows a failure:
  a write that cannot be recorded is raised to the caller.
- Every authorization decision that denies a sale is logged, as is every
  purchase-limit evaluation, whatever its outcome.
- Purchase limit: with daily limit L, prior completed weight P since local
  midnight and requested weight Q, the sale is allowed iff P + Q <= L.
- Daily reports are keyed by (dispensary, local date); regenerating a report
  overwrites the previous row.
"""

logger = logging.getLogger(__name__)


@dataclass
class ComplianceDecision:
    allowed: bool
    reason: str | None = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason, "details": self.details}


@dataclass
class PurchaseLimitCheck:
    within_limit: bool
    daily_total: Decimal
    requested: Decimal
    limit: Decimal
    remaining: Decimal

    def to_dict(self) -> dict:
        return {
            "within_limit": self.within_limit,
            "daily_total": str(self.daily_total),
            "requested": str(self.requested),
            "limit": str(self.limit),
            "remaining": str(self.remaining),
        }


def _to_grams(value) -> Decimal:
    try:
        grams = Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid weight {value!r}") from None
    if grams < 0:
        raise ValidationError("Requested weight cannot be negative")
    return grams


# =============================================================================
# Audit log
# =============================================================================

def log_event(
    dispensary_id: int | None,
    event_type: str,
    details: dict,
    performed_by: str | None = None,
    order_id: str | None = None,
    *,
    org_id: int | None = None,
    session=None,
    commit: bool = True,
) -> ComplianceLog:
    """
    Append one compliance log entry.

    With commit=False the entry joins the caller's transaction. Failures
    are rolled back and re-raised.
    """
    if event_type not in COMPLIANCE_EVENT_TYPES:
        raise ValidationError(f"Unknown compliance event type '{event_type}'")

    session = session or db.session
    if org_id is None and dispensary_id is not None:
        dispensary = session.get(Dispensary, dispensary_id)
        if dispensary is None:
            raise NotFoundError(f"Dispensary {dispensary_id} not found")
        org_id = dispensary.org_id

    entry = ComplianceLog(
        org_id=org_id,
        dispensary_id=dispensary_id,
        event_type=event_type,
        details=details or {},
        performed_by=str(performed_by) if performed_by is not None else None,
        order_id=order_id,
    )
    try:
        session.add(entry)
        session.flush()
        if commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    return entry


def sale_summary(order: Order) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "items": [
            {
                "product_name": item.product_name,
                "variant_name": item.variant_name,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
                "weight_grams": str(item.weight_grams) if item.weight_grams is not None else None,
                "batch_number": item.batch_number,
                "license_number": item.license_number,
            }
            for item in order.items
        ],
        "subtotal_cents": order.subtotal_cents,
        "tax_cents": order.tax_cents,
        "excise_tax_cents": order.excise_tax_cents,
        "discount_cents": order.discount_cents,
        "total_cents": order.total_cents,
        "total_weight_grams": str(order.total_weight_grams),
    }


def log_sale(order: Order, performed_by: str | None) -> ComplianceLog:
    """Record the sale summary for a committed order and mark it logged."""
    entry = log_event(
        order.dispensary_id,
        "sale",
        sale_summary(order),
        performed_by,
        order.id,
        org_id=order.org_id,
        commit=False,
    )
    order.sale_logged_at = utcnow()
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return entry


def backfill_sale_logs(limit: int = 100) -> dict:
    """
    Retry the post-checkout sale log for orders that never got one.

    Each order is retried independently; a failure is reported and the
    next order is attempted.
    """
    pending = (
        db.session.query(Order)
        .filter(Order.sale_logged_at.is_(None))
        .order_by(Order.created_at.asc())
        .limit(limit)
        .all()
    )
    logged, failed = 0, []
    for order in pending:
        try:
            log_sale(order, performed_by=str(order.customer_id))
            logged += 1
        except Exception:
            logger.exception("Sale compliance log retry failed for order %s", order.id)
            failed.append(order.id)
    return {"logged": logged, "failed": failed}


def get_compliance_logs(
    dispensary_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    event_type: str | None = None,
    limit: int = 500,
) -> list[ComplianceLog]:
    q = db.session.query(ComplianceLog).filter(ComplianceLog.dispensary_id == dispensary_id)
    if start is not None:
        q = q.filter(ComplianceLog.created_at >= start)
    if end is not None:
        q = q.filter(ComplianceLog.created_at <= end)
    if event_type:
        q = q.filter(ComplianceLog.event_type == event_type)
    return q.order_by(ComplianceLog.created_at.desc(), ComplianceLog.id.desc()).limit(limit).all()


# =============================================================================
# Authorization gate
# =============================================================================

def check_purchase_limit(
    customer_id: int,
    org: Organization,
    requested_grams,
    now: datetime | None = None,
) -> PurchaseLimitCheck:
    """
    Compare today's completed purchases plus the request to the tenant limit.

    "Today" starts at local midnight in the tenant's timezone.
    """
    requested = _to_grams(requested_grams)
    limit = Decimal(str(org.daily_purchase_limit_grams))
    since = local_midnight(org.timezone, now)

    rows = (
        db.session.query(Order.total_weight_grams)
        .filter(
            Order.customer_id == customer_id,
            Order.org_id == org.id,
            Order.status == "completed",
            Order.created_at >= since,
        )
        .all()
    )
    daily_total = sum((Decimal(str(w)) for (w,) in rows if w is not None), Decimal("0"))

    return PurchaseLimitCheck(
        within_limit=daily_total + requested <= limit,
        daily_total=daily_total,
        requested=requested,
        limit=limit,
        remaining=max(limit - daily_total, Decimal("0")),
    )


def _deny(
    org: Organization,
    customer_id: int,
    dispensary_id: int | None,
    event_type: str,
    reason: str,
    details: dict,
) -> ComplianceDecision:
    details = {**details, "customer_id": customer_id, "allowed": False, "reason": reason}
    log_event(dispensary_id, event_type, details, customer_id, org_id=org.id)
    logger.info("Compliance denied for customer %s (org %s): %s", customer_id, org.id, reason)
    return ComplianceDecision(allowed=False, reason=reason, details=details)


def authorize(
    customer_id: int,
    org_id: int,
    *,
    requested_grams=0,
    dispensary_id: int | None = None,
    now: datetime | None = None,
) -> ComplianceDecision:
    """
    Decide whether a customer may buy right now under tenant policy.

    Checks run in order: date of birth present, minimum age, ID
    verification freshness, daily purchase limit. The first failing rule
    decides the reason. Any decision where a rule ran is logged, allowed or not.
    """
    org = db.session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(f"Organization {org_id} not found")
    customer = db.session.get(Customer, customer_id)
    if customer is None or customer.org_id != org.id:
        raise NotFoundError(f"Customer {customer_id} not found")

    now = now or utcnow()
    config = current_app.config
    checks = []
    passed = {}

    if org.age_verification_required:
        checks.append("age_verification")
        if customer.date_of_birth is None:
            return _deny(org, customer_id, dispensary_id, "age_verification",
                         "Date of birth required", {})

        min_age = config["MIN_AGE_MEDICAL"] if org.medical_only else config["MIN_AGE_RECREATIONAL"]
        age = calculate_age(customer.date_of_birth, local_date(org.timezone, now))
        if age < min_age:
            return _deny(org, customer_id, dispensary_id, "age_verification",
                         f"Must be {min_age}+ to purchase", {"age": age, "minimum_age": min_age})
        passed["age"] = age

    if org.require_id_scan and customer.id_verified_at is not None:
        checks.append("id_verification")
        max_age_days = config["ID_VERIFICATION_MAX_AGE_DAYS"]
        if customer.id_verified_at < now - timedelta(days=max_age_days):
            return _deny(org, customer_id, dispensary_id, "id_verification",
                         "ID verification expired",
                         {"id_verified_at": to_utc_z(customer.id_verified_at),
                          "max_age_days": max_age_days})

    if org.daily_purchase_limit_grams is not None:
        check = check_purchase_limit(customer_id, org, requested_grams, now)
        if not check.within_limit:
            reason = (
                f"Daily limit reached: requested {check.requested}g, "
                f"remaining {check.remaining}g"
            )
            return _deny(org, customer_id, dispensary_id, "purchase_limit_check", reason, check.to_dict())
        log_event(
            dispensary_id,
            "purchase_limit_check",
            {**check.to_dict(), "customer_id": customer_id, "allowed": True},
            customer_id,
            org_id=org.id,
        )
        return ComplianceDecision(allowed=True, details=check.to_dict())

    if checks:
        # One entry per decision, filed under the last rule that ran
        details = {**passed, "customer_id": customer_id, "allowed": True, "checks": checks}
        log_event(dispensary_id, checks[-1], details, customer_id, org_id=org.id)
        return ComplianceDecision(allowed=True, details=details)

    return ComplianceDecision(allowed=True)


def require_authorized(customer_id: int, org_id: int, **kwargs) -> ComplianceDecision:
    """authorize(), raising ComplianceDeniedError on a denial."""
    decision = authorize(customer_id, org_id, **kwargs)
    if not decision.allowed:
        raise ComplianceDeniedError(decision.reason, details=decision.details)
    return decision


# =============================================================================
# Daily sales report
# =============================================================================

def _fill_report(report: DailySalesReport, orders: list[Order]) -> None:
    completed = [o for o in orders if o.status == "completed"]
    cancelled = [o for o in orders if o.status == "cancelled"]
    refunded = [o for o in orders if o.status == "refunded"]

    revenue = sum(o.total_cents for o in completed)
    report.total_orders = len(completed)
    report.total_revenue_cents = revenue
    report.total_tax_cents = sum(o.tax_cents for o in completed)
    report.total_excise_tax_cents = sum(o.excise_tax_cents for o in completed)
    report.total_items_sold = sum(item.quantity for o in completed for item in o.items)
    report.average_order_value_cents = round_cents(Decimal(revenue) / len(completed)) if completed else 0
    report.unique_customers = len({o.customer_id for o in completed})
    report.cancelled_orders = len(cancelled)
    report.refunded_amount_cents = sum(o.total_cents for o in refunded)
    report.generated_at = utcnow()


def generate_daily_report(dispensary_id: int, report_date: date) -> DailySalesReport:
    """
    Build (or rebuild) the report for one dispensary and local calendar day.

    Idempotent per (dispensary, date): the existing row is overwritten.
    """
    dispensary = db.session.get(Dispensary, dispensary_id)
    if dispensary is None:
        raise NotFoundError(f"Dispensary {dispensary_id} not found")

    start, end = local_day_bounds(dispensary.timezone, report_date)
    orders = (
        db.session.query(Order)
        .filter(
            Order.dispensary_id == dispensary_id,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .all()
    )

    report = (
        db.session.query(DailySalesReport)
        .filter_by(dispensary_id=dispensary_id, report_date=report_date)
        .first()
    )
    if report is None:
        report = DailySalesReport(dispensary_id=dispensary_id, report_date=report_date)
        db.session.add(report)
    _fill_report(report, orders)

    try:
        db.session.commit()
    except IntegrityError:
        # Another worker inserted the same key first; overwrite theirs.
        db.session.rollback()
        report = (
            db.session.query(DailySalesReport)
            .filter_by(dispensary_id=dispensary_id, report_date=report_date)
            .one()
        )
        _fill_report(report, orders)
        db.session.commit()
    return report


def get_daily_reports(dispensary_id: int, start_date: date, end_date: date) -> list[DailySalesReport]:
    return (
        db.session.query(DailySalesReport)
        .filter(
            DailySalesReport.dispensary_id == dispensary_id,
            DailySalesReport.report_date >= start_date,
            DailySalesReport.report_date <= end_date,
        )
        .order_by(DailySalesReport.report_date.asc())
        .all()
    )
