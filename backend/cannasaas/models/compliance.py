from __future__ import annotations

from ..extensions import db
from cannasaas.time_utils import to_utc_z, utcnow


COMPLIANCE_EVENT_TYPES = {
    "sale",
    "return",
    "inventory_adjustment",
    "inventory_received",
    "inventory_destroyed",
    "product_recall",
    "id_verification",
    "age_verification",
    "purchase_limit_check",
}


class ComplianceLog(db.Model):
    """
    Regulator-facing audit trail.

    Append-only: rows are never updated or deleted. dispensary_id is NULL
    for tenant-level checks that are not tied to a single location.
    """
    __tablename__ = "compliance_logs"
    __table_args__ = (
        db.Index("ix_compliance_logs_dispensary_created", "dispensary_id", "created_at"),
        db.Index("ix_compliance_logs_event_created", "event_type", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    dispensary_id = db.Column(db.Integer, db.ForeignKey("dispensaries.id"), nullable=True)

    event_type = db.Column(db.String(32), nullable=False)
    details = db.Column(db.JSON, nullable=False, default=dict)

    performed_by = db.Column(db.String(64), nullable=True)
    order_id = db.Column(db.String(36), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "dispensary_id": self.dispensary_id,
            "event_type": self.event_type,
            "details": self.details,
            "performed_by": self.performed_by,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }


class DailySalesReport(db.Model):
    """One row per (dispensary, local calendar day); regenerating overwrites it."""
    __tablename__ = "daily_sales_reports"
    __table_args__ = (
        db.UniqueConstraint("dispensary_id", "report_date", name="uq_daily_sales_reports_dispensary_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    dispensary_id = db.Column(db.Integer, db.ForeignKey("dispensaries.id"), nullable=False, index=True)
    report_date = db.Column(db.Date, nullable=False)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_revenue_cents = db.Column(db.Integer, nullable=False, default=0)
    total_tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_excise_tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_items_sold = db.Column(db.Integer, nullable=False, default=0)
    average_order_value_cents = db.Column(db.Integer, nullable=False, default=0)
    unique_customers = db.Column(db.Integer, nullable=False, default=0)
    cancelled_orders = db.Column(db.Integer, nullable=False, default=0)
    refunded_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dispensary_id": self.dispensary_id,
            "report_date": self.report_date.isoformat(),
            "total_orders": self.total_orders,
            "total_revenue_cents": self.total_revenue_cents,
            "total_tax_cents": self.total_tax_cents,
            "total_excise_tax_cents": self.total_excise_tax_cents,
            "total_items_sold": self.total_items_sold,
            "average_order_value_cents": self.average_order_value_cents,
            "unique_customers": self.unique_customers,
            "cancelled_orders": self.cancelled_orders,
            "refunded_amount_cents": self.refunded_amount_cents,
            "generated_at": to_utc_z(self.generated_at),
        }
