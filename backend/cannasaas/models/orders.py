from __future__ import annotations

import uuid

from ..extensions import db
from cannasaas.time_utils import to_utc_z, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class Order(db.Model):
    """
    Immutable business transaction created at checkout.

    WHY: Financial fields and line items are frozen at creation. Catalog
    price or name changes never touch existing orders. After creation the
    row only changes through status transitions (status + timestamps) and
    refund bookkeeping.

    MONEY: all amounts are integer cents.
        total_cents = subtotal_cents + tax_cents + excise_tax_cents - discount_cents
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("dispensary_id", "order_number", name="uq_orders_dispensary_number"),
        db.Index("ix_orders_dispensary_created", "dispensary_id", "created_at"),
        db.Index("ix_orders_customer_org_status", "customer_id", "org_id", "status"),
        db.CheckConstraint("subtotal_cents >= 0", name="ck_orders_subtotal_nonneg"),
        db.CheckConstraint("tax_cents >= 0", name="ck_orders_tax_nonneg"),
        db.CheckConstraint("excise_tax_cents >= 0", name="ck_orders_excise_nonneg"),
        db.CheckConstraint("discount_cents >= 0", name="ck_orders_discount_nonneg"),
        db.CheckConstraint("total_cents >= 0", name="ck_orders_total_nonneg"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    order_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    dispensary_id = db.Column(db.Integer, db.ForeignKey("dispensaries.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    excise_tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    # Sum of line weights; basis for daily purchase limits
    total_weight_grams = db.Column(db.Numeric(10, 3), nullable=False, default=0)

    fulfillment_type = db.Column(db.String(16), nullable=False)  # pickup, delivery
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")  # pending, authorized, captured, failed, refunded

    # Contact snapshot
    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Set once the post-commit compliance sale log has been written
    sale_logged_at = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    status_history = db.relationship(
        "OrderStatusHistory",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.sequence",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True, include_history: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "dispensary_id": self.dispensary_id,
            "org_id": self.org_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "excise_tax_cents": self.excise_tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "total_weight_grams": str(self.total_weight_grams),
            "fulfillment_type": self.fulfillment_type,
            "status": self.status,
            "payment_status": self.payment_status,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "refunded_at": to_utc_z(self.refunded_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_history:
            data["status_history"] = [entry.to_dict() for entry in self.status_history]
        return data


class OrderItem(db.Model):
    """
    Frozen snapshot of one cart line at purchase time.

    Product and variant names are denormalized so the order reads the same
    after catalog edits. Owned by its Order (cascade delete).
    """
    __tablename__ = "order_items"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(128), nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    weight_grams = db.Column(db.Numeric(10, 3), nullable=True)

    batch_number = db.Column(db.String(64), nullable=True)
    license_number = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
            "weight_grams": str(self.weight_grams) if self.weight_grams is not None else None,
            "batch_number": self.batch_number,
            "license_number": self.license_number,
        }


class OrderStatusHistory(db.Model):
    """
    Append-only audit trail of status transitions.

    sequence is 1-based per order and unique, so two writers that both
    passed validation against a stale status cannot both append.
    """
    __tablename__ = "order_status_history"
    __table_args__ = (
        db.UniqueConstraint("order_id", "sequence", name="uq_order_status_history_order_seq"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    from_status = db.Column(db.String(32), nullable=True)
    to_status = db.Column(db.String(32), nullable=False)
    changed_by = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "sequence": self.sequence,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "changed_by": self.changed_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class OrderSequence(db.Model):
    """
    Atomic per-dispensary, per-day order number counter.

    WHY: Counting existing orders to derive the next number races under
    concurrent checkouts. The counter row is incremented with a single
    UPDATE inside the checkout transaction instead.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("dispensary_id", "business_date", name="uq_order_sequences_dispensary_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    dispensary_id = db.Column(db.Integer, db.ForeignKey("dispensaries.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
