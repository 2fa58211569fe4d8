from __future__ import annotations

import uuid

from ..extensions import db
from cannasaas.time_utils import to_utc_z, utcnow


class Delivery(db.Model):
    """
    Physical delivery handoff for one order.

    Kept apart from Order so driver location and ETA updates never touch
    the order row. Its status moves independently of the order status.
    """
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_deliveries_order"),
        db.Index("ix_deliveries_driver_status", "driver_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    driver_id = db.Column(db.String(64), nullable=True)
    driver_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")

    # Destination
    lat = db.Column(db.Float, nullable=False)
    lng = db.Column(db.Float, nullable=False)

    # Last reported driver position
    current_lat = db.Column(db.Float, nullable=True)
    current_lng = db.Column(db.Float, nullable=True)
    estimated_minutes = db.Column(db.Integer, nullable=True)

    delivery_address = db.Column(db.Text, nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    picked_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order", backref=db.backref("delivery", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "org_id": self.org_id,
            "driver_id": self.driver_id,
            "driver_name": self.driver_name,
            "status": self.status,
            "lat": self.lat,
            "lng": self.lng,
            "current_lat": self.current_lat,
            "current_lng": self.current_lng,
            "estimated_minutes": self.estimated_minutes,
            "delivery_address": self.delivery_address,
            "customer_phone": self.customer_phone,
            "assigned_at": to_utc_z(self.assigned_at),
            "picked_up_at": to_utc_z(self.picked_up_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
