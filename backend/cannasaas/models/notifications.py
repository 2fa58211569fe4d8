from __future__ import annotations

from ..extensions import db
from cannasaas.time_utils import to_utc_z, utcnow


class OrderStatusEvent(db.Model):
    """
    Outbox row for a status-change notification.

    Written in the same transaction as the status change it announces and
    published afterwards by notification_service.dispatch_pending. Delivery
    is at-least-once; consumers de-duplicate on dedupe_key.
    """
    __tablename__ = "order_status_events"
    __table_args__ = (
        db.Index("ix_order_status_events_pending", "dispatched_at", "occurred_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False)  # order.status, delivery.status, delivery.assigned, delivery.location
    status = db.Column(db.String(32), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    dedupe_key = db.Column(db.String(128), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)

    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(255), nullable=True)
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "kind": self.kind,
            "status": self.status,
            "occurred_at": to_utc_z(self.occurred_at),
            "dedupe_key": self.dedupe_key,
            "payload": self.payload,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "dispatched_at": to_utc_z(self.dispatched_at),
        }
