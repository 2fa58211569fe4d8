# Overview: Status-change notification outbox and at-least-once dispatcher.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..extensions import db
from ..models import OrderStatusEvent
from cannasaas.time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)


def dedupe_key(order_id: str, kind: str, status: str, occurred_at: datetime) -> str:
    """Unique per event: the outbox mixes order and delivery events for one order."""
    return f"{order_id}:{kind}:{status}:{to_utc_z(occurred_at, keep_microseconds=True)}"


def enqueue(
    session,
    order_id: str,
    kind: str,
    status: str,
    occurred_at: datetime,
    extra: dict | None = None,
) -> OrderStatusEvent:
    """
    Write an outbox row in the caller's transaction.

    The row only becomes visible to the dispatcher if the status change it
    describes commits.
    """
    key = dedupe_key(order_id, kind, status, occurred_at)
    payload = {
        "order_id": order_id,
        "kind": kind,
        "status": status,
        "timestamp": to_utc_z(occurred_at, keep_microseconds=True),
        "dedupe_key": key,
    }
    if extra:
        payload.update(extra)

    event = OrderStatusEvent(
        order_id=order_id,
        kind=kind,
        status=status,
        occurred_at=occurred_at,
        dedupe_key=key,
        payload=payload,
    )
    session.add(event)
    return event


def list_pending(limit: int = 100) -> list[OrderStatusEvent]:
    return (
        db.session.query(OrderStatusEvent)
        .filter(OrderStatusEvent.dispatched_at.is_(None))
        .order_by(OrderStatusEvent.occurred_at.asc(), OrderStatusEvent.id.asc())
        .limit(limit)
        .all()
    )


def dispatch_pending(publish: Callable[[dict], None], limit: int = 100) -> dict:
    """
    Publish undelivered events in occurrence order.

    An event is marked dispatched only after publish returns, so a crash in
    between re-sends it (at-least-once). A failed publish is recorded on the
    row and retried on the next run.
    """
    sent, failed = 0, 0
    for event in list_pending(limit):
        event.attempts = (event.attempts or 0) + 1
        try:
            publish(dict(event.payload))
        except Exception as exc:
            logger.exception("Failed to publish %s for order %s", event.kind, event.order_id)
            event.last_error = str(exc)[:255]
            failed += 1
        else:
            event.dispatched_at = utcnow()
            event.last_error = None
            sent += 1
        db.session.commit()
    return {"sent": sent, "failed": failed}
