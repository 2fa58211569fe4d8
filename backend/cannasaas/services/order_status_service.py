# Overview: Service-layer operations for order status; table-driven state machine.

"""
Order Status Machine

================================================================================
STATE MACHINE:
    pending          -> confirmed, cancelled
    confirmed        -> preparing, cancelled
    preparing        -> ready_for_pickup, out_for_delivery, cancelled
    ready_for_pickup -> completed, cancelled
    out_for_delivery -> completed, cancelled
    completed        -> refunded
    cancelled        -> (terminal)
    refunded         -> (terminal)

RULES:
1. Anything not listed in ALLOWED_TRANSITIONS is rejected; the order is
   left untouched.
2. The current status is read under a row lock and validated in the same
   transaction that writes the new status (no lost updates).
3. Side effects:
   - confirmed: confirmed_at
   - completed: completed_at
   - cancelled: cancelled_at, and every item's quantity goes back to inventory
   - refunded:  payment_status = refunded, refunded_at
4. Every successful transition appends one OrderStatusHistory row after the
   order row is written, and queues a status-change notification.
================================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy import func

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import Order, OrderStatusHistory
from cannasaas.time_utils import utcnow
from . import inventory_service, notification_service, order_service
from .concurrency import lock_for_update, unit_of_work

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {', '.join(s.value for s in OrderStatus)}"
        ) from None


def allowed_next(status) -> list[str]:
    """Valid next states, in declaration order."""
    targets = ALLOWED_TRANSITIONS[parse_status(status)]
    return [s.value for s in OrderStatus if s in targets]


def can_transition(from_status, to_status) -> bool:
    return parse_status(to_status) in ALLOWED_TRANSITIONS[parse_status(from_status)]


def validate_transition(from_status, to_status) -> None:
    """Raise InvalidTransitionError naming both states and the valid targets."""
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(
            parse_status(from_status).value,
            parse_status(to_status).value,
            allowed_next(from_status),
        )


def _apply_side_effects(session, order: Order, target: OrderStatus, actor: str | None, now: datetime) -> None:
    if target is OrderStatus.CONFIRMED:
        order.confirmed_at = now
    elif target is OrderStatus.COMPLETED:
        order.completed_at = now
    elif target is OrderStatus.CANCELLED:
        order.cancelled_at = now
        for item in order.items:
            inventory_service.adjust_quantity(
                session,
                item.variant_id,
                item.quantity,
                reason="cancellation",
                order_id=order.id,
                performed_by=actor,
            )
    elif target is OrderStatus.REFUNDED:
        order.payment_status = "refunded"
        order.refunded_at = now


def update_status(
    order_id: str,
    new_status,
    actor,
    note: str | None = None,
    *,
    org_id: int | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Move an order to new_status and return the reloaded order.

    Raises:
        ValidationError: new_status is not a known status
        NotFoundError: no such order (for this tenant when org_id is given)
        InvalidTransitionError: the move is not in ALLOWED_TRANSITIONS
    """
    target = parse_status(new_status)
    actor = str(actor) if actor is not None else None

    with unit_of_work() as session:
        q = session.query(Order).filter(Order.id == order_id)
        if org_id is not None:
            q = q.filter(Order.org_id == org_id)
        order = lock_for_update(q).populate_existing().first()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        current = parse_status(order.status)
        validate_transition(current, target)

        now = now or utcnow()
        order.status = target.value
        _apply_side_effects(session, order, target, actor, now)
        session.flush()

        last_seq = (
            session.query(func.coalesce(func.max(OrderStatusHistory.sequence), 0))
            .filter(OrderStatusHistory.order_id == order.id)
            .scalar()
        )
        session.add(OrderStatusHistory(
            order_id=order.id,
            sequence=last_seq + 1,
            from_status=current.value,
            to_status=target.value,
            changed_by=actor,
            notes=note,
            created_at=now,
        ))
        notification_service.enqueue(
            session,
            order.id,
            "order.status",
            target.value,
            now,
            {"from_status": current.value, "order_number": order.order_number},
        )

    logger.info("Order %s moved %s -> %s by %s", order_id, current.value, target.value, actor)
    return order_service.get_order(order_id)
