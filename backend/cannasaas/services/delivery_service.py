# Overview: Delivery handoff for delivery orders; driver assignment, forward-only status, live ETA.

"""
Delivery Invariants (authoritative)

- One Delivery per order, and only for orders with fulfillment_type=delivery.
- Status only moves forward along DELIVERY_FLOW. cancelled is reachable
  from any state that is not delivered or cancelled.
- The delivery status is independent of the order status; moving one
  never moves the other.
- ETA is great-circle distance at 30 mph, rounded to whole minutes, never
  below 2.
- Every change queues a delivery.* notification in the same transaction.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from enum import Enum

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import Delivery, Order
from cannasaas.time_utils import utcnow
from . import notification_service
from .concurrency import lock_for_update, unit_of_work

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959
AVERAGE_SPEED_MILES_PER_MINUTE = 0.5
MIN_ETA_MINUTES = 2


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    ARRIVING = "arriving"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


DELIVERY_FLOW = [
    DeliveryStatus.PENDING,
    DeliveryStatus.ASSIGNED,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.ARRIVING,
    DeliveryStatus.DELIVERED,
]

TERMINAL_DELIVERY_STATUSES = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED})


def parse_delivery_status(value) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid delivery status '{value}'. Must be one of: {', '.join(s.value for s in DeliveryStatus)}"
        ) from None


def _allowed_next(current: DeliveryStatus) -> list[str]:
    if current in TERMINAL_DELIVERY_STATUSES:
        return []
    later = DELIVERY_FLOW[DELIVERY_FLOW.index(current) + 1:]
    return [s.value for s in later] + [DeliveryStatus.CANCELLED.value]


def validate_delivery_transition(current, target) -> None:
    current = parse_delivery_status(current)
    target = parse_delivery_status(target)
    if target in _allowed_next(current):
        return
    raise InvalidTransitionError(current.value, target.value, _allowed_next(current))


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimate_minutes(distance_miles: float) -> int:
    # Half-up rounding of whole minutes
    return max(MIN_ETA_MINUTES, int(distance_miles / AVERAGE_SPEED_MILES_PER_MINUTE + 0.5))


def _validate_coordinates(lat, lng) -> tuple[float, float]:
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ValidationError("lat and lng must be numbers") from None
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationError("Coordinates out of range", details={"lat": lat, "lng": lng})
    return lat, lng


def _locked_delivery(session, delivery_id: str, org_id: int | None) -> Delivery:
    q = session.query(Delivery).filter(Delivery.id == delivery_id)
    if org_id is not None:
        q = q.filter(Delivery.org_id == org_id)
    delivery = lock_for_update(q).populate_existing().first()
    if delivery is None:
        raise NotFoundError(f"Delivery {delivery_id} not found")
    return delivery


def create_delivery(
    order_id: str,
    lat,
    lng,
    *,
    org_id: int | None = None,
    now: datetime | None = None,
) -> Delivery:
    """Open the delivery record for a delivery order, destination at (lat, lng)."""
    lat, lng = _validate_coordinates(lat, lng)
    now = now or utcnow()

    try:
        with unit_of_work() as session:
            q = session.query(Order).filter(Order.id == order_id)
            if org_id is not None:
                q = q.filter(Order.org_id == org_id)
            order = q.first()
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            if order.fulfillment_type != "delivery":
                raise ValidationError(f"Order {order.order_number} is not a delivery order")
            if order.status in ("cancelled", "refunded", "completed"):
                raise ValidationError(f"Order {order.order_number} is {order.status}")
            if session.query(Delivery.id).filter(Delivery.order_id == order.id).first() is not None:
                raise ValidationError(f"Order {order.order_number} already has a delivery")

            delivery = Delivery(
                order_id=order.id,
                org_id=order.org_id,
                status=DeliveryStatus.PENDING.value,
                lat=lat,
                lng=lng,
                delivery_address=order.delivery_address,
                customer_phone=order.customer_phone,
                created_at=now,
                updated_at=now,
            )
            session.add(delivery)
            session.flush()
            delivery_id = delivery.id
    except IntegrityError:
        raise ValidationError(f"Order {order_id} already has a delivery") from None

    logger.info("Delivery %s opened for order %s", delivery_id, order_id)
    return get_delivery(delivery_id)


def get_delivery(delivery_id: str, *, org_id: int | None = None) -> Delivery:
    q = db.session.query(Delivery).filter(Delivery.id == delivery_id)
    if org_id is not None:
        q = q.filter(Delivery.org_id == org_id)
    delivery = q.populate_existing().first()
    if delivery is None:
        raise NotFoundError(f"Delivery {delivery_id} not found")
    return delivery


def get_delivery_for_order(order_id: str, *, org_id: int | None = None) -> Delivery:
    q = db.session.query(Delivery).filter(Delivery.order_id == order_id)
    if org_id is not None:
        q = q.filter(Delivery.org_id == org_id)
    delivery = q.first()
    if delivery is None:
        raise NotFoundError(f"No delivery for order {order_id}")
    return delivery


def assign_driver(
    delivery_id: str,
    driver_id: str,
    driver_name: str,
    *,
    org_id: int | None = None,
    now: datetime | None = None,
) -> Delivery:
    """Assign (or reassign before pickup) a driver."""
    if not driver_id or not driver_name:
        raise ValidationError("driver_id and driver_name are required")
    now = now or utcnow()

    with unit_of_work() as session:
        delivery = _locked_delivery(session, delivery_id, org_id)
        current = parse_delivery_status(delivery.status)
        if current not in (DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED):
            raise InvalidTransitionError(current.value, DeliveryStatus.ASSIGNED.value, _allowed_next(current))

        delivery.driver_id = str(driver_id)
        delivery.driver_name = driver_name
        delivery.status = DeliveryStatus.ASSIGNED.value
        delivery.assigned_at = now
        delivery.updated_at = now
        notification_service.enqueue(
            session, delivery.order_id, "delivery.assigned", DeliveryStatus.ASSIGNED.value, now,
            {"driver_name": driver_name, "estimated_minutes": delivery.estimated_minutes},
        )

    logger.info("Driver %s assigned to delivery %s", driver_id, delivery_id)
    return get_delivery(delivery_id)


def update_status(
    delivery_id: str,
    new_status,
    *,
    org_id: int | None = None,
    now: datetime | None = None,
) -> Delivery:
    """
    Move a delivery forward (or cancel it).

    assigned is only reachable through assign_driver.
    """
    target = parse_delivery_status(new_status)
    if target is DeliveryStatus.ASSIGNED:
        raise ValidationError("Use assign_driver to assign a delivery")
    now = now or utcnow()

    with unit_of_work() as session:
        delivery = _locked_delivery(session, delivery_id, org_id)
        current = parse_delivery_status(delivery.status)
        validate_delivery_transition(current, target)

        delivery.status = target.value
        delivery.updated_at = now
        if target is DeliveryStatus.PICKED_UP:
            delivery.picked_up_at = now
        elif target is DeliveryStatus.DELIVERED:
            delivery.delivered_at = now
        elif target is DeliveryStatus.CANCELLED:
            delivery.cancelled_at = now

        notification_service.enqueue(
            session, delivery.order_id, "delivery.status", target.value, now,
            {"from_status": current.value},
        )

    logger.info("Delivery %s moved %s -> %s", delivery_id, current.value, target.value)
    return get_delivery(delivery_id)


def update_location(
    delivery_id: str,
    lat,
    lng,
    *,
    org_id: int | None = None,
    now: datetime | None = None,
) -> Delivery:
    """Record the driver's position and recompute the ETA to the destination."""
    lat, lng = _validate_coordinates(lat, lng)
    now = now or utcnow()

    with unit_of_work() as session:
        delivery = _locked_delivery(session, delivery_id, org_id)
        if parse_delivery_status(delivery.status) in TERMINAL_DELIVERY_STATUSES:
            raise ValidationError(f"Delivery {delivery_id} is {delivery.status}")

        delivery.current_lat = lat
        delivery.current_lng = lng
        delivery.estimated_minutes = estimate_minutes(haversine_miles(lat, lng, delivery.lat, delivery.lng))
        delivery.updated_at = now

        notification_service.enqueue(
            session, delivery.order_id, "delivery.location", delivery.status, now,
            {"lat": lat, "lng": lng, "estimated_minutes": delivery.estimated_minutes},
        )

    return get_delivery(delivery_id)
