# Overview: Order read model; full orders with items and ordered status history.

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import NotFoundError
from ..models import Order, OrderItem


def _with_children(query):
    return query.options(selectinload(Order.items), selectinload(Order.status_history))


def get_order(order_id: str, *, org_id: int | None = None) -> Order:
    """
    Load an order with its items and history (oldest transition first).

    org_id, when given, scopes the lookup to one tenant; an order of another
    tenant is reported as not found.
    """
    q = _with_children(db.session.query(Order)).filter(Order.id == order_id)
    if org_id is not None:
        q = q.filter(Order.org_id == org_id)
    order = q.populate_existing().first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_customer_orders(customer_id: int, dispensary_id: int | None = None) -> list[Order]:
    q = _with_children(db.session.query(Order)).filter(Order.customer_id == customer_id)
    if dispensary_id is not None:
        q = q.filter(Order.dispensary_id == dispensary_id)
    return q.order_by(Order.created_at.desc()).all()


def list_dispensary_orders(dispensary_id: int, status: str | None = None) -> list[Order]:
    q = _with_children(db.session.query(Order)).filter(Order.dispensary_id == dispensary_id)
    if status:
        q = q.filter(Order.status == status)
    return q.order_by(Order.created_at.desc()).all()


def has_customer_purchased_product(customer_id: int, product_id: int) -> bool:
    """Used by review features: true if any order of the customer contains the product."""
    hit = (
        db.session.query(Order.id)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .filter(Order.customer_id == customer_id, OrderItem.product_id == product_id)
        .first()
    )
    return hit is not None
