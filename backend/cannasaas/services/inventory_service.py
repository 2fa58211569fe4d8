# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/cannasaas/services/inventory_service.py

from __future__ import annotations

import logging

from sqlalchemy import case, update

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Product, ProductVariant, StockMovement
from . import compliance_service
from .concurrency import lock_for_update, unit_of_work
"""
Inventory Ledger Invariants (authoritative)

- ProductVariant.quantity is the on-hand count for a sellable variant.
- It changes only through adjust_quantity (signed delta); never overwritten.
- The result is floored at zero: a decrement past zero clamps to 0 instead of
  failing the sale. Clamps are logged as oversells.
- The floor is applied inside a single UPDATE statement under a row lock, so
  concurrent checkouts of the same variant cannot lose each other's writes.
- Every adjustment appends a StockMovement in the caller's transaction.
"""

logger = logging.getLogger(__name__)

ADJUSTMENT_REASONS = {"sale", "cancellation", "restock", "adjust", "damage", "return"}


def adjust_quantity(
    session,
    variant_id: int,
    delta: int,
    *,
    reason: str,
    order_id: str | None = None,
    performed_by: str | None = None,
) -> int:
    """
    Apply a signed adjustment and return the resulting on-hand quantity.

    Positive delta restocks (or restores a cancelled sale); negative delta
    sells. Does not commit: the caller's unit of work owns the transaction.
    """
    if reason not in ADJUSTMENT_REASONS:
        raise ValidationError(f"Unknown adjustment reason '{reason}'")
    if not isinstance(delta, int) or isinstance(delta, bool):
        raise ValidationError("delta must be an integer")

    variant = (
        lock_for_update(session.query(ProductVariant).filter_by(id=variant_id))
        .populate_existing()
        .first()
    )
    if variant is None:
        raise NotFoundError(f"Variant {variant_id} not found")

    previous = variant.quantity
    threshold = variant.low_stock_threshold

    proposed = ProductVariant.quantity + delta
    session.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .values(quantity=case((proposed < 0, 0), else_=proposed))
        .execution_options(synchronize_session=False)
    )
    new_quantity = (
        session.query(ProductVariant.quantity)
        .filter(ProductVariant.id == variant_id)
        .scalar()
    )
    session.expire(variant, ["quantity"])

    if previous + delta < 0:
        logger.warning(
            "Inventory clamped at zero for variant %s: on hand %s, delta %s (order %s)",
            variant_id, previous, delta, order_id,
        )

    session.add(StockMovement(
        variant_id=variant_id,
        delta=delta,
        previous_quantity=previous,
        new_quantity=new_quantity,
        reason=reason,
        order_id=order_id,
        performed_by=performed_by,
    ))
    session.flush()

    if new_quantity <= threshold < previous:
        logger.info("Variant %s is low on stock: %s left (threshold %s)", variant_id, new_quantity, threshold)
    if previous <= 0 < new_quantity:
        logger.info("Variant %s restocked: %s on hand", variant_id, new_quantity)

    return new_quantity


def get_quantity(variant_id: int) -> int:
    quantity = (
        db.session.query(ProductVariant.quantity)
        .filter(ProductVariant.id == variant_id)
        .scalar()
    )
    if quantity is None:
        raise NotFoundError(f"Variant {variant_id} not found")
    return quantity


def list_low_stock(dispensary_id: int) -> list[ProductVariant]:
    """Active variants at or below their low-stock threshold, lowest first."""
    return (
        db.session.query(ProductVariant)
        .join(Product, Product.id == ProductVariant.product_id)
        .filter(
            Product.dispensary_id == dispensary_id,
            Product.is_active.is_(True),
            ProductVariant.is_active.is_(True),
            ProductVariant.quantity <= ProductVariant.low_stock_threshold,
        )
        .order_by(ProductVariant.quantity.asc(), ProductVariant.id.asc())
        .all()
    )


def list_movements(variant_id: int, limit: int = 200) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(variant_id=variant_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


# Staff adjustments are regulator-visible; sale and cancellation movements
# are covered by the order's own compliance trail.
COMPLIANCE_EVENT_FOR_REASON = {
    "restock": "inventory_received",
    "return": "inventory_received",
    "damage": "inventory_destroyed",
    "adjust": "inventory_adjustment",
}


def record_adjustment(
    variant_id: int,
    delta: int,
    reason: str,
    performed_by: str | None,
    *,
    org_id: int | None = None,
    notes: str | None = None,
) -> int:
    """
    Manual stock adjustment with its compliance log entry, in one transaction.

    org_id, when given, must own the variant's dispensary.
    """
    event_type = COMPLIANCE_EVENT_FOR_REASON.get(reason)
    if event_type is None:
        raise ValidationError(
            f"Reason '{reason}' is not a manual adjustment",
            details={"allowed": sorted(COMPLIANCE_EVENT_FOR_REASON)},
        )
    if delta == 0:
        raise ValidationError("delta cannot be zero")

    with unit_of_work() as session:
        row = (
            session.query(ProductVariant, Product)
            .join(Product, Product.id == ProductVariant.product_id)
            .filter(ProductVariant.id == variant_id)
            .first()
        )
        if row is None:
            raise NotFoundError(f"Variant {variant_id} not found")
        variant, product = row
        if org_id is not None and product.dispensary.org_id != org_id:
            raise NotFoundError(f"Variant {variant_id} not found")

        new_quantity = adjust_quantity(
            session, variant_id, delta, reason=reason, performed_by=performed_by
        )
        compliance_service.log_event(
            product.dispensary_id,
            event_type,
            {
                "variant_id": variant_id,
                "product_name": product.name,
                "variant_name": variant.name,
                "batch_number": product.batch_number,
                "delta": delta,
                "new_quantity": new_quantity,
                "reason": reason,
                "notes": notes,
            },
            performed_by,
            session=session,
            commit=False,
        )

    return new_quantity
