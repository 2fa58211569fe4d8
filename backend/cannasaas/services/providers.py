# Overview: Collaborators injected into checkout (cart, catalog, compliance).

from __future__ import annotations

from dataclasses import dataclass

from ..models import Cart, CartItem, ProductVariant
from . import compliance_service, inventory_service


@dataclass(frozen=True)
class CartLine:
    variant_id: int
    quantity: int
    unit_price_cents: int


class SqlCartProvider:
    """Cart storage backed by the carts / cart_items tables."""

    def _cart(self, session, customer_id: int, dispensary_id: int) -> Cart | None:
        return (
            session.query(Cart)
            .filter_by(customer_id=customer_id, dispensary_id=dispensary_id)
            .first()
        )

    def get_cart_snapshot(self, session, customer_id: int, dispensary_id: int) -> list[CartLine]:
        cart = self._cart(session, customer_id, dispensary_id)
        if cart is None:
            return []
        items = session.query(CartItem).filter_by(cart_id=cart.id).order_by(CartItem.id).all()
        return [
            CartLine(
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
            )
            for item in items
        ]

    def clear(self, session, customer_id: int, dispensary_id: int) -> None:
        cart = self._cart(session, customer_id, dispensary_id)
        if cart is None:
            return
        session.query(CartItem).filter_by(cart_id=cart.id).delete(synchronize_session="fetch")
        session.expire(cart, ["items"])


class SqlCatalogProvider:
    """Variant lookup for snapshotting plus the inventory ledger's adjust."""

    def get_variant(self, session, variant_id: int) -> ProductVariant | None:
        return session.get(ProductVariant, variant_id)

    def adjust_inventory(self, session, variant_id: int, delta: int, **kwargs) -> int:
        return inventory_service.adjust_quantity(session, variant_id, delta, **kwargs)


class ComplianceChecker:
    """Compliance service behind an injectable object."""

    def authorize(self, customer_id: int, org_id: int, **kwargs):
        return compliance_service.authorize(customer_id, org_id, **kwargs)

    def require_authorized(self, customer_id: int, org_id: int, **kwargs):
        return compliance_service.require_authorized(customer_id, org_id, **kwargs)

    def log_sale(self, order, performed_by):
        return compliance_service.log_sale(order, performed_by)
