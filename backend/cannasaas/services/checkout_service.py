# Overview: Checkout orchestration; turns a cart into an immutable, audited order.

"""
Checkout

WHY: A cart is mutable and an order is not. Checkout is the single place
where one becomes the other, under regulatory limits, with inventory and the
order written as one unit.

FLOW:
    validate request -> resolve dispensary -> snapshot cart (empty = error)
    -> compliance pre-check (denials are logged, nothing else is written)
    -> unit of work:
         totals + taxes -> order number -> Order -> OrderItems
         -> inventory decrements -> initial history row -> notification
         -> clear cart
       commit
    -> compliance sale log (best effort; failures are reported and left for
       compliance_service.backfill_sale_logs)
    -> reload and return the order

Collaborators (cart, catalog, compliance) are constructor arguments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Dispensary, Order, OrderItem, OrderStatusHistory
from cannasaas.time_utils import local_date, utcnow
from . import notification_service, order_number_service, order_service, tax_service
from .concurrency import unit_of_work
from .providers import ComplianceChecker, SqlCartProvider, SqlCatalogProvider

logger = logging.getLogger(__name__)

FULFILLMENT_TYPES = ("pickup", "delivery")


def _text(data: dict, field: str) -> str:
    value = data.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={"field": field})
    return value.strip()


@dataclass
class CheckoutRequest:
    dispensary_id: int
    fulfillment_type: str
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    delivery_address: str | None = None
    notes: str | None = None
    # Set by trusted callers only (promotions); never read from request bodies
    discount_cents: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "CheckoutRequest":
        data = data or {}
        dispensary_id = data.get("dispensary_id")
        try:
            dispensary_id = int(dispensary_id) if dispensary_id is not None else None
        except (TypeError, ValueError):
            raise ValidationError("dispensary_id must be an integer") from None
        return cls(
            dispensary_id=dispensary_id,
            fulfillment_type=_text(data, "fulfillment_type").lower(),
            customer_name=_text(data, "customer_name"),
            customer_email=_text(data, "customer_email"),
            customer_phone=_text(data, "customer_phone") or None,
            delivery_address=_text(data, "delivery_address") or None,
            notes=_text(data, "notes") or None,
        )

    def validate(self) -> None:
        missing = []
        if not self.dispensary_id:
            missing.append("dispensary_id")
        if not self.fulfillment_type:
            missing.append("fulfillment_type")
        if not self.customer_name:
            missing.append("customer_name")
        if not self.customer_email:
            missing.append("customer_email")
        if self.fulfillment_type == "delivery":
            if not self.customer_phone:
                missing.append("customer_phone")
            if not self.delivery_address:
                missing.append("delivery_address")
        if missing:
            raise ValidationError("Missing required checkout fields", details={"missing": missing})

        if self.fulfillment_type not in FULFILLMENT_TYPES:
            raise ValidationError(
                f"Invalid fulfillment_type '{self.fulfillment_type}'",
                details={"allowed": list(FULFILLMENT_TYPES)},
            )
        if "@" not in self.customer_email:
            raise ValidationError("customer_email is not a valid email address")
        if self.discount_cents < 0:
            raise ValidationError("discount_cents cannot be negative")


class CheckoutService:
    def __init__(self, cart_provider, catalog, compliance, *, tax_rates=None, config=None):
        self.cart_provider = cart_provider
        self.catalog = catalog
        self.compliance = compliance
        self.tax_rates = tax_rates
        self._config = config

    @classmethod
    def default(cls, config=None) -> "CheckoutService":
        return cls(SqlCartProvider(), SqlCatalogProvider(), ComplianceChecker(), config=config)

    @property
    def config(self):
        return self._config if self._config is not None else current_app.config

    def _resolve_dispensary(self, session, org_id: int, dispensary_id: int) -> Dispensary:
        dispensary = session.get(Dispensary, dispensary_id)
        if dispensary is None or dispensary.org_id != org_id or not dispensary.is_active:
            raise NotFoundError(f"Dispensary {dispensary_id} not found")
        return dispensary

    def _resolve_variants(self, session, dispensary: Dispensary, lines) -> dict:
        variants = {}
        for line in lines:
            if line.quantity <= 0:
                raise ValidationError(
                    "Cart quantities must be positive",
                    details={"variant_id": line.variant_id, "quantity": line.quantity},
                )
            variant = self.catalog.get_variant(session, line.variant_id)
            if variant is None or variant.product.dispensary_id != dispensary.id:
                raise NotFoundError(f"Variant {line.variant_id} not found")
            variants[line.variant_id] = variant
        return variants

    def checkout(self, customer_id: int, org_id: int, request: CheckoutRequest, *, now: datetime | None = None) -> Order:
        """
        Convert the customer's cart at request.dispensary_id into an order.

        Raises:
            ValidationError: bad request or empty cart (no side effects)
            NotFoundError: unknown dispensary, customer or variant
            ComplianceDeniedError: age, ID or purchase-limit denial (logged)
            Anything raised inside the unit of work, after full rollback
        """
        request.validate()
        session = db.session

        dispensary = self._resolve_dispensary(session, org_id, request.dispensary_id)
        rates = self.tax_rates or tax_service.rates_for(dispensary.tax_jurisdiction, self.config)

        lines = self.cart_provider.get_cart_snapshot(session, customer_id, dispensary.id)
        if not lines:
            raise ValidationError("Cart is empty")

        variants = self._resolve_variants(session, dispensary, lines)
        total_weight = sum(
            (Decimal(str(variants[line.variant_id].weight_grams or 0)) * line.quantity for line in lines),
            Decimal("0"),
        )

        now = now or utcnow()
        self.compliance.require_authorized(
            customer_id,
            org_id,
            requested_grams=total_weight,
            dispensary_id=dispensary.id,
            now=now,
        )

        actor = str(customer_id)
        with unit_of_work() as session:
            subtotal = sum(line.unit_price_cents * line.quantity for line in lines)
            tax, excise = tax_service.compute_taxes(subtotal, rates.sales, rates.excise)
            total = tax_service.compute_total(subtotal, tax, excise, request.discount_cents)

            order_number = order_number_service.next_order_number(
                session, dispensary.id, local_date(dispensary.timezone, now)
            )

            order = Order(
                order_number=order_number,
                customer_id=customer_id,
                dispensary_id=dispensary.id,
                org_id=org_id,
                subtotal_cents=subtotal,
                tax_cents=tax,
                excise_tax_cents=excise,
                discount_cents=request.discount_cents,
                total_cents=total,
                total_weight_grams=total_weight,
                fulfillment_type=request.fulfillment_type,
                status="pending",
                payment_status="pending",
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                delivery_address=request.delivery_address,
                notes=request.notes,
                created_at=now,
            )
            session.add(order)
            session.flush()

            for position, line in enumerate(lines, start=1):
                variant = variants[line.variant_id]
                product = variant.product
                session.add(OrderItem(
                    order_id=order.id,
                    position=position,
                    product_id=product.id,
                    variant_id=variant.id,
                    product_name=product.name,
                    variant_name=variant.name,
                    unit_price_cents=line.unit_price_cents,
                    quantity=line.quantity,
                    line_total_cents=line.unit_price_cents * line.quantity,
                    weight_grams=variant.weight_grams,
                    batch_number=product.batch_number,
                    license_number=product.license_number,
                ))
            session.flush()

            for line in lines:
                self.catalog.adjust_inventory(
                    session,
                    line.variant_id,
                    -line.quantity,
                    reason="sale",
                    order_id=order.id,
                    performed_by=actor,
                )

            session.add(OrderStatusHistory(
                order_id=order.id,
                sequence=1,
                from_status=None,
                to_status="pending",
                changed_by=actor,
                notes="Order placed",
                created_at=now,
            ))
            notification_service.enqueue(
                session, order.id, "order.status", "pending", now,
                {"from_status": None, "order_number": order_number},
            )

            self.cart_provider.clear(session, customer_id, dispensary.id)
            order_id = order.id

        logger.info("Order %s (%s) placed by customer %s, total %s cents", order_id, order_number, customer_id, total)

        try:
            self.compliance.log_sale(order_service.get_order(order_id), actor)
        except Exception:
            logger.exception("Compliance sale log failed for order %s; pending backfill", order_id)

        return order_service.get_order(order_id)
