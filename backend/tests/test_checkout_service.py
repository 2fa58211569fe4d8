# Overview: Pytest coverage for checkout orchestration.

"""
Checkout Tests

Checkout is all-or-nothing: order, items, inventory, history, outbox row
and cart clearing commit together or not at all. The sale compliance log
runs after commit and may fail without affecting the order.
"""

import logging
from decimal import Decimal

import pytest

from cannasaas.errors import ComplianceDeniedError, NotFoundError, ValidationError
from cannasaas.models import (
    CartItem,
    ComplianceLog,
    Order,
    OrderItem,
    OrderStatusEvent,
    OrderStatusHistory,
    ProductVariant,
    StockMovement,
)
from cannasaas.services import compliance_service
from cannasaas.services.checkout_service import CheckoutRequest, CheckoutService
from cannasaas.services.providers import (
    ComplianceChecker,
    SqlCartProvider,
    SqlCatalogProvider,
)

from conftest import NOW, make_order


class ExplodingCatalog(SqlCatalogProvider):
    """Fails the inventory step after the order rows are flushed."""

    def adjust_inventory(self, session, variant_id, delta, **kwargs):
        raise RuntimeError("inventory service unavailable")


class BrokenSaleLog(ComplianceChecker):
    def log_sale(self, order, performed_by):
        raise RuntimeError("compliance store unavailable")


def pickup_request(dispensary, **overrides):
    data = dict(
        dispensary_id=dispensary.id,
        fulfillment_type="pickup",
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
    )
    data.update(overrides)
    return CheckoutRequest(**data)


def service(**overrides):
    parts = dict(
        cart_provider=SqlCartProvider(),
        catalog=SqlCatalogProvider(),
        compliance=ComplianceChecker(),
    )
    parts.update(overrides)
    return CheckoutService(**parts)


class TestCheckoutRequest:

    def test_from_dict_normalizes(self):
        req = CheckoutRequest.from_dict({
            "dispensary_id": "3",
            "fulfillment_type": " Delivery ",
            "customer_name": "Ada",
            "customer_email": "ada@example.com",
            "customer_phone": "555",
            "delivery_address": "1 Main St",
            "discount_cents": 5000,
        })
        assert req.dispensary_id == 3
        assert req.fulfillment_type == "delivery"
        # Discounts never come from request bodies
        assert req.discount_cents == 0
        req.validate()

    def test_delivery_requires_phone_and_address(self):
        req = CheckoutRequest(1, "delivery", "Ada", "ada@example.com")
        with pytest.raises(ValidationError) as exc:
            req.validate()
        assert exc.value.details["missing"] == ["customer_phone", "delivery_address"]

    def test_unknown_fulfillment_type(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(1, "drone", "Ada", "ada@example.com").validate()

    def test_non_integer_dispensary(self):
        with pytest.raises(ValidationError):
            CheckoutRequest.from_dict({"dispensary_id": "abc"})

    def test_non_string_field_rejected(self):
        with pytest.raises(ValidationError) as exc:
            CheckoutRequest.from_dict({"dispensary_id": 1, "fulfillment_type": 5})
        assert exc.value.details == {"field": "fulfillment_type"}


class TestCheckout:

    def test_happy_path(self, db_session, org, dispensary, customer, product, variant, cart):
        order = service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)

        assert order.order_number == "ORD-20250601-0001"
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.subtotal_cents == 9000
        assert order.tax_cents == 799
        assert order.excise_tax_cents == 810
        assert order.total_cents == 10609
        assert order.total_weight_grams == Decimal("7")
        assert order.customer_name == "Ada Lovelace"

        [item] = order.items
        assert item.position == 1
        assert item.product_name == "Blue Dream"
        assert item.variant_name == "3.5g"
        assert item.quantity == 2
        assert item.line_total_cents == 9000
        assert item.batch_number == "BATCH-001"
        assert item.license_number == "OCM-LIC-42"

        [entry] = order.status_history
        assert entry.sequence == 1
        assert entry.from_status is None
        assert entry.to_status == "pending"
        assert entry.notes == "Order placed"
        assert entry.changed_by == str(customer.id)

    def test_side_effects(self, db_session, org, dispensary, customer, variant, cart):
        order = service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)

        assert db_session.get(ProductVariant, variant.id).quantity == 18
        movement = db_session.query(StockMovement).one()
        assert (movement.delta, movement.reason, movement.order_id) == (-2, "sale", order.id)
        assert db_session.query(CartItem).count() == 0

        event = db_session.query(OrderStatusEvent).one()
        assert event.status == "pending"
        assert event.payload["order_number"] == order.order_number

        sale_log = db_session.query(ComplianceLog).filter_by(event_type="sale").one()
        assert sale_log.order_id == order.id
        assert order.sale_logged_at is not None
        gate = db_session.query(ComplianceLog).filter_by(event_type="age_verification").one()
        assert gate.details["allowed"] is True

    def test_snapshot_survives_catalog_edits(self, db_session, org, dispensary, customer, product, variant, cart):
        order = service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)
        product.name = "Renamed"
        variant.price_cents = 1
        db_session.commit()

        item = db_session.query(OrderItem).filter_by(order_id=order.id).one()
        assert item.product_name == "Blue Dream"
        assert item.unit_price_cents == 4500

    def test_second_order_same_day(self, db_session, org, dispensary, customer, variant, cart):
        service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)
        db_session.add(CartItem(cart_id=cart.id, variant_id=variant.id, quantity=1, unit_price_cents=4500))
        db_session.commit()

        second = service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)
        assert second.order_number == "ORD-20250601-0002"

    def test_empty_cart_has_no_side_effects(self, db_session, org, dispensary, customer, variant):
        with pytest.raises(ValidationError) as exc:
            service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)

        assert exc.value.message == "Cart is empty"
        assert db_session.query(Order).count() == 0
        assert db_session.query(ComplianceLog).count() == 0

    def test_dispensary_of_other_tenant(self, db_session, other_org, dispensary, customer, cart):
        with pytest.raises(NotFoundError):
            service().checkout(customer.id, other_org.id, pickup_request(dispensary), now=NOW)

    def test_inventory_failure_rolls_everything_back(self, db_session, org, dispensary, customer, variant, cart):
        with pytest.raises(RuntimeError):
            service(catalog=ExplodingCatalog()).checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)

        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert db_session.query(OrderStatusHistory).count() == 0
        assert db_session.query(OrderStatusEvent).count() == 0
        assert db_session.query(CartItem).count() == 1
        assert db_session.get(ProductVariant, variant.id).quantity == 20

        # The rolled-back attempt did not consume an order number
        order = service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)
        assert order.order_number == "ORD-20250601-0001"

    def test_sale_log_failure_does_not_fail_checkout(self, db_session, org, dispensary, customer, cart, caplog):
        with caplog.at_level(logging.ERROR, logger="cannasaas.services.checkout_service"):
            order = service(compliance=BrokenSaleLog()).checkout(
                customer.id, org.id, pickup_request(dispensary), now=NOW
            )

        assert "Compliance sale log failed" in caplog.text
        assert db_session.query(Order).count() == 1
        assert order.sale_logged_at is None

        result = compliance_service.backfill_sale_logs()
        assert result["logged"] == 1

    def test_compliance_denial_is_logged_and_nothing_written(self, db_session, org, dispensary, customer, variant, cart):
        org.daily_purchase_limit_grams = Decimal("10")
        db_session.commit()
        make_order(db_session, customer, dispensary, weight="4")

        with pytest.raises(ComplianceDeniedError) as exc:
            service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)

        assert exc.value.reason.startswith("Daily limit reached")
        assert db_session.query(Order).count() == 1
        assert db_session.query(CartItem).count() == 1
        assert db_session.get(ProductVariant, variant.id).quantity == 20
        denial = db_session.query(ComplianceLog).one()
        assert denial.event_type == "purchase_limit_check"
        assert denial.details["allowed"] is False

    def test_underage_customer_denied(self, db_session, org, dispensary, customer, cart):
        from datetime import date
        customer.date_of_birth = date(2010, 1, 1)
        db_session.commit()

        with pytest.raises(ComplianceDeniedError) as exc:
            service().checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)
        assert exc.value.reason == "Must be 21+ to purchase"
        assert db_session.query(Order).count() == 0

    def test_delivery_order_keeps_contact_snapshot(self, db_session, org, dispensary, customer, cart):
        req = pickup_request(
            dispensary,
            fulfillment_type="delivery",
            customer_phone="555-0100",
            delivery_address="1 Main St, Brooklyn",
        )
        order = service().checkout(customer.id, org.id, req, now=NOW)
        assert order.fulfillment_type == "delivery"
        assert order.delivery_address == "1 Main St, Brooklyn"

    def test_tax_rate_override(self, db_session, org, dispensary, customer, cart):
        from cannasaas.services.tax_service import TaxRates
        rates = TaxRates("NJ", Decimal("0.06625"), Decimal("0"))
        order = service(tax_rates=rates).checkout(customer.id, org.id, pickup_request(dispensary), now=NOW)
        assert order.tax_cents == 596
        assert order.excise_tax_cents == 0
        assert order.total_cents == 9596
