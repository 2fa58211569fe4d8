# Overview: Pytest coverage for delivery handoff.

import pytest

from cannasaas.errors import InvalidTransitionError, NotFoundError, ValidationError
from cannasaas.models import OrderStatusEvent
from cannasaas.services import delivery_service, order_service
from cannasaas.services.checkout_service import CheckoutRequest, CheckoutService

from conftest import NOW

DEST = (40.7128, -74.0060)


def place(org, dispensary, customer, fulfillment_type="delivery"):
    request = CheckoutRequest(
        dispensary.id, fulfillment_type, "Ada Lovelace", "ada@example.com",
        customer_phone="555-0100", delivery_address="1 Main St, Brooklyn",
    )
    return CheckoutService.default().checkout(customer.id, org.id, request, now=NOW)


@pytest.fixture
def delivery(db_session, org, dispensary, customer, cart):
    order = place(org, dispensary, customer)
    return delivery_service.create_delivery(order.id, *DEST)


class TestEta:

    def test_same_point_has_minimum_eta(self):
        assert delivery_service.estimate_minutes(delivery_service.haversine_miles(*DEST, *DEST)) == 2

    def test_one_tenth_degree_north(self):
        # ~6.9 miles at 30 mph
        miles = delivery_service.haversine_miles(DEST[0] + 0.1, DEST[1], *DEST)
        assert round(miles, 1) == 6.9
        assert delivery_service.estimate_minutes(miles) == 14


class TestCreate:

    def test_copies_contact_from_order(self, db_session, delivery):
        assert delivery.status == "pending"
        assert delivery.delivery_address == "1 Main St, Brooklyn"
        assert delivery.customer_phone == "555-0100"

    def test_pickup_order_rejected(self, db_session, org, dispensary, customer, cart):
        order = place(org, dispensary, customer, fulfillment_type="pickup")
        with pytest.raises(ValidationError):
            delivery_service.create_delivery(order.id, *DEST)

    def test_one_delivery_per_order(self, db_session, delivery):
        with pytest.raises(ValidationError):
            delivery_service.create_delivery(delivery.order_id, *DEST)

    def test_bad_coordinates(self, db_session, org, dispensary, customer, cart):
        order = place(org, dispensary, customer)
        with pytest.raises(ValidationError):
            delivery_service.create_delivery(order.id, 91, 0)


class TestLifecycle:

    def test_forward_flow(self, db_session, delivery):
        assigned = delivery_service.assign_driver(delivery.id, "drv-9", "Sam")
        assert assigned.status == "assigned"
        assert assigned.driver_name == "Sam"
        assert assigned.assigned_at is not None

        picked = delivery_service.update_status(delivery.id, "picked_up")
        assert picked.picked_up_at is not None
        delivery_service.update_status(delivery.id, "in_transit")
        done = delivery_service.update_status(delivery.id, "delivered")
        assert done.delivered_at is not None

        kinds = [e.kind for e in db_session.query(OrderStatusEvent).order_by(OrderStatusEvent.id)]
        assert kinds == ["order.status", "delivery.assigned", "delivery.status", "delivery.status", "delivery.status"]

    def test_backwards_rejected(self, db_session, delivery):
        delivery_service.assign_driver(delivery.id, "drv-9", "Sam")
        delivery_service.update_status(delivery.id, "in_transit")
        with pytest.raises(InvalidTransitionError):
            delivery_service.update_status(delivery.id, "picked_up")

    def test_assign_only_before_pickup(self, db_session, delivery):
        delivery_service.assign_driver(delivery.id, "drv-9", "Sam")
        delivery_service.assign_driver(delivery.id, "drv-10", "Alex")
        delivery_service.update_status(delivery.id, "picked_up")
        with pytest.raises(InvalidTransitionError):
            delivery_service.assign_driver(delivery.id, "drv-11", "Kim")

    def test_cancel_from_any_open_state(self, db_session, delivery):
        delivery_service.assign_driver(delivery.id, "drv-9", "Sam")
        cancelled = delivery_service.update_status(delivery.id, "cancelled")
        assert cancelled.cancelled_at is not None
        with pytest.raises(InvalidTransitionError):
            delivery_service.update_status(delivery.id, "delivered")

    def test_delivery_status_leaves_order_alone(self, db_session, delivery):
        delivery_service.assign_driver(delivery.id, "drv-9", "Sam")
        delivery_service.update_status(delivery.id, "picked_up")
        assert order_service.get_order(delivery.order_id).status == "pending"


class TestLocation:

    def test_updates_eta(self, db_session, delivery):
        delivery_service.assign_driver(delivery.id, "drv-9", "Sam")
        updated = delivery_service.update_location(delivery.id, DEST[0] + 0.1, DEST[1])
        assert updated.estimated_minutes == 14
        assert updated.current_lat == pytest.approx(DEST[0] + 0.1)

        event = db_session.query(OrderStatusEvent).filter_by(kind="delivery.location").one()
        assert event.payload["estimated_minutes"] == 14

    def test_closed_delivery_rejects_location(self, db_session, delivery):
        delivery_service.update_status(delivery.id, "cancelled")
        with pytest.raises(ValidationError):
            delivery_service.update_location(delivery.id, *DEST)

    def test_lookup_by_order(self, db_session, delivery):
        assert delivery_service.get_delivery_for_order(delivery.order_id).id == delivery.id
        with pytest.raises(NotFoundError):
            delivery_service.get_delivery_for_order("missing")
