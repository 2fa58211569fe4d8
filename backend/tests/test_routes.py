# Overview: Pytest coverage for the HTTP surface through Flask's test client.

from cannasaas.models import ComplianceLog, Order, ProductVariant

from conftest import context_headers


def checkout_body(dispensary, **overrides):
    body = {
        "dispensary_id": dispensary.id,
        "fulfillment_type": "pickup",
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
    }
    body.update(overrides)
    return body


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json["checks"]["database"]["status"] == "healthy"


class TestCheckoutRoute:

    def test_creates_order(self, client, db_session, org, dispensary, customer, cart):
        response = client.post(
            '/api/orders/checkout',
            json=checkout_body(dispensary),
            headers=context_headers(org.id, customer.id),
        )
        assert response.status_code == 201
        order = response.json["order"]
        assert order["order_number"].startswith("ORD-")
        assert order["total_cents"] == 10609
        assert [h["to_status"] for h in order["status_history"]] == ["pending"]

    def test_missing_tenant_header(self, client, db_session, dispensary):
        response = client.post('/api/orders/checkout', json=checkout_body(dispensary))
        assert response.status_code == 401

    def test_empty_cart(self, client, db_session, org, dispensary, customer):
        response = client.post(
            '/api/orders/checkout',
            json=checkout_body(dispensary),
            headers=context_headers(org.id, customer.id),
        )
        assert response.status_code == 400
        assert response.json["error"] == "Cart is empty"

    def test_delivery_missing_address(self, client, db_session, org, dispensary, customer, cart):
        response = client.post(
            '/api/orders/checkout',
            json=checkout_body(dispensary, fulfillment_type="delivery", customer_phone="555"),
            headers=context_headers(org.id, customer.id),
        )
        assert response.status_code == 400
        assert response.json["details"]["missing"] == ["delivery_address"]

    def test_non_string_field_is_400(self, client, db_session, org, dispensary, customer, cart):
        response = client.post(
            '/api/orders/checkout',
            json=checkout_body(dispensary, fulfillment_type=5),
            headers=context_headers(org.id, customer.id),
        )
        assert response.status_code == 400
        assert response.json["error"] == "fulfillment_type must be a string"

    def test_compliance_denial_is_403(self, client, db_session, org, dispensary, customer, cart):
        customer.date_of_birth = None
        db_session.commit()

        response = client.post(
            '/api/orders/checkout',
            json=checkout_body(dispensary),
            headers=context_headers(org.id, customer.id),
        )
        assert response.status_code == 403
        assert response.json["error"] == "Date of birth required"
        db_session.expire_all()
        assert db_session.query(Order).count() == 0
        assert db_session.query(ComplianceLog).count() == 1


class TestOrderRoutes:

    def _place(self, client, org, dispensary, customer):
        response = client.post(
            '/api/orders/checkout',
            json=checkout_body(dispensary),
            headers=context_headers(org.id, customer.id),
        )
        return response.json["order"]

    def test_get_own_order(self, client, db_session, org, dispensary, customer, cart):
        order = self._place(client, org, dispensary, customer)
        response = client.get(f'/api/orders/{order["id"]}', headers=context_headers(org.id, customer.id))
        assert response.status_code == 200
        assert response.json["order"]["id"] == order["id"]

    def test_other_customer_gets_404(self, client, db_session, org, dispensary, customer, cart):
        order = self._place(client, org, dispensary, customer)
        response = client.get(f'/api/orders/{order["id"]}', headers=context_headers(org.id, 424242))
        assert response.status_code == 404

    def test_other_tenant_gets_404(self, client, db_session, org, other_org, dispensary, customer, cart):
        order = self._place(client, org, dispensary, customer)
        response = client.get(f'/api/orders/{order["id"]}', headers=context_headers(other_org.id, actor="staff"))
        assert response.status_code == 404

    def test_list_my_orders(self, client, db_session, org, dispensary, customer, cart):
        order = self._place(client, org, dispensary, customer)
        response = client.get('/api/orders', headers=context_headers(org.id, customer.id))
        assert [o["id"] for o in response.json["orders"]] == [order["id"]]

    def test_dispensary_orders_by_status(self, client, db_session, org, dispensary, customer, cart):
        self._place(client, org, dispensary, customer)
        headers = context_headers(org.id, actor="staff-1")

        pending = client.get(f'/api/dispensaries/{dispensary.id}/orders?status=pending', headers=headers)
        assert len(pending.json["orders"]) == 1
        confirmed = client.get(f'/api/dispensaries/{dispensary.id}/orders?status=confirmed', headers=headers)
        assert confirmed.json["orders"] == []
        bad = client.get(f'/api/dispensaries/{dispensary.id}/orders?status=lost', headers=headers)
        assert bad.status_code == 400

    def test_status_update_and_invalid_transition(self, client, db_session, org, dispensary, customer, cart):
        order = self._place(client, org, dispensary, customer)
        headers = context_headers(org.id, actor="staff-1")

        ok = client.patch(f'/api/orders/{order["id"]}/status', json={"status": "confirmed"}, headers=headers)
        assert ok.status_code == 200
        assert ok.json["order"]["status_history"][-1]["changed_by"] == "staff-1"

        bad = client.patch(f'/api/orders/{order["id"]}/status', json={"status": "completed"}, headers=headers)
        assert bad.status_code == 409
        assert bad.json["details"]["allowed"] == ["preparing", "cancelled"]

    def test_status_required(self, client, db_session, org, dispensary, customer, cart):
        order = self._place(client, org, dispensary, customer)
        response = client.patch(f'/api/orders/{order["id"]}/status', json={}, headers=context_headers(org.id))
        assert response.status_code == 400


class TestComplianceAndInventoryRoutes:

    def test_authorize_check(self, client, db_session, org, dispensary, customer):
        response = client.get(
            f'/api/compliance/authorize?requested_grams=3.5&dispensary_id={dispensary.id}',
            headers=context_headers(org.id, customer.id),
        )
        assert response.status_code == 200
        assert response.json["allowed"] is True

    def test_daily_report(self, client, db_session, org, dispensary):
        response = client.post(
            '/api/compliance/reports/daily',
            json={"dispensary_id": dispensary.id, "date": "2025-06-01"},
            headers=context_headers(org.id, actor="manager"),
        )
        assert response.status_code == 200
        assert response.json["report"]["report_date"] == "2025-06-01"

    def test_logs_require_own_dispensary(self, client, db_session, other_org, dispensary):
        response = client.get(
            f'/api/compliance/logs?dispensary_id={dispensary.id}',
            headers=context_headers(other_org.id),
        )
        assert response.status_code == 404

    def test_adjust_and_low_stock(self, client, db_session, org, dispensary, variant):
        headers = context_headers(org.id, actor="staff-1")
        response = client.post(
            f'/api/inventory/variants/{variant.id}/adjust',
            json={"delta": -16, "reason": "damage"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json["quantity"] == 4

        low = client.get(f'/api/inventory/low-stock?dispensary_id={dispensary.id}', headers=headers)
        assert [v["id"] for v in low.json["variants"]] == [variant.id]
        db_session.expire_all()
        assert db_session.get(ProductVariant, variant.id).quantity == 4

    def test_adjust_rejects_sale_reason(self, client, db_session, org, variant):
        response = client.post(
            f'/api/inventory/variants/{variant.id}/adjust',
            json={"delta": -1, "reason": "sale"},
            headers=context_headers(org.id),
        )
        assert response.status_code == 400


class TestDeliveryRoutes:

    def test_create_assign_and_track(self, client, db_session, org, dispensary, customer, cart):
        placed = client.post(
            '/api/orders/checkout',
            json=checkout_body(
                dispensary,
                fulfillment_type="delivery",
                customer_phone="555-0100",
                delivery_address="1 Main St",
            ),
            headers=context_headers(org.id, customer.id),
        ).json["order"]
        headers = context_headers(org.id, actor="dispatch")

        created = client.post(f'/api/orders/{placed["id"]}/delivery', json={"lat": 40.7, "lng": -74.0}, headers=headers)
        assert created.status_code == 201
        delivery_id = created.json["delivery"]["id"]

        assigned = client.post(
            f'/api/deliveries/{delivery_id}/assign',
            json={"driver_id": "drv-1", "driver_name": "Sam"},
            headers=headers,
        )
        assert assigned.json["delivery"]["status"] == "assigned"

        moved = client.post(f'/api/deliveries/{delivery_id}/location', json={"lat": 40.7, "lng": -74.0}, headers=headers)
        assert moved.json["delivery"]["estimated_minutes"] == 2

        backwards = client.patch(f'/api/deliveries/{delivery_id}/status', json={"status": "pending"}, headers=headers)
        assert backwards.status_code == 409

        fetched = client.get(f'/api/orders/{placed["id"]}/delivery', headers=headers)
        assert fetched.json["delivery"]["id"] == delivery_id
