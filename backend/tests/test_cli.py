# Overview: Pytest coverage for Flask CLI commands.

from cannasaas.models import DailySalesReport, OrderStatusEvent

from conftest import make_order


def test_daily_report_command(app, db_session, dispensary, customer):
    make_order(db_session, customer, dispensary, total_cents=10609)
    runner = app.test_cli_runner()

    result = runner.invoke(args=['reports', 'daily', '--dispensary-id', str(dispensary.id), '--date', '2025-06-01'])

    assert result.exit_code == 0
    assert "Daily sales report" in result.output
    assert "10609" in result.output
    db_session.expire_all()
    assert db_session.query(DailySalesReport).count() == 1


def test_daily_report_unknown_dispensary(app, db_session):
    result = app.test_cli_runner().invoke(args=['reports', 'daily', '--dispensary-id', '999'])
    assert "FAIL Dispensary ID 999 not found" in result.output


def test_backfill_sale_logs_command(app, db_session, dispensary, customer):
    make_order(db_session, customer, dispensary)
    result = app.test_cli_runner().invoke(args=['compliance', 'backfill-sale-logs'])
    assert "PASS Logged 1 sale(s)" in result.output


def test_notifications_dispatch_command(app, db_session, dispensary, customer):
    order = make_order(db_session, customer, dispensary)
    db_session.add(OrderStatusEvent(
        order_id=order.id,
        kind="order.status",
        status="completed",
        occurred_at=order.created_at,
        dedupe_key=f"{order.id}:completed:x",
        payload={"order_id": order.id, "status": "completed"},
    ))
    db_session.commit()

    result = app.test_cli_runner().invoke(args=['notifications', 'dispatch'])
    assert "PASS Sent 1 event(s), 0 failed" in result.output


def test_low_stock_command(app, db_session, dispensary, variant):
    variant.quantity = 1
    db_session.commit()
    result = app.test_cli_runner().invoke(args=['inventory', 'low-stock', '--dispensary-id', str(dispensary.id)])
    assert "Blue Dream" in result.output
