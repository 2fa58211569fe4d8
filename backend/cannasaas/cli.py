# Overview: Flask CLI command groups for bootstrap, reporting, and maintenance.

# backend/cannasaas/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to cannasaas (PowerShell: $env:FLASK_APP="cannasaas").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
#
# Reporting:
# - python -m flask reports daily --dispensary-id 1 [--date 2025-06-01]
#   Build or rebuild the daily sales report (defaults to today at the dispensary).
#
# Compliance:
# - python -m flask compliance backfill-sale-logs [--limit 100]
#   Write the sale log for orders whose post-checkout log failed.
#
# Notifications:
# - python -m flask notifications dispatch [--limit 100]
#   Publish pending status-change events to the application log.
#
# Inventory:
# - python -m flask inventory low-stock --dispensary-id 1
#   List variants at or below their low-stock threshold.

import json
import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Dispensary
from .services import compliance_service, inventory_service, notification_service
from .time_utils import local_date, parse_iso_date

logger = logging.getLogger(__name__)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('reports')
def reports_group():
    """Sales reporting commands."""


@reports_group.command('daily')
@click.option('--dispensary-id', type=int, required=True, help='Dispensary ID')
@click.option('--date', 'date_str', help='Local business date (YYYY-MM-DD)')
@with_appcontext
def daily_report_cli(dispensary_id, date_str):
    """Build (or rebuild) the daily sales report."""
    dispensary = db.session.get(Dispensary, dispensary_id)
    if not dispensary:
        click.echo(f"FAIL Dispensary ID {dispensary_id} not found")
        return

    try:
        report_date = parse_iso_date(date_str) or local_date(dispensary.timezone)
    except ValueError:
        click.echo(f"FAIL Invalid date '{date_str}'")
        return

    report = compliance_service.generate_daily_report(dispensary_id, report_date)

    click.echo("\n" + "="*60)
    click.echo(f"Daily sales report: {dispensary.name} on {report.report_date.isoformat()}")
    click.echo("="*60)
    click.echo(f"{'Completed orders':<28} {report.total_orders}")
    click.echo(f"{'Revenue (cents)':<28} {report.total_revenue_cents}")
    click.echo(f"{'Tax (cents)':<28} {report.total_tax_cents}")
    click.echo(f"{'Excise tax (cents)':<28} {report.total_excise_tax_cents}")
    click.echo(f"{'Items sold':<28} {report.total_items_sold}")
    click.echo(f"{'Average order (cents)':<28} {report.average_order_value_cents}")
    click.echo(f"{'Unique customers':<28} {report.unique_customers}")
    click.echo(f"{'Cancelled orders':<28} {report.cancelled_orders}")
    click.echo(f"{'Refunded (cents)':<28} {report.refunded_amount_cents}")
    click.echo("="*60 + "\n")


@click.group('compliance')
def compliance_group():
    """Compliance maintenance commands."""


@compliance_group.command('backfill-sale-logs')
@click.option('--limit', type=int, default=100, show_default=True, help='Max orders to retry')
@with_appcontext
def backfill_sale_logs_cli(limit):
    """Retry the sale compliance log for orders that never got one."""
    result = compliance_service.backfill_sale_logs(limit=limit)
    click.echo(f"PASS Logged {result['logged']} sale(s)")
    if result["failed"]:
        click.echo(f"FAIL {len(result['failed'])} order(s) still pending: {', '.join(result['failed'])}")


def log_publisher(payload: dict) -> None:
    """Default sink: one JSON line per event on the cannasaas logger."""
    logger.info("order-event %s", json.dumps(payload, sort_keys=True))


@click.group('notifications')
def notifications_group():
    """Status-change notification commands."""


@notifications_group.command('dispatch')
@click.option('--limit', type=int, default=None, help='Max events to publish')
@with_appcontext
def dispatch_cli(limit):
    """Publish pending status-change events."""
    limit = limit or current_app.config["NOTIFICATION_BATCH_SIZE"]
    result = notification_service.dispatch_pending(log_publisher, limit=limit)
    click.echo(f"PASS Sent {result['sent']} event(s), {result['failed']} failed")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@click.option('--dispensary-id', type=int, required=True, help='Dispensary ID')
@with_appcontext
def low_stock_cli(dispensary_id):
    """List variants at or below their low-stock threshold."""
    variants = inventory_service.list_low_stock(dispensary_id)
    if not variants:
        click.echo("No low-stock variants.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<6} {'Product':<28} {'Variant':<16} {'Qty':<6} {'Threshold'}")
    click.echo("="*70)
    for v in variants:
        click.echo(f"{v.id:<6} {v.product.name[:27]:<28} {v.name[:15]:<16} {v.quantity:<6} {v.low_stock_threshold}")
    click.echo("="*70 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(compliance_group)
    app.cli.add_command(notifications_group)
    app.cli.add_command(inventory_group)
