# Overview: Flask CLI command groups for bootstrap, inspection, and reporting.

# backend/mostrador/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent). Prefer `flask db upgrade` once migrations are in use.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Load the demo catalog and credit clients into an empty database.
#
# Shift inspection:
# - python -m flask shifts current
#   Show the open shift and its running totals.
# - python -m flask shifts history --limit 10
#   List closed shifts with their cash difference.
#
# Reports:
# - python -m flask reports sales --range week
#   Print the sales summary for today, week, month or a custom window.

import click
from flask.cli import with_appcontext

from .constants import COLLECTION_PRODUCTS, PAYMENT_LABELS, REPORT_RANGES
from .extensions import db
from .services import catalog_service, fiado_service, reporting_service, shift_service
from .services.fallback import FALLBACK_CLIENTS, FALLBACK_PRODUCTS
from .services.store import get_store


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load demo products and credit clients. Skipped if the catalog is not empty."""
    if get_store().fetch_all(COLLECTION_PRODUCTS):
        click.echo("SKIP Catalog already has products")
        return

    for row in FALLBACK_PRODUCTS:
        product = catalog_service.create_product({
            "name": row["name"],
            "category": row["category"],
            "barcode": row["barcode"],
            "price": row["price"],
            "stock": row["stock"],
            "min_stock": row["min_stock"],
        })
        click.echo(f"PASS Product {product.id}: {product.name}")

    for row in FALLBACK_CLIENTS:
        client = fiado_service.create_client(row["name"], row["credit_limit"], authorized=row["authorized"])
        click.echo(f"PASS Client {client.id}: {client.name} (limit {client.credit_limit})")


@click.group('shifts')
def shifts_group():
    """Shift inspection commands."""


@shifts_group.command('current')
@with_appcontext
def shifts_current():
    """Show the open shift and its running totals."""
    shift, summary = shift_service.current_summary()
    if not shift:
        click.echo("No open shift")
        return

    click.echo(f"Shift {shift.id} | {shift.seller} | {shift.shift_type} | since {shift.start_time:%Y-%m-%d %H:%M}")
    click.echo(f"  Total: {summary.total}  Tickets: {summary.tickets}")
    for method, amount in summary.by_payment.items():
        click.echo(f"  {PAYMENT_LABELS[method]:<18} {amount}")
    click.echo(f"  Expected cash: {shift_service.expected_cash(shift.initial_cash, summary)}")


@shifts_group.command('history')
@click.option('--limit', default=10, show_default=True, help='Max number of shifts')
@with_appcontext
def shifts_history(limit):
    """List closed shifts, most recent first."""
    shifts = shift_service.shift_history()[:limit]
    if not shifts:
        click.echo("No closed shifts")
        return

    for s in shifts:
        ended = f"{s.end_time:%Y-%m-%d %H:%M}" if s.end_time else "-"
        click.echo(
            f"{s.id:>4} | {s.seller:<16} | {s.shift_type:<5} | ended {ended} | "
            f"total {s.total_sales or 0} | diff {s.difference or 0}"
        )


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('sales')
@click.option('--range', 'range_name', type=click.Choice(REPORT_RANGES), default='today', show_default=True)
@click.option('--from', 'start', default=None, help='Custom range start (ISO date or datetime)')
@click.option('--to', 'end', default=None, help='Custom range end (ISO date is inclusive)')
@with_appcontext
def reports_sales(range_name, start, end):
    """Print the sales summary for a window."""
    report = reporting_service.sales_report(range_name, start=start, end=end)
    window = report["window"]

    click.echo(f"Sales {window['range']}: {window['start'] or '-'} -> {window['end'] or 'now'}")
    click.echo(f"  Total: {report['total']}  Tickets: {report['tickets']}")
    for method, amount in report["by_payment"].items():
        click.echo(f"  {PAYMENT_LABELS[method]:<18} {amount}")

    if report["top_products"]:
        click.echo("Top products:")
        for entry in report["top_products"]:
            click.echo(f"  {entry['quantity']:>5} x {entry['name']} ({entry['revenue']})")

    if report["by_seller"]:
        click.echo("By seller:")
        for entry in report["by_seller"]:
            click.echo(f"  {entry['seller']:<16} {entry['total']} ({entry['tickets']} tickets)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(reports_group)
