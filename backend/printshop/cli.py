# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/printshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent) and the cash balance row.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Cash ledger inspection:
# - python -m flask cash show
#   Print the stored cash and bank balances.
# - python -m flask cash reconcile
#   Compare stored balances with the movement log; exits 1 on a mismatch.
#
# Supplier ledger repair:
# - python -m flask suppliers recalculate-balances [--supplier-id 3]
#   Rebuild cached supplier total_debt from unpaid costs minus payments.
import click
from flask.cli import with_appcontext

from .extensions import db
from .money import money
from .services import cash_service, supplier_service
from .services.concurrency import run_with_retry


@click.group('system')
def system_group():
    """System bootstrap commands."""
    pass


@click.group('cash')
def cash_group():
    """Cash ledger inspection."""
    pass


@click.group('suppliers')
def suppliers_group():
    """Supplier ledger maintenance."""
    pass


# =============================================================================
# SYSTEM
# =============================================================================

def _ensure_balance_row():
    def _op():
        balance = cash_service.get_balance()
        db.session.commit()
        return balance
    return run_with_retry(_op)


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet and the cash balance row."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    balance = _ensure_balance_row()
    click.echo(f"PASS Database ready (cash={money(balance.cash_balance)}, bank={money(balance.bank_balance)})")


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
    _ensure_balance_row()

    click.echo("PASS Database reset complete.")


# =============================================================================
# CASH
# =============================================================================

@cash_group.command('show')
@with_appcontext
def show_balance():
    """Print stored balances."""
    balance = _ensure_balance_row()
    click.echo(f"{'Source':<8} {'Balance':>16}")
    click.echo("=" * 25)
    click.echo(f"{'cash':<8} {str(money(balance.cash_balance)):>16}")
    click.echo(f"{'bank':<8} {str(money(balance.bank_balance)):>16}")


@cash_group.command('reconcile')
@with_appcontext
def reconcile():
    """Compare stored balances with the balances implied by the movement log."""
    report = cash_service.reconcile()

    click.echo(f"{'Source':<8} {'Stored':>16} {'Derived':>16} {'Difference':>16}")
    click.echo("=" * 59)
    for source in ("cash", "bank"):
        row = report[source]
        click.echo(f"{source:<8} {row['stored']:>16} {row['derived']:>16} {row['difference']:>16}")

    if report["balanced"]:
        click.echo("PASS Balances match the movement log.")
        return
    click.echo("FAIL Stored balances differ from the movement log.")
    raise SystemExit(1)


# =============================================================================
# SUPPLIERS
# =============================================================================

@suppliers_group.command('recalculate-balances')
@click.option('--supplier-id', type=int, default=None, help='Only this supplier')
@with_appcontext
def recalculate_balances(supplier_id):
    """Rebuild cached supplier payables from unpaid costs and payments."""
    if supplier_id is not None:
        supplier = supplier_service.recalculate_balance(supplier_id=supplier_id)
        click.echo(f"PASS Supplier {supplier.id} ({supplier.name}): total_debt={money(supplier.total_debt)}")
        return

    count = supplier_service.recalculate_all_balances()
    click.echo(f"PASS Recalculated {count} supplier balance(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(cash_group)
    app.cli.add_command(suppliers_group)
