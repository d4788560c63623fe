# Overview: Flask CLI command groups for tenants, provisioning recovery, and maintenance.

# backend/blueledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Companies (tenants):
# - python -m flask companies list
#   List all companies with member counts.
# - python -m flask companies create --name "Owner" --email owner@acme.test --company "Acme"
#   Create a company and its first admin (prompts for the password).
#
# Workers:
# - python -m flask workers list --company-id <id>
#   List workers of one company.
# - python -m flask workers reconcile --older-than-minutes 5
#   Finish create/delete worker operations that were interrupted.
#
# Maintenance:
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

from datetime import timedelta

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Product, Profile, Role
from .services import get_services


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask companies create' to add a tenant.")


@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    """List all companies."""
    companies = get_services().companies.list_all()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*88)
    click.echo(f"{'ID':<34} {'Name':<30} {'Admins':<8} {'Workers':<8} {'Products'}")
    click.echo("="*88)

    for company in companies:
        members = db.session.query(Profile).filter_by(company_id=company.id)
        admin_count = members.filter(Profile.role == Role.ADMIN).count()
        worker_count = members.filter(Profile.role == Role.WORKER).count()
        product_count = db.session.query(Product).filter_by(company_id=company.id).count()
        click.echo(f"{company.id:<34} {company.name[:30]:<30} {admin_count:<8} {worker_count:<8} {product_count}")

    click.echo("="*88 + "\n")


@companies_group.command('create')
@click.option('--name', prompt=True, help='Admin display name')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--company', 'company_name', prompt=True, help='Company name')
@with_appcontext
def create_company_cli(name, email, password, company_name):
    """Create a company and its first admin."""
    try:
        company, profile = get_services().companies.register(
            name=name, email=email, password=password, company_name=company_name,
        )
    except LedgerError as exc:
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, admin: {profile.email})")


@click.group('workers')
def workers_group():
    """Worker inspection and provisioning recovery."""


@workers_group.command('list')
@click.option('--company-id', required=True, help='Company ID')
@with_appcontext
def list_workers_cli(company_id):
    """List workers of one company."""
    workers = get_services().provisioning.list_workers(company_id)
    if not workers:
        click.echo("No workers found.")
        return
    for worker in workers:
        active_str = "active" if worker.is_active else "inactive"
        click.echo(f"{worker.uid}  {worker.name:<30} {worker.email:<35} {active_str}")


@workers_group.command('reconcile')
@click.option('--older-than-minutes', type=int, default=5, show_default=True)
@with_appcontext
def reconcile_workers_cli(older_than_minutes):
    """
    Finish interrupted worker provisioning.

    Every create/delete operation stuck in a non-terminal state for longer
    than the window is driven to COMMITTED or ROLLED_BACK.
    """
    finished = get_services().provisioning.reconcile_pending(
        older_than=timedelta(minutes=older_than_minutes),
    )
    for op in finished:
        click.echo(f"{op.id}  {op.kind:<14} {op.worker_uid or '-':<34} {op.state}")
    click.echo(f"Reconciled {len(finished)} operation(s).")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = get_services().security_log.cleanup(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(workers_group)
    app.cli.add_command(maintenance_group)
