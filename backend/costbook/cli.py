# Overview: Flask CLI command groups for bootstrap and report inspection.

# backend/costbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Bootstrap:
# - python -m flask books init-db
#   Create all tables that do not exist yet.
# - python -m flask books seed
#   Idempotent: currencies, categories, reference chart, default user.
# - python -m flask books accounts [--all]
#   List the chart of accounts.
#
# Reports:
# - python -m flask reports trial-balance --as-of 2026-03-31 [--currency KHR --rate 4100]
# - python -m flask reports balance-sheet --as-of 2026-03-31 [--currency KHR --rate 4100]

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import BooksError
from .extensions import db
from .services import account_service, reporting_service
from .services.seed_service import seed_reference_data


@click.group('books')
def books_group():
    """Bootstrap and chart-of-accounts commands."""


@books_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@books_group.command('seed')
@with_appcontext
def seed():
    """Seed currencies, categories, the reference chart and a default user."""
    created = seed_reference_data()
    for label, count in created.items():
        click.echo(f"PASS {label}: {count} created")


@books_group.command('accounts')
@click.option('--all', 'include_disabled', is_flag=True, help='Include disabled accounts')
@with_appcontext
def list_accounts(include_disabled):
    """List the chart of accounts."""
    accounts = account_service.list_accounts(include_disabled=include_disabled)
    if not accounts:
        click.echo("No accounts found. Run 'flask books seed' first.")
        return
    for account in accounts:
        category = account.category.name if account.category else "-"
        flag = "" if account.is_active else " [DISABLED]"
        click.echo(
            f"{account.number:<12} {account.currency_code:<4} {category:<10} "
            f"{account.normal_balance:<6} {account.name}{flag}"
        )


@click.group('reports')
def reports_group():
    """Financial statement commands."""


def _report_options(f):
    f = click.option('--rate', 'exchange_rate', default=None, help='Units of the non-base currency per 1 base unit')(f)
    f = click.option('--currency', default=None, help='Report currency (defaults to the base currency)')(f)
    f = click.option('--as-of', 'as_of', required=True, type=click.DateTime(formats=["%Y-%m-%d"]), help='Report date')(f)
    return f


def _report_currency(currency):
    return (currency or current_app.config["BASE_CURRENCY_CODE"]).upper()


@reports_group.command('trial-balance')
@_report_options
@with_appcontext
def trial_balance_cli(as_of, currency, exchange_rate):
    """Print a trial balance."""
    try:
        report = reporting_service.trial_balance(as_of.date(), _report_currency(currency), exchange_rate)
    except BooksError as e:
        raise click.ClickException(str(e))

    click.echo(report["title"])
    for line in report["lines"]:
        click.echo(
            f"{line['account_number']:<12} {line['account_name']:<50} "
            f"{line['debit']:>18} {line['credit']:>18}"
        )
    click.echo(f"{'TOTAL':<63} {report['total_debits']:>18} {report['total_credits']:>18}")
    click.echo("PASS Balanced" if report["is_balanced"] else "FAIL Not balanced")


@reports_group.command('balance-sheet')
@_report_options
@with_appcontext
def balance_sheet_cli(as_of, currency, exchange_rate):
    """Print balance sheet totals."""
    try:
        report = reporting_service.balance_sheet(as_of.date(), _report_currency(currency), exchange_rate)
    except BooksError as e:
        raise click.ClickException(str(e))

    click.echo(report["title"])
    click.echo(f"Total assets:                 {report['total_assets']}")
    click.echo(f"Total liabilities:            {report['total_liabilities']}")
    click.echo(f"Total equity:                 {report['total_equity']}")
    click.echo(f"Net profit or loss:           {report['net_profit_or_loss']}")
    click.echo(f"Total liabilities and equity: {report['total_liabilities_and_equity']}")
    click.echo("PASS Balanced" if report["is_balanced"] else "FAIL Not balanced")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(books_group)
    app.cli.add_command(reports_group)
