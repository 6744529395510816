"""Balance and ledger report commands."""

import json

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.date_filters import resolve_cli_date_range
from ledgerkit.cli.error_handling import handle_domain_error, require_user
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.balance import BalanceService
from ledgerkit.domain.entities import Side
from ledgerkit.domain.serialization import (
    ledger_item_to_dict,
    trial_balance_group_to_dict,
)


@click.group()
def report_group():
    """Balance, trial balance and ledger reports."""
    pass


@report_group.command("balance")
@click.argument("account", metavar="ACCOUNT")
@click.option("--as-of", help="Only count entries up to this date")
@click.pass_context
def account_balance(ctx, account: str, as_of: str | None):
    """Show the balance of one account.

    Debits count positive and credits negative.

    Examples:
        ledgerkit report balance asset:cash:wallet
        ledgerkit report balance asset:bank:monzo@GBP --as-of 2024-01-31
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    account_obj = resolve_account_or_exit(ctx, AccountService(db, db), user_id, account)
    _, as_of_dt = resolve_cli_date_range(ctx, start_date=None, end_date=as_of)

    try:
        balance = BalanceService(db).account_balance(user_id, account_obj.id, as_of=as_of_dt)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"{account_obj.path} ({account_obj.currency}): {balance}")


@report_group.command("trial-balance")
@click.option("--as-of", help="Only count entries up to this date")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def trial_balance(ctx, as_of: str | None, as_json: bool):
    """Show debit and credit totals per account, grouped by currency."""
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    _, as_of_dt = resolve_cli_date_range(ctx, start_date=None, end_date=as_of)

    try:
        groups = BalanceService(db).trial_balance_report(user_id, as_of=as_of_dt)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        click.echo(json.dumps({"groups": [trial_balance_group_to_dict(g) for g in groups]}, indent=2))
        return
    if not groups:
        click.echo("No entries found.")
        return

    for group in groups:
        click.echo(f"\n{group.currency}")
        click.echo("-" * 72)
        click.echo(f"{'Account':40s} {'Debit':>15s} {'Credit':>15s}")
        for row in group.rows:
            click.echo(f"{row.account.path:40s} {str(row.debit):>15s} {str(row.credit):>15s}")
        click.echo("-" * 72)
        click.echo(f"{'Total':40s} {str(group.total_debit):>15s} {str(group.total_credit):>15s}")


@report_group.command("ledger")
@click.argument("account", metavar="ACCOUNT")
@click.option("--start", "start_date", help="Start date (inclusive)")
@click.option("--end", "end_date", help="End date (inclusive)")
@click.option("--limit", type=int, default=50, show_default=True, help="Page size (max 200)")
@click.option("--cursor", help="Cursor printed with the previous page")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def ledger(
    ctx,
    account: str,
    start_date: str | None,
    end_date: str | None,
    limit: int,
    cursor: str | None,
    as_json: bool,
):
    """Show an account's lines with a running balance.

    Examples:
        ledgerkit report ledger asset:cash:wallet
        ledgerkit report ledger asset:bank:monzo --start 2024-01-01 --end 2024-01-31
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    account_obj = resolve_account_or_exit(ctx, AccountService(db, db), user_id, account)
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)

    try:
        page = BalanceService(db).ledger(
            user_id, account_obj.id, start=start, end=end, limit=limit, cursor=cursor
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        click.echo(
            json.dumps(
                {
                    "account_id": str(page.account.id),
                    "items": [ledger_item_to_dict(item) for item in page.items],
                    "next_cursor": page.next_cursor,
                },
                indent=2,
            )
        )
        return

    click.echo(f"{page.account.path} ({page.account.currency})")
    if not page.items:
        click.echo("No lines found.")
        return
    click.echo("-" * 90)
    for item in page.items:
        signed = item.amount if item.side == Side.DEBIT else -item.amount
        click.echo(
            f"{item.date.date()} | {str(item.entry_id)[:8]} | {str(signed):>14s} | "
            f"{str(item.running_balance):>14s} | {item.memo}"
        )
    if page.next_cursor:
        click.echo(f"\nNext cursor: {page.next_cursor}")


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
