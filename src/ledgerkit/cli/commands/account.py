"""Account management commands."""

import json

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error, require_user
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import AccountDraft, AccountType
from ledgerkit.domain.groups import groups_for
from ledgerkit.domain.serialization import account_to_dict

ACCOUNT_TYPES = [t.value for t in AccountType]


def parse_metadata_options(ctx, pairs: tuple[str, ...]) -> dict[str, str] | None:
    """Parse repeated KEY=VALUE options into a dict."""
    if not pairs:
        return None
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            click.echo(f"Error: Invalid metadata '{pair}', expected KEY=VALUE", err=True)
            ctx.exit(1)
        metadata[key.strip()] = value.strip()
    return metadata


def format_account_line(acc) -> str:
    flags = []
    if acc.system:
        flags.append("system")
    if not acc.active:
        flags.append("inactive")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    return f"{acc.id} | {acc.path:40s} | {acc.currency} | {acc.name}{suffix}"


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.option("--name", required=True, help="Display name")
@click.option("--type", "account_type", required=True, type=click.Choice(ACCOUNT_TYPES), help="Account type")
@click.option("--group", required=True, help="Group slug (e.g., bank, groceries)")
@click.option("--vendor", required=True, help="Vendor or institution (e.g., Monzo)")
@click.option("--currency", required=True, help="ISO currency code (e.g., USD)")
@click.option("--meta", multiple=True, help="Metadata as KEY=VALUE (repeatable)")
@click.pass_context
def create_account(
    ctx,
    name: str,
    account_type: str,
    group: str,
    vendor: str,
    currency: str,
    meta: tuple[str, ...],
):
    """Create a new account.

    The opening balances account for the currency is created on first use.

    Examples:
        ledgerkit account create --name "Monzo" --type asset --group bank --vendor Monzo --currency GBP
        ledgerkit account create --name "Tesco" --type expense --group groceries --vendor Tesco --currency GBP
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = AccountService(db, db)
    draft = AccountDraft(
        user_id=user_id,
        name=name,
        currency=currency,
        type=account_type,
        group=group,
        vendor=vendor,
        metadata=parse_metadata_options(ctx, meta) or {},
    )

    try:
        created = service.create_account(draft)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created account '{created.name}' {created.path} ({created.currency}) (ID: {created.id})")


@account_group.command("list")
@click.option("--type", "account_type", type=click.Choice(ACCOUNT_TYPES), help="Filter by type")
@click.option("--group", help="Filter by group")
@click.option("--vendor", help="Filter by vendor")
@click.option("--active/--inactive", default=None, help="Filter by active flag")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def list_accounts(
    ctx,
    account_type: str | None,
    group: str | None,
    vendor: str | None,
    active: bool | None,
    as_json: bool,
):
    """List accounts."""
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = AccountService(db, db)

    accounts = service.list_accounts(
        user_id, account_type=account_type, group=group, vendor=vendor, active=active
    )
    if as_json:
        click.echo(json.dumps([account_to_dict(a) for a in accounts], indent=2))
        return
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 100)
    for acc in accounts:
        click.echo(format_account_line(acc))


@account_group.command("update")
@click.argument("account", metavar="ACCOUNT")
@click.option("--name", help="New display name")
@click.option("--group", help="New group slug")
@click.option("--vendor", help="New vendor")
@click.option("--meta", multiple=True, help="Replacement metadata as KEY=VALUE (repeatable)")
@click.pass_context
def update_account(
    ctx,
    account: str,
    name: str | None,
    group: str | None,
    vendor: str | None,
    meta: tuple[str, ...],
) -> None:
    """Update an account's name, group, vendor or metadata.

    ACCOUNT can be an account ID or path (e.g., asset:bank:monzo or
    asset:bank:monzo@USD). Type and currency cannot be changed.

    Examples:
        ledgerkit account update asset:bank:monzo --name "Monzo Current"
        ledgerkit account update asset:bank:monzo@GBP --vendor "Monzo Bank"
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = AccountService(db, db)
    account_obj = resolve_account_or_exit(ctx, service, user_id, account)

    try:
        updated = service.update_account(
            user_id,
            account_obj.id,
            name=name,
            group=group,
            vendor=vendor,
            metadata=parse_metadata_options(ctx, meta),
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Updated account '{updated.name}' {updated.path} ({updated.currency})")


@account_group.command("deactivate")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def deactivate_account(ctx, account: str) -> None:
    """Deactivate an account.

    Accounts are never deleted; a deactivated account keeps its history.
    System accounts cannot be deactivated.

    Examples:
        ledgerkit account deactivate asset:bank:monzo
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = AccountService(db, db)
    account_obj = resolve_account_or_exit(ctx, service, user_id, account)

    try:
        service.deactivate_account(user_id, account_obj.id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deactivated account '{account_obj.name}' {account_obj.path}")


@account_group.command("opening-balances")
@click.option("--currency", required=True, help="ISO currency code")
@click.pass_context
def opening_balances(ctx, currency: str) -> None:
    """Show (creating if needed) the opening balances account for a currency."""
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = AccountService(db, db)

    try:
        acc = service.ensure_opening_balance_account(user_id, currency)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(format_account_line(acc))


@account_group.command("groups")
@click.option("--type", "account_type", type=click.Choice(ACCOUNT_TYPES), help="Only this account type")
def list_groups(account_type: str | None) -> None:
    """List suggested group codes."""
    types = [AccountType(account_type)] if account_type else list(AccountType)
    for t in types:
        click.echo(f"{t.value}:")
        for group in groups_for(t):
            reserved = " (reserved)" if group.reserved else ""
            click.echo(f"  {group.code:20s} {group.label}{reserved}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
