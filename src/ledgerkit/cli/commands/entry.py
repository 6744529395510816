"""Journal entry commands."""

import json

import click
from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.commands.account import parse_metadata_options
from ledgerkit.cli.date_filters import resolve_cli_date_range, resolve_cli_datetime
from ledgerkit.cli.error_handling import handle_domain_error, parse_uuid_or_exit, require_user
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import EntryCategory, EntryDraft, LineDraft, Side
from ledgerkit.domain.journal import JournalService
from ledgerkit.domain.serialization import entry_to_dict
from ledgerkit.utils.amount_parser import parse_minor_units

CATEGORIES = [c.value for c in EntryCategory]


def build_line_drafts(
    ctx,
    account_service: AccountService,
    user_id,
    currency: str,
    debits: tuple[str, ...],
    credits: tuple[str, ...],
) -> list[LineDraft]:
    """Turn --debit/--credit ACCOUNT=AMOUNT options into line drafts."""
    lines = []
    for side, specs in ((Side.DEBIT, debits), (Side.CREDIT, credits)):
        for spec in specs:
            reference, sep, amount = spec.rpartition("=")
            if not sep or not reference.strip():
                click.echo(f"Error: Invalid line '{spec}', expected ACCOUNT=AMOUNT", err=True)
                ctx.exit(1)
            account = resolve_account_or_exit(ctx, account_service, user_id, reference, currency=currency)
            try:
                amount_minor = parse_minor_units(amount, currency)
            except ValueError as e:
                click.echo(f"Error: Invalid amount format: {e}", err=True)
                ctx.exit(1)
            lines.append(LineDraft(account_id=account.id, side=side, amount_minor=amount_minor))
    return lines


def format_entry(entry, account_names: dict) -> list[str]:
    status = " [reversed]" if entry.is_reversed else ""
    out = [
        f"Entry {entry.id}{status}",
        f"  Date:     {entry.date.isoformat()}",
        f"  Currency: {entry.currency}",
        f"  Category: {entry.category.value}",
    ]
    if entry.memo:
        out.append(f"  Memo:     {entry.memo}")
    for line in entry.lines.sorted():
        label = account_names.get(line.account_id, str(line.account_id))
        debit = str(line.amount) if line.side == Side.DEBIT else ""
        credit = str(line.amount) if line.side == Side.CREDIT else ""
        out.append(f"    {label:40s} {debit:>14s} {credit:>14s}")
    return out


@click.group()
def entry_group():
    """Post and correct journal entries."""
    pass


@entry_group.command("post")
@click.option("--currency", required=True, help="ISO currency code of the entry")
@click.option("--debit", "debits", multiple=True, help="Debit line as ACCOUNT=AMOUNT (repeatable)")
@click.option("--credit", "credits", multiple=True, help="Credit line as ACCOUNT=AMOUNT (repeatable)")
@click.option("--date", help="Entry date (YYYY-MM-DD, ISO timestamp or relative like 'today')")
@click.option("--memo", default="", help="Free-text memo")
@click.option("--category", type=click.Choice(CATEGORIES), default=EntryCategory.UNCATEGORIZED.value)
@click.option("--meta", multiple=True, help="Metadata as KEY=VALUE (repeatable)")
@click.option("--idempotency-key", help="Retry key; reposting with the same key returns the first entry")
@click.pass_context
def post_entry(
    ctx,
    currency: str,
    debits: tuple[str, ...],
    credits: tuple[str, ...],
    date: str | None,
    memo: str,
    category: str,
    meta: tuple[str, ...],
    idempotency_key: str | None,
):
    """Post a balanced journal entry.

    ACCOUNT can be an account ID or path; paths are looked up in the entry
    currency.

    Examples:
        ledgerkit entry post --currency USD --debit asset:cash:wallet=15.00 --credit revenue:salary:acme=15.00
        ledgerkit entry post --currency GBP --date 2024-01-15 --debit expense:groceries:tesco=42.10 \\
            --credit asset:bank:monzo=42.10 --category groceries
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    account_service = AccountService(db, db)
    journal_service = JournalService.from_database(db)

    currency = currency.strip().upper()
    lines = build_line_drafts(ctx, account_service, user_id, currency, debits, credits)
    draft = EntryDraft(
        user_id=user_id,
        currency=currency,
        lines=lines,
        date=resolve_cli_datetime(ctx, date, "date"),
        memo=memo,
        category=category,
        metadata=parse_metadata_options(ctx, meta) or {},
    )

    try:
        entry = journal_service.post_entry(draft, idempotency_key=idempotency_key)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Posted entry {entry.id}")


@entry_group.command("reverse")
@click.argument("entry_id", metavar="ENTRY_ID")
@click.option("--date", help="Reversal date (defaults to now)")
@click.pass_context
def reverse_entry(ctx, entry_id: str, date: str | None):
    """Reverse an entry by posting its mirror image.

    Examples:
        ledgerkit entry reverse 3f6c9a52-0b7e-4a35-9d0c-1f2e3d4c5b6a
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    journal_service = JournalService.from_database(db)
    original_id = parse_uuid_or_exit(ctx, entry_id, "entry id")

    try:
        reversal = journal_service.reverse_entry(
            user_id, original_id, date=resolve_cli_datetime(ctx, date, "date")
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Reversed entry {original_id} with {reversal.id}")


@entry_group.command("reclassify")
@click.argument("entry_id", metavar="ENTRY_ID")
@click.option("--debit", "debits", multiple=True, help="Debit line as ACCOUNT=AMOUNT (repeatable)")
@click.option("--credit", "credits", multiple=True, help="Credit line as ACCOUNT=AMOUNT (repeatable)")
@click.option("--date", help="Date of the reversal and the corrected entry (defaults to now)")
@click.option("--memo", default="", help="Memo of the corrected entry")
@click.option("--category", type=click.Choice(CATEGORIES), help="Category (defaults to the original's)")
@click.pass_context
def reclassify_entry(
    ctx,
    entry_id: str,
    debits: tuple[str, ...],
    credits: tuple[str, ...],
    date: str | None,
    memo: str,
    category: str | None,
):
    """Replace an entry with corrected lines.

    The original is reversed and a new entry is posted in the same currency.

    Examples:
        ledgerkit entry reclassify 3f6c9a52-0b7e-4a35-9d0c-1f2e3d4c5b6a \\
            --debit expense:eating_out:cafe=4.50 --credit asset:cash:wallet=4.50
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    account_service = AccountService(db, db)
    journal_service = JournalService.from_database(db)
    original_id = parse_uuid_or_exit(ctx, entry_id, "entry id")

    try:
        original = journal_service.get_entry(user_id, original_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    lines = build_line_drafts(ctx, account_service, user_id, original.currency, debits, credits)

    try:
        corrected = journal_service.reclassify(
            user_id,
            original_id,
            lines=lines,
            date=resolve_cli_datetime(ctx, date, "date"),
            memo=memo,
            category=category,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Reclassified entry {original_id} as {corrected.id}")


@entry_group.command("list")
@click.option("--start", "start_date", help="Start date (inclusive)")
@click.option("--end", "end_date", help="End date (inclusive)")
@click.option("--limit", type=int, default=50, show_default=True, help="Page size (max 200)")
@click.option("--cursor", help="Cursor printed with the previous page")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def list_entries(
    ctx,
    start_date: str | None,
    end_date: str | None,
    limit: int,
    cursor: str | None,
    as_json: bool,
):
    """List entries in date order, one page at a time."""
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    journal_service = JournalService.from_database(db)
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)

    try:
        page = journal_service.list_entries(user_id, start=start, end=end, limit=limit, cursor=cursor)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        click.echo(
            json.dumps(
                {"entries": [entry_to_dict(e) for e in page.items], "next_cursor": page.next_cursor},
                indent=2,
            )
        )
        return
    if not page.items:
        click.echo("No entries found.")
        return

    for entry in page.items:
        status = " [reversed]" if entry.is_reversed else ""
        total = entry.debit_total()
        memo = f" {entry.memo}" if entry.memo else ""
        click.echo(
            f"{entry.date.date()} | {entry.id} | {str(total):>14s} {entry.currency} | "
            f"{entry.category.value}{memo}{status}"
        )
    if page.next_cursor:
        click.echo(f"\nNext cursor: {page.next_cursor}")


@entry_group.command("show")
@click.argument("entry_id", metavar="ENTRY_ID")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def show_entry(ctx, entry_id: str, as_json: bool):
    """Show one entry with its lines."""
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    journal_service = JournalService.from_database(db)
    account_service = AccountService(db, db)

    try:
        entry = journal_service.get_entry(user_id, parse_uuid_or_exit(ctx, entry_id, "entry id"))
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if as_json:
        click.echo(json.dumps(entry_to_dict(entry), indent=2))
        return
    names = {a.id: a.path for a in account_service.list_accounts(user_id)}
    for line in format_entry(entry, names):
        click.echo(line)


def register_commands(cli):
    """Register entry commands with main CLI."""
    cli.add_command(entry_group, name="entry")
