"""Batch import commands."""

import json
from typing import Any, Callable, Optional
from uuid import UUID

import click
from ledgerkit.cli.error_handling import handle_domain_error, require_user
from ledgerkit.domain.batch import BatchService, ItemError, rejected
from ledgerkit.domain.entities import AccountDraft, EntryDraft, LineDraft
from ledgerkit.domain.errors import DomainError, ValidationError, line_error
from ledgerkit.utils.amount_parser import parse_minor_units
from ledgerkit.utils.date_parser import parse_datetime


def load_items(ctx, file, key: str) -> list[Any]:
    """Read a JSON list, or an object holding the list under key."""
    try:
        data = json.load(file)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON: {e}", err=True)
        ctx.exit(1)
    if isinstance(data, dict):
        data = data.get(key)
    if not isinstance(data, list):
        click.echo(f"Error: Expected a list under '{key}'", err=True)
        ctx.exit(1)
    return data


def _text(item: dict[str, Any], field: str) -> str:
    value = item.get(field)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def _metadata(item: dict[str, Any]) -> dict[str, Any]:
    value = item.get("metadata")
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("metadata must be an object")
    return value


def _uuid(value: Any, field: str) -> Optional[UUID]:
    if value is None or value == "":
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid id: '{value}'")


def _object(item: Any) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise ValidationError("expected an object")
    return item


def account_draft_from_json(user_id: UUID, item: Any) -> AccountDraft:
    item = _object(item)
    return AccountDraft(
        user_id=user_id,
        name=_text(item, "name"),
        currency=_text(item, "currency"),
        type=_text(item, "type"),
        group=_text(item, "group"),
        vendor=_text(item, "vendor"),
        metadata=_metadata(item),
    )


def line_draft_from_json(index: int, item: Any, currency: str) -> LineDraft:
    """Build a line from ``amount_minor`` or a decimal ``amount`` string."""
    try:
        item = _object(item)
        if "amount_minor" in item:
            amount_minor = item["amount_minor"]
            if isinstance(amount_minor, bool) or not isinstance(amount_minor, int):
                raise ValidationError("amount_minor must be an integer")
        else:
            amount_minor = parse_minor_units(str(item.get("amount", "")), currency)
        return LineDraft(
            account_id=_uuid(item.get("account_id"), "account_id"),
            side=_text(item, "side"),
            amount_minor=amount_minor,
        )
    except ValueError as e:
        raise ValidationError(line_error(index, str(e)))


def entry_draft_from_json(default_user: UUID, item: Any) -> EntryDraft:
    item = _object(item)
    currency = _text(item, "currency").strip().upper()
    lines = item.get("lines") or []
    if not isinstance(lines, list):
        raise ValidationError("lines must be a list")
    date = _text(item, "date")
    return EntryDraft(
        user_id=_uuid(item.get("user_id"), "user_id") or default_user,
        currency=currency,
        lines=[line_draft_from_json(i, line, currency) for i, line in enumerate(lines)],
        date=parse_datetime(date) if date else None,
        memo=_text(item, "memo"),
        category=_text(item, "category") or None,
        metadata=_metadata(item),
    )


def drafts_from_json(items: list[Any], convert: Callable[[Any], Any]) -> tuple[list[Any], list[ItemError]]:
    """Convert every item, collecting one error record per unreadable item."""
    drafts, errors = [], []
    for index, item in enumerate(items):
        try:
            drafts.append(convert(item))
        except DomainError as e:
            errors.append(ItemError(index, e.code, str(e)))
        except ValueError as e:
            errors.append(ItemError(index, ValidationError.code, str(e)))
    return drafts, errors


def echo_result(ctx, result) -> None:
    click.echo(json.dumps(result.data, indent=2))
    if not result.ok:
        click.echo(f"Batch rejected (status {result.status}); nothing was written.", err=True)
        ctx.exit(1)


@click.group()
def batch_group():
    """Create many accounts or entries at once, all or nothing."""
    pass


@batch_group.command("accounts")
@click.argument("file", type=click.File("r"))
@click.option("--idempotency-key", required=True, help="Retry key; the same key and file replay the first result")
@click.pass_context
def batch_accounts(ctx, file, idempotency_key: str):
    """Create up to 100 accounts from a JSON file.

    FILE holds {"accounts": [{"name", "currency", "type", "group", "vendor",
    "metadata"}, ...]}. Use - to read from stdin.

    Examples:
        ledgerkit batch accounts accounts.json --idempotency-key import-2024-01
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = BatchService.from_database(db)

    items = load_items(ctx, file, "accounts")
    drafts, errors = drafts_from_json(items, lambda item: account_draft_from_json(user_id, item))
    if errors:
        echo_result(ctx, rejected(errors))
        return
    try:
        result = service.create_accounts(user_id, drafts, idempotency_key)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    echo_result(ctx, result)


@batch_group.command("entries")
@click.argument("file", type=click.File("r"))
@click.option("--idempotency-key", required=True, help="Retry key; the same key and file replay the first result")
@click.pass_context
def batch_entries(ctx, file, idempotency_key: str):
    """Post up to 500 journal entries from a JSON file.

    FILE holds {"entries": [{"date", "currency", "memo", "category",
    "metadata", "lines": [{"account_id", "side", "amount_minor"}, ...]}, ...]}.
    A line may give "amount" as a decimal string instead of "amount_minor".
    Entries without a "user_id" belong to the acting user.

    Examples:
        ledgerkit batch entries january.json --idempotency-key import-2024-01
    """
    db = ctx.obj["db"]
    user_id = require_user(ctx)
    service = BatchService.from_database(db)

    items = load_items(ctx, file, "entries")
    drafts, errors = drafts_from_json(items, lambda item: entry_draft_from_json(user_id, item))
    if errors:
        echo_result(ctx, rejected(errors))
        return
    try:
        result = service.create_entries(drafts, idempotency_key)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    echo_result(ctx, result)


def register_commands(cli):
    """Register batch commands with main CLI."""
    cli.add_command(batch_group, name="batch")
