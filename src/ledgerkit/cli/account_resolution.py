"""CLI helpers for account resolution."""

from __future__ import annotations

from uuid import UUID

import click
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import Account
from ledgerkit.utils.account_resolver import resolve_account


def resolve_account_or_exit(
    ctx: click.Context,
    account_service: AccountService,
    user_id: UUID,
    reference: str,
    currency: str | None = None,
) -> Account:
    """Resolve an account id or path, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(account_service, user_id, reference, currency=currency)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
