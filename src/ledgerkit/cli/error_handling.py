"""CLI error handling helpers."""

from uuid import UUID

import click

from ledgerkit.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def require_user(ctx: click.Context) -> UUID:
    """Return the acting user id, or exit if none was given."""
    raw = ctx.obj.get("user_id")
    if not raw:
        click.echo("Error: No user selected. Pass --user or set LEDGERKIT_USER_ID.", err=True)
        ctx.exit(1)
    try:
        return UUID(raw)
    except ValueError:
        click.echo(f"Error: Invalid user id '{raw}'", err=True)
        ctx.exit(1)


def parse_uuid_or_exit(ctx: click.Context, value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        click.echo(f"Error: Invalid {label} '{value}'", err=True)
        ctx.exit(1)
