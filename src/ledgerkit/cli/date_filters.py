"""CLI helpers for date and date range resolution."""

from datetime import datetime, timedelta

import click

from ledgerkit.utils.date_parser import parse_datetime


def resolve_cli_datetime(ctx, value: str | None, label: str) -> datetime | None:
    """Parse an optional CLI date option, or exit with a CLI error."""
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
) -> tuple[datetime | None, datetime | None]:
    """Resolve CLI --start/--end options into an inclusive datetime range.

    An end given as a bare date covers that whole day.
    """
    start = resolve_cli_datetime(ctx, start_date, "start date")
    end = resolve_cli_datetime(ctx, end_date, "end date")
    if end is not None and end_date is not None and ":" not in end_date:
        end = end + timedelta(days=1) - timedelta(microseconds=1)

    if start is not None and end is not None and start > end:
        click.echo("Error: Start date must not be after end date.", err=True)
        ctx.exit(1)

    return start, end
