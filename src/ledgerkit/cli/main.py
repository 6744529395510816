"""Main CLI entry point."""

import logging

import click
from ledgerkit.database.factories import create_sqlite_database

# Import and register all commands at module level
from ledgerkit.cli.commands import (
    account,
    batch,
    entry,
    report,
)

USER_ENV = "LEDGERKIT_USER_ID"


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERKIT_DB_PATH environment variable)",
    envvar="LEDGERKIT_DB_PATH",
)
@click.option(
    "--user",
    "user_id",
    help=f"Acting user id (UUID); defaults to {USER_ENV}",
    envvar=USER_ENV,
)
@click.option("--verbose", "-v", is_flag=True, help="Log service activity to stderr")
@click.pass_context
def cli(ctx, db_path: str | None, user_id: str | None, verbose: bool):
    """Ledgerkit - Double-entry bookkeeping.

    Post balanced journal entries against your accounts, reverse or
    reclassify them, and query balances, trial balances and ledgers.
    """
    ctx.ensure_object(dict)
    ctx.obj["user_id"] = user_id

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
entry.register_commands(cli)
report.register_commands(cli)
batch.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
