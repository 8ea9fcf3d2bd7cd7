"""
Database initialization CLI command.

Provides commands for initializing and resetting the exchange-desk database.
"""

import click

from exchange_desk.lib.db import db_exists, init_db, reset_db, resolve_db_path


@click.command()
@click.option("--reset", is_flag=True, help="Reset database (WARNING: deletes all data)")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation when resetting")
def init(reset: bool, yes: bool) -> None:
    """Initialize the exchange-desk database."""
    db_path = resolve_db_path()

    if db_exists() and not reset:
        click.echo(f"Database already exists at {db_path}")
        click.echo("Use --reset to recreate (WARNING: this will delete all data)")
        return

    if reset:
        if not yes and not click.confirm("This will DELETE ALL DATA. Continue?"):
            click.echo("Aborted.")
            return

        reset_db()
        click.echo("Database reset successfully.")
    else:
        init_db()
        click.echo(f"Database initialized at {db_path}")
