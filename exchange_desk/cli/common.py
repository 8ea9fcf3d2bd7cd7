"""Shared helpers for CLI commands."""

import sys
from decimal import Decimal
from typing import NoReturn

import click
from rich.console import Console

from exchange_desk.lib.config import AMOUNT_DISPLAY_PLACES, RATE_DISPLAY_PLACES
from exchange_desk.lib.db import db_exists
from exchange_desk.lib.errors import format_error_message, get_error_color
from exchange_desk.models.actor import Actor
from exchange_desk.services.holdings_ledger import HoldingsLedger
from exchange_desk.services.rate_resolver import RateResolver
from exchange_desk.services.store import SqlStore

console = Console()


def get_actor(ctx: click.Context) -> Actor:
    """Actor selected with the global --actor/--role options."""
    obj = ctx.find_root().obj or {}
    return obj.get("ACTOR") or Actor()


def fail(error: Exception) -> NoReturn:
    """Print an error the way the global handler would and exit with status 1."""
    color = get_error_color(error)
    console.print(f"[{color}]✗ Error: {format_error_message(error)}[/{color}]")
    sys.exit(1)


def open_store() -> SqlStore:
    """Store over the configured database, which must already be initialized."""
    if not db_exists():
        console.print("[yellow]Database not initialized. Run 'exchange-desk init' first.[/yellow]")
        sys.exit(1)
    return SqlStore()


def open_ledger() -> HoldingsLedger:
    """Holdings ledger over the configured database."""
    store = open_store()
    return HoldingsLedger(store, RateResolver(store))


def fmt_amount(value: Decimal) -> str:
    """Format a quantity or money value for display."""
    return f"{value:,.{AMOUNT_DISPLAY_PLACES}f}"


def fmt_rate(value: Decimal) -> str:
    """Format an exchange rate for display."""
    return f"{value:.{RATE_DISPLAY_PLACES}f}"
