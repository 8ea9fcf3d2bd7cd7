"""Exchange rate table commands (admin)."""

import click
from rich.table import Table

from exchange_desk.cli.common import console, fail, fmt_rate, get_actor, open_store
from exchange_desk.lib.errors import ExchangeDeskError
from exchange_desk.models.transaction import TransactionType
from exchange_desk.services.rate_resolver import RateResolver


@click.group()  # type: ignore[misc]
def rate() -> None:
    """Manage configured exchange rates."""
    pass


@rate.command("list")  # type: ignore[misc]
def rate_list() -> None:
    """Show configured buy and sell rates."""
    resolver = RateResolver(open_store())
    rates = resolver.list_rates()

    if not rates:
        console.print("[yellow]No rates configured.[/yellow]")
        console.print("Default currencies: " + ", ".join(resolver.currencies()))
        return

    table = Table(title="Exchange Rates", show_header=True, header_style="bold cyan")
    table.add_column("Currency", style="cyan")
    table.add_column("Buy Rate", justify="right", style="green")
    table.add_column("Sell Rate", justify="right", style="red")
    table.add_column("Updated", style="dim")

    for currency, record in rates.items():
        buy = record.rate_for(TransactionType.BUY)
        sell = record.rate_for(TransactionType.SELL)
        stamp = record.updated or record.created
        table.add_row(
            currency,
            fmt_rate(buy) if buy is not None else "-",
            fmt_rate(sell) if sell is not None else "-",
            stamp.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@rate.command("set")  # type: ignore[misc]
@click.argument("currency")  # type: ignore[misc]
@click.option("--buy", "buy_rate", type=float, default=None, help="Buy rate")  # type: ignore[misc]
@click.option("--sell", "sell_rate", type=float, default=None, help="Sell rate")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def rate_set(
    ctx: click.Context, currency: str, buy_rate: float | None, sell_rate: float | None
) -> None:
    """Add or update a currency's rates (admin only)."""
    resolver = RateResolver(open_store())

    try:
        record = resolver.configure(currency, get_actor(ctx), buy_rate=buy_rate, sell_rate=sell_rate)
    except ExchangeDeskError as e:
        fail(e)

    console.print(
        f"✅ {currency.upper().strip()}: buy {fmt_rate(record.rate_for(TransactionType.BUY))} / "
        f"sell {fmt_rate(record.rate_for(TransactionType.SELL))}",
        style="green",
    )


@rate.command("delete")  # type: ignore[misc]
@click.argument("currency")  # type: ignore[misc]
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def rate_delete(ctx: click.Context, currency: str, yes: bool) -> None:
    """Remove a currency from the rate table (admin only)."""
    if not yes and not click.confirm(f"Delete currency {currency.upper()}?"):
        click.echo("Aborted.")
        return

    resolver = RateResolver(open_store())
    try:
        deleted = resolver.delete(currency, get_actor(ctx))
    except ExchangeDeskError as e:
        fail(e)

    if deleted:
        console.print(f"✅ Deleted {currency.upper()}", style="green")
    else:
        console.print(f"[yellow]{currency.upper()} is not configured.[/yellow]")
