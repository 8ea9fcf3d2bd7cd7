"""Exchange subcommands for recording and reviewing currency transactions."""

import sys
from datetime import timedelta

import click
from rich.table import Table

from exchange_desk.cli.common import (
    console,
    fail,
    fmt_amount,
    fmt_rate,
    get_actor,
    open_ledger,
)
from exchange_desk.lib.config import DEFAULT_ANALYTICS_PERIOD_DAYS
from exchange_desk.lib.errors import ExchangeDeskError
from exchange_desk.models.transaction import TransactionType
from exchange_desk.services.reporting import (
    aggregate_holdings,
    build_dashboard,
    list_records,
    period_metrics,
)


@click.group()  # type: ignore[misc]
def exchange() -> None:
    """Record and review currency exchange transactions."""
    pass


def _transaction_options(func):  # type: ignore[no-untyped-def]
    """Options shared by buy and sell."""
    options = [
        click.option("--currency", required=True, help="Foreign currency code"),
        click.option("--amount", required=True, type=float, help="Amount of foreign currency"),
        click.option(
            "--rate",
            type=float,
            default=None,
            help="Exchange rate (defaults to the configured rate)",
        ),
        click.option("--customer", default="", help="Customer name"),
        click.option("--id-card", "id_card", default="", help="Customer ID card number"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@exchange.command()  # type: ignore[misc]
@_transaction_options
@click.pass_context  # type: ignore[misc]
def buy(
    ctx: click.Context,
    currency: str,
    amount: float,
    rate: float | None,
    customer: str,
    id_card: str,
) -> None:
    """Buy foreign currency from a customer."""
    ledger = open_ledger()

    try:
        receipt = ledger.record_buy(
            get_actor(ctx), currency, amount, rate=rate, customer=customer, id_card=id_card
        )
    except ExchangeDeskError as e:
        fail(e)

    txn = receipt.transaction
    console.print(
        f"✅ Recorded BUY #{txn.id}: {fmt_amount(txn.amount)} {txn.currency} "
        f"@ {fmt_rate(txn.rate)} = {fmt_amount(txn.total)}",
        style="green",
    )


@exchange.command()  # type: ignore[misc]
@_transaction_options
@click.pass_context  # type: ignore[misc]
def sell(
    ctx: click.Context,
    currency: str,
    amount: float,
    rate: float | None,
    customer: str,
    id_card: str,
) -> None:
    """Sell foreign currency to a customer."""
    ledger = open_ledger()

    try:
        receipt = ledger.record_sell(
            get_actor(ctx), currency, amount, rate=rate, customer=customer, id_card=id_card
        )
    except ExchangeDeskError as e:
        fail(e)

    txn = receipt.transaction
    console.print(
        f"✅ Recorded SELL #{txn.id}: {fmt_amount(txn.amount)} {txn.currency} "
        f"@ {fmt_rate(txn.rate)} = {fmt_amount(txn.total)}",
        style="green",
    )

    if receipt.realized:
        table = Table(title="Lots Consumed (FIFO)", show_header=True, header_style="bold cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Buy Rate", justify="right")
        table.add_column("Profit", justify="right", style="green")
        for fragment in receipt.realized:
            table.add_row(
                fmt_amount(fragment.amount),
                fmt_rate(fragment.buy_rate),
                fmt_amount((txn.rate - fragment.buy_rate) * fragment.amount),
            )
        console.print(table)

    if receipt.shortfall_amount > 0:
        console.print(
            f"[yellow]⚠ {fmt_amount(receipt.shortfall_amount)} {txn.currency} sold beyond "
            f"lot holdings, counted at zero cost basis.[/yellow]"
        )

    console.print(f"Realized profit: [bold]{fmt_amount(receipt.realized_profit)}[/bold]")


@exchange.command()  # type: ignore[misc]
@click.argument("transaction_id", type=int)  # type: ignore[misc]
@click.option("--reason", default="", help="Reason for voiding")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def void(ctx: click.Context, transaction_id: int, reason: str) -> None:
    """Void a transaction, keeping it in the records."""
    ledger = open_ledger()

    try:
        outcome = ledger.void_transaction(get_actor(ctx), transaction_id, reason)
    except ExchangeDeskError as e:
        fail(e)

    if outcome is None:
        console.print(
            f"[yellow]Transaction {transaction_id} not found or already voided.[/yellow]"
        )
        sys.exit(1)

    console.print(
        f"✅ Voided {outcome.transaction.type.value.upper()} #{transaction_id}. "
        f"Audit trail recorded.",
        style="green",
    )
    if not outcome.is_exact:
        console.print(
            f"[yellow]⚠ Holdings reversal is approximate ({outcome.reversal.value}).[/yellow]"
        )
    if outcome.unreversed_amount > 0:
        console.print(
            f"[yellow]⚠ {fmt_amount(outcome.unreversed_amount)} "
            f"{outcome.transaction.currency} could not be removed from holdings.[/yellow]"
        )


@exchange.command()  # type: ignore[misc]
@click.option("--limit", type=int, default=None, help="Show only the newest N records")  # type: ignore[misc]
@click.option("--active-only", is_flag=True, help="Hide voided transactions")  # type: ignore[misc]
def records(limit: int | None, active_only: bool) -> None:
    """List transactions, newest first."""
    ledger = open_ledger()
    rows = list_records(ledger.transactions(), include_voided=not active_only)
    if limit:
        rows = rows[:limit]

    if not rows:
        console.print("[yellow]No transactions recorded.[/yellow]")
        return

    table = Table(title="Exchange Records", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Customer")
    table.add_column("ID Card")
    table.add_column("Currency", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Status")

    for txn in rows:
        type_style = "green" if txn.type == TransactionType.BUY else "red"
        if txn.is_active:
            status = "active"
        else:
            status = f"[dim]voided by {txn.voided_by}: {txn.void_reason or '-'}[/dim]"
        table.add_row(
            str(txn.id),
            txn.date.strftime("%Y-%m-%d %H:%M"),
            f"[bold {type_style}]{txn.type.value.upper()}[/bold {type_style}]",
            txn.customer,
            txn.id_card,
            txn.currency,
            fmt_amount(txn.amount),
            fmt_rate(txn.rate),
            fmt_amount(txn.total),
            status,
        )

    console.print(table)


@exchange.command()  # type: ignore[misc]
def holdings() -> None:
    """Show currency stock with average buy rates."""
    ledger = open_ledger()

    table = Table(title="Currency Holdings", show_header=True, header_style="bold cyan")
    table.add_column("Currency", style="cyan")

    if ledger.has_lot_holdings():
        table.add_column("Held", justify="right")
        table.add_column("Lots", justify="right")
        table.add_column("Avg Buy Rate", justify="right")
        table.add_column("Cost Value", justify="right")
        for summary in ledger.all_holdings():
            style = "red" if summary.total_amount <= 0 else "green"
            table.add_row(
                summary.currency,
                f"[{style}]{fmt_amount(summary.total_amount)}[/{style}]",
                str(len(summary.lots)),
                fmt_rate(summary.average_buy_rate),
                fmt_amount(summary.cost_value),
            )
    else:
        table.add_column("Bought", justify="right")
        table.add_column("Sold", justify="right")
        table.add_column("Net", justify="right")
        table.add_column("Avg Buy Rate", justify="right")
        table.add_column("Cost Value", justify="right")
        for row in aggregate_holdings(ledger.transactions()):
            style = "red" if row.net <= 0 else "green"
            table.add_row(
                row.currency,
                fmt_amount(row.bought),
                fmt_amount(row.sold),
                f"[{style}]{fmt_amount(row.net)}[/{style}]",
                fmt_rate(row.average_buy_rate),
                fmt_amount(row.cost_value),
            )

    console.print(table)


@exchange.command()  # type: ignore[misc]
@click.argument("currency")  # type: ignore[misc]
def lots(currency: str) -> None:
    """Show the FIFO lot history of a currency."""
    ledger = open_ledger()

    try:
        summary = ledger.query_holdings(currency)
    except ExchangeDeskError as e:
        fail(e)

    if not summary.lots:
        console.print(f"[dim]No lot history for {summary.currency}.[/dim]")
        return

    table = Table(
        title=f"Lot History: {summary.currency}", show_header=True, header_style="bold cyan"
    )
    table.add_column("#", style="dim")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Buy Rate", justify="right")
    table.add_column("Value", justify="right")

    for index, lot in enumerate(summary.lots, start=1):
        table.add_row(
            str(index),
            lot.date.strftime("%Y-%m-%d %H:%M"),
            fmt_amount(lot.amount),
            fmt_rate(lot.rate),
            fmt_amount(lot.cost),
        )

    console.print(table)
    console.print(
        f"Total: [bold]{fmt_amount(summary.total_amount)}[/bold] {summary.currency} "
        f"@ avg {fmt_rate(summary.average_buy_rate)}"
    )


@exchange.command()  # type: ignore[misc]
@click.option(  # type: ignore[misc]
    "--days",
    type=int,
    default=DEFAULT_ANALYTICS_PERIOD_DAYS,
    show_default=True,
    help="Analytics period length in days",
)
def dashboard(days: int) -> None:
    """Show buy/sell totals, volumes and estimated profit."""
    ledger = open_ledger()
    transactions = ledger.transactions()
    now = ledger.store.clock()
    stats = build_dashboard(transactions, ledger.has_lot_holdings(), now)

    table = Table(title="Exchange Dashboard", show_header=True, header_style="bold cyan")
    table.add_column("Currency", style="cyan")
    table.add_column("Bought", justify="right", style="green")
    table.add_column("Sold", justify="right", style="red")
    table.add_column("Volume", justify="right")

    currencies = sorted(
        stats.volume_by_currency, key=lambda c: stats.volume_by_currency[c], reverse=True
    )
    for currency in currencies:
        table.add_row(
            currency,
            fmt_amount(stats.bought.get(currency, 0)),
            fmt_amount(stats.sold.get(currency, 0)),
            fmt_amount(stats.volume_by_currency[currency]),
        )

    console.print(table)
    console.print(
        f"This week:  buy {fmt_amount(stats.week_volume.buy)} / "
        f"sell {fmt_amount(stats.week_volume.sell)}"
    )
    console.print(
        f"This month: buy {fmt_amount(stats.month_volume.buy)} / "
        f"sell {fmt_amount(stats.month_volume.sell)}"
    )

    current = period_metrics(transactions, now - timedelta(days=days), now)
    previous = period_metrics(
        transactions, now - timedelta(days=2 * days), now - timedelta(days=days)
    )
    console.print(
        f"Last {days} days: volume {fmt_amount(current.exchange_volume)} "
        f"(previous {fmt_amount(previous.exchange_volume)}), "
        f"spread revenue {fmt_amount(current.spread_revenue)}"
    )
    console.print(
        f"Estimated profit: [bold]{fmt_amount(stats.estimated_profit)}[/bold] "
        f"[dim]({stats.profit_method.replace('_', ' ')})[/dim]"
    )
