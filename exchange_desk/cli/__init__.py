"""CLI entry point for exchange-desk."""

import logging
import sys
import traceback

import click
from rich.console import Console

from exchange_desk.cli import activity, exchange, rate
from exchange_desk.cli import init as init_cmd
from exchange_desk.lib.config import UNKNOWN_ACTOR
from exchange_desk.lib.errors import ExchangeDeskError, format_error_message, get_error_color
from exchange_desk.lib.logging_config import setup_logging
from exchange_desk.models.actor import Actor, UserRole

console = Console()


@click.group()  # type: ignore[misc]
@click.option("--debug", is_flag=True, help="Enable debug mode")  # type: ignore[misc]
@click.option(  # type: ignore[misc]
    "--actor",
    envvar="EXCHANGE_DESK_ACTOR",
    default=UNKNOWN_ACTOR,
    show_default=True,
    help="Name of the acting user",
)
@click.option(  # type: ignore[misc]
    "--role",
    envvar="EXCHANGE_DESK_ROLE",
    type=click.Choice([r.value for r in UserRole]),
    default=UserRole.EXCHANGE_USER.value,
    show_default=True,
    help="Role of the acting user",
)
@click.pass_context  # type: ignore[misc]
def main(ctx: click.Context, debug: bool, actor: str, role: str) -> None:
    """Exchange Desk - Currency exchange ledger with FIFO lot holdings."""
    ctx.ensure_object(dict)
    ctx.obj["DEBUG"] = debug
    ctx.obj["ACTOR"] = Actor(name=actor, role=UserRole(role))

    if debug:
        setup_logging(logging.DEBUG)


def handle_exception(
    exc_type: type[BaseException], exc_value: BaseException, exc_traceback: object
) -> None:
    """
    Global exception handler for CLI.

    Formats exceptions with Rich colors and provides user-friendly messages.
    """
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)  # type: ignore[arg-type]
        return

    color = get_error_color(exc_value) if isinstance(exc_value, Exception) else "red"
    message = (
        format_error_message(exc_value) if isinstance(exc_value, Exception) else str(exc_value)
    )

    console.print(f"\n[{color}]✗ Error: {message}[/{color}]\n")

    if isinstance(exc_value, ExchangeDeskError):
        if "--debug" in sys.argv:
            console.print("[dim]Traceback:[/dim]")
            traceback.print_exception(exc_value)
    else:
        console.print("[dim]Unexpected error occurred. Use --debug for full traceback.[/dim]")
        if "--debug" in sys.argv:
            traceback.print_exception(exc_value)

    sys.exit(1)


# Install global exception handler
sys.excepthook = handle_exception


@main.command()  # type: ignore[misc]
def version() -> None:
    """Show version information."""
    click.echo("exchange-desk version 0.1.0")


# Register subcommands
main.add_command(init_cmd.init)
main.add_command(rate.rate)
main.add_command(exchange.exchange)
main.add_command(activity.activity)


if __name__ == "__main__":
    main()
