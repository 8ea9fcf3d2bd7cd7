"""Activity log command."""

import click
from rich.table import Table

from exchange_desk.cli.common import console, fail, open_store
from exchange_desk.lib.errors import ExchangeDeskError
from exchange_desk.services.activity_log import get_activity_logs


@click.command()  # type: ignore[misc]
@click.option("--limit", type=int, default=50, show_default=True, help="Number of entries")  # type: ignore[misc]
@click.option("--module", "module_name", default=None, help="Only show entries of this module")  # type: ignore[misc]
def activity(limit: int, module_name: str | None) -> None:
    """Show the audit trail of user actions, newest first."""
    store = open_store()

    try:
        entries = get_activity_logs(store, limit=limit, module_name=module_name)
    except ExchangeDeskError as e:
        fail(e)

    if not entries:
        console.print("[yellow]No activity recorded.[/yellow]")
        return

    table = Table(title="Activity Log", show_header=True, header_style="bold cyan")
    table.add_column("Time", style="dim")
    table.add_column("User", style="cyan")
    table.add_column("Action")
    table.add_column("Module")
    table.add_column("Details")

    action_styles = {"Create": "green", "Update": "blue", "Delete": "red", "Void": "yellow"}
    for entry in entries:
        style = action_styles.get(entry.action_type, "white")
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.actor,
            f"[{style}]{entry.action_type}[/{style}]",
            entry.module_name,
            entry.details,
        )

    console.print(table)
