"""list command — open requests of the current repository."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitreview_core.discussion import review_time

console = Console()


@click.command("list")
@click.option("--reverse", is_flag=True, help="Oldest requests first.")
@click.pass_context
def list_cmd(ctx, reverse: bool):
    """List open requests, newest first."""
    synchronizer = ctx.obj["synchronizer"]
    requests = synchronizer.list(reverse=reverse)
    repo = escape(synchronizer.repo())

    if not requests:
        console.print(f"[yellow]No pending requests for '{repo}'.[/yellow]")
        return

    table = Table(title=f"Pending requests for '{repo}'", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", justify="right")
    table.add_column("Created", width=16)
    table.add_column("Comments", justify="right")
    table.add_column("Title")

    for r in requests:
        comments = (r.comments or 0) + (r.review_comments or 0)
        table.add_row(f"#{r.number}", review_time(r.created_at), str(comments), escape(r.title))

    console.print(table)
