"""decline command — close a request without merging."""

from __future__ import annotations

import click
from rich.console import Console

console = Console()


@click.command("decline")
@click.argument("number", type=int)
@click.option("--comment", "-c", default=None, help="Comment to leave before closing.")
@click.pass_context
def decline_cmd(ctx, number: int, comment: str | None):
    """Close an open request without merging it."""
    request = ctx.obj["synchronizer"].decline(number, comment=comment)
    console.print(f"[yellow]Request #{request.number} has been closed.[/yellow]")
