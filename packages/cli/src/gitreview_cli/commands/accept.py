"""accept command — merge a request."""

from __future__ import annotations

import click
from rich.console import Console

console = Console()


@click.command("accept")
@click.argument("number", type=int)
@click.option("--message", "-m", default=None, help="Merge commit message.")
@click.pass_context
def accept_cmd(ctx, number: int, message: str | None):
    """Merge an open request.

    The local branches are not updated; run `git pull` afterwards.
    """
    request = ctx.obj["synchronizer"].accept(number, message=message)
    console.print(f"[green]Request #{request.number} has been merged.[/green]")
