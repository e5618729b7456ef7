"""checkout command — switch to the source branch of a request."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

console = Console()


@click.command("checkout")
@click.argument("number", type=int)
@click.pass_context
def checkout_cmd(ctx, number: int):
    """Check out the branch a request was opened from."""
    branch = ctx.obj["synchronizer"].checkout(number)
    console.print(f"Switched to branch [cyan]{escape(branch)}[/cyan] of request #{number}.")
