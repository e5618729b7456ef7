"""create command — open a request for the current branch."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

console = Console()


@click.command("create")
@click.option("--upstream", is_flag=True, help="Send the request to the 'upstream' remote's repository.")
@click.pass_context
def create_cmd(ctx, upstream: bool):
    """Open a request from the current branch against the target branch.

    Title and body are derived from the commits on the branch. Afterwards
    the target branch is checked out again.
    """
    result = ctx.obj["synchronizer"].create(upstream=upstream)
    if not result.success:
        console.print(f"[red]Pull request was not created for {escape(result.repo)}.[/red]")
        ctx.exit(1)

    console.print(f"[green]Successfully created new request #{result.number}[/green]")
    console.print(result.url, markup=False)
