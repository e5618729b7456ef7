"""show command — details, diff and discussion of a single request."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.markup import escape

from gitreview_core.discussion import review_time
from gitreview_core.errors import GitCommandError

console = Console()
logger = logging.getLogger(__name__)

_STATE_STYLE = {"open": "green", "closed": "red", "merged": "magenta"}


@click.command("show")
@click.argument("number", type=int)
@click.option("--full", is_flag=True, help="Show the full diff instead of a stat summary.")
@click.pass_context
def show_cmd(ctx, number: int, full: bool):
    """Show a single request with its diff and discussion."""
    synchronizer = ctx.obj["synchronizer"]
    details = synchronizer.show(number)
    r = details.request
    style = _STATE_STYLE.get(r.state, "white")

    console.print(f"[bold]#{r.number}[/bold] {escape(r.title)}  [{style}]{r.state}[/{style}]")
    console.print(f"  by {escape(r.author or 'ghost')} on {review_time(r.created_at)}, updated {review_time(r.updated_at)}")
    source = escape(f"{r.source_repo or '(deleted fork)'}:{r.source_branch}")
    target = escape(f"{r.target_repo}:{r.target_branch}")
    console.print(f"  {source} → {target}")
    console.print(f"  Comments: {details.comments_count}")
    if r.body:
        console.print()
        console.print(r.body, markup=False)

    console.print()
    try:
        click.echo(synchronizer.diff(number, full=full))
    except GitCommandError as e:
        logger.debug("%s", e)
        console.print(f"[yellow]Commit {r.head_sha[:7]} is not available locally; run `git fetch` to see the diff.[/yellow]")

    lines = synchronizer.discussion(number)
    if lines:
        console.print()
        for line in lines:
            console.print(line)
