"""browse command — open a request in the web browser."""

from __future__ import annotations

import click


@click.command("browse")
@click.argument("number", type=int)
@click.pass_context
def browse_cmd(ctx, number: int):
    """Open a request in the default web browser."""
    url = ctx.obj["synchronizer"].browse_url(number)
    click.echo(url)
    click.launch(url)
