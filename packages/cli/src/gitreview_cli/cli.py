"""CLI entry point for git-review.

Commands:
  list      — open requests of the current repository
  show      — details, diff and discussion of one request
  browse    — open a request in the web browser
  checkout  — check out the source branch of a request
  accept    — merge a request
  decline   — close a request without merging
  create    — open a request for the current branch
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from gitreview_cli.commands.accept import accept_cmd
from gitreview_cli.commands.browse import browse_cmd
from gitreview_cli.commands.checkout import checkout_cmd
from gitreview_cli.commands.create import create_cmd
from gitreview_cli.commands.decline import decline_cmd
from gitreview_cli.commands.list import list_cmd
from gitreview_cli.commands.show import show_cmd
from gitreview_core.errors import GitReviewError

err_console = Console(stderr=True)


class ReviewGroup(click.Group):
    """Turns expected git-review failures into a clean message and exit status 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except GitReviewError as e:
            raise click.ClickException(str(e)) from e


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _build_synchronizer(settings_path: str | None):
    """Wire settings, provider and local repository together.

    Nothing here talks to the network; the provider authenticates on first use.
    """
    from gitreview_cli.auth import ClickCredentialPrompter
    from gitreview_core.local import LocalRepository
    from gitreview_core.providers.github import GithubProvider
    from gitreview_core.settings import load_settings
    from gitreview_core.synchronizer import RequestSynchronizer

    local = LocalRepository()
    settings = load_settings(settings_path, git_config=local.config())
    local.host = settings.host
    local.default_target = settings.target_branch

    provider = GithubProvider(settings, prompter=ClickCredentialPrompter(settings.host))
    return RequestSynchronizer(provider, local)


@click.group(cls=ReviewGroup)
@click.version_option(
    version=importlib.metadata.version("git-review"),
    prog_name="git-review",
)
@click.option(
    "--settings",
    "settings_path",
    default=None,
    help="Path to the settings file. Defaults to ~/.git_review.yml.",
    envvar="GIT_REVIEW_SETTINGS",
)
@click.option("--verbose", "-v", is_flag=True, help="Log git and API calls.")
@click.pass_context
def main(ctx: click.Context, settings_path: str | None, verbose: bool):
    """Manage GitHub pull requests from the command line."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["synchronizer"] = _build_synchronizer(settings_path)


main.add_command(list_cmd)
main.add_command(show_cmd)
main.add_command(browse_cmd)
main.add_command(checkout_cmd)
main.add_command(accept_cmd)
main.add_command(decline_cmd)
main.add_command(create_cmd)
