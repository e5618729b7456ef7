"""Terminal credential prompter for the OAuth authorization flow.

gitreview_core never touches the terminal itself; the GitHub provider gets
this prompter injected by the CLI group.
"""

from __future__ import annotations

import click


class ClickCredentialPrompter:
    def __init__(self, host: str = "github.com"):
        self.host = host

    def announce(self, message: str) -> None:
        click.echo(message)

    def username(self) -> str:
        return click.prompt(f"Please enter your {self.host} username").strip()

    def password(self) -> str:
        # Masked, and only kept for the duration of the token request.
        return click.prompt(
            f"Please enter your {self.host} password (it won't be stored anywhere)",
            hide_input=True,
        )

    def description(self, default: str) -> str:
        click.echo(
            "Please enter a description to associate to this token, it will make it "
            "easier to find on the applications page."
        )
        return click.prompt("Description", default=default, show_default=True).strip()
