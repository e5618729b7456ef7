"""Interactive OAuth token acquisition for GitHub.

The user's username and password are exchanged once for a token with the
``repo`` scope. The password is only held for the duration of the request;
the token and username are written to the settings file.

Prompting is delegated to a CredentialPrompter so that nothing here needs
a terminal.
"""

from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING, Callable, Protocol

import requests

from gitreview_core.errors import AuthenticationError, UnprocessableState

if TYPE_CHECKING:
    from gitreview_core.settings import Settings

logger = logging.getLogger(__name__)

TOKEN_SCOPES = ["repo"]
_TIMEOUT = 10


class CredentialPrompter(Protocol):
    def announce(self, message: str) -> None: ...

    def username(self) -> str: ...

    def password(self) -> str: ...

    def description(self, default: str) -> str: ...


def default_description() -> str:
    return f"git-review - {socket.gethostname()}"


class GithubAuthorizer:
    """Runs the username/password → OAuth token exchange."""

    def __init__(
        self,
        settings: Settings,
        prompter: CredentialPrompter,
        persist: Callable[[Settings], object],
        session: requests.Session | None = None,
    ):
        self.settings = settings
        self.prompter = prompter
        self.persist = persist
        self.session = session or requests.Session()

    def run(self) -> str:
        """Prompt for credentials, mint a token and persist it.

        Raises AuthenticationError on bad credentials and UnprocessableState
        on any other unexpected answer.
        """
        self.prompter.announce(
            "Requesting an OAuth token for git-review.\n"
            "This will grant access to your public and private repositories.\n"
            f"You can revoke it at {self.settings.web_url}/settings/applications"
        )
        username = self.prompter.username()
        password = self.prompter.password()
        description = self.prompter.description(default_description()) or default_description()

        token = self.authorize(username, password, description)
        self.save(username, token)
        return token

    def authorize(self, username: str, password: str, description: str) -> str:
        url = f"{self.settings.api_url}/authorizations"
        logger.debug("POST %s as %s", url, username)
        response = self.session.post(
            url,
            auth=(username, password),
            json={"scopes": TOKEN_SCOPES, "note": description},
            timeout=_TIMEOUT,
        )
        if response.status_code == 201:
            return response.json()["token"]
        if response.status_code == 401:
            raise AuthenticationError()
        raise UnprocessableState(response.text)

    def save(self, username: str, token: str) -> None:
        self.settings.username = username
        self.settings.oauth_token = token
        self.persist(self.settings)
        logger.info("OAuth token for %s stored.", username)
