"""Request lifecycle orchestration.

RequestSynchronizer is the only place where remote request state and local
git state meet. The provider never calls into the local repository and vice
versa; anything that needs both (a branch name to look up remotely, a
checkout after creation) is passed through here.

Lifecycle per request:

    (none) --create--> open --accept--> merged
                         \\--decline--> closed

Checkout, list and show read remote state and never change it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from gitreview_core.errors import GitReviewError, RequestAlreadyExists, RequestNotFound, VerificationFailure
from gitreview_core.models import CLOSED, MERGED, OPEN

if TYPE_CHECKING:
    from gitreview_core.local import LocalRepository
    from gitreview_core.models import CreateResult, Request
    from gitreview_core.providers.base import BaseProvider

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class RequestDetails:
    request: Request
    comments_count: int


def _created_key(request: Request):
    created = request.created_at or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created, request.number


class RequestSynchronizer:
    def __init__(self, provider: BaseProvider, local: LocalRepository):
        self.provider = provider
        self.local = local

    def repo(self) -> str:
        """The "owner/name" every request operation targets, resolved from the remotes on each call."""
        return self.local.source_repo()

    def _existing(self, number: int, state: str | None = None) -> Request:
        request = self.provider.request_exists(self.repo(), number, state)
        if not request:
            raise RequestNotFound(number, state)
        return request

    # ------------------------------------------------------------------ #
    # Read-only projections                                                #
    # ------------------------------------------------------------------ #

    def list(self, reverse: bool = False) -> list[Request]:
        """Open requests, newest first (oldest first with ``reverse``)."""
        requests = self.provider.current_requests_full(self.repo())
        return sorted(requests, key=_created_key, reverse=not reverse)

    def show(self, number: int) -> RequestDetails:
        request = self._existing(number)
        return RequestDetails(request, self.provider.comments_count(self.repo(), request))

    def discussion(self, number: int) -> list[str]:
        return self.provider.discussion(self.repo(), number)

    def diff(self, number: int, full: bool = False) -> str:
        request = self._existing(number)
        return self.local.diff(request.head_sha, full=full)

    def browse_url(self, number: int) -> str:
        request = self._existing(number)
        return request.html_url or self.provider.request_url_for(self.repo(), number)

    # ------------------------------------------------------------------ #
    # Local working tree                                                   #
    # ------------------------------------------------------------------ #

    def checkout(self, number: int) -> str:
        """Check out the source branch of a request, in whatever state it is.

        Returns the local branch name.
        """
        request = self._existing(number)
        branch = request.source_branch

        if not self.local.branch_exists(branch):
            if request.source_repo:
                owner, name = request.source_repo.split("/", 1)
                remote = self.provider.remote_url_for(owner, name)
                refspec = f"{branch}:{branch}"
            else:
                # The fork is gone; the target repository still keeps the head.
                remote = "origin"
                refspec = f"pull/{number}/head:{branch}"
            logger.debug("Fetching %s from %s", refspec, remote)
            self.local.fetch(remote, refspec)

        self.local.checkout(branch)
        return branch

    # ------------------------------------------------------------------ #
    # Remote state transitions                                             #
    # ------------------------------------------------------------------ #

    def accept(self, number: int, message: str | None = None) -> Request:
        """open → merged, confirmed by fetching the request again."""
        repo = self.repo()
        self._existing(number, OPEN)
        self.provider.merge(repo, number, message)

        merged = self.provider.request_exists(repo, number, MERGED)
        if not merged:
            raise VerificationFailure(f"Request #{number} was not merged.")
        return merged

    def decline(self, number: int, comment: str | None = None) -> Request:
        """open → closed without merging, confirmed by fetching the request again."""
        repo = self.repo()
        self._existing(number, OPEN)
        self.provider.close(repo, number, comment)

        closed = self.provider.request_exists(repo, number, CLOSED)
        if not closed:
            raise VerificationFailure(f"Request #{number} was not closed.")
        return closed

    def create(self, upstream: bool = False) -> CreateResult:
        """(none) → open for the current branch.

        The returned result carries the new number only if the request could
        be found again after submission.
        """
        context = self.local.context(upstream)

        if context.current_branch == context.target_branch:
            raise GitReviewError(
                f"Cannot create a request from the target branch '{context.target_branch}'. "
                "Switch to a feature branch first."
            )
        if not context.commits:
            raise GitReviewError(
                f"Nothing to request: '{context.current_branch}' has no commits over '{context.target_branch}'."
            )
        if self.provider.request_exists_for_branch(context.target_repo, context.current_branch):
            raise RequestAlreadyExists(
                f"A request for '{context.current_branch}' already exists in {context.target_repo}."
            )

        return self.provider.send_pull_request(context, on_created=self.local.checkout)
