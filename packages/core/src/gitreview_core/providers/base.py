"""Provider capability shared by every forge implementation.

The synchronizer depends on this interface only. Algorithms that are the
same for any forge live here:

    send_pull_request() → latest_request_number()
                        → create_request()          ← forge specific
                        → on_created(base)          ← local checkout, injected
                        → request_number_by_title() → CreateResult

Subclasses implement the raw API access: fetching, creating, merging and
closing requests, and the comment streams the discussion is built from.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from gitreview_core.discussion import DiscussionAggregator
from gitreview_core.models import CreateResult

if TYPE_CHECKING:
    from gitreview_core.models import CommitEntry, DiscussionEntry, LocalContext, Request

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def configure_access(self) -> str:
        """Establish an authenticated session and return the user's login."""

    @abstractmethod
    def request_exists(self, repo: str, number: int | None, state: str | None = "open") -> Request | bool:
        """Return the request if it exists in ``state``, otherwise False.

        Not-found and a state mismatch both give False; pass ``state=None``
        to tell them apart.
        """

    @abstractmethod
    def current_requests(self, repo: str) -> list[Request]:
        """All open requests of ``repo``, across every page."""

    @abstractmethod
    def current_requests_full(self, repo: str) -> list[Request]:
        """Like current_requests() but with full detail. Order is unspecified."""

    @abstractmethod
    def create_request(self, repo: str, base: str, head: str, title: str, body: str) -> None:
        """Submit a new request. Success is verified separately."""

    @abstractmethod
    def merge(self, repo: str, number: int, message: str | None = None) -> None: ...

    @abstractmethod
    def close(self, repo: str, number: int, comment: str | None = None) -> None: ...

    @abstractmethod
    def commit_threads(self, repo: str, number: int) -> list[tuple[CommitEntry, list[DiscussionEntry]]]:
        """Commits of a request, each paired with its comments, in server order."""

    @abstractmethod
    def issue_comments(self, repo: str, number: int) -> list[DiscussionEntry]:
        """Issue-level comments followed by review comments."""

    @abstractmethod
    def comments_count(self, repo: str, request: Request) -> int: ...

    @abstractmethod
    def request_url_for(self, repo: str, number: int) -> str: ...

    @abstractmethod
    def remote_url_for(self, owner: str, name: str) -> str: ...

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def request_exists_for_branch(self, repo: str, branch: str) -> bool:
        # Linear scan: the pulls API has no source-branch filter we rely on.
        return any(r.source_branch == branch for r in self.current_requests(repo))

    def latest_request_number(self, repo: str) -> int:
        return max((r.number for r in self.current_requests(repo)), default=0)

    def request_number_by_title(self, title: str, repo: str) -> int | None:
        for request in self.current_requests(repo):
            if request.title == title:
                return request.number
        return None

    def send_pull_request(self, context: LocalContext, on_created: Callable[[str], None]) -> CreateResult:
        """Create a request from ``context`` and verify that it exists.

        The create call is not trusted to report the new number. Success
        means a request with the submitted title and a number above the
        pre-creation latest number shows up afterwards.
        """
        target_repo = context.target_repo
        base = context.target_branch
        title, body = context.title_and_body()

        latest_number = self.latest_request_number(target_repo)

        self.create_request(target_repo, base, context.head, title, body)
        on_created(base)

        new_number = self.request_number_by_title(title, target_repo)
        if new_number is not None and new_number > latest_number:
            return CreateResult(
                repo=target_repo,
                title=title,
                number=new_number,
                url=self.request_url_for(target_repo, new_number),
            )

        logger.warning(
            "No request titled %r above #%d found in %s after creation.",
            title,
            latest_number,
            target_repo,
        )
        return CreateResult(repo=target_repo, title=title)

    def commit_discussion(self, repo: str, number: int) -> list[str]:
        return DiscussionAggregator(self).commit_discussion(repo, number)

    def issue_discussion(self, repo: str, number: int) -> list[str]:
        return DiscussionAggregator(self).issue_discussion(repo, number)

    def discussion(self, repo: str, number: int) -> list[str]:
        return DiscussionAggregator(self).discussion(repo, number)
