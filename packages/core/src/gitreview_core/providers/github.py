from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable

from github import Auth, Github, GithubException, UnknownObjectException

from gitreview_core.errors import AuthenticationError, VerificationFailure
from gitreview_core.models import CommitEntry, DiscussionEntry, Request
from gitreview_core.providers.base import BaseProvider
from gitreview_core.providers.oauth import GithubAuthorizer
from gitreview_core.settings import save_settings

if TYPE_CHECKING:
    from gitreview_core.providers.oauth import CredentialPrompter
    from gitreview_core.settings import Settings

logger = logging.getLogger(__name__)

_PER_PAGE = 100


def _entry_from_comment(comment, commit_sha: str | None = None) -> DiscussionEntry:
    return DiscussionEntry(
        author=comment.user.login if comment.user is not None else "ghost",
        body=comment.body or "",
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        commit_sha=commit_sha,
        id=comment.id,
    )


def _commit_comment_count(commit) -> int:
    # PyGithub has no attribute for this counter. Read the payload already held
    # instead of raw_data, which re-fetches commits that came from a listing.
    return commit._rawData["commit"].get("comment_count", 0)


def _error_message(error: GithubException, default: str) -> str:
    if isinstance(error.data, dict) and error.data.get("message"):
        return error.data["message"]
    return default


def _entry_from_commit(commit) -> CommitEntry:
    git_commit = commit.commit
    # commit.committer is the GitHub account and is None for unknown emails.
    author = commit.committer.login if commit.committer is not None else git_commit.committer.name
    return CommitEntry(
        sha=commit.sha,
        author=author,
        message=git_commit.message,
        committed_at=git_commit.committer.date,
        comment_count=_commit_comment_count(commit),
    )


class GithubProvider(BaseProvider):
    """BaseProvider backed by PyGithub.

    The PyGithub client is created on first use. Once built it is only read,
    including from the worker threads of current_requests_full().
    """

    def __init__(
        self,
        settings: Settings,
        prompter: CredentialPrompter | None = None,
        persist: Callable[[Settings], object] = save_settings,
        authorizer: GithubAuthorizer | None = None,
    ):
        self.settings = settings
        self.prompter = prompter
        self.persist = persist
        self._authorizer = authorizer
        self._client: Github | None = None

    @property
    def client(self) -> Github:
        if self._client is None:
            self.configure_access()
        return self._client

    def configure_access(self, _retry: bool = True) -> str:
        if self.settings.has_credentials:
            self._client = Github(
                auth=Auth.Token(self.settings.oauth_token),
                base_url=self.settings.api_url,
                per_page=_PER_PAGE,
            )
            login = self._client.get_user().login
            if not self.settings.username:
                self.settings.username = login
            logger.debug("Authenticated against %s as %s", self.settings.host, login)
            return login

        if not _retry:
            raise AuthenticationError(
                f"No {self.settings.host} credentials available. Set GITHUB_TOKEN or github.token "
                "in git config or run git-review interactively to create a token."
            )
        self._configure_oauth()
        return self.configure_access(_retry=False)

    def _configure_oauth(self) -> None:
        authorizer = self._authorizer
        if authorizer is None:
            if self.prompter is None:
                return
            authorizer = GithubAuthorizer(self.settings, self.prompter, self.persist)
        try:
            authorizer.run()
        except AuthenticationError as e:
            # Only this attempt fails; the caller may try again.
            logger.warning("%s", e)

    def _repo(self, repo: str):
        return self.client.get_repo(repo, lazy=True)

    def _pull(self, repo: str, number: int):
        return self._repo(repo).get_pull(number)

    # ------------------------------------------------------------------ #
    # Requests                                                             #
    # ------------------------------------------------------------------ #

    def request_exists(self, repo: str, number: int | None, state: str | None = "open") -> Request | bool:
        if number is None:
            return False
        try:
            request = Request.from_github(self._pull(repo, number), full=True)
        except UnknownObjectException:
            logger.debug("Request #%s not found in %s", number, repo)
            return False
        if state is not None and request.state != state:
            return False
        return request

    def current_requests(self, repo: str) -> list[Request]:
        return [Request.from_github(pr) for pr in self._repo(repo).get_pulls(state="open")]

    def _fetch_full(self, repo: str, number: int) -> Request:
        return Request.from_github(self._pull(repo, number), full=True)

    def current_requests_full(self, repo: str) -> list[Request]:
        """Fetch every open request in full detail, one worker task per request.

        All tasks run to completion; the first failure observed is raised
        after the join. Results come back in completion order.
        """
        listed = self.current_requests(repo)
        if not listed:
            return []

        logger.debug("Fetching %d requests of %s in full", len(listed), repo)

        results: dict[int, Request] = {}
        first_error: BaseException | None = None
        workers = min(len(listed), self.settings.max_workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._fetch_full, repo, r.number): r.number for r in listed}
            for future in as_completed(futures):
                error = future.exception()
                if error is not None:
                    if first_error is None:
                        first_error = error
                    continue
                results[futures[future]] = future.result()

        if first_error is not None:
            raise first_error
        return list(results.values())

    def create_request(self, repo: str, base: str, head: str, title: str, body: str) -> None:
        try:
            self._repo(repo).create_pull(base=base, head=head, title=title, body=body)
        except GithubException as e:
            if e.status != 422:
                raise
            # Validation failures (no commits, duplicate request) surface
            # through the post-creation verification instead.
            logger.warning("GitHub rejected the request: %s", e.data)

    def merge(self, repo: str, number: int, message: str | None = None) -> None:
        pr = self._pull(repo, number)
        try:
            if message:
                pr.merge(commit_message=message)
            else:
                pr.merge()
        except GithubException as e:
            # 405: not mergeable, 409: head moved since it was read.
            if e.status not in (405, 409):
                raise
            raise VerificationFailure(_error_message(e, f"Request #{number} could not be merged.")) from e

    def close(self, repo: str, number: int, comment: str | None = None) -> None:
        pr = self._pull(repo, number)
        if comment:
            pr.create_issue_comment(comment)
        pr.edit(state="closed")

    # ------------------------------------------------------------------ #
    # Discussion                                                           #
    # ------------------------------------------------------------------ #

    def commit_threads(self, repo: str, number: int) -> list[tuple[CommitEntry, list[DiscussionEntry]]]:
        pr = self._pull(repo, number)
        # Commit comments live in the repository the commits were pushed to.
        head_repo = pr.head.repo or self._repo(repo)
        threads = []
        for listed in pr.get_commits():
            commit = head_repo.get_commit(listed.sha)
            comments = [_entry_from_comment(c, commit_sha=commit.sha) for c in commit.get_comments()]
            threads.append((_entry_from_commit(commit), comments))
        return threads

    def issue_comments(self, repo: str, number: int) -> list[DiscussionEntry]:
        pr = self._pull(repo, number)
        issue = [_entry_from_comment(c) for c in pr.get_issue_comments()]
        review = [_entry_from_comment(c) for c in pr.get_review_comments()]
        return issue + review

    def comments_count(self, repo: str, request: Request) -> int:
        if request.comments is None or request.review_comments is None:
            request = self._fetch_full(repo, request.number)
        commits = sum(_commit_comment_count(c) for c in self._pull(repo, request.number).get_commits())
        return request.comments + request.review_comments + commits

    # ------------------------------------------------------------------ #
    # URLs                                                                 #
    # ------------------------------------------------------------------ #

    def request_url_for(self, repo: str, number: int) -> str:
        return f"{self.settings.web_url}/{repo}/pull/{number}"

    def remote_url_for(self, owner: str, name: str) -> str:
        return f"git@{self.settings.host}:{owner}/{name}.git"
