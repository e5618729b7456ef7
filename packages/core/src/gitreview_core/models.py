"""Value objects shared by the provider, the local adapter and the synchronizer.

All of them are transient copies. The forge stays authoritative for
requests and discussions, and git stays authoritative for LocalContext.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

OPEN = "open"
CLOSED = "closed"
MERGED = "merged"


@dataclass
class Request:
    """A remote pull request."""

    number: int
    title: str
    state: str  # "open" | "closed" | "merged"
    source_branch: str
    target_branch: str
    source_repo: str | None
    target_repo: str
    body: str = ""
    head_sha: str = ""
    author: str = ""
    html_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    # None until the request is fetched in full detail.
    comments: int | None = None
    review_comments: int | None = None

    @classmethod
    def from_github(cls, pr, full: bool = False) -> Request:
        """Build a Request from a PyGithub PullRequest.

        The list endpoint does not carry comment counters; reading them on a
        listed object would make PyGithub fetch the full object, so they are
        only read when ``full`` is set.
        """
        head_repo = pr.head.repo
        return cls(
            number=pr.number,
            title=pr.title or "",
            state=MERGED if pr.merged_at is not None else pr.state,
            source_branch=pr.head.ref,
            target_branch=pr.base.ref,
            source_repo=head_repo.full_name if head_repo is not None else None,
            target_repo=pr.base.repo.full_name,
            body=pr.body or "",
            head_sha=pr.head.sha,
            author=pr.user.login if pr.user is not None else "",
            html_url=pr.html_url,
            created_at=pr.created_at,
            updated_at=pr.updated_at,
            comments=pr.comments if full else None,
            review_comments=pr.review_comments if full else None,
        )


@dataclass(frozen=True)
class DiscussionEntry:
    """One comment on a commit, an issue thread or a review thread."""

    author: str
    body: str
    created_at: datetime
    updated_at: datetime | None = None
    commit_sha: str | None = None
    id: int | None = None

    @property
    def edited(self) -> bool:
        return self.updated_at is not None and self.updated_at != self.created_at


@dataclass(frozen=True)
class CommitEntry:
    sha: str
    author: str
    message: str
    committed_at: datetime
    comment_count: int = 0

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass
class LocalContext:
    """Snapshot of the local repository, recomputed for every operation."""

    current_branch: str
    target_branch: str
    source_repo: str
    target_repo: str
    head: str  # "owner:branch", as the pulls API expects for cross-repo requests
    upstream_repo: str | None = None
    # (subject, body) per commit on current_branch but not on target_branch, oldest first.
    commits: list[tuple[str, str]] = field(default_factory=list)

    def title_and_body(self) -> tuple[str, str]:
        from gitreview_core.local import title_and_body

        return title_and_body(self.commits, self.current_branch)


@dataclass
class CreateResult:
    """Outcome of send_pull_request(); number is set only when creation was verified."""

    repo: str
    title: str
    number: int | None = None
    url: str | None = None

    @property
    def success(self) -> bool:
        return self.number is not None
