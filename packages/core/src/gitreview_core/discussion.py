"""Discussion aggregation for a single request.

A request's discussion is two segments, always in this order:

  1. commits: one header per commit, followed by that commit's comments
  2. comments: issue-level comments, then review comments

Each source keeps the order the server returned. The segments are not
interleaved by timestamp; display code relies on the two-segment layout.

Lines are rich console markup. Anything coming from users (names, messages,
comment bodies) is escaped so it cannot inject markup.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from rich.markup import escape

if TYPE_CHECKING:
    from gitreview_core.models import CommitEntry, DiscussionEntry

COMMITS_HEADER = "Commits on pull request:\n"
COMMENTS_HEADER = "\nComments on pull request:\n"

REVIEW_TIME_FORMAT = "%d-%b-%y %H:%M"


class DiscussionSource(Protocol):
    def commit_threads(self, repo: str, number: int) -> list[tuple[CommitEntry, list[DiscussionEntry]]]: ...

    def issue_comments(self, repo: str, number: int) -> list[DiscussionEntry]: ...


def review_time(value: datetime | None) -> str:
    return value.strftime(REVIEW_TIME_FORMAT) if value else "unknown date"


def _block(markup: str, plain: str, body: str) -> str:
    underline = "-" * (len(plain) + 1)
    return f"{markup}:\n{underline}\n{escape(body)}\n"


def format_commit(commit: CommitEntry) -> str:
    when = review_time(commit.committed_at)
    plain = f"{commit.author} committed {commit.short_sha} on {when}"
    markup = f"[magenta]{escape(commit.author)}[/magenta] committed [cyan]{commit.short_sha}[/cyan] on {when}"
    return _block(markup, plain, commit.message)


def format_comment(entry: DiscussionEntry) -> str:
    anchor = entry.commit_sha[:7] if entry.commit_sha else f"#{entry.id}"
    when = review_time(entry.created_at)
    plain = f"{entry.author} added a comment to {anchor} on {when}"
    markup = f"[magenta]{escape(entry.author)}[/magenta] added a comment to [cyan]{anchor}[/cyan] on {when}"
    if entry.edited:
        suffix = f" (updated on {review_time(entry.updated_at)})"
        plain += suffix
        markup += suffix
    return _block(markup, plain, entry.body)


class DiscussionAggregator:
    def __init__(self, source: DiscussionSource):
        self.source = source

    def commit_discussion(self, repo: str, number: int) -> list[str]:
        lines: list[str] = []
        for commit, comments in self.source.commit_threads(repo, number):
            lines.append(format_commit(commit))
            lines.extend(format_comment(comment) for comment in comments)
        return [COMMITS_HEADER, *lines] if lines else []

    def issue_discussion(self, repo: str, number: int) -> list[str]:
        lines = [format_comment(comment) for comment in self.source.issue_comments(repo, number)]
        return [COMMENTS_HEADER, *lines] if lines else []

    def discussion(self, repo: str, number: int) -> list[str]:
        return self.commit_discussion(repo, number) + self.issue_discussion(repo, number)
