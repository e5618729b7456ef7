"""Tests for the PyGithub-backed provider.

The PyGithub client is replaced by MagicMock objects shaped like the
PullRequest / Commit / Comment objects the provider reads.
"""

import random
import threading
import time
import types
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from github import GithubException, UnknownObjectException

from gitreview_core.errors import AuthenticationError, UnprocessableState, VerificationFailure
from gitreview_core.models import Request
from gitreview_core.providers.github import GithubProvider
from gitreview_core.settings import Settings

JULY_13 = datetime(2024, 7, 13, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _pr(number, title="Change", state="open", merged=False, branch="topic", comments=0, review_comments=0):
    pr = MagicMock()
    pr.number = number
    pr.title = title
    pr.body = "body"
    pr.state = state
    pr.merged_at = JULY_13 if merged else None
    pr.head.ref = branch
    pr.head.sha = "f" * 40
    pr.head.repo.full_name = "me/repo"
    pr.base.ref = "master"
    pr.base.repo.full_name = "org/repo"
    pr.user.login = "alice"
    pr.html_url = f"https://github.com/org/repo/pull/{number}"
    pr.created_at = JULY_13
    pr.updated_at = JULY_13
    pr.comments = comments
    pr.review_comments = review_comments
    return pr


def _not_found():
    return UnknownObjectException(404, {"message": "Not Found"}, None)


def _provider(pulls=()):
    """Provider with a fake client serving ``pulls`` from list and detail endpoints."""
    provider = GithubProvider(Settings(username="alice", oauth_token="tok", max_workers=4))
    client = MagicMock()
    repo = client.get_repo.return_value
    by_number = {pr.number: pr for pr in pulls}

    def get_pull(number):
        if number not in by_number:
            raise _not_found()
        return by_number[number]

    repo.get_pulls.return_value = list(pulls)
    repo.get_pull.side_effect = get_pull
    provider._client = client
    return provider, repo


def _comment(id, body, login="bob"):
    return types.SimpleNamespace(
        id=id,
        body=body,
        user=types.SimpleNamespace(login=login),
        created_at=JULY_13,
        updated_at=JULY_13,
    )


def _commit(sha, message="msg", comment_count=0, login="alice"):
    commit = MagicMock()
    commit.sha = sha
    commit.committer.login = login
    commit.commit.message = message
    commit.commit.committer.date = JULY_13
    commit._rawData = {"commit": {"comment_count": comment_count}}
    return commit


# ---------------------------------------------------------------------------
# request_exists
# ---------------------------------------------------------------------------


class TestRequestExists:
    def test_returns_request_when_open(self):
        provider, _ = _provider([_pr(5)])
        request = provider.request_exists("org/repo", 5)
        assert isinstance(request, Request)
        assert request.number == 5

    def test_false_when_not_found(self):
        provider, _ = _provider([])
        assert provider.request_exists("org/repo", 404) is False

    def test_false_for_none_number(self):
        provider, repo = _provider([])
        assert provider.request_exists("org/repo", None) is False
        repo.get_pull.assert_not_called()

    def test_closed_request_does_not_match_open_filter(self):
        provider, _ = _provider([_pr(5, state="closed")])
        assert provider.request_exists("org/repo", 5, "open") is False

    def test_no_filter_returns_any_state(self):
        provider, _ = _provider([_pr(5, state="closed")])
        assert provider.request_exists("org/repo", 5, None).state == "closed"

    def test_merged_state_derived_from_merge_timestamp(self):
        provider, _ = _provider([_pr(5, state="closed", merged=True)])
        assert provider.request_exists("org/repo", 5, "closed") is False
        assert provider.request_exists("org/repo", 5, "merged").state == "merged"

    def test_full_detail_includes_counters(self):
        provider, _ = _provider([_pr(5, comments=3, review_comments=2)])
        request = provider.request_exists("org/repo", 5)
        assert (request.comments, request.review_comments) == (3, 2)

    def test_other_errors_propagate(self):
        provider, repo = _provider([])
        repo.get_pull.side_effect = GithubException(500, {"message": "boom"}, None)
        with pytest.raises(GithubException):
            provider.request_exists("org/repo", 1)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestCurrentRequests:
    def test_lists_open_requests_without_counters(self):
        provider, repo = _provider([_pr(1), _pr(2)])
        requests = provider.current_requests("org/repo")
        assert [r.number for r in requests] == [1, 2]
        assert requests[0].comments is None
        repo.get_pulls.assert_called_once_with(state="open")

    def test_deleted_fork_has_no_source_repo(self):
        pr = _pr(1)
        pr.head.repo = None
        provider, _ = _provider([pr])
        assert provider.current_requests("org/repo")[0].source_repo is None


class TestCurrentRequestsFull:
    def test_one_result_per_listed_request(self):
        pulls = [_pr(n, comments=n) for n in range(1, 21)]
        provider, repo = _provider(pulls)
        by_number = {pr.number: pr for pr in pulls}

        def slow_get_pull(number):
            time.sleep(random.uniform(0, 0.01))
            return by_number[number]

        repo.get_pull.side_effect = slow_get_pull

        requests = provider.current_requests_full("org/repo")

        numbers = [r.number for r in requests]
        assert sorted(numbers) == list(range(1, 21))
        assert len(set(numbers)) == len(numbers)
        assert all(r.comments == r.number for r in requests)

    def test_empty_repository(self):
        provider, repo = _provider([])
        assert provider.current_requests_full("org/repo") == []
        repo.get_pull.assert_not_called()

    def test_first_failure_raised_after_all_tasks_ran(self):
        pulls = [_pr(n) for n in range(1, 6)]
        provider, repo = _provider(pulls)
        by_number = {pr.number: pr for pr in pulls}
        seen = []
        lock = threading.Lock()

        def get_pull(number):
            with lock:
                seen.append(number)
            if number == 3:
                raise GithubException(502, {"message": "bad gateway"}, None)
            return by_number[number]

        repo.get_pull.side_effect = get_pull

        with pytest.raises(GithubException):
            provider.current_requests_full("org/repo")
        assert sorted(seen) == [1, 2, 3, 4, 5]

    def test_workers_bounded_by_settings(self, mocker):
        provider, _ = _provider([_pr(n) for n in range(1, 11)])
        executor = mocker.patch(
            "gitreview_core.providers.github.ThreadPoolExecutor",
            wraps=ThreadPoolExecutor,
        )
        provider.current_requests_full("org/repo")
        assert executor.call_args.kwargs["max_workers"] == 4


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestMutations:
    def test_create_request(self):
        provider, repo = _provider([])
        provider.create_request("org/repo", "master", "me:topic", "Title", "Body")
        repo.create_pull.assert_called_once_with(base="master", head="me:topic", title="Title", body="Body")

    def test_create_validation_error_is_logged_not_raised(self):
        provider, repo = _provider([])
        repo.create_pull.side_effect = GithubException(422, {"message": "Validation Failed"}, None)
        provider.create_request("org/repo", "master", "me:topic", "Title", "Body")

    def test_create_server_error_propagates(self):
        provider, repo = _provider([])
        repo.create_pull.side_effect = GithubException(500, {"message": "boom"}, None)
        with pytest.raises(GithubException):
            provider.create_request("org/repo", "master", "me:topic", "Title", "Body")

    def test_merge_with_message(self):
        pr = _pr(5)
        provider, _ = _provider([pr])
        provider.merge("org/repo", 5, "Ship it")
        pr.merge.assert_called_once_with(commit_message="Ship it")

    def test_merge_without_message(self):
        pr = _pr(5)
        provider, _ = _provider([pr])
        provider.merge("org/repo", 5)
        pr.merge.assert_called_once_with()

    @pytest.mark.parametrize("status", [405, 409])
    def test_unmergeable_request_raises_verification_failure(self, status):
        pr = _pr(5)
        pr.merge.side_effect = GithubException(status, {"message": "Pull Request is not mergeable"}, None)
        provider, _ = _provider([pr])
        with pytest.raises(VerificationFailure, match="not mergeable"):
            provider.merge("org/repo", 5)

    def test_unmergeable_without_message_body(self):
        pr = _pr(5)
        pr.merge.side_effect = GithubException(405, None, None)
        provider, _ = _provider([pr])
        with pytest.raises(VerificationFailure, match="#5 could not be merged"):
            provider.merge("org/repo", 5)

    def test_other_merge_errors_propagate(self):
        pr = _pr(5)
        pr.merge.side_effect = GithubException(500, {"message": "boom"}, None)
        provider, _ = _provider([pr])
        with pytest.raises(GithubException):
            provider.merge("org/repo", 5)

    def test_close_with_comment(self):
        pr = _pr(5)
        provider, _ = _provider([pr])
        provider.close("org/repo", 5, "Superseded by #6")
        pr.create_issue_comment.assert_called_once_with("Superseded by #6")
        pr.edit.assert_called_once_with(state="closed")

    def test_close_without_comment(self):
        pr = _pr(5)
        provider, _ = _provider([pr])
        provider.close("org/repo", 5)
        pr.create_issue_comment.assert_not_called()


# ---------------------------------------------------------------------------
# Discussion and counters
# ---------------------------------------------------------------------------


class TestDiscussionSources:
    def test_commit_threads_pair_commits_with_comments(self):
        pr = _pr(5)
        listed = [types.SimpleNamespace(sha="a" * 40), types.SimpleNamespace(sha="b" * 40)]
        pr.get_commits.return_value = listed
        full = {"a" * 40: _commit("a" * 40, "first"), "b" * 40: _commit("b" * 40, "second")}
        full["a" * 40].get_comments.return_value = [_comment(1, "nice")]
        full["b" * 40].get_comments.return_value = []
        pr.head.repo.get_commit.side_effect = lambda sha: full[sha]
        provider, _ = _provider([pr])

        threads = provider.commit_threads("org/repo", 5)

        assert [c.message for c, _ in threads] == ["first", "second"]
        assert [e.body for e in threads[0][1]] == ["nice"]
        assert threads[0][1][0].commit_sha == "a" * 40
        assert threads[1][1] == []

    def test_commit_without_github_account_uses_git_name(self):
        pr = _pr(5)
        pr.get_commits.return_value = [types.SimpleNamespace(sha="a" * 40)]
        commit = _commit("a" * 40)
        commit.committer = None
        commit.commit.committer.name = "Jane Doe"
        commit.get_comments.return_value = []
        pr.head.repo.get_commit.return_value = commit
        provider, _ = _provider([pr])
        assert provider.commit_threads("org/repo", 5)[0][0].author == "Jane Doe"

    def test_issue_comments_before_review_comments(self):
        pr = _pr(5)
        pr.get_issue_comments.return_value = [_comment(1, "issue")]
        pr.get_review_comments.return_value = [_comment(2, "review")]
        provider, _ = _provider([pr])
        assert [e.body for e in provider.issue_comments("org/repo", 5)] == ["issue", "review"]

    def test_discussion_concatenates_segments(self):
        pr = _pr(5)
        pr.get_commits.return_value = [types.SimpleNamespace(sha="a" * 40)]
        commit = _commit("a" * 40)
        commit.get_comments.return_value = []
        pr.head.repo.get_commit.return_value = commit
        pr.get_issue_comments.return_value = [_comment(1, "issue")]
        pr.get_review_comments.return_value = []
        provider, _ = _provider([pr])
        assert len(provider.discussion("org/repo", 5)) == 2 + 2

    def test_comments_count_adds_three_counters(self):
        pr = _pr(5, comments=8, review_comments=3)
        pr.get_commits.return_value = [_commit("a" * 40, comment_count=2), _commit("b" * 40, comment_count=1)]
        provider, _ = _provider([pr])
        request = provider.request_exists("org/repo", 5)
        assert provider.comments_count("org/repo", request) == 8 + 3 + 3

    def test_comments_count_reads_listed_commits_without_refetching(self):
        pr = _pr(5, comments=0, review_comments=0)
        # Listed commits carry the counter in their payload; raw_data would re-fetch.
        listed = types.SimpleNamespace(sha="a" * 40, _rawData={"commit": {"comment_count": 4}})
        pr.get_commits.return_value = [listed]
        provider, repo = _provider([pr])
        request = provider.request_exists("org/repo", 5)
        assert provider.comments_count("org/repo", request) == 4
        repo.get_commit.assert_not_called()

    def test_comments_count_fetches_counters_for_listed_request(self):
        pr = _pr(5, comments=1, review_comments=1)
        pr.get_commits.return_value = []
        provider, _ = _provider([pr])
        listed = provider.current_requests("org/repo")[0]
        assert provider.comments_count("org/repo", listed) == 2


class TestUrls:
    def test_request_url(self):
        provider, _ = _provider([])
        assert provider.request_url_for("org/repo", 7) == "https://github.com/org/repo/pull/7"

    def test_remote_url(self):
        provider, _ = _provider([])
        assert provider.remote_url_for("me", "repo") == "git@github.com:me/repo.git"


# ---------------------------------------------------------------------------
# configure_access
# ---------------------------------------------------------------------------


class TestConfigureAccess:
    def test_uses_stored_token(self, mocker):
        github_cls = mocker.patch("gitreview_core.providers.github.Github")
        github_cls.return_value.get_user.return_value.login = "alice"
        provider = GithubProvider(Settings(username="alice", oauth_token="tok"))

        assert provider.configure_access() == "alice"
        assert github_cls.call_args.kwargs["base_url"] == "https://api.github.com"

    def test_client_is_created_lazily(self, mocker):
        github_cls = mocker.patch("gitreview_core.providers.github.Github")
        provider = GithubProvider(Settings(username="alice", oauth_token="tok"))
        github_cls.assert_not_called()
        assert provider.client is github_cls.return_value
        assert provider.client is github_cls.return_value
        github_cls.assert_called_once()

    def test_runs_authorization_then_retries(self, mocker):
        github_cls = mocker.patch("gitreview_core.providers.github.Github")
        github_cls.return_value.get_user.return_value.login = "alice"
        settings = Settings()
        authorizer = MagicMock()

        def run():
            settings.username = "alice"
            settings.oauth_token = "new"

        authorizer.run.side_effect = run
        provider = GithubProvider(settings, authorizer=authorizer)

        assert provider.configure_access() == "alice"
        authorizer.run.assert_called_once()

    def test_failed_authentication_is_reported_once(self, mocker):
        mocker.patch("gitreview_core.providers.github.Github")
        authorizer = MagicMock()
        authorizer.run.side_effect = AuthenticationError()
        provider = GithubProvider(Settings(), authorizer=authorizer)

        with pytest.raises(AuthenticationError):
            provider.configure_access()
        authorizer.run.assert_called_once()

    def test_unprocessable_state_propagates(self, mocker):
        mocker.patch("gitreview_core.providers.github.Github")
        authorizer = MagicMock()
        authorizer.run.side_effect = UnprocessableState("Bad credentials")
        provider = GithubProvider(Settings(), authorizer=authorizer)

        with pytest.raises(UnprocessableState, match="Bad credentials"):
            provider.configure_access()

    def test_no_prompter_and_no_credentials(self, mocker):
        github_cls = mocker.patch("gitreview_core.providers.github.Github")
        with pytest.raises(AuthenticationError):
            GithubProvider(Settings()).configure_access()
        github_cls.assert_not_called()

    def test_token_without_username_looks_up_login(self, mocker):
        github_cls = mocker.patch("gitreview_core.providers.github.Github")
        github_cls.return_value.get_user.return_value.login = "octocat"
        settings = Settings(oauth_token="tok")
        authorizer = MagicMock()
        provider = GithubProvider(settings, authorizer=authorizer)

        assert provider.configure_access() == "octocat"
        assert settings.username == "octocat"
        authorizer.run.assert_not_called()

    def test_stored_username_is_kept(self, mocker):
        github_cls = mocker.patch("gitreview_core.providers.github.Github")
        github_cls.return_value.get_user.return_value.login = "octocat"
        settings = Settings(username="alice", oauth_token="tok")
        GithubProvider(settings).configure_access()
        assert settings.username == "alice"
