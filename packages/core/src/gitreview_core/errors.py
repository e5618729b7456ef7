"""git-review exception classes.

Provider and local adapters translate expected failures (not-found, bad
credentials, unresolvable remotes) into these types at their boundary.
Transport errors for anything unexpected (network failures, 5xx) are not
wrapped and propagate unmodified.
"""

from __future__ import annotations


class GitReviewError(Exception):
    """Base exception for all git-review errors."""


class AuthenticationError(GitReviewError):
    """Raised when the forge rejects the supplied username/password."""

    def __init__(self, message: str = "Authentication failed: wrong username or password."):
        super().__init__(message)


class UnprocessableState(GitReviewError):
    """Raised when the authorization endpoint answers with something unexpected."""


class VerificationFailure(GitReviewError):
    """Raised when a remote state transition cannot be confirmed by re-fetching."""


class AmbiguousRepository(GitReviewError):
    """Raised when a remote URL cannot be resolved to an owner/name pair."""


class RequestNotFound(GitReviewError):
    """Raised by user-facing operations when a request does not exist."""

    def __init__(self, number: int, state: str | None = None):
        self.number = number
        self.state = state
        qualifier = f"{state} " if state else ""
        super().__init__(f"There is no {qualifier}request #{number}.")


class RequestAlreadyExists(GitReviewError):
    """Raised when creating a request for a branch that already has one."""


class GitCommandError(GitReviewError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"`git {' '.join(args)}` failed ({returncode}): {stderr.strip()}")
