"""Local repository adapter.

Everything git-review knows about the working tree comes from shelling out
to ``git``. Nothing here is cached: branches, remotes and commits can change
between two commands, so every call reads the current state again.

Checkout and fetch are the only side effects on the repository.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

from gitreview_core.errors import AmbiguousRepository, GitCommandError
from gitreview_core.models import LocalContext

logger = logging.getLogger(__name__)

_INSTEADOF_KEY_RE = r"url\.(.*{host}.*)\.insteadof"


def url_matching(url: str, host: str = "github.com") -> tuple[str | None, str | None]:
    """Extract (owner, name) from a remote URL that points at ``host``.

    Works for both ``git@host:owner/name.git`` and ``https://host/owner/name``.
    """
    match = re.search(rf"{re.escape(host)}.(.*?)/(.*)", url)
    if not match:
        return None, None
    name = re.sub(r"\.git$", "", match.group(2).rstrip("/"))
    return match.group(1), name


def insteadof_matching(config: dict[str, str], url: str, host: str = "github.com") -> tuple[str | None, str | None]:
    """Find the ``url.<canonical>.insteadof = <prefix>`` rule that applies to ``url``.

    Returns (prefix, canonical) for the first rule whose canonical URL
    contains ``host`` and whose prefix occurs in ``url``, else (None, None).
    """
    key_re = re.compile(_INSTEADOF_KEY_RE.format(host=re.escape(host)), re.IGNORECASE)
    for key, prefix in config.items():
        match = key_re.fullmatch(key)
        if match and prefix and prefix in url:
            return prefix, match.group(1)
    return None, None


def humanize_branch(branch: str) -> str:
    words = re.sub(r"[-_/]+", " ", branch).strip()
    return words[:1].upper() + words[1:]


def title_and_body(commits: list[tuple[str, str]], branch: str) -> tuple[str, str]:
    """Derive a request title and body from the commits it would contain.

    A single commit lends its subject and body. Several commits get the
    branch name as title and one bullet per commit subject as body.
    """
    if len(commits) == 1:
        subject, body = commits[0]
        return subject, body.strip()
    title = humanize_branch(branch)
    body = "\n".join(f"- {subject}" for subject, _ in commits)
    return title, body


class LocalRepository:
    """Reads and mutates the git repository at ``path`` (cwd by default)."""

    def __init__(self, path: str | Path | None = None, host: str = "github.com", default_target: str = "master"):
        self.path = Path(path) if path else None
        self.host = host
        self.default_target = default_target

    def _git(self, *args: str, check: bool = True) -> str:
        cmd = list(args)
        logger.debug("git %s", " ".join(cmd))
        result = subprocess.run(
            ["git", *cmd],
            cwd=self.path,
            capture_output=True,
            text=True,
        )
        if check and result.returncode != 0:
            raise GitCommandError(cmd, result.returncode, result.stderr)
        return result.stdout.strip()

    # ------------------------------------------------------------------ #
    # Read-only state                                                      #
    # ------------------------------------------------------------------ #

    def config(self) -> dict[str, str]:
        """Return ``git config --list`` as a dict. Later entries win."""
        output = self._git("config", "--list", check=False)
        config: dict[str, str] = {}
        for line in output.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                config[key] = value
        return config

    def current_branch(self) -> str:
        return self._git("rev-parse", "--abbrev-ref", "HEAD")

    def head_sha(self) -> str:
        return self._git("rev-parse", "HEAD")

    def target_branch(self) -> str:
        return os.environ.get("TARGET_BRANCH") or self.default_target

    def branch_exists(self, name: str) -> bool:
        output = self._git("rev-parse", "--verify", "--quiet", f"refs/heads/{name}", check=False)
        return bool(output)

    def remote_url(self, remote: str = "origin", config: dict[str, str] | None = None) -> str | None:
        config = config if config is not None else self.config()
        return config.get(f"remote.{remote}.url")

    def repo_info(self, remote: str = "origin") -> tuple[str | None, str | None]:
        """Resolve a remote to (owner, name), honouring insteadof rewrites."""
        config = self.config()
        url = self.remote_url(remote, config)
        if not url:
            return None, None

        owner, name = url_matching(url, self.host)
        if owner is not None:
            return owner, name

        prefix, canonical = insteadof_matching(config, url, self.host)
        if prefix is None:
            return None, None
        rewritten = url.replace(prefix, canonical, 1)
        logger.debug("Rewrote %s to %s via insteadof", url, rewritten)
        return url_matching(rewritten, self.host)

    def source_repo(self) -> str:
        owner, name = self.repo_info("origin")
        if owner is None:
            raise AmbiguousRepository(
                f"Cannot determine the {self.host} repository of remote 'origin'. "
                "Check `git remote -v` and any url.*.insteadof rules."
            )
        return f"{owner}/{name}"

    def upstream_repo(self) -> str | None:
        owner, name = self.repo_info("upstream")
        return f"{owner}/{name}" if owner is not None else None

    def target_repo(self, upstream: bool = False) -> str:
        if upstream:
            repo = self.upstream_repo()
            if repo:
                return repo
            logger.warning("No 'upstream' remote configured; targeting %s instead.", self.source_repo())
        return self.source_repo()

    def commits_between(self, base: str) -> list[tuple[str, str]]:
        """(subject, body) of every commit on HEAD that is not on ``base``, oldest first."""
        output = self._git("log", "--reverse", "--format=%s%x1f%b%x1e", f"{base}..HEAD")
        commits = []
        for record in output.split("\x1e"):
            record = record.strip("\n")
            if not record:
                continue
            subject, _, body = record.partition("\x1f")
            commits.append((subject, body))
        return commits

    def create_title_and_body(self, base: str) -> tuple[str, str]:
        return title_and_body(self.commits_between(base), self.current_branch())

    def diff(self, sha: str, full: bool = False) -> str:
        args = ["diff", "--color=always"]
        if not full:
            args.append("--stat")
        args.append(f"HEAD...{sha}")
        return self._git(*args)

    def context(self, upstream: bool = False) -> LocalContext:
        source_repo = self.source_repo()
        branch = self.current_branch()
        target = self.target_branch()
        owner = source_repo.split("/", 1)[0]
        return LocalContext(
            current_branch=branch,
            target_branch=target,
            source_repo=source_repo,
            target_repo=self.target_repo(upstream),
            head=f"{owner}:{branch}",
            upstream_repo=self.upstream_repo(),
            commits=self.commits_between(target),
        )

    # ------------------------------------------------------------------ #
    # Side effects                                                         #
    # ------------------------------------------------------------------ #

    def checkout(self, ref: str) -> None:
        self._git("checkout", ref)

    def fetch(self, remote: str, refspec: str) -> None:
        self._git("fetch", remote, refspec)
