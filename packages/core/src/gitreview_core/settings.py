from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = ".git_review.yml"

DEFAULT_SETTINGS: dict = {
    "host": "github.com",
    "username": None,
    "oauth_token": None,
    "target_branch": "master",
    "max_workers": 8,
}

# git config keys read as a fallback for the settings file.
_GIT_CONFIG_KEYS = {
    "github.host": "host",
    "github.user": "username",
    "github.token": "oauth_token",
}

# Only these keys are written back by save_settings().
_PERSISTED_KEYS = ("host", "username", "oauth_token")


@dataclass
class Settings:
    """Process-wide forge settings.

    Loaded once at startup and handed to the provider and synchronizer.
    Only the authorization flow mutates it, and only save_settings()
    writes it back to disk.
    """

    host: str = DEFAULT_SETTINGS["host"]
    username: str | None = None
    oauth_token: str | None = None
    target_branch: str = DEFAULT_SETTINGS["target_branch"]
    max_workers: int = DEFAULT_SETTINGS["max_workers"]
    path: Path | None = field(default=None, repr=False, compare=False)

    @property
    def has_credentials(self) -> bool:
        # The login is looked up from the token when no username is stored.
        return bool(self.oauth_token)

    @property
    def api_url(self) -> str:
        if self.host == "github.com":
            return "https://api.github.com"
        return f"https://{self.host}/api/v3"

    @property
    def web_url(self) -> str:
        return f"https://{self.host}"


def default_settings_path() -> Path:
    env_path = os.environ.get("GIT_REVIEW_SETTINGS")
    if env_path:
        return Path(env_path)
    return Path.home() / SETTINGS_FILENAME


def load_settings(path: Optional[str | Path] = None, git_config: Optional[dict] = None) -> Settings:
    """
    Load settings by merging (in order of precedence):
      1. Built-in defaults
      2. github.host / github.user / github.token from git config
      3. The YAML settings file (~/.git_review.yml unless overridden)
      4. The GITHUB_TOKEN environment variable
    """
    values = dict(DEFAULT_SETTINGS)

    for git_key, name in _GIT_CONFIG_KEYS.items():
        value = (git_config or {}).get(git_key)
        if value:
            values[name] = value

    settings_path = Path(path) if path else default_settings_path()
    if settings_path.exists():
        with open(settings_path) as f:
            file_values = yaml.safe_load(f) or {}
        values.update({k: v for k, v in file_values.items() if k in DEFAULT_SETTINGS and v is not None})

    token = os.environ.get("GITHUB_TOKEN")
    if token:
        values["oauth_token"] = token

    values["max_workers"] = max(1, int(values["max_workers"]))
    return Settings(path=settings_path, **values)


def save_settings(settings: Settings, path: Optional[str | Path] = None) -> Path:
    """Write host, username and token back to the settings file.

    Keys the file already holds that git-review does not manage are kept.
    """
    settings_path = Path(path) if path else (settings.path or default_settings_path())

    existing: dict = {}
    if settings_path.exists():
        with open(settings_path) as f:
            existing = yaml.safe_load(f) or {}

    for key in _PERSISTED_KEYS:
        existing[key] = getattr(settings, key)

    settings_path.parent.mkdir(parents=True, exist_ok=True)
    with open(settings_path, "w") as f:
        yaml.safe_dump(existing, f, default_flow_style=False)
    # The file holds an OAuth token.
    os.chmod(settings_path, 0o600)

    logger.debug("Saved settings to %s", settings_path)
    return settings_path
