"""Resolve and persist the settings used to publish the built blog.

This module powers the ``blog publish|deploy|clean`` sub-commands by:

* Loading / persisting publish settings in ``~/.config/blog-pages/config.toml``.
* Merging CLI values, environment variables, stored settings and the
  ``publish:`` block of ``site.yaml`` into one :class:`PublishSettings`.
* Turning those settings into the :class:`~blog_pages.publish.PublishTarget`
  and :class:`~blog_pages.publish.PublishOptions` the publisher consumes.

Git credentials are never stored here; git picks them up from the ambient
credential helper or SSH agent.
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ
from pathlib import Path

import tomlkit
import tomlkit.exceptions
import tomlkit.items

from blog_pages._constants import (
    DEFAULT_BRANCH,
    DEFAULT_GIT_USER_EMAIL,
    DEFAULT_GIT_USER_NAME,
    DEFAULT_TIMEOUT,
)
from blog_pages.config import ConfigurationError
from blog_pages.publish import DEFAULT_CACHE_DIR, PublishOptions, PublishTarget

if typ.TYPE_CHECKING:
    from blog_pages.config import PublishDefaults


DEFAULT_CONFIG_PATH = Path(
    os.getenv(
        "BLOG_PAGES_CONFIG_FILE",
        Path.home() / ".config" / "blog-pages" / "config.toml",
    )
)

_CONFIG_FILE_MODE = 0o600


@dc.dataclass(slots=True)
class PublishSettings:
    """Resolved settings for one publish run."""

    repo: str
    branch: str = DEFAULT_BRANCH
    commit_message: str | None = None
    timeout: float | None = DEFAULT_TIMEOUT
    cache_dir: Path = DEFAULT_CACHE_DIR
    user_name: str = DEFAULT_GIT_USER_NAME
    user_email: str = DEFAULT_GIT_USER_EMAIL

    def target(self, local_dir: Path) -> PublishTarget:
        """Return the publish target for ``local_dir``."""
        return PublishTarget(local_dir=local_dir, repo=self.repo, branch=self.branch)

    def options(self, *, workspace: Path | None = None) -> PublishOptions:
        """Return publisher options reflecting these settings."""
        return PublishOptions(
            message=self.commit_message,
            timeout=self.timeout,
            workspace=workspace,
            cache_dir=self.cache_dir,
            user_name=self.user_name,
            user_email=self.user_email,
        )


@dc.dataclass(slots=True)
class StoredSettings:
    """Raw values found in ``config.toml``."""

    publish: dict[str, typ.Any] = dc.field(default_factory=dict)
    git: dict[str, typ.Any] = dc.field(default_factory=dict)


def _load_config(path: Path = DEFAULT_CONFIG_PATH) -> StoredSettings:
    if not path.exists():
        return StoredSettings()
    try:
        data = tomlkit.parse(path.read_text(encoding="utf-8"))
    except tomlkit.exceptions.ParseError as exc:
        msg = f"Unable to parse config TOML at {path}"
        raise ConfigurationError(msg) from exc

    def _as_dict(table: typ.Any) -> dict[str, typ.Any]:
        return {k: v for k, v in table.items()} if table else {}

    return StoredSettings(
        publish=_as_dict(data.get("publish")),
        git=_as_dict(data.get("git")),
    )


def _parse_timeout(value: object) -> float | None:
    """Return a positive timeout in seconds, or ``None`` for ``0``/no limit."""
    if value is None:
        return None
    if isinstance(value, bool):
        msg = f"Invalid timeout: {value!r}"
        raise ConfigurationError(msg)
    try:
        seconds = float(typ.cast(typ.Any, value))
    except (TypeError, ValueError) as exc:
        msg = f"Invalid timeout: {value!r}"
        raise ConfigurationError(msg) from exc
    if seconds < 0:
        msg = f"Timeout must not be negative: {value!r}"
        raise ConfigurationError(msg)
    return seconds or None


def _first(*values: object) -> typ.Any:
    """Return the first value that is neither ``None`` nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def save_settings(settings: PublishSettings, *, path: Path = DEFAULT_CONFIG_PATH) -> None:
    """Persist settings back into ``config.toml`` preserving formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        doc = tomlkit.parse(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        doc = tomlkit.document()
    except tomlkit.exceptions.ParseError as exc:
        msg = f"Unable to parse config TOML at {path}"
        raise ConfigurationError(msg) from exc

    def _table(name: str) -> tomlkit.items.Table:
        table = doc.get(name)
        if not isinstance(table, tomlkit.items.Table):
            table = tomlkit.table()
        return table

    publish_table = _table("publish")
    git_table = _table("git")

    def _set(table: tomlkit.items.Table, key: str, value: object | None) -> None:
        if value is None:
            table.pop(key, None)
        else:
            table[key] = value

    _set(publish_table, "repo", settings.repo)
    _set(publish_table, "branch", settings.branch)
    _set(publish_table, "commit_message", settings.commit_message)
    _set(publish_table, "timeout", settings.timeout if settings.timeout is not None else 0)
    _set(publish_table, "cache_dir", str(settings.cache_dir))
    _set(git_table, "user_name", settings.user_name)
    _set(git_table, "user_email", settings.user_email)

    doc["publish"] = publish_table
    doc["git"] = git_table

    path.write_text(tomlkit.dumps(doc), encoding="utf-8")
    os.chmod(path, _CONFIG_FILE_MODE)


def resolve_publish_settings(
    *,
    config_path: Path = DEFAULT_CONFIG_PATH,
    site_defaults: PublishDefaults | None = None,
    repo: str | None = None,
    branch: str | None = None,
    commit_message: str | None = None,
    timeout: float | None = None,
    cache_dir: Path | None = None,
    user_name: str | None = None,
    user_email: str | None = None,
    save: bool = False,
) -> PublishSettings:
    """Merge CLI, environment, stored settings, and ``site.yaml`` defaults.

    Raises
    ------
    ConfigurationError
        If no repository URL can be found or a stored value is invalid.
    """

    stored = _load_config(config_path)
    site_repo = site_defaults.repo if site_defaults else None
    site_branch = site_defaults.branch if site_defaults else None

    resolved_repo = _first(
        repo, os.getenv("BLOG_PAGES_REPO"), stored.publish.get("repo"), site_repo
    )
    if not resolved_repo:
        msg = (
            "A publish repository is required. "
            "Provide it via --repo, BLOG_PAGES_REPO, config.toml, or site.yaml."
        )
        raise ConfigurationError(msg)

    raw_timeout = _first(
        timeout,
        os.getenv("BLOG_PAGES_TIMEOUT"),
        stored.publish.get("timeout"),
        DEFAULT_TIMEOUT,
    )
    resolved_cache = _first(
        cache_dir, os.getenv("BLOG_PAGES_CACHE_DIR"), stored.publish.get("cache_dir")
    )

    settings = PublishSettings(
        repo=str(resolved_repo),
        branch=str(
            _first(
                branch,
                os.getenv("BLOG_PAGES_BRANCH"),
                stored.publish.get("branch"),
                site_branch,
                DEFAULT_BRANCH,
            )
        ),
        commit_message=_first(commit_message, stored.publish.get("commit_message")),
        timeout=_parse_timeout(raw_timeout),
        cache_dir=Path(resolved_cache).expanduser() if resolved_cache else DEFAULT_CACHE_DIR,
        user_name=str(
            _first(
                user_name,
                os.getenv("GIT_AUTHOR_NAME"),
                stored.git.get("user_name"),
                DEFAULT_GIT_USER_NAME,
            )
        ),
        user_email=str(
            _first(
                user_email,
                os.getenv("GIT_AUTHOR_EMAIL"),
                stored.git.get("user_email"),
                DEFAULT_GIT_USER_EMAIL,
            )
        ),
    )
    if save:
        save_settings(settings, path=config_path)
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "PublishSettings",
    "StoredSettings",
    "resolve_publish_settings",
    "save_settings",
]
