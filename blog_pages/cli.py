"""Cyclopts CLI entrypoint for building and publishing the blog.

The ``blog`` console script defined here renders the site from Markdown
content (``blog build``), pushes a built output directory to the hosting
branch (``blog publish``), or does both in one go (``blog deploy``). Typical
usage is ``blog deploy`` from CI after every change to ``content/``.

Examples
--------
Build the site with the default configuration:

>>> from blog_pages.cli import main
>>> main(["build"])  # doctest: +SKIP

Publish an existing build to a different branch:

>>> from blog_pages.cli import app
>>> app(["publish", "--directory", "public", "--branch", "gh-pages"])  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import os
import sys
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from ._constants import DEFAULT_SITE_CONFIG
from .builder import BuildError, build_site
from .config import ConfigurationError, load_site_config
from .deploy import DEFAULT_CONFIG_PATH, PublishSettings, resolve_publish_settings
from .publish import PublishError, PublishTarget, clean_workspace, publish as publish_site

if typ.TYPE_CHECKING:
    from .config import SiteConfig

app = App(name="blog", config=cyclopts.config.Env("INPUT_", command=False))  # type: ignore[unknown-argument]

_LOG_LEVEL_ENV = "BLOG_PAGES_LOG_LEVEL"


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


def _load_optional_site(config: Path) -> SiteConfig | None:
    """Load ``config`` when it exists; publishing does not require one."""
    if not config.exists():
        return None
    return load_site_config(config)


def _resolve_settings(
    site: SiteConfig | None,
    *,
    config_path: Path,
    repo: str | None,
    branch: str | None,
    message: str | None,
    timeout: float | None,
    save: bool,
) -> PublishSettings:
    return resolve_publish_settings(
        config_path=config_path,
        site_defaults=site.publish if site else None,
        repo=repo,
        branch=branch,
        commit_message=message,
        timeout=timeout,
        save=save,
    )


def _build_target(settings: PublishSettings, directory: Path) -> PublishTarget:
    try:
        return settings.target(directory)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _run_publish(
    settings: PublishSettings, directory: Path, *, workspace: Path | None, clean: bool
) -> None:
    target = _build_target(settings, directory)
    options = settings.options(workspace=workspace)
    result = publish_site(target, options)
    if result.changed:
        stats = result.stats
        print(
            f"published {_format_path(directory)} to {target.repo}@{target.branch} "
            f"({len(stats.added)} added, {len(stats.updated)} updated, "
            f"{len(stats.removed)} removed) as {result.commit}"
        )
    else:
        print(f"{target.repo}@{target.branch} already up to date")
    if clean:
        clean_workspace(target, options)


@app.command(help="Render the blog into a static output directory.")
def build(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to site config", env_var="INPUT_CONFIG")
    ] = DEFAULT_SITE_CONFIG,
    output_dir: typ.Annotated[
        Path | None,
        Parameter(help="Override the output folder", env_var="INPUT_OUTPUT_DIR"),
    ] = None,
) -> None:
    """Build the site described by ``config``.

    Parameters
    ----------
    config : Path, optional
        Path to the ``site.yaml`` configuration file (overridable via
        ``INPUT_CONFIG``).
    output_dir : Path or None, optional
        Override for the configured output directory.

    Raises
    ------
    ConfigurationError
        If the configuration is invalid or names an unknown plugin; nothing
        is written in that case.
    BuildError
        If content or a plugin fails; the previous output is left untouched.
    """
    result = build_site(config, output_dir=output_dir)
    for path in result.written:
        print(f"wrote {_format_path(path)}")


@app.command(help="Push a built output directory to the hosting branch.")
def publish(
    *,
    directory: typ.Annotated[
        Path | None,
        Parameter(help="Built site to publish", env_var="INPUT_DIRECTORY"),
    ] = None,
    config: typ.Annotated[
        Path, Parameter(help="Path to site config", env_var="INPUT_CONFIG")
    ] = DEFAULT_SITE_CONFIG,
    repo: typ.Annotated[
        str | None, Parameter(help="Remote repository URL", env_var="INPUT_REPO")
    ] = None,
    branch: typ.Annotated[
        str | None, Parameter(help="Branch to overwrite", env_var="INPUT_BRANCH")
    ] = None,
    message: typ.Annotated[
        str | None, Parameter(help="Commit message override")
    ] = None,
    timeout: typ.Annotated[
        float | None, Parameter(help="Seconds allowed per git command (0 disables)")
    ] = None,
    workspace: typ.Annotated[
        Path | None, Parameter(help="Scratch clone location")
    ] = None,
    config_path: typ.Annotated[
        Path,
        Parameter(
            help="Where publish settings are stored (TOML)",
            env_var="BLOG_PAGES_CONFIG_FILE",
        ),
    ] = DEFAULT_CONFIG_PATH,
    clean: bool = False,
    save: bool = False,
) -> None:
    """Mirror ``directory`` onto the configured remote branch.

    Exits with a ``publish failed`` message when the remote rejects the
    credentials, the branch moved concurrently, or git cannot be reached;
    ``(retryable)`` marks failures worth re-running.
    """
    site = _load_optional_site(config)
    settings = _resolve_settings(
        site,
        config_path=config_path,
        repo=repo,
        branch=branch,
        message=message,
        timeout=timeout,
        save=save,
    )
    source = directory or (site.output_dir if site else Path("public"))
    _run_publish(settings, source, workspace=workspace, clean=clean)


@app.command(help="Build the blog, then publish it.")
def deploy(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to site config", env_var="INPUT_CONFIG")
    ] = DEFAULT_SITE_CONFIG,
    output_dir: typ.Annotated[
        Path | None,
        Parameter(help="Override the output folder", env_var="INPUT_OUTPUT_DIR"),
    ] = None,
    repo: typ.Annotated[
        str | None, Parameter(help="Remote repository URL", env_var="INPUT_REPO")
    ] = None,
    branch: typ.Annotated[
        str | None, Parameter(help="Branch to overwrite", env_var="INPUT_BRANCH")
    ] = None,
    message: typ.Annotated[
        str | None, Parameter(help="Commit message override")
    ] = None,
    timeout: typ.Annotated[
        float | None, Parameter(help="Seconds allowed per git command (0 disables)")
    ] = None,
    workspace: typ.Annotated[
        Path | None, Parameter(help="Scratch clone location")
    ] = None,
    config_path: typ.Annotated[
        Path,
        Parameter(
            help="Where publish settings are stored (TOML)",
            env_var="BLOG_PAGES_CONFIG_FILE",
        ),
    ] = DEFAULT_CONFIG_PATH,
    clean: bool = False,
    save: bool = False,
) -> None:
    """Run ``build`` and, only if it succeeds, ``publish`` its output."""
    site = load_site_config(config)
    settings = _resolve_settings(
        site,
        config_path=config_path,
        repo=repo,
        branch=branch,
        message=message,
        timeout=timeout,
        save=save,
    )
    result = build_site(config, output_dir=output_dir)
    for path in result.written:
        print(f"wrote {_format_path(path)}")
    _run_publish(settings, result.output_dir, workspace=workspace, clean=clean)


@app.command(help="Remove the cached scratch clone of the hosting branch.")
def clean(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to site config", env_var="INPUT_CONFIG")
    ] = DEFAULT_SITE_CONFIG,
    repo: typ.Annotated[
        str | None, Parameter(help="Remote repository URL", env_var="INPUT_REPO")
    ] = None,
    branch: typ.Annotated[
        str | None, Parameter(help="Branch to overwrite", env_var="INPUT_BRANCH")
    ] = None,
    config_path: typ.Annotated[
        Path,
        Parameter(
            help="Where publish settings are stored (TOML)",
            env_var="BLOG_PAGES_CONFIG_FILE",
        ),
    ] = DEFAULT_CONFIG_PATH,
) -> None:
    """Delete the workspace the publisher reuses between runs."""
    site = _load_optional_site(config)
    settings = _resolve_settings(
        site,
        config_path=config_path,
        repo=repo,
        branch=branch,
        message=None,
        timeout=None,
        save=False,
    )
    target = _build_target(settings, site.output_dir if site else Path("public"))
    if clean_workspace(target, settings.options()):
        print(f"removed workspace for {target.repo}@{target.branch}")
    else:
        print(f"no workspace for {target.repo}@{target.branch}")


def _failure_message(exc: ConfigurationError | BuildError | PublishError) -> str:
    """Return the one-line message shown for a failed command."""
    match exc:
        case ConfigurationError():
            return f"configuration error: {exc}"
        case BuildError():
            return f"build error: {exc}"
        case PublishError(retryable=True):
            return f"publish failed (retryable): {exc}"
        case _:
            return f"publish failed: {exc}"


def _configure_logging() -> None:
    level_name = os.getenv(_LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(tokens: list[str] | None = None) -> None:
    """Invoke the Cyclopts application that powers the `blog` console command.

    Parameters
    ----------
    tokens : list[str] or None, optional
        Arguments to parse instead of ``sys.argv[1:]``.

    Returns
    -------
    None
        Exits with status 2 on configuration errors and 1 on build or publish
        failures, after printing a single ``<kind>: <message>`` line to stderr.

    Examples
    --------
    >>> main(["publish", "--directory", "public"])  # doctest: +SKIP
    """
    _configure_logging()
    try:
        app(tokens)
    except (ConfigurationError, BuildError, PublishError) as exc:
        print(_failure_message(exc), file=sys.stderr)
        raise SystemExit(2 if isinstance(exc, ConfigurationError) else 1) from exc


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
