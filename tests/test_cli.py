from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from textwrap import dedent

import pytest

from blog_pages import cli
from blog_pages.builder import BuildError
from blog_pages.config import ConfigurationError
from blog_pages.publish import (
    MissingBuildOutputError,
    PublishAuthError,
    PublishConflictError,
    PublishIOError,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BLOG_PAGES_REPO", "BLOG_PAGES_BRANCH", "BLOG_PAGES_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def site(tmp_path: Path) -> Path:
    config = tmp_path / "config" / "site.yaml"
    config.parent.mkdir(parents=True)
    config.write_text(
        dedent(
            """
            site_metadata:
              title: CLI Blog
              author: Someone
              description: Notes from the command line
              site_url: https://example.com
            plugins:
              - resolve: source-filesystem
                options:
                  path: content
              - transformer-markdown
            """
        ).lstrip(),
        encoding="utf-8",
    )
    post = tmp_path / "content" / "first.md"
    post.parent.mkdir(parents=True)
    post.write_text("---\ntitle: First\ndate: 2024-03-01\n---\n\nHello.\n", encoding="utf-8")
    return config


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ConfigurationError("bad yaml"), "configuration error: bad yaml"),
        (BuildError("broken post"), "build error: broken post"),
        (PublishAuthError("denied"), "publish failed: denied"),
        (MissingBuildOutputError("no dir"), "publish failed: no dir"),
        (PublishConflictError("moved"), "publish failed (retryable): moved"),
        (PublishIOError("timed out"), "publish failed (retryable): timed out"),
    ],
)
def test_failure_message(exc: Exception, expected: str) -> None:
    assert cli._failure_message(exc) == expected  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (ConfigurationError("unknown plugin"), 2),
        (BuildError("broken post"), 1),
        (PublishConflictError("moved"), 1),
    ],
)
def test_main_maps_errors_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    exc: Exception,
    code: int,
) -> None:
    def failing_app(tokens: list[str] | None) -> None:
        raise exc

    monkeypatch.setattr(cli, "app", failing_app)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["build"])

    assert excinfo.value.code == code
    assert capsys.readouterr().err.strip() == cli._failure_message(exc)  # type: ignore[arg-type]


def test_build_command_reports_written_files(
    site: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.build(config=site)

    out = capsys.readouterr().out
    assert "wrote" in out
    assert "first/index.html" in out
    assert (site.parent.parent / "public" / "first" / "index.html").exists()


def test_publish_without_repo_is_a_configuration_error(site: Path, tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="publish repository"):
        cli.publish(config=site, config_path=tmp_path / "config.toml")


def test_publish_missing_output_fails_fast(site: Path, tmp_path: Path) -> None:
    with pytest.raises(MissingBuildOutputError):
        cli.publish(
            config=site,
            repo="https://example.invalid/site.git",
            workspace=tmp_path / "workspace",
            config_path=tmp_path / "config.toml",
        )
    assert not (tmp_path / "workspace").exists()


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_deploy_then_republish(
    site: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    remote = tmp_path / "remote.git"
    subprocess.run(["git", "init", "--bare", "--quiet", str(remote)], check=True)
    common = {
        "config": site,
        "repo": remote.as_uri(),
        "branch": "gh-pages",
        "workspace": tmp_path / "workspace",
        "config_path": tmp_path / "config.toml",
    }

    cli.deploy(**common)
    first = capsys.readouterr().out
    cli.publish(**common)
    second = capsys.readouterr().out

    assert "wrote" in first
    assert f"to {remote.as_uri()}@gh-pages" in first
    assert second.strip() == f"{remote.as_uri()}@gh-pages already up to date"
    assert not (tmp_path / "config.toml").exists()


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_publish_save_persists_settings(
    site: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    remote = tmp_path / "remote.git"
    subprocess.run(["git", "init", "--bare", "--quiet", str(remote)], check=True)
    cli.build(config=site)
    config_path = tmp_path / "config.toml"

    cli.publish(
        config=site,
        repo=remote.as_uri(),
        workspace=tmp_path / "workspace",
        config_path=config_path,
        save=True,
        clean=True,
    )

    assert remote.as_uri() in config_path.read_text(encoding="utf-8")
    assert not (tmp_path / "workspace").exists()
    assert "published" in capsys.readouterr().out
