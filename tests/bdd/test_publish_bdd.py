"""Behaviour tests for publishing a build directory with pytest-bdd.

Scenarios publish into a bare repository under ``tmp_path`` through a
``file://`` URL, so they need a ``git`` executable but no network access.
"""

from __future__ import annotations

import re
import shutil
import subprocess
import typing as typ
from pathlib import Path

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from blog_pages import publish
from blog_pages.publish import MissingBuildOutputError, PublishOptions, PublishTarget

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

FEATURE_FILE = Path(__file__).resolve().parents[2] / "features" / "publish.feature"
scenarios(FEATURE_FILE)

ScenarioState = dict[str, typ.Any]


def _git(*args: str) -> str:
    return subprocess.run(
        ["git", *args], check=True, text=True, capture_output=True
    ).stdout


@pytest.fixture
def scenario_state() -> ScenarioState:
    """Share mutable scenario data across pytest-bdd steps."""
    return {"results": []}


def _publish(state: ScenarioState, branch: str) -> publish.PublishResult:
    target = PublishTarget(local_dir=state["build_dir"], repo=state["remote"].as_uri(), branch=branch)
    result = publish.publish(target, PublishOptions(workspace=state["workspace"], timeout=60))
    state["results"].append(result)
    return result


@given("a bare remote repository")
def given_remote(tmp_path: Path, scenario_state: ScenarioState) -> None:
    """Create an empty bare repository to publish into."""
    remote = tmp_path / "remote.git"
    _git("init", "--bare", "--quiet", str(remote))
    scenario_state["remote"] = remote
    scenario_state["workspace"] = tmp_path / "workspace"
    scenario_state["build_dir"] = tmp_path / "public"


@given(parsers.re(r"a build directory containing (?P<names>.+)"))
def given_build_dir(scenario_state: ScenarioState, names: str) -> None:
    """Write each quoted file name into the build directory."""
    build_dir = typ.cast("Path", scenario_state["build_dir"])
    build_dir.mkdir(parents=True, exist_ok=True)
    for name in re.findall(r'"([^"]+)"', names):
        (build_dir / name).write_text(f"contents of {name}\n", encoding="utf-8")


@given("no build directory")
def given_no_build_dir(scenario_state: ScenarioState) -> None:
    assert not scenario_state["build_dir"].exists()


@when(parsers.parse('I publish the build directory to branch "{branch}"'))
@when(parsers.parse('I publish the build directory to branch "{branch}" again'))
def when_publish(scenario_state: ScenarioState, branch: str) -> None:
    _publish(scenario_state, branch)


@when(parsers.parse('I delete "{name}" from the build directory'))
def when_delete(scenario_state: ScenarioState, name: str) -> None:
    (scenario_state["build_dir"] / name).unlink()


@when(parsers.parse('I try to publish the build directory to branch "{branch}"'))
def when_try_publish(
    scenario_state: ScenarioState, branch: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Attempt a publish while recording every subprocess invocation."""
    calls: list[list[str]] = []
    real_run = subprocess.run

    def recording_run(cmd: list[str], **kwargs: typ.Any) -> subprocess.CompletedProcess[str]:
        calls.append(cmd)
        return real_run(cmd, **kwargs)

    monkeypatch.setattr(publish.subprocess, "run", recording_run)
    scenario_state["calls"] = calls
    try:
        _publish(scenario_state, branch)
    except MissingBuildOutputError as exc:
        scenario_state["error"] = exc


@then("the second publish reports no change")
def then_no_change(scenario_state: ScenarioState) -> None:
    first, second = scenario_state["results"]
    assert first.changed is True
    assert second.changed is False
    assert second.commit == first.commit


@then(parsers.re(r'branch "(?P<branch>[^"]+)" has (?P<count>\d+) commits?'), converters={"count": int})
def then_commit_count(scenario_state: ScenarioState, branch: str, count: int) -> None:
    remote = typ.cast("Path", scenario_state["remote"])
    listed = _git("--git-dir", str(remote), "rev-list", "--count", f"refs/heads/{branch}")
    assert int(listed) == count


@then(parsers.re(r'branch "(?P<branch>[^"]+)" contains exactly (?P<names>.+)'))
def then_branch_files(scenario_state: ScenarioState, branch: str, names: str) -> None:
    remote = typ.cast("Path", scenario_state["remote"])
    listing = _git("--git-dir", str(remote), "ls-tree", "-r", "--name-only", f"refs/heads/{branch}")
    assert set(listing.split()) == set(re.findall(r'"([^"]+)"', names))


@then("the publish fails because the build output is missing")
def then_missing_output(scenario_state: ScenarioState) -> None:
    assert isinstance(scenario_state.get("error"), MissingBuildOutputError)


@then("no git command was run")
def then_no_git(scenario_state: ScenarioState) -> None:
    assert scenario_state["calls"] == []
    assert not scenario_state["workspace"].exists()
