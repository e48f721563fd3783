"""Behaviour tests for ``build_site`` using pytest-bdd.

The scenarios write a small site into ``tmp_path`` and check that posts are
rendered in date order, that configuration errors leave the filesystem alone,
and that a failed build never replaces an earlier successful one.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path
from textwrap import dedent

import pytest
from pytest_bdd import given, parsers, scenarios, then, when

from blog_pages.builder import BuildError, build_site
from blog_pages.config import ConfigurationError

FEATURE_FILE = Path(__file__).resolve().parents[2] / "features" / "build.feature"
scenarios(FEATURE_FILE)

ScenarioState = dict[str, typ.Any]

SITE_CONFIG = """
site_metadata:
  title: Scenario Blog
  author: Someone
  description: Behaviour scenarios
  site_url: https://example.com
plugins:
  - resolve: source-filesystem
    options:
      path: content/blog
{extra}"""


@pytest.fixture
def scenario_state() -> ScenarioState:
    """Share mutable scenario data across pytest-bdd steps."""
    return {}


def _write_site(tmp_path: Path, *plugins: str) -> Path:
    extra = "".join(f"  - {plugin}\n" for plugin in plugins)
    config = tmp_path / "config" / "site.yaml"
    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(SITE_CONFIG.format(extra=extra).lstrip(), encoding="utf-8")
    (tmp_path / "content" / "blog").mkdir(parents=True, exist_ok=True)
    return config


@given(
    parsers.parse(
        'a site with posts "{first}" dated "{first_date}" and "{second}" dated "{second_date}"'
    )
)
def given_site_with_posts(
    tmp_path: Path,
    scenario_state: ScenarioState,
    first: str,
    first_date: str,
    second: str,
    second_date: str,
) -> None:
    """Write a site config and two Markdown posts."""
    config = _write_site(tmp_path, "transformer-markdown")
    blog = tmp_path / "content" / "blog"
    for title, date in ((first, first_date), (second, second_date)):
        (blog / f"{title.lower()}.md").write_text(
            dedent(
                f"""\
                ---
                title: {title}
                date: {date}
                ---

                Text of {title}.
                """
            ),
            encoding="utf-8",
        )
    scenario_state["config_path"] = config
    scenario_state["output_dir"] = tmp_path / "public"


@given(parsers.parse('a site whose configuration lists the plugin "{plugin_id}"'))
def given_site_with_plugin(
    tmp_path: Path, scenario_state: ScenarioState, plugin_id: str
) -> None:
    """Write a site config ending with ``plugin_id``."""
    scenario_state["config_path"] = _write_site(tmp_path, "transformer-markdown", plugin_id)
    scenario_state["output_dir"] = tmp_path / "public"


@given("the site has been built once")
def given_site_built(scenario_state: ScenarioState) -> None:
    """Run one successful build."""
    build_site(scenario_state["config_path"])


@given(parsers.parse('the post "{slug}" has invalid front matter'))
def given_broken_post(tmp_path: Path, slug: str) -> None:
    """Replace the post's front matter with a YAML list."""
    path = tmp_path / "content" / "blog" / f"{slug}.md"
    path.write_text("---\n- not\n- a mapping\n---\n\nBody.\n", encoding="utf-8")


@when("I build the site")
def when_build(scenario_state: ScenarioState) -> None:
    """Build the site, recording the result or the raised error."""
    try:
        scenario_state["result"] = build_site(scenario_state["config_path"])
    except (BuildError, ConfigurationError) as exc:
        scenario_state["error"] = exc


@then(parsers.parse('the output contains a page for "{first}" and "{second}"'))
def then_pages_exist(scenario_state: ScenarioState, first: str, second: str) -> None:
    output_dir = typ.cast("Path", scenario_state["output_dir"])
    for slug in (first, second):
        assert (output_dir / slug / "index.html").is_file()


@then(parsers.parse('the index lists "{newer}" before "{older}"'))
def then_index_order(scenario_state: ScenarioState, newer: str, older: str) -> None:
    index = (scenario_state["output_dir"] / "index.html").read_text(encoding="utf-8")
    assert index.index(newer) < index.index(older)


@then(parsers.parse('the build fails with a configuration error mentioning "{text}"'))
def then_configuration_error(scenario_state: ScenarioState, text: str) -> None:
    error = scenario_state.get("error")
    assert isinstance(error, ConfigurationError)
    assert text in str(error)


@then("the build fails with a build error")
def then_build_error(scenario_state: ScenarioState) -> None:
    assert isinstance(scenario_state.get("error"), BuildError)


@then("no output directory exists")
def then_no_output(scenario_state: ScenarioState) -> None:
    output_dir = typ.cast("Path", scenario_state["output_dir"])
    assert not output_dir.exists()
    assert not output_dir.with_name(f".{output_dir.name}.staging").exists()


@then(parsers.parse('the output still contains a page for "{slug}"'))
def then_previous_output_kept(scenario_state: ScenarioState, slug: str) -> None:
    assert (scenario_state["output_dir"] / slug / "index.html").is_file()
