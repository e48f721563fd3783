"""Emit an RSS 2.0 feed of the rendered posts."""

from __future__ import annotations

import collections.abc as cabc
import logging
import typing as typ
from email.utils import format_datetime
from pathlib import Path, PurePosixPath

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from blog_pages.config import ConfigurationError

from .base import BuildContext, BuildError, BuildPlugin

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


class FeedPlugin(BuildPlugin):
    """Write ``rss.xml`` (or ``output``) listing the newest posts first."""

    id = "plugin-feed"

    def __init__(self, output: str = "rss.xml", limit: int | None = None) -> None:
        self.output = output
        self.limit = limit
        self.env = Environment(
            loader=FileSystemLoader(str(DEFAULT_TEMPLATES_DIR)),
            autoescape=select_autoescape(["xml", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["rfc822"] = format_datetime
        self.template = self.env.get_template("rss.xml.jinja")

    @classmethod
    def from_options(cls, options: cabc.Mapping[str, typ.Any]) -> FeedPlugin:
        output = str(options.get("output", "rss.xml")).strip()
        relative = PurePosixPath(output)
        if not output or relative.is_absolute() or ".." in relative.parts:
            msg = f"Plugin '{cls.id}' option 'output' must be a relative path."
            raise ConfigurationError(msg)
        limit = options.get("limit")
        if limit is not None and (
            isinstance(limit, bool) or not isinstance(limit, int) or limit < 1
        ):
            msg = f"Plugin '{cls.id}' option 'limit' must be a positive integer."
            raise ConfigurationError(msg)
        return cls(output=output, limit=limit)

    def on_emit(self, context: BuildContext) -> None:
        posts = context.posts[: self.limit] if self.limit else list(context.posts)
        try:
            xml = self.template.render(site=context.metadata, posts=posts, feed_path=self.output)
        except TemplateError as exc:
            msg = f"Feed rendering failed: {exc}"
            raise BuildError(msg) from exc
        context.write_text(self.output, xml)
        LOGGER.info("plugin-feed: wrote %d item(s) to %s", len(posts), self.output)


__all__ = ["FeedPlugin"]
