"""Transform Markdown content nodes into rendered blog posts.

The ``transformer-markdown`` plugin picks up every ``.md`` node registered by
a source plugin, parses its front matter, renders the body with
:class:`~blog_pages.plugins.renderer.HtmlContentRenderer`, and writes one page
per post plus the home page listing. Nested ``plugins`` entries select the
Python-Markdown extensions used for rendering:

- ``markdown-highlight``: Pygments highlighting for fenced code blocks.
- ``markdown-toc``: table of contents exposed to the post template.
- ``markdown-tables``: pipe tables.

Example
-------
>>> from blog_pages.plugins.markdown import MarkdownTransformer
>>> plugin = MarkdownTransformer.from_options(
...     {"plugins": [{"resolve": "markdown-highlight", "options": {"line_numbers": False}}]}
... )
>>> plugin.renderer.extensions
['fenced_code', 'sane_lists', 'codehilite']
"""

from __future__ import annotations

import collections.abc as cabc
import logging
import typing as typ
from pathlib import Path, PurePosixPath

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from blog_pages.config import ConfigurationError, parse_plugin_descriptors
from blog_pages.markdown_parser import FrontMatterError, parse_post

from .base import BuildContext, BuildError, BuildPlugin, ContentNode, Post
from .renderer import HtmlContentRenderer

LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

ExtensionFactory = cabc.Callable[[cabc.Mapping[str, typ.Any]], tuple[str, dict[str, typ.Any]]]


def _highlight(options: cabc.Mapping[str, typ.Any]) -> tuple[str, dict[str, typ.Any]]:
    return "codehilite", {
        "css_class": str(options.get("css_class", "codehilite")),
        "linenums": bool(options.get("line_numbers", False)),
        "guess_lang": bool(options.get("guess_lang", False)),
    }


def _toc(options: cabc.Mapping[str, typ.Any]) -> tuple[str, dict[str, typ.Any]]:
    return "toc", {"permalink": bool(options.get("permalink", False))}


def _tables(options: cabc.Mapping[str, typ.Any]) -> tuple[str, dict[str, typ.Any]]:
    return "tables", {}


MARKDOWN_PLUGINS: dict[str, ExtensionFactory] = {
    "markdown-highlight": _highlight,
    "markdown-toc": _toc,
    "markdown-tables": _tables,
}


class MarkdownTransformer(BuildPlugin):
    """Render Markdown posts and the home page listing."""

    id = "transformer-markdown"

    def __init__(
        self,
        renderer: HtmlContentRenderer,
        *,
        sources: typ.Sequence[str] | None = None,
        templates_dir: str | None = None,
    ) -> None:
        self.renderer = renderer
        self.sources = list(sources) if sources else None
        self.templates_dir = templates_dir
        self._colocated: list[ContentNode] = []

    @classmethod
    def from_options(cls, options: cabc.Mapping[str, typ.Any]) -> MarkdownTransformer:
        """Build the transformer, resolving nested Markdown plugins eagerly."""
        extensions: list[str] = []
        configs: dict[str, dict[str, typ.Any]] = {}
        for descriptor in parse_plugin_descriptors(options.get("plugins")):
            try:
                factory = MARKDOWN_PLUGINS[descriptor.id]
            except KeyError as exc:
                available = ", ".join(sorted(MARKDOWN_PLUGINS))
                msg = (
                    f"Unknown markdown plugin '{descriptor.id}' in '{cls.id}'. "
                    f"Known plugins: {available}"
                )
                raise ConfigurationError(msg) from exc
            name, config = factory(descriptor.options)
            extensions.append(name)
            if config:
                configs[name] = config

        sources = options.get("sources")
        if sources is not None and (
            isinstance(sources, str) or not isinstance(sources, cabc.Sequence)
        ):
            msg = f"Plugin '{cls.id}' option 'sources' must be a list of source names."
            raise ConfigurationError(msg)

        renderer = HtmlContentRenderer(
            extensions,
            configs,
            pygments_style=str(options.get("pygments_style", "monokai")),
        )
        templates_dir = options.get("templates_dir")
        return cls(
            renderer,
            sources=[str(item) for item in sources] if sources else None,
            templates_dir=str(templates_dir) if templates_dir else None,
        )

    def on_transform(self, context: BuildContext) -> None:
        posts: dict[str, Post] = {}
        for node in self._markdown_nodes(context):
            context.claim(node)
            post = self._build_post(node)
            if post is None:
                continue
            if post.slug in posts:
                msg = (
                    f"Posts '{posts[post.slug].node.relative_path}' and "
                    f"'{node.relative_path}' both map to /{post.slug}/"
                )
                raise BuildError(msg)
            posts[post.slug] = post
        ordered = sorted(posts.values(), key=lambda item: (item.date, item.slug), reverse=True)
        context.posts.extend(ordered)
        self._colocated = _colocated_nodes(context)
        for node in self._colocated:
            context.claim(node)
        LOGGER.info("transformer-markdown: rendered %d post(s)", len(ordered))

    def on_emit(self, context: BuildContext) -> None:
        env = self._environment(context)
        try:
            post_template = env.get_template("post.jinja")
            index_template = env.get_template("index.jinja")
            shared = {
                "site": context.metadata,
                "pygments_css": self.renderer.stylesheet,
            }
            for index, post in enumerate(context.posts):
                newer = context.posts[index - 1] if index > 0 else None
                older = context.posts[index + 1] if index + 1 < len(context.posts) else None
                html = post_template.render(post=post, newer=newer, older=older, **shared)
                context.write_text(PurePosixPath(post.slug) / "index.html", html)
            context.write_text("index.html", index_template.render(posts=context.posts, **shared))
        except TemplateError as exc:
            msg = f"Template rendering failed: {exc}"
            raise BuildError(msg) from exc
        for node in self._colocated:
            context.copy_file(node.path, node.relative_path)

    def _markdown_nodes(self, context: BuildContext) -> list[ContentNode]:
        return [
            node
            for node in context.nodes
            if node.suffix == ".md" and (self.sources is None or node.source in self.sources)
        ]

    def _build_post(self, node: ContentNode) -> Post | None:
        try:
            parsed = parse_post(node.path.read_text(encoding="utf-8"), source=str(node.relative_path))
        except FrontMatterError as exc:
            raise BuildError(str(exc)) from exc
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Unable to read {node.path}: {exc}"
            raise BuildError(msg) from exc
        front = parsed.front_matter
        if front.draft:
            LOGGER.debug("skipping draft %s", node.relative_path)
            return None
        rendered = self.renderer.render(parsed.body)
        return Post(
            slug=_slug_for(node.relative_path),
            title=front.title,
            date=front.date,
            description=front.description or parsed.excerpt,
            html=rendered.html,
            toc_html=rendered.toc_html,
            node=node,
            extra=front.extra,
        )

    def _environment(self, context: BuildContext) -> Environment:
        search_path = [str(DEFAULT_TEMPLATES_DIR)]
        if self.templates_dir:
            search_path.insert(0, str(context.site.resolve_path(self.templates_dir)))
        return Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )


def _colocated_nodes(context: BuildContext) -> list[ContentNode]:
    """Return non-Markdown files living in a post's folder (``hello/index.md``)."""
    folders = {
        (post.node.source, post.node.relative_path.parent)
        for post in context.posts
        if post.node.relative_path.stem == "index"
        and post.node.relative_path.parent != PurePosixPath(".")
    }
    return [
        node
        for node in context.nodes
        if node.suffix != ".md"
        and any(
            node.source == source and folder in node.relative_path.parents
            for source, folder in folders
        )
    ]


def _slug_for(relative_path: PurePosixPath) -> str:
    """Map ``hello/index.md`` to ``hello`` and ``notes/first.md`` to ``notes/first``."""
    stem_path = relative_path.with_suffix("")
    if stem_path.name == "index" and stem_path.parent != PurePosixPath("."):
        stem_path = stem_path.parent
    return stem_path.as_posix()


__all__ = ["MARKDOWN_PLUGINS", "MarkdownTransformer"]
