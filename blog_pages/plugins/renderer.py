"""Render post Markdown into HTML with syntax-highlighted code blocks."""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ
from html import escape

from markdown import Markdown
from pygments.formatters.html import HtmlFormatter

CODE_BLOCK_PATTERN = re.compile(r"```([A-Za-z0-9_+#.-]+)?[^\n]*\n(.*?)```", re.DOTALL)
FENCED_INDENT_PATTERN = re.compile(r"^[ ]{1,3}([`~]{3,})", re.MULTILINE)
BASE_EXTENSIONS: tuple[str, ...] = ("fenced_code", "sane_lists")


@dc.dataclass(slots=True)
class RenderedMarkdown:
    """HTML output of a Markdown conversion."""

    html: str
    toc_html: str = ""


class HtmlContentRenderer:
    """Render Markdown with a fixed set of Python-Markdown extensions."""

    def __init__(
        self,
        extensions: typ.Sequence[str] = (),
        extension_configs: typ.Mapping[str, typ.Mapping[str, typ.Any]] | None = None,
        *,
        pygments_style: str = "monokai",
    ) -> None:
        """Initialize a renderer.

        Parameters
        ----------
        extensions : Sequence[str], optional
            Python-Markdown extension names enabled on top of fenced code and
            sane lists.
        extension_configs : Mapping, optional
            Per-extension configuration passed straight to Python-Markdown.
        pygments_style : str, optional
            Pygments style used for the highlight stylesheet. Defaults to
            ``"monokai"``.
        """
        self.pygments_style = pygments_style
        self.extensions = list(dict.fromkeys([*BASE_EXTENSIONS, *extensions]))
        self.extension_configs = {key: dict(value) for key, value in (extension_configs or {}).items()}
        css_class = self.extension_configs.get("codehilite", {}).get("css_class", "codehilite")
        self._css_class = css_class
        self._formatter = HtmlFormatter(style=pygments_style, cssclass=css_class)

    @property
    def highlights_code(self) -> bool:
        return "codehilite" in self.extensions

    @property
    def stylesheet(self) -> str:
        """Return the CSS used for highlighted code blocks, if highlighting is on."""
        if not self.highlights_code:
            return ""
        return self._formatter.get_style_defs(f".{self._css_class}")

    def render(self, text: str) -> RenderedMarkdown:
        """Render Markdown into HTML plus the table of contents when enabled."""
        normalized = FENCED_INDENT_PATTERN.sub(r"\1", text)
        if not normalized.strip():
            return RenderedMarkdown(html="")
        md = Markdown(extensions=self.extensions, extension_configs=self.extension_configs)
        html = md.convert(normalized)
        if self.highlights_code:
            html = self._annotate_codehilite(html, normalized)
        return RenderedMarkdown(html=html, toc_html=getattr(md, "toc", "") or "")

    def _annotate_codehilite(self, html: str, source_markdown: str) -> str:
        """Attach language metadata to each highlighted block in converted markdown."""
        languages = [
            match.group(1) or "text"
            for match in CODE_BLOCK_PATTERN.finditer(source_markdown)
        ]
        if not languages:
            return html
        lang_iter = iter(languages)
        open_tag = re.compile(rf'<div class="{re.escape(self._css_class)}">')

        def _repl(match: re.Match[str]) -> str:
            lang = next(lang_iter, "text")
            return (
                f'<div class="{self._css_class}" data-language="{escape(lang, quote=True)}">'
            )

        return open_tag.sub(_repl, html, len(languages))


__all__ = ["CODE_BLOCK_PATTERN", "HtmlContentRenderer", "RenderedMarkdown"]
