r"""Split blog posts into front matter and Markdown body.

Posts start with a ``---`` fenced YAML block holding ``title``, ``date`` and
optional ``description``/``draft`` keys, followed by the Markdown body. This
module parses that block with ruamel.yaml and normalises the values into a
:class:`FrontMatter` dataclass that the Markdown transformer consumes.

Example
-------
>>> from blog_pages.markdown_parser import parse_post
>>> post = parse_post("---\ntitle: Hello\ndate: 2019-05-01\n---\nBody", source="hello.md")
>>> post.front_matter.title
'Hello'
>>> post.body
'Body'
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import datetime as dt
import re
import typing as typ

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

FRONT_MATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
EXCERPT_WORDS = 40


class FrontMatterError(ValueError):
    """Raised when a post's front matter is missing or malformed."""


@dc.dataclass(slots=True)
class FrontMatter:
    """Metadata block at the top of a post.

    Attributes
    ----------
    title : str
        Post title shown in listings and the page heading.
    date : datetime
        Publication timestamp normalised to UTC.
    description : str or None
        Optional summary; listings fall back to an excerpt when absent.
    draft : bool
        Drafts are parsed but never rendered.
    extra : dict[str, Any]
        Any other keys, exposed to templates untouched.
    """

    title: str
    date: dt.datetime
    description: str | None = None
    draft: bool = False
    extra: dict[str, typ.Any] = dc.field(default_factory=dict)


@dc.dataclass(slots=True)
class ParsedPost:
    """Front matter plus the Markdown body that follows it."""

    front_matter: FrontMatter
    body: str

    @property
    def excerpt(self) -> str:
        """Return the first words of the body as plain text."""
        text = re.sub(r"[#>*_`\[\]]|\(.*?\)", "", self.body)
        words = text.split()
        if len(words) <= EXCERPT_WORDS:
            return " ".join(words)
        return " ".join(words[:EXCERPT_WORDS]) + "…"


def _parse_date(value: object, *, source: str) -> dt.datetime:
    """Return a timezone-aware UTC datetime parsed from ``value``."""
    match value:
        case dt.datetime():
            parsed = value
        case dt.date():
            parsed = dt.datetime.combine(value, dt.time())
        case str() as text if text.strip():
            sanitized = text.strip()
            if sanitized.endswith("Z"):
                sanitized = sanitized[:-1] + "+00:00"
            try:
                parsed = dt.datetime.fromisoformat(sanitized)
            except ValueError as exc:
                msg = f"{source}: invalid date {text!r}"
                raise FrontMatterError(msg) from exc
        case _:
            msg = f"{source}: front matter must define a 'date'"
            raise FrontMatterError(msg)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def parse_post(text: str, *, source: str) -> ParsedPost:
    """Split ``text`` into :class:`FrontMatter` and a Markdown body.

    Parameters
    ----------
    text : str
        Full contents of the Markdown file.
    source : str
        Name used in error messages, typically the file's relative path.

    Returns
    -------
    ParsedPost
        Parsed metadata and the stripped Markdown body.

    Raises
    ------
    FrontMatterError
        If the front matter block is absent or not a YAML mapping, lacks a
        ``title`` or valid ``date``, or has a non-boolean ``draft``.
    """
    match = FRONT_MATTER_PATTERN.match(text)
    if not match:
        msg = f"{source}: missing '---' front matter block"
        raise FrontMatterError(msg)

    loader = YAML(typ="safe")
    try:
        raw = loader.load(match.group(1)) or {}
    except YAMLError as exc:
        msg = f"{source}: unable to parse front matter: {exc}"
        raise FrontMatterError(msg) from exc
    if not isinstance(raw, cabc.Mapping):
        msg = f"{source}: front matter must be a mapping"
        raise FrontMatterError(msg)

    data = dict(raw)
    title = str(data.pop("title", "") or "").strip()
    if not title:
        msg = f"{source}: front matter must define a 'title'"
        raise FrontMatterError(msg)
    date = _parse_date(data.pop("date", None), source=source)
    description = data.pop("description", None)
    draft = data.pop("draft", False)
    if not isinstance(draft, bool):
        msg = f"{source}: 'draft' must be true or false, not {draft!r}"
        raise FrontMatterError(msg)

    front_matter = FrontMatter(
        title=title,
        date=date,
        description=str(description).strip() if description else None,
        draft=draft,
        extra=data,
    )
    return ParsedPost(front_matter=front_matter, body=text[match.end() :].strip())


__all__ = ["FrontMatter", "FrontMatterError", "ParsedPost", "parse_post"]
