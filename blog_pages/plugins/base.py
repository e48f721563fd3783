"""Shared types for build plugins and the context they operate on."""

from __future__ import annotations

import dataclasses as dc
import shutil
import typing as typ
from pathlib import Path, PurePosixPath

if typ.TYPE_CHECKING:
    import datetime as dt

    from blog_pages.config import SiteConfig, SiteMetadata


class BuildError(RuntimeError):
    """Raised when content or a transform fails during a build."""


@dc.dataclass(slots=True)
class ContentNode:
    """A file registered by a source plugin.

    Attributes
    ----------
    source : str
        Name of the source that registered the file (``blog``, ``assets``).
    path : Path
        Absolute location on disk.
    relative_path : PurePosixPath
        Location relative to the source directory.
    """

    source: str
    path: Path
    relative_path: PurePosixPath

    @property
    def suffix(self) -> str:
        return self.relative_path.suffix.lower()


@dc.dataclass(slots=True)
class Post:
    """A rendered blog post ready to be written by templates."""

    slug: str
    title: str
    date: dt.datetime
    description: str
    html: str
    toc_html: str
    node: ContentNode
    extra: dict[str, typ.Any] = dc.field(default_factory=dict)

    @property
    def url_path(self) -> str:
        return f"/{self.slug}/"


@dc.dataclass(slots=True)
class BuildContext:
    """Mutable state threaded through the plugin lifecycle of one build."""

    site: SiteConfig
    output_dir: Path
    nodes: list[ContentNode] = dc.field(default_factory=list)
    posts: list[Post] = dc.field(default_factory=list)
    written: list[Path] = dc.field(default_factory=list)
    claimed: set[Path] = dc.field(default_factory=set)

    @property
    def metadata(self) -> SiteMetadata:
        return self.site.metadata

    def claim(self, node: ContentNode) -> None:
        """Mark ``node`` as handled so its source does not copy it verbatim."""
        self.claimed.add(node.path)

    def write_text(self, relative: str | PurePosixPath, text: str) -> Path:
        """Write ``text`` below the output directory and record the path."""
        target = self._target(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        self.written.append(target)
        return target

    def copy_file(self, source: Path, relative: str | PurePosixPath) -> Path:
        """Copy ``source`` below the output directory and record the path."""
        target = self._target(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        self.written.append(target)
        return target

    def _target(self, relative: str | PurePosixPath) -> Path:
        rel = PurePosixPath(relative)
        if rel.is_absolute() or ".." in rel.parts:
            msg = f"Refusing to write outside the output directory: {relative}"
            raise BuildError(msg)
        return self.output_dir.joinpath(*rel.parts)


class BuildPlugin:
    """Base class for build plugins.

    The builder calls :meth:`on_source` on every plugin, then
    :meth:`on_transform`, then :meth:`on_emit`, each time in the order the
    plugins were declared. Subclasses override the phases they take part in.
    """

    id: typ.ClassVar[str] = ""

    def on_source(self, context: BuildContext) -> None:
        """Register content nodes."""

    def on_transform(self, context: BuildContext) -> None:
        """Turn content nodes into posts or other derived data."""

    def on_emit(self, context: BuildContext) -> None:
        """Write files into the output directory."""


__all__ = ["BuildContext", "BuildError", "BuildPlugin", "ContentNode", "Post"]
