"""Source plugin registering files from a content directory."""

from __future__ import annotations

import collections.abc as cabc
import logging
import typing as typ
from pathlib import Path, PurePosixPath

from blog_pages.config import ConfigurationError

from .base import BuildContext, BuildError, BuildPlugin, ContentNode

LOGGER = logging.getLogger(__name__)


class FilesystemSource(BuildPlugin):
    """Register every file below ``path`` as a node tagged with ``name``.

    Hidden files and directories (leading ``.``) are ignored. Files that no
    transformer claims are copied to ``<name>/<relative path>`` in the output
    unless the ``emit`` option is false.
    """

    id = "source-filesystem"

    def __init__(self, path: str, name: str | None = None, *, emit: bool = True) -> None:
        self.path = path
        self.name = name or PurePosixPath(path).name
        self.emit = emit

    @classmethod
    def from_options(cls, options: cabc.Mapping[str, typ.Any]) -> FilesystemSource:
        path = options.get("path")
        if not isinstance(path, str) or not path.strip():
            msg = f"Plugin '{cls.id}' requires a 'path' option."
            raise ConfigurationError(msg)
        name = options.get("name")
        if name is not None and not isinstance(name, str):
            msg = f"Plugin '{cls.id}' option 'name' must be a string."
            raise ConfigurationError(msg)
        emit = options.get("emit", True)
        if not isinstance(emit, bool):
            msg = f"Plugin '{cls.id}' option 'emit' must be true or false."
            raise ConfigurationError(msg)
        return cls(path.strip(), name, emit=emit)

    def on_source(self, context: BuildContext) -> None:
        root = context.site.resolve_path(self.path)
        if not root.is_dir():
            msg = f"Content directory '{root}' for source '{self.name}' does not exist."
            raise BuildError(msg)
        registered = 0
        for path in sorted(root.rglob("*")):
            relative = path.relative_to(root)
            if not path.is_file() or _is_hidden(relative):
                continue
            context.nodes.append(
                ContentNode(
                    source=self.name,
                    path=path,
                    relative_path=PurePosixPath(relative.as_posix()),
                )
            )
            registered += 1
        LOGGER.info("source %s: registered %d file(s) from %s", self.name, registered, root)

    def on_emit(self, context: BuildContext) -> None:
        if not self.emit:
            return
        copied = 0
        for node in context.nodes:
            if node.source != self.name or node.path in context.claimed:
                continue
            context.copy_file(node.path, PurePosixPath(self.name) / node.relative_path)
            copied += 1
        if copied:
            LOGGER.info("source %s: copied %d unclaimed file(s)", self.name, copied)


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith(".") for part in relative.parts)


__all__ = ["FilesystemSource"]
