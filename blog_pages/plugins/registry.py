"""Resolve declarative plugin entries into build plugin instances."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from blog_pages.config import ConfigurationError

from .feed import FeedPlugin
from .filesystem import FilesystemSource
from .markdown import MarkdownTransformer

if typ.TYPE_CHECKING:
    from blog_pages.config import PluginDescriptor

    from .base import BuildPlugin

PluginFactory = cabc.Callable[[cabc.Mapping[str, typ.Any]], "BuildPlugin"]


class PluginRegistry:
    """Map plugin identifiers to the factories that build them."""

    def __init__(self, factories: cabc.Mapping[str, PluginFactory] | None = None) -> None:
        self._factories: dict[str, PluginFactory] = dict(factories or {})

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._factories

    @property
    def known(self) -> list[str]:
        """Return the registered identifiers in sorted order."""
        return sorted(self._factories)

    def register(self, identifier: str, factory: PluginFactory) -> None:
        """Register ``factory`` under ``identifier``, replacing any previous one."""
        if not identifier.strip():
            msg = "Plugin identifier cannot be empty"
            raise ValueError(msg)
        self._factories[identifier] = factory

    def resolve(self, descriptor: PluginDescriptor) -> BuildPlugin:
        """Instantiate the plugin named by ``descriptor``.

        Raises
        ------
        ConfigurationError
            If the identifier is unknown or the factory rejects the options.
        """
        try:
            factory = self._factories[descriptor.id]
        except KeyError as exc:
            available = ", ".join(self.known) or "none"
            msg = f"Unknown plugin '{descriptor.id}'. Known plugins: {available}"
            raise ConfigurationError(msg) from exc
        try:
            return factory(descriptor.options)
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as exc:
            msg = f"Invalid options for plugin '{descriptor.id}': {exc}"
            raise ConfigurationError(msg) from exc


def default_registry() -> PluginRegistry:
    """Return a registry holding the built-in plugins."""
    return PluginRegistry(
        {
            FilesystemSource.id: FilesystemSource.from_options,
            MarkdownTransformer.id: MarkdownTransformer.from_options,
            FeedPlugin.id: FeedPlugin.from_options,
        }
    )


def resolve_plugins(
    descriptors: cabc.Iterable[PluginDescriptor],
    registry: PluginRegistry | None = None,
) -> list[BuildPlugin]:
    """Resolve every descriptor eagerly, preserving declaration order."""
    active = registry or default_registry()
    return [active.resolve(descriptor) for descriptor in descriptors]


__all__ = ["PluginFactory", "PluginRegistry", "default_registry", "resolve_plugins"]
