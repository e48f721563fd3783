"""Typed dataclasses describing the blog site configuration."""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path


class ConfigurationError(ValueError):
    """Raised when the site configuration is invalid or incomplete."""


@dc.dataclass(frozen=True, slots=True)
class SocialLinks:
    """Social handles advertised by the blog."""

    twitter: str | None = None


@dc.dataclass(frozen=True, slots=True)
class SiteMetadata:
    """Site-wide metadata shared by every rendered page and feed."""

    title: str
    author: str
    description: str
    site_url: str
    social: SocialLinks = dc.field(default_factory=SocialLinks)

    def absolute_url(self, path: str) -> str:
        """Join ``path`` onto ``site_url`` without doubling slashes."""
        return f"{self.site_url.rstrip('/')}/{path.lstrip('/')}"


@dc.dataclass(frozen=True, slots=True)
class NamedPlugin:
    """Plugin entry given as a bare identifier."""

    id: str

    @property
    def options(self) -> typ.Mapping[str, typ.Any]:
        return {}


@dc.dataclass(frozen=True, slots=True)
class ConfiguredPlugin:
    """Plugin entry given as ``{resolve: id, options: {...}}``."""

    id: str
    options: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)


PluginDescriptor: typ.TypeAlias = NamedPlugin | ConfiguredPlugin


@dc.dataclass(frozen=True, slots=True)
class PublishDefaults:
    """Publish target declared alongside the site in ``site.yaml``."""

    repo: str | None = None
    branch: str | None = None


@dc.dataclass(frozen=True, slots=True)
class SiteConfig:
    """A fully loaded site definition.

    Attributes
    ----------
    metadata : SiteMetadata
        Title, author and other values exposed to templates.
    plugins : tuple[PluginDescriptor, ...]
        Plugin entries in registration order.
    root : Path
        Directory that relative plugin paths resolve against; the directory
        holding the ``config`` folder by default.
    output_dir : Path
        Where the builder writes the static site.
    publish : PublishDefaults or None
        Optional hosting target used when the CLI is not given one.
    """

    metadata: SiteMetadata
    plugins: tuple[PluginDescriptor, ...]
    root: Path
    output_dir: Path
    publish: PublishDefaults | None = None

    def resolve_path(self, value: str | Path) -> Path:
        """Return ``value`` as an absolute path anchored at :attr:`root`."""
        path = Path(value)
        return path if path.is_absolute() else self.root / path


__all__ = [
    "ConfigurationError",
    "ConfiguredPlugin",
    "NamedPlugin",
    "PluginDescriptor",
    "PublishDefaults",
    "SiteConfig",
    "SiteMetadata",
    "SocialLinks",
]
