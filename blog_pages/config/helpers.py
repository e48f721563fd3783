"""Utility helpers shared by the blog configuration loader."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from .models import (
    ConfigurationError,
    ConfiguredPlugin,
    NamedPlugin,
    PluginDescriptor,
    SiteMetadata,
    SocialLinks,
)

REQUIRED_METADATA_FIELDS: tuple[str, ...] = ("title", "author", "description", "site_url")
_ALIASES: dict[str, tuple[str, ...]] = {
    "site_metadata": ("siteMetadata",),
    "site_url": ("siteUrl",),
    "output_dir": ("outputDir",),
}


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _lookup(payload: cabc.Mapping[str, typ.Any], key: str, default: typ.Any = None) -> typ.Any:
    """Return ``payload[key]`` falling back to its camelCase aliases."""
    if key in payload:
        return payload[key]
    for alias in _ALIASES.get(key, ()):
        if alias in payload:
            return payload[alias]
    return default


def _build_metadata(payload: object) -> SiteMetadata:
    """Build :class:`SiteMetadata`, rejecting missing required fields."""
    if not isinstance(payload, cabc.Mapping):
        msg = "Site configuration is missing the 'site_metadata' mapping."
        raise ConfigurationError(msg)

    values = {field: _optional_str(_lookup(payload, field)) for field in REQUIRED_METADATA_FIELDS}
    missing = [field for field, value in values.items() if value is None]
    if missing:
        msg = f"Site metadata is missing required field(s): {', '.join(missing)}"
        raise ConfigurationError(msg)

    social_raw = payload.get("social") or {}
    if not isinstance(social_raw, cabc.Mapping):
        msg = "Site metadata 'social' must be a mapping."
        raise ConfigurationError(msg)

    return SiteMetadata(
        title=typ.cast(str, values["title"]),
        author=typ.cast(str, values["author"]),
        description=typ.cast(str, values["description"]),
        site_url=typ.cast(str, values["site_url"]),
        social=SocialLinks(twitter=_optional_str(social_raw.get("twitter"))),
    )


def _parse_plugin_descriptor(entry: object, *, position: int) -> PluginDescriptor:
    """Turn one ``plugins`` entry into a tagged descriptor."""
    match entry:
        case str() as name if name.strip():
            return NamedPlugin(id=name.strip())
        case cabc.Mapping():
            identifier = _optional_str(entry.get("resolve"))
            if identifier is None:
                msg = f"Plugin entry #{position} is missing 'resolve'."
                raise ConfigurationError(msg)
            options = entry.get("options")
            if options is None:
                options = {}
            if not isinstance(options, cabc.Mapping):
                msg = f"Options for plugin '{identifier}' must be a mapping."
                raise ConfigurationError(msg)
            return ConfiguredPlugin(id=identifier, options=dict(options))
        case _:
            msg = f"Plugin entry #{position} must be a name or a mapping, got {entry!r}."
            raise ConfigurationError(msg)


def parse_plugin_descriptors(entries: object) -> tuple[PluginDescriptor, ...]:
    """Parse an ordered ``plugins`` sequence, preserving declaration order."""
    if entries is None:
        return ()
    if isinstance(entries, (str, bytes)) or not isinstance(entries, cabc.Sequence):
        msg = "'plugins' must be a list of plugin entries."
        raise ConfigurationError(msg)
    return tuple(
        _parse_plugin_descriptor(entry, position=index)
        for index, entry in enumerate(entries, start=1)
    )


__all__ = [
    "REQUIRED_METADATA_FIELDS",
    "_build_metadata",
    "_lookup",
    "_optional_str",
    "_parse_plugin_descriptor",
    "parse_plugin_descriptors",
]
