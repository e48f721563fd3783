"""Load site configuration YAML into typed dataclasses."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from blog_pages._constants import DEFAULT_OUTPUT_DIR

from .helpers import _build_metadata, _lookup, _optional_str, parse_plugin_descriptors
from .models import ConfigurationError, PublishDefaults, SiteConfig


def load_site_config(path: Path, *, root: Path | None = None) -> SiteConfig:
    """Load the YAML configuration describing the blog.

    Parameters
    ----------
    path : Path
        Filesystem path to the YAML configuration file (for example,
        ``config/site.yaml``).
    root : Path, optional
        Directory that relative content and output paths resolve against.
        Defaults to the parent of the ``config`` directory holding ``path``,
        or the file's own directory when it does not live in one.

    Returns
    -------
    SiteConfig
        Parsed configuration with validated metadata and plugin descriptors
        in declaration order.

    Raises
    ------
    ConfigurationError
        If the file is missing, cannot be parsed, is not a mapping, or lacks
        a required metadata field.

    Examples
    --------
    >>> from pathlib import Path
    >>> from blog_pages.config import load_site_config
    >>> config = load_site_config(Path("config/site.yaml"))  # doctest: +SKIP
    >>> config.metadata.title  # doctest: +SKIP
    'Tech Bites'
    """
    if not path.exists():
        msg = f"Configuration file '{path}' not found."
        raise ConfigurationError(msg)

    loader = YAML(typ="safe")
    loader.version = (1, 2)
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = loader.load(handle) or {}
    except YAMLError as exc:
        msg = f"Unable to parse site configuration at {path}: {exc}"
        raise ConfigurationError(msg) from exc
    if not isinstance(loaded, cabc.Mapping):
        msg = "Top-level YAML structure must be a mapping."
        raise ConfigurationError(msg)
    raw: dict[str, typ.Any] = dict(loaded)

    base = root or _default_root(path)
    metadata = _build_metadata(_lookup(raw, "site_metadata"))
    plugins = parse_plugin_descriptors(raw.get("plugins"))
    output_dir = Path(_lookup(raw, "output_dir", DEFAULT_OUTPUT_DIR))
    if not output_dir.is_absolute():
        output_dir = base / output_dir

    return SiteConfig(
        metadata=metadata,
        plugins=plugins,
        root=base,
        output_dir=output_dir,
        publish=_build_publish_defaults(raw.get("publish")),
    )


def _default_root(path: Path) -> Path:
    parent = path.resolve().parent
    return parent.parent if parent.name == "config" else parent


def _build_publish_defaults(payload: object) -> PublishDefaults | None:
    if payload is None:
        return None
    if not isinstance(payload, cabc.Mapping):
        msg = "'publish' must be a mapping with 'repo' and 'branch'."
        raise ConfigurationError(msg)
    return PublishDefaults(
        repo=_optional_str(payload.get("repo")),
        branch=_optional_str(payload.get("branch")),
    )


__all__ = ["load_site_config"]
