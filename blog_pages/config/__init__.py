"""Load and validate the blog's site configuration YAML.

This subpackage parses ``config/site.yaml``, validates the site metadata and
turns the ordered ``plugins`` list into tagged descriptors
(:class:`NamedPlugin` or :class:`ConfiguredPlugin`) that the plugin registry
resolves before any build work starts. The primary entry point is
:func:`load_site_config`, which returns a :class:`SiteConfig` ready for the
builder.

Examples
--------
>>> from pathlib import Path
>>> from blog_pages.config import load_site_config
>>> site = load_site_config(Path("config/site.yaml"))  # doctest: +SKIP
>>> [plugin.id for plugin in site.plugins]  # doctest: +SKIP
['source-filesystem', 'transformer-markdown', 'plugin-feed']
"""

from .helpers import parse_plugin_descriptors
from .loader import load_site_config
from .models import (
    ConfigurationError,
    ConfiguredPlugin,
    NamedPlugin,
    PluginDescriptor,
    PublishDefaults,
    SiteConfig,
    SiteMetadata,
    SocialLinks,
)

__all__ = [
    "ConfigurationError",
    "ConfiguredPlugin",
    "NamedPlugin",
    "PluginDescriptor",
    "PublishDefaults",
    "SiteConfig",
    "SiteMetadata",
    "SocialLinks",
    "load_site_config",
    "parse_plugin_descriptors",
]
