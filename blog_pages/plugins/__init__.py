"""Build plugins and the registry that resolves them from configuration."""

from .base import BuildContext, BuildError, BuildPlugin, ContentNode, Post
from .feed import FeedPlugin
from .filesystem import FilesystemSource
from .markdown import MarkdownTransformer
from .registry import PluginFactory, PluginRegistry, default_registry, resolve_plugins

__all__ = [
    "BuildContext",
    "BuildError",
    "BuildPlugin",
    "ContentNode",
    "FeedPlugin",
    "FilesystemSource",
    "MarkdownTransformer",
    "PluginFactory",
    "PluginRegistry",
    "Post",
    "default_registry",
    "resolve_plugins",
]
