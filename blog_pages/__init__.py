"""Build and publish the Tech Bites blog.

This package exposes the CLI entry points used by ``uv run blog`` to render the
blog from Markdown content and push the built site to its hosting branch.

Exports
-------
- ``app``: Cyclopts application entry for subcommands.
- ``main``: Convenience function that invokes the Cyclopts app.

Examples
--------
>>> from blog_pages import main
>>> main()  # doctest: +SKIP
>>> from blog_pages import app
>>> app.name  # doctest: +SKIP
('blog',)
"""

from __future__ import annotations

from .cli import app, main

__all__ = ["app", "main"]
