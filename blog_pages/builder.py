"""Build the static blog from content and a resolved plugin list.

:class:`SiteBuilder` runs the plugin lifecycle (source, transform, emit) into
a staging directory and swaps the result into the configured output
directory only when every plugin succeeded. A failed build therefore never
produces a half-written output directory for the publisher to pick up.

Example
-------
>>> from pathlib import Path
>>> from blog_pages.builder import build_site
>>> result = build_site(Path("config/site.yaml"))  # doctest: +SKIP
>>> result.output_dir  # doctest: +SKIP
PosixPath('/srv/blog/public')
"""

from __future__ import annotations

import dataclasses as dc
import logging
import shutil
import typing as typ
from pathlib import Path

from blog_pages.config import load_site_config
from blog_pages.plugins import (
    BuildContext,
    BuildError,
    BuildPlugin,
    PluginRegistry,
    resolve_plugins,
)

if typ.TYPE_CHECKING:
    from blog_pages.config import SiteConfig

LOGGER = logging.getLogger(__name__)

PHASES: tuple[str, ...] = ("on_source", "on_transform", "on_emit")


@dc.dataclass(slots=True)
class BuildResult:
    """Outcome of a successful build."""

    output_dir: Path
    written: list[Path]


class SiteBuilder:
    """Run resolved plugins against a site configuration."""

    def __init__(
        self,
        config: SiteConfig,
        plugins: typ.Sequence[BuildPlugin],
        *,
        output_dir: Path | None = None,
    ) -> None:
        """Initialize the builder.

        Parameters
        ----------
        config : SiteConfig
            Loaded site configuration; passed to every plugin through the
            build context.
        plugins : Sequence[BuildPlugin]
            Plugins already resolved from ``config.plugins``, in order.
        output_dir : Path, optional
            Override for ``config.output_dir``.
        """
        self.config = config
        self.plugins = list(plugins)
        self.output_dir = output_dir or config.output_dir

    def run(self) -> BuildResult:
        """Execute every plugin phase and publish the output directory.

        Returns
        -------
        BuildResult
            Final output directory and the files written into it.

        Raises
        ------
        BuildError
            If any plugin fails. The staging directory is removed and an
            existing output directory is left untouched.
        """
        staging = self.output_dir.with_name(f".{self.output_dir.name}.staging")
        _remove_tree(staging)
        staging.mkdir(parents=True)
        context = BuildContext(site=self.config, output_dir=staging)
        try:
            for phase in PHASES:
                for plugin in self.plugins:
                    LOGGER.debug("%s: %s", phase, plugin.id or type(plugin).__name__)
                    getattr(plugin, phase)(context)
        except BuildError:
            _remove_tree(staging)
            raise
        except Exception as exc:
            _remove_tree(staging)
            name = type(exc).__name__
            msg = f"Build failed in a plugin: {name}: {exc}"
            raise BuildError(msg) from exc

        _remove_tree(self.output_dir)
        staging.rename(self.output_dir)
        written = [self.output_dir / path.relative_to(staging) for path in context.written]
        LOGGER.info("built %d file(s) into %s", len(written), self.output_dir)
        return BuildResult(output_dir=self.output_dir, written=written)


def build_site(
    config_path: Path,
    *,
    output_dir: Path | None = None,
    registry: PluginRegistry | None = None,
) -> BuildResult:
    """Load ``config_path``, resolve its plugins and build the site.

    Configuration problems (including unknown plugins) raise
    :class:`~blog_pages.config.ConfigurationError` before anything is
    written to disk.
    """
    config = load_site_config(config_path)
    plugins = resolve_plugins(config.plugins, registry)
    return SiteBuilder(config, plugins, output_dir=output_dir).run()


def _remove_tree(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


__all__ = ["BuildError", "BuildResult", "SiteBuilder", "build_site"]
