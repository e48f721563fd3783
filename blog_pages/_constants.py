"""Common literal values used across blog_pages.

These constants keep default paths, branch names and commit metadata
centralized so the CLI, builder, publisher and tests can import the same values
without drifting. Intended for internal use within the blog_pages package.

Examples
--------
>>> from blog_pages import _constants
>>> _constants.COMMIT_MESSAGE_TEMPLATE.format(total=2, added=1, updated=1, removed=0)
'Publish 2 files: 1 added, 1 updated, 0 removed'
"""

from pathlib import Path

DEFAULT_SITE_CONFIG = Path("config/site.yaml")
DEFAULT_OUTPUT_DIR = Path("public")
DEFAULT_BRANCH = "master"
DEFAULT_TIMEOUT = 120.0
DEFAULT_GIT_USER_NAME = "blog-pages"
DEFAULT_GIT_USER_EMAIL = "blog-pages@users.noreply.github.com"
COMMIT_MESSAGE_TEMPLATE = (
    "Publish {total} files: {added} added, {updated} updated, {removed} removed"
)
WORKSPACE_LOCK_SUFFIX = ".lock"
