"""Synchronise a built site directory onto a branch of a git remote.

The publisher keeps a scratch clone of the hosting branch in a cache
directory, mirrors the build output into its working tree, and pushes a
single commit when (and only when) the tree changed. Re-running it with the
same output is a no-op, so it is safe to call from CI after every build.

All git interaction goes through ``subprocess`` with prompts disabled, and
every failure is mapped onto a :class:`PublishError` subclass whose
``retryable`` flag tells the caller whether trying again may help. Nothing is
retried internally.

Example
-------
>>> from pathlib import Path
>>> from blog_pages.publish import PublishTarget, publish
>>> target = PublishTarget(
...     local_dir=Path("public"),
...     repo="https://github.com/mwaykole/mwaykole.github.io.git",
...     branch="master",
... )
>>> result = publish(target)  # doctest: +SKIP
>>> result.changed  # doctest: +SKIP
True
"""

from __future__ import annotations

import contextlib
import dataclasses as dc
import filecmp
import hashlib
import logging
import os
import re
import shutil
import subprocess
import typing as typ
from pathlib import Path, PurePosixPath

from blog_pages._constants import (
    COMMIT_MESSAGE_TEMPLATE,
    DEFAULT_BRANCH,
    DEFAULT_GIT_USER_EMAIL,
    DEFAULT_GIT_USER_NAME,
    DEFAULT_TIMEOUT,
    WORKSPACE_LOCK_SUFFIX,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = (
    Path(os.getenv("XDG_CACHE_HOME") or Path.home() / ".cache") / "blog-pages"
)

_AUTH_PATTERN = re.compile(
    r"authentication failed|could not read (username|password)|permission denied"
    r"|invalid username or password|terminal prompts disabled|access denied"
    r"|not authorized|repository not found|returned error: 40[13]",
    re.IGNORECASE,
)
_CONFLICT_PATTERN = re.compile(
    r"\[rejected\]|non-fast-forward|fetch first|updates were rejected"
    r"|stale info|\[remote rejected\].*(lock|ref)",
    re.IGNORECASE,
)
_REMOTE_COMMANDS = frozenset({"ls-remote", "fetch", "push"})


class PublishError(RuntimeError):
    """Base class for publish failures."""

    retryable: typ.ClassVar[bool] = False


class MissingBuildOutputError(PublishError):
    """Raised when the directory to publish does not exist."""


class PublishAuthError(PublishError):
    """Raised when the remote rejects the ambient credentials."""


class PublishConflictError(PublishError):
    """Raised when the branch head moved underneath the push."""

    retryable = True


class PublishIOError(PublishError):
    """Raised for network, timeout and local filesystem failures."""

    retryable = True


@dc.dataclass(frozen=True, slots=True)
class PublishTarget:
    """Directory to publish and where it goes."""

    local_dir: Path
    repo: str
    branch: str = DEFAULT_BRANCH

    def __post_init__(self) -> None:
        if not self.repo.strip():
            msg = "Publish target needs a remote repository URL"
            raise ValueError(msg)
        if not self.branch.strip() or self.branch.startswith(("-", "refs/")):
            msg = f"Invalid branch name: {self.branch!r}"
            raise ValueError(msg)


@dc.dataclass(frozen=True, slots=True)
class PublishOptions:
    """Knobs for one publish run.

    Attributes
    ----------
    message : str or None
        Commit message; generated from the change counts when ``None``.
    timeout : float or None
        Seconds allowed for each git command; ``None`` waits forever.
    workspace : Path or None
        Scratch clone location; derived from ``cache_dir`` when ``None``.
    cache_dir : Path
        Parent directory for derived workspaces.
    user_name, user_email : str
        Identity recorded on the publish commit.
    git_exe : str
        Git executable to invoke.
    """

    message: str | None = None
    timeout: float | None = DEFAULT_TIMEOUT
    workspace: Path | None = None
    cache_dir: Path = DEFAULT_CACHE_DIR
    user_name: str = DEFAULT_GIT_USER_NAME
    user_email: str = DEFAULT_GIT_USER_EMAIL
    git_exe: str = "git"


@dc.dataclass(slots=True)
class SyncStats:
    """Relative paths touched while mirroring the output directory."""

    added: list[str] = dc.field(default_factory=list)
    updated: list[str] = dc.field(default_factory=list)
    removed: list[str] = dc.field(default_factory=list)
    unchanged: list[str] = dc.field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of files in the published tree."""
        return len(self.added) + len(self.updated) + len(self.unchanged)

    def commit_message(self) -> str:
        return COMMIT_MESSAGE_TEMPLATE.format(
            total=self.total,
            added=len(self.added),
            updated=len(self.updated),
            removed=len(self.removed),
        )


@dc.dataclass(slots=True)
class PublishResult:
    """Outcome of a successful publish.

    ``commit`` is the branch head after the run: the new commit when
    ``changed`` is true, otherwise the unchanged remote head (``None`` if the
    branch still does not exist because there was nothing to publish).
    """

    target: PublishTarget
    commit: str | None
    changed: bool
    stats: SyncStats


def workspace_path(target: PublishTarget, options: PublishOptions) -> Path:
    """Return the scratch clone location used for ``target``."""
    if options.workspace is not None:
        return options.workspace
    digest = hashlib.sha1(
        f"{target.repo}\0{target.branch}".encode(), usedforsecurity=False
    ).hexdigest()[:12]
    label = re.sub(r"[^A-Za-z0-9._-]+", "-", f"{target.repo}-{target.branch}").strip("-.")
    return options.cache_dir / f"{label[-60:]}-{digest}"


def publish(target: PublishTarget, options: PublishOptions | None = None) -> PublishResult:
    """Make ``target.branch`` on ``target.repo`` mirror ``target.local_dir``.

    Parameters
    ----------
    target : PublishTarget
        Local build output plus remote URL and branch.
    options : PublishOptions, optional
        Commit message, timeout, workspace and identity overrides.

    Returns
    -------
    PublishResult
        Returned exactly once, after the push succeeded or after deciding
        there was nothing to push.

    Raises
    ------
    MissingBuildOutputError
        If ``target.local_dir`` is not a directory; raised before any git
        command runs.
    PublishAuthError
        If the remote rejects the credentials.
    PublishConflictError
        If the push was rejected because the branch moved.
    PublishIOError
        For network failures, timeouts, a busy workspace or local I/O errors.
    """
    opts = options or PublishOptions()
    source = target.local_dir
    if not source.is_dir():
        msg = f"Build output directory '{source}' does not exist; run the build first."
        raise MissingBuildOutputError(msg)
    if not any(source.iterdir()):
        LOGGER.warning("publishing an empty directory: %s", source)

    workspace = workspace_path(target, opts)
    with _workspace_lock(workspace):
        git = _GitWorkspace(workspace, target, opts)
        try:
            head = git.checkout_branch()
            stats = mirror_tree(source, workspace)
        except OSError as exc:
            msg = f"Unable to prepare workspace {workspace}: {exc}"
            raise PublishIOError(msg) from exc

        git.run("add", "--all", "--force")
        if not git.run("status", "--porcelain").stdout.strip():
            LOGGER.info("%s@%s already up to date", target.repo, target.branch)
            return PublishResult(target=target, commit=head, changed=False, stats=stats)

        git.run(
            "-c",
            "commit.gpgsign=false",
            "commit",
            "--quiet",
            "--no-verify",
            "--message",
            opts.message or stats.commit_message(),
        )
        commit = git.run("rev-parse", "HEAD").stdout.strip()
        git.run("push", "origin", f"HEAD:refs/heads/{target.branch}")
        LOGGER.info("pushed %s to %s@%s", commit[:12], target.repo, target.branch)
        return PublishResult(target=target, commit=commit, changed=True, stats=stats)


def clean_workspace(target: PublishTarget, options: PublishOptions | None = None) -> bool:
    """Remove the scratch clone for ``target``; return whether one existed."""
    opts = options or PublishOptions()
    workspace = workspace_path(target, opts)
    with _workspace_lock(workspace):
        if not workspace.exists():
            return False
        shutil.rmtree(workspace)
    return True


def mirror_tree(source: Path, dest: Path) -> SyncStats:
    """Make the files under ``dest`` match ``source`` exactly.

    Byte-identical files are left alone, ``.git`` entries on either side are
    ignored, and directories emptied by removals are pruned.
    """
    stats = SyncStats()
    wanted = _list_files(source)
    present = _list_files(dest)

    for rel in sorted(present.keys() - wanted.keys()):
        present[rel].unlink()
        stats.removed.append(rel)
    _prune_empty_dirs(dest)

    for rel, path in sorted(wanted.items()):
        target = dest.joinpath(*PurePosixPath(rel).parts)
        if rel in present and target.is_file() and filecmp.cmp(path, target, shallow=False):
            stats.unchanged.append(rel)
            continue
        if target.is_dir():
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
        (stats.updated if rel in present else stats.added).append(rel)
    return stats


def _list_files(root: Path) -> dict[str, Path]:
    files: dict[str, Path] = {}
    for path in root.rglob("*"):
        relative = path.relative_to(root)
        if ".git" in relative.parts or not path.is_file():
            continue
        files[relative.as_posix()] = path
    return files


def _prune_empty_dirs(root: Path) -> None:
    for path in sorted(root.rglob("*"), key=lambda item: len(item.parts), reverse=True):
        relative = path.relative_to(root)
        if ".git" in relative.parts or path.is_symlink() or not path.is_dir():
            continue
        if not any(path.iterdir()):
            path.rmdir()


@contextlib.contextmanager
def _workspace_lock(workspace: Path) -> typ.Iterator[None]:
    """Hold an exclusive lock file beside ``workspace`` for the duration.

    A lock left behind by a process that no longer exists is replaced.
    """
    lock = workspace.with_name(f"{workspace.name}{WORKSPACE_LOCK_SUFFIX}")
    fd = _acquire_lock(lock, workspace)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        yield
    finally:
        lock.unlink(missing_ok=True)


def _acquire_lock(lock: Path, workspace: Path) -> int:
    flags = os.O_CREAT | os.O_EXCL | os.O_WRONLY
    try:
        lock.parent.mkdir(parents=True, exist_ok=True)
        try:
            return os.open(lock, flags, 0o600)
        except FileExistsError:
            if not _is_stale_lock(lock):
                raise
            LOGGER.warning("removing stale lock %s", lock)
            lock.unlink(missing_ok=True)
            return os.open(lock, flags, 0o600)
    except FileExistsError as exc:
        msg = f"Workspace {workspace} is in use by another publish (lock file {lock})"
        raise PublishIOError(msg) from exc
    except OSError as exc:
        msg = f"Unable to lock workspace {workspace}: {exc}"
        raise PublishIOError(msg) from exc


def _is_stale_lock(lock: Path) -> bool:
    """Return whether ``lock`` records the PID of a process that has exited."""
    try:
        pid = int(lock.read_text(encoding="utf-8").strip())
    except FileNotFoundError:
        return True
    except (OSError, ValueError):
        # Unreadable or still being written by its owner.
        return False
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except (ProcessLookupError, OverflowError):
        return True
    except PermissionError:
        return False
    return False


class _GitWorkspace:
    """Run git commands inside one scratch clone."""

    def __init__(self, path: Path, target: PublishTarget, options: PublishOptions) -> None:
        self.path = path
        self.target = target
        self.options = options
        self.env = build_git_env(options)

    def run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Invoke ``git`` with ``args`` and map failures onto publish errors."""
        LOGGER.debug("git %s", " ".join(args))
        try:
            return subprocess.run(  # noqa: S603
                [self.options.git_exe, *args],
                cwd=self.path,
                env=self.env,
                check=check,
                text=True,
                capture_output=True,
                timeout=self.options.timeout,
            )
        except subprocess.CalledProcessError as exc:
            raise _classify_git_failure(args, exc, repo=self.target.repo) from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"git {_command_name(args)} timed out after {self.options.timeout}s"
            raise PublishIOError(msg) from exc
        except OSError as exc:
            msg = f"Unable to run {self.options.git_exe}: {exc}"
            raise PublishIOError(msg) from exc

    def checkout_branch(self) -> str | None:
        """Point the clone at the remote branch head, or an empty orphan branch.

        Returns the remote head commit, or ``None`` when the branch does not
        exist on the remote yet.
        """
        self._ensure_repository()
        ref = f"refs/heads/{self.target.branch}"
        listing = self.run("ls-remote", "--heads", "origin", ref).stdout
        head = next(
            (line.split()[0] for line in listing.splitlines() if line.endswith(f"\t{ref}")),
            None,
        )
        tracking = f"refs/remotes/origin/{self.target.branch}"
        if head:
            self.run("fetch", "--quiet", "--depth", "1", "origin", f"+{ref}:{tracking}")
            self.run("checkout", "--quiet", "--force", "-B", self.target.branch, tracking)
            return head

        LOGGER.info("branch %s does not exist on %s yet", self.target.branch, self.target.repo)
        self.run("symbolic-ref", "HEAD", ref)
        if self.run("show-ref", "--verify", "--quiet", ref, check=False).returncode == 0:
            self.run("update-ref", "-d", ref)
        self.run("read-tree", "--empty")
        return None

    def _ensure_repository(self) -> None:
        if not (self.path / ".git").is_dir():
            if self.path.exists() and any(self.path.iterdir()):
                if self.options.workspace is not None:
                    msg = f"Workspace {self.path} exists and is not a git repository"
                    raise PublishIOError(msg)
                shutil.rmtree(self.path)
            self.path.mkdir(parents=True, exist_ok=True)
            self.run("init", "--quiet")
            self.run("config", "core.autocrlf", "false")
        remotes = self.run("remote").stdout.split()
        action = "set-url" if "origin" in remotes else "add"
        self.run("remote", action, "origin", self.target.repo)


def build_git_env(options: PublishOptions) -> dict[str, str]:
    """Construct the environment for git: fixed identity, no prompts, C locale."""
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    env["LC_ALL"] = "C"
    env["GIT_AUTHOR_NAME"] = options.user_name
    env["GIT_AUTHOR_EMAIL"] = options.user_email
    env["GIT_COMMITTER_NAME"] = options.user_name
    env["GIT_COMMITTER_EMAIL"] = options.user_email
    return env


def _command_name(args: typ.Sequence[str]) -> str:
    """Return the git subcommand, skipping leading ``-c key=value`` pairs."""
    index = 0
    while index < len(args) and args[index] == "-c":
        index += 2
    return args[index] if index < len(args) else "git"


def _classify_git_failure(
    args: typ.Sequence[str], exc: subprocess.CalledProcessError, *, repo: str
) -> PublishError:
    """Translate a failed git invocation into the matching publish error."""
    command = _command_name(args)
    output = "\n".join(
        part.strip() for part in (exc.stderr or "", exc.stdout or "") if part and part.strip()
    )
    detail = output or f"exit status {exc.returncode}"
    if command in _REMOTE_COMMANDS and _AUTH_PATTERN.search(output):
        return PublishAuthError(f"{repo} rejected the credentials for git {command}: {detail}")
    if command == "push" and _CONFLICT_PATTERN.search(output):
        return PublishConflictError(
            f"Push to {repo} was rejected because the branch moved; "
            f"fetch and publish again: {detail}"
        )
    return PublishIOError(f"git {command} failed: {detail}")


__all__ = [
    "DEFAULT_CACHE_DIR",
    "MissingBuildOutputError",
    "PublishAuthError",
    "PublishConflictError",
    "PublishError",
    "PublishIOError",
    "PublishOptions",
    "PublishResult",
    "PublishTarget",
    "SyncStats",
    "build_git_env",
    "clean_workspace",
    "mirror_tree",
    "publish",
    "workspace_path",
]
