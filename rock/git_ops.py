"""Git subprocess operations."""

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from rock import parsers
from rock.models import GitBranch, GitCommit, GitStatus, RemoteInfo

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 20


class GitError(Exception):
    """Git command failed."""

    prefix = "Git command failed"

    def __init__(self, cmd: Sequence[str], stderr: str, returncode: int | None = None) -> None:
        self.cmd = list(cmd)
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"{self.prefix}: git {' '.join(cmd)}: {stderr}")


class CloneError(GitError):
    """Cloning a repository failed."""

    prefix = "Failed to clone repository"


def run(
    repo_path: str | Path,
    args: Sequence[str],
    *,
    timeout: float | None = None,
) -> str:
    """Run a git command in ``repo_path`` and return its stripped stdout.

    Only a non-zero exit fails the call. Anything git writes to stderr on
    success is logged and otherwise ignored. There is no timeout unless the
    caller passes one.
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=repo_path,
            check=False,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise GitError(args, f"timed out after {exc.timeout}s") from exc
    except OSError as exc:
        raise GitError(args, str(exc)) from exc

    if result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        raise GitError(args, stderr, result.returncode)

    stderr = result.stderr.strip()
    if stderr:
        if "warning" in stderr:
            logger.debug("git %s: %s", " ".join(args), stderr)
        else:
            logger.warning("git %s stderr: %s", " ".join(args), stderr)
    return result.stdout.strip()


def try_run(repo_path: str | Path, args: Sequence[str]) -> str | None:
    """Run a git command, returning None on failure."""
    try:
        return run(repo_path, args)
    except GitError as exc:
        logger.debug("%s", exc)
        return None


def verify(repo_path: str | Path) -> bool:
    """Check whether ``repo_path`` is inside a git working tree."""
    return try_run(repo_path, ["rev-parse", "--is-inside-work-tree"]) is not None


def status(repo_path: str | Path) -> GitStatus:
    """Get branch, tracking counts and changed files."""
    return parsers.parse_status(run(repo_path, ["status", "--porcelain", "--branch"]))


def log(
    repo_path: str | Path,
    limit: int = DEFAULT_LOG_LIMIT,
    ref: str | None = None,
) -> list[GitCommit]:
    """Get the most recent commits, newest first."""
    args = ["log", f"--pretty=format:{parsers.LOG_FORMAT}", "-n", str(limit)]
    if ref:
        args.append(ref)
    return parsers.parse_log(run(repo_path, args), branch=ref)


def branches(repo_path: str | Path) -> list[GitBranch]:
    """List local and remote-tracking branches."""
    return parsers.parse_branches(run(repo_path, ["branch", "-a", "-vv"]))


def current_branch(repo_path: str | Path) -> str:
    """Get the checked-out branch name (empty when HEAD is detached)."""
    return run(repo_path, ["branch", "--show-current"])


def commit(repo_path: str | Path, message: str, files: Sequence[str]) -> None:
    """Stage ``files`` (if any) and commit.

    With no files, whatever is already in the index is committed.
    """
    if files:
        run(repo_path, ["add", "--", *files])
    run(repo_path, ["commit", "-m", message])


def push(repo_path: str | Path) -> None:
    """Push to the configured upstream."""
    run(repo_path, ["push"])


def pull(repo_path: str | Path) -> None:
    """Pull from the configured upstream."""
    run(repo_path, ["pull"])


def fetch(repo_path: str | Path) -> None:
    """Fetch from the default remote."""
    run(repo_path, ["fetch"])


def switch_branch(repo_path: str | Path, name: str) -> None:
    """Check out an existing branch."""
    run(repo_path, ["checkout", name])


def create_branch(repo_path: str | Path, name: str) -> None:
    """Create a branch and check it out."""
    run(repo_path, ["checkout", "-b", name])


def clone_repository(url: str, destination: str | Path) -> None:
    """Clone ``url`` into ``destination``.

    Runs from the destination's parent since the destination itself does not
    exist yet, so the destination is resolved against the caller's cwd first.
    """
    dest = Path(destination).expanduser().resolve()
    try:
        run(dest.parent, ["clone", url, str(dest)])
    except GitError as exc:
        raise CloneError(exc.cmd, exc.stderr, exc.returncode) from exc


def try_remote_url(repo_path: str | Path, remote: str = "origin") -> str | None:
    """Get a remote's URL, or None when it is not configured."""
    url = try_run(repo_path, ["remote", "get-url", remote])
    return url or None


def remote_url(repo_path: str | Path) -> str:
    """Get the ``origin`` URL, or an empty string when there is none."""
    return try_remote_url(repo_path) or ""


def remote_info(repo_path: str | Path, remote: str = "origin") -> RemoteInfo | None:
    """Describe a remote and its hosting service."""
    url = try_remote_url(repo_path, remote)
    if url is None:
        return None
    return parsers.parse_remote_info(remote, url)
