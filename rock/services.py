"""Operations across the set of registered repositories."""

from __future__ import annotations

import datetime as dt
import logging
import os
import uuid
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from rock import git_ops
from rock.models import GitStatus, RegisteredRepo, RepositoryDetail
from rock.store import DataStore

logger = logging.getLogger(__name__)

DETAIL_LOG_LIMIT = 10


class RegistrationError(Exception):
    """A repository could not be registered."""


def _max_workers(count: int) -> int:
    return max(1, min(32, (os.cpu_count() or 4) * 4, count))


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")


def refresh_statuses(
    repos: Iterable[RegisteredRepo],
    status_fn: Callable[[str], GitStatus] | None = None,
    max_workers: int | None = None,
) -> dict[str, GitStatus]:
    """Get the status of every repository, keyed by repository id.

    Each repository is queried on its own; a repository whose status call
    fails is logged and left out of the result.
    """
    status_fn = status_fn or git_ops.status
    repos = list(repos)
    statuses: dict[str, GitStatus] = {}
    if not repos:
        return statuses

    with ThreadPoolExecutor(max_workers=max_workers or _max_workers(len(repos))) as executor:
        future_by_repo = {executor.submit(status_fn, repo.path): repo for repo in repos}
        for future, repo in future_by_repo.items():
            try:
                statuses[repo.id] = future.result()
            except Exception as exc:
                logger.warning("Failed to load status for %s: %s", repo.name, exc)
    return statuses


def fetch_repositories(
    store: DataStore,
    repos: Iterable[RegisteredRepo],
    fetch_fn: Callable[[str], None] | None = None,
) -> dict[str, str]:
    """Fetch every repository and stamp ``lastFetched`` on success.

    Returns the failure message for each repository that could not be fetched.
    """
    fetch_fn = fetch_fn or git_ops.fetch
    repos = list(repos)
    failures: dict[str, str] = {}
    if not repos:
        return failures

    fetched: list[RegisteredRepo] = []
    with ThreadPoolExecutor(max_workers=_max_workers(len(repos))) as executor:
        future_by_repo = {executor.submit(fetch_fn, repo.path): repo for repo in repos}
        for future, repo in future_by_repo.items():
            try:
                future.result()
            except Exception as exc:
                logger.warning("Failed to fetch %s: %s", repo.name, exc)
                failures[repo.id] = str(exc)
            else:
                fetched.append(repo)

    stamp = _now_iso()
    for repo in fetched:
        store.update_repository(repo.id, last_fetched=stamp)
    return failures


def register_repository(store: DataStore, path: str | Path) -> RegisteredRepo:
    """Verify a working tree and add it to the registered repositories."""
    repo_path = str(Path(path).expanduser().resolve())
    if not git_ops.verify(repo_path):
        raise RegistrationError(f"Not a valid Git repository: {repo_path}")

    if any(repo.path == repo_path for repo in store.list_repositories()):
        raise RegistrationError(f"Repository already registered: {repo_path}")

    repo = RegisteredRepo(
        id=str(uuid.uuid4()),
        name=Path(repo_path).name or "Unknown",
        path=repo_path,
        remote_url=git_ops.try_remote_url(repo_path),
        last_fetched=_now_iso(),
    )
    store.add_repository(repo)
    logger.info("Registered %s at %s", repo.name, repo.path)
    return repo


def unregister_repository(store: DataStore, repo_id: str) -> bool:
    """Remove a repository from the registered list."""
    return store.remove_repository(repo_id)


def load_repository_detail(
    repo: RegisteredRepo, log_limit: int = DETAIL_LOG_LIMIT
) -> RepositoryDetail:
    """Load status and recent commits for one repository."""
    return RepositoryDetail(
        repo=repo,
        status=git_ops.status(repo.path),
        commits=tuple(git_ops.log(repo.path, log_limit)),
    )


def find_repository(store: DataStore, key: str) -> RegisteredRepo | None:
    """Look up a registered repository by id, name or path."""
    repos = store.list_repositories()
    for repo in repos:
        if key == repo.id:
            return repo
    for repo in repos:
        if key in (repo.name, repo.path):
            return repo
    return None
