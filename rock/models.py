"""Data models for rock."""

from dataclasses import dataclass
from enum import Enum


class FileChange(str, Enum):
    """Kind of change reported for a single path."""

    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    UNTRACKED = "untracked"
    RENAMED = "renamed"


@dataclass(frozen=True)
class FileStatusEntry:
    """One line of porcelain status output."""

    path: str
    status: FileChange
    staged: bool
    old_path: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "path": self.path,
            "status": self.status.value,
            "staged": self.staged,
        }
        if self.old_path is not None:
            data["oldPath"] = self.old_path
        return data


@dataclass(frozen=True)
class GitStatus:
    """Snapshot of a working tree: branch, tracking counts and changed files."""

    branch: str
    ahead: int = 0
    behind: int = 0
    files: tuple[FileStatusEntry, ...] = ()

    @property
    def has_uncommitted(self) -> bool:
        return len(self.files) > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "branch": self.branch,
            "ahead": self.ahead,
            "behind": self.behind,
            "files": [entry.to_dict() for entry in self.files],
            "hasUncommitted": self.has_uncommitted,
        }


@dataclass(frozen=True)
class GitCommit:
    """A commit as reported by git log."""

    sha: str
    short_sha: str
    message: str
    author: str
    email: str
    date: str
    branch: str | None = None

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "sha": self.sha,
            "shortSha": self.short_sha,
            "message": self.message,
            "author": self.author,
            "email": self.email,
            "date": self.date,
        }
        if self.branch is not None:
            data["branch"] = self.branch
        return data


@dataclass(frozen=True)
class GitBranch:
    """A local or remote-tracking branch."""

    name: str
    current: bool = False
    remote: bool = False
    upstream: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "name": self.name,
            "current": self.current,
            "remote": self.remote,
        }
        if self.upstream is not None:
            data["upstream"] = self.upstream
        return data


@dataclass(frozen=True)
class RemoteInfo:
    """A named remote and the hosting service it points at."""

    name: str
    url: str
    kind: str  # "github", "gitlab" or "other"

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "url": self.url, "type": self.kind}


@dataclass(frozen=True)
class RegisteredRepo:
    """A repository the user added to rock."""

    id: str
    name: str
    path: str
    remote_url: str | None = None
    last_fetched: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "RegisteredRepo":
        remote_url = data.get("remoteUrl")
        last_fetched = data.get("lastFetched")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            path=str(data.get("path", "")),
            remote_url=str(remote_url) if remote_url else None,
            last_fetched=str(last_fetched) if last_fetched else None,
        )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"id": self.id, "name": self.name, "path": self.path}
        if self.remote_url:
            data["remoteUrl"] = self.remote_url
        if self.last_fetched:
            data["lastFetched"] = self.last_fetched
        return data


@dataclass
class GitSettings:
    """User-level git preferences stored alongside the repository list."""

    username: str | None = None
    email: str | None = None
    github_token: str | None = None
    auto_fetch: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "GitSettings":
        def _opt(key: str) -> str | None:
            value = data.get(key)
            return str(value) if value else None

        return cls(
            username=_opt("username"),
            email=_opt("email"),
            github_token=_opt("githubToken"),
            auto_fetch=bool(data.get("autoFetch", False)),
        )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"autoFetch": self.auto_fetch}
        if self.username:
            data["username"] = self.username
        if self.email:
            data["email"] = self.email
        if self.github_token:
            data["githubToken"] = self.github_token
        return data


@dataclass(frozen=True)
class RepositoryDetail:
    """Status and recent history of one registered repository."""

    repo: RegisteredRepo
    status: GitStatus
    commits: tuple[GitCommit, ...]
