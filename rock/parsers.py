"""Parsers for git's text output.

Every function here is total: malformed input degrades to a default value
(an "unknown" branch, an empty list, a dropped record) instead of raising.
"""

import re

from rock.models import (
    FileChange,
    FileStatusEntry,
    GitBranch,
    GitCommit,
    GitStatus,
    RemoteInfo,
)

COMMIT_SENTINEL = "---COMMIT---"
LOG_FORMAT = f"%H%n%h%n%an%n%ae%n%ai%n%s%n%b%n{COMMIT_SENTINEL}"
UNKNOWN_BRANCH = "unknown"

# sha, short sha, author, email, date, subject
_MIN_COMMIT_LINES = 6

_BRANCH_LINE_RE = re.compile(
    r"^## (?P<branch>.+?)(?:\.\.\.(?P<upstream>\S+))?(?: \[(?P<tracking>[^\]]*)\])?$"
)
_NO_COMMITS_PREFIXES = ("No commits yet on ", "Initial commit on ")
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")
_UPSTREAM_RE = re.compile(r"\[(.+?)\]")
_REMOTE_HOST_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*://)?(?:[^@/]+@)?(?P<host>[^/:]+)")

_STAGED_CODES = {
    "A": FileChange.ADDED,
    "M": FileChange.MODIFIED,
    "D": FileChange.DELETED,
    "R": FileChange.RENAMED,
}
_UNSTAGED_CODES = {
    "M": FileChange.MODIFIED,
    "D": FileChange.DELETED,
}


def parse_branch_line(line: str) -> tuple[str, int, int]:
    """Parse a ``## branch...upstream [ahead N, behind M]`` line."""
    match = _BRANCH_LINE_RE.match(line.strip())
    if not match:
        return UNKNOWN_BRANCH, 0, 0

    branch = match.group("branch")
    for prefix in _NO_COMMITS_PREFIXES:
        if branch.startswith(prefix):
            branch = branch[len(prefix) :]
            break

    tracking = match.group("tracking") or ""
    ahead = _AHEAD_RE.search(tracking)
    behind = _BEHIND_RE.search(tracking)
    return (
        branch,
        int(ahead.group(1)) if ahead else 0,
        int(behind.group(1)) if behind else 0,
    )


def classify_status_code(code: str) -> tuple[FileChange, bool]:
    """Map a two-character porcelain code to (status, staged).

    The index column wins. The worktree column only applies to entries that
    have nothing staged, so ``MD`` stays a staged modification.
    """
    index_code = code[:1]
    worktree_code = code[1:2]

    status = FileChange.MODIFIED
    staged = False
    if index_code in _STAGED_CODES:
        status = _STAGED_CODES[index_code]
        staged = True
    elif index_code == "?":
        status = FileChange.UNTRACKED

    if not staged and worktree_code in _UNSTAGED_CODES:
        status = _UNSTAGED_CODES[worktree_code]
    return status, staged


def parse_status_entry(line: str) -> FileStatusEntry | None:
    """Parse one ``XY path`` line; ``None`` when the line carries no code."""
    if len(line) < 4:
        return None
    status, staged = classify_status_code(line[:2])
    path = line[3:]
    old_path = None
    if status is FileChange.RENAMED and " -> " in path:
        old_path, path = path.split(" -> ", 1)
    return FileStatusEntry(path=path, status=status, staged=staged, old_path=old_path)


def parse_status(text: str) -> GitStatus:
    """Parse ``git status --porcelain --branch`` output."""
    lines = [line for line in text.split("\n") if line.strip()]

    branch, ahead, behind = UNKNOWN_BRANCH, 0, 0
    if lines and lines[0].startswith("## "):
        branch, ahead, behind = parse_branch_line(lines[0])
        lines = lines[1:]

    files: list[FileStatusEntry] = []
    for line in lines:
        entry = parse_status_entry(line)
        if entry is not None:
            files.append(entry)

    return GitStatus(branch=branch, ahead=ahead, behind=behind, files=tuple(files))


def parse_log(text: str, branch: str | None = None) -> list[GitCommit]:
    """Parse ``git log`` output produced with ``LOG_FORMAT``.

    Commits come back in the order git printed them (newest first).
    """
    commits: list[GitCommit] = []
    for block in text.split(COMMIT_SENTINEL):
        if not block.strip():
            continue
        lines = block.strip().split("\n")
        if len(lines) < _MIN_COMMIT_LINES:
            continue
        commits.append(
            GitCommit(
                sha=lines[0].strip(),
                short_sha=lines[1].strip(),
                author=lines[2],
                email=lines[3],
                date=lines[4],
                message="\n".join(lines[5:]).strip(),
                branch=branch,
            )
        )
    return commits


def _branch_name(line: str) -> str:
    if line.startswith("("):
        end = line.find(")")
        if end != -1:
            return line[: end + 1]
    return line.split()[0]


def parse_branches(text: str) -> list[GitBranch]:
    """Parse ``git branch -a -vv`` output."""
    branches: list[GitBranch] = []
    seen_current = False
    for line in text.split("\n"):
        if not line.strip():
            continue

        marker = line[:1]
        current = marker == "*" and not seen_current
        seen_current = seen_current or current
        clean = line[1:] if marker in ("*", "+") else line
        clean = clean.strip()
        if not clean:
            continue

        name = _branch_name(clean)
        remote = name.startswith("remotes/")
        if remote:
            name = name[len("remotes/") :]

        upstream = _UPSTREAM_RE.search(line)
        branches.append(
            GitBranch(
                name=name,
                current=current,
                remote=remote,
                upstream=upstream.group(1) if upstream else None,
            )
        )
    return branches


def parse_remote_info(name: str, url: str) -> RemoteInfo:
    """Classify a remote URL by hosting service."""
    match = _REMOTE_HOST_RE.match(url.strip())
    host = match.group("host").lower() if match else ""
    if host == "github.com" or host.endswith(".github.com"):
        kind = "github"
    elif "gitlab" in host:
        kind = "gitlab"
    else:
        kind = "other"
    return RemoteInfo(name=name, url=url.strip(), kind=kind)
