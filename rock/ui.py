from __future__ import annotations

import datetime as dt
from collections.abc import Iterable

import questionary
from prompt_toolkit.completion import FuzzyCompleter, WordCompleter
from prompt_toolkit.shortcuts import prompt

from .models import FileChange, GitBranch, GitCommit, GitStatus, RegisteredRepo

NAME_WIDTH = 24
BRANCH_WIDTH = 28
SYNC_WIDTH = 10
CHANGES_WIDTH = 10
FETCHED_WIDTH = 16
ANSI_RESET = "\x1b[0m"
ANSI_DIM = "\x1b[38;5;245m"

STATUS_LETTERS = {
    FileChange.MODIFIED: "M",
    FileChange.ADDED: "A",
    FileChange.DELETED: "D",
    FileChange.UNTRACKED: "?",
    FileChange.RENAMED: "R",
}


def format_relative_time(stamp: str | None) -> str:
    if not stamp:
        return "never"
    try:
        when = dt.datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    except ValueError:
        return stamp
    if when.tzinfo is None:
        when = when.replace(tzinfo=dt.timezone.utc)
    delta = dt.datetime.now(dt.timezone.utc) - when
    seconds = int(delta.total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        unit = "minute" if minutes == 1 else "minutes"
        return f"{minutes} {unit} ago"
    hours = minutes // 60
    if hours < 24:
        unit = "hour" if hours == 1 else "hours"
        return f"{hours} {unit} ago"
    days = hours // 24
    unit = "day" if days == 1 else "days"
    return f"{days} {unit} ago"


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        if width <= 3:
            return text[:width]
        return f"{text[: width - 3]}..."
    return text.ljust(width)


def format_sync(status: GitStatus | None) -> str:
    if status is None:
        return "?"
    if not status.ahead and not status.behind:
        return "-"
    return f"↑{status.ahead} ↓{status.behind}"


def format_changes(status: GitStatus | None) -> str:
    if status is None:
        return "error"
    if not status.has_uncommitted:
        return "clean"
    return f"{len(status.files)} changed"


def format_repo_columns(repo: RegisteredRepo, status: GitStatus | None) -> list[str]:
    branch = status.branch if status else "n/a"
    return [
        _fit(repo.name, NAME_WIDTH),
        _fit(branch, BRANCH_WIDTH),
        _fit(format_sync(status), SYNC_WIDTH),
        _fit(format_changes(status), CHANGES_WIDTH),
        _fit(format_relative_time(repo.last_fetched), FETCHED_WIDTH),
        repo.path,
    ]


def render_repo_table(
    repos: Iterable[RegisteredRepo],
    statuses: dict[str, GitStatus],
) -> str:
    lines = [
        " ".join(
            [
                _fit("NAME", NAME_WIDTH),
                _fit("BRANCH", BRANCH_WIDTH),
                _fit("SYNC", SYNC_WIDTH),
                _fit("CHANGES", CHANGES_WIDTH),
                _fit("FETCHED", FETCHED_WIDTH),
                "PATH",
            ]
        ),
        "-" * (NAME_WIDTH + BRANCH_WIDTH + SYNC_WIDTH + CHANGES_WIDTH + FETCHED_WIDTH + 9),
    ]
    for repo in repos:
        lines.append(" ".join(format_repo_columns(repo, statuses.get(repo.id))))
    return "\n".join(lines)


def render_status(status: GitStatus) -> str:
    header = f"On branch {status.branch}"
    if status.ahead or status.behind:
        header = f"{header} ({format_sync(status)})"
    lines = [header]
    if not status.files:
        lines.append("nothing to commit, working tree clean")
        return "\n".join(lines)
    for entry in status.files:
        column = "staged  " if entry.staged else "        "
        path = f"{entry.old_path} -> {entry.path}" if entry.old_path else entry.path
        lines.append(f"  {STATUS_LETTERS[entry.status]} {column} {path}")
    return "\n".join(lines)


def render_log(commits: Iterable[GitCommit]) -> str:
    lines = []
    for item in commits:
        lines.append(f"{item.short_sha}  {_fit(item.author, 20)} {item.date}  {item.subject}")
    return "\n".join(lines)


def render_branches(branches: Iterable[GitBranch]) -> str:
    lines = []
    for branch in branches:
        prefix = "* " if branch.current else "  "
        name = f"remotes/{branch.name}" if branch.remote else branch.name
        if branch.remote:
            name = f"{ANSI_DIM}{name}{ANSI_RESET}"
        suffix = f" [{branch.upstream}]" if branch.upstream else ""
        lines.append(f"{prefix}{name}{suffix}")
    return "\n".join(lines)


def format_pick_label(repo: RegisteredRepo) -> str:
    return f"{repo.name:24} {repo.path}"


def pick_repository(repos: list[RegisteredRepo]) -> RegisteredRepo | None:
    if not repos:
        return None
    labels = [format_pick_label(r) for r in repos]
    mapping = {label: repo for label, repo in zip(labels, repos)}
    completer = FuzzyCompleter(WordCompleter(labels, ignore_case=True))
    selection = prompt("Repository: ", completer=completer)
    return mapping.get(selection)


def confirm(text: str) -> bool:
    return bool(questionary.confirm(text, default=False).unsafe_ask())


def select_directory(message: str = "Repository directory:") -> str | None:
    answer = questionary.path(message, only_directories=True).unsafe_ask()
    return answer or None
