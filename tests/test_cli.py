from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest
from click.testing import CliRunner

from rock import cli, git_ops

GIT_AVAILABLE = subprocess.run(["git", "--version"], capture_output=True).returncode == 0
needs_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")

runner = CliRunner()


def _run(cmd: list[str], cwd: Path | None = None) -> None:
    subprocess.run(cmd, cwd=str(cwd) if cwd else None, check=True, capture_output=True)


def _init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    _run(["git", "init"], cwd=path)
    _run(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=path)
    _run(["git", "-C", str(path), "config", "user.email", "test@example.com"])
    _run(["git", "-C", str(path), "config", "user.name", "Test"])
    _run(["git", "-C", str(path), "config", "commit.gpgsign", "false"])
    (path / "README.md").write_text("hello")
    _run(["git", "add", "."], cwd=path)
    _run(["git", "commit", "-m", "init"], cwd=path)
    return path


def _invoke(data_file: Path, *args: str):  # type: ignore[no-untyped-def]
    return runner.invoke(cli.main, ["--data-file", str(data_file), *args])


@needs_git
def test_git_status_json(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")
    (repo / "new.txt").write_text("x")

    result = _invoke(tmp_path / "data.json", "git", "status", str(repo), "--json")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["branch"] == "main"
    assert payload["hasUncommitted"] is True
    assert payload["files"] == [{"path": "new.txt", "status": "untracked", "staged": False}]


@needs_git
def test_git_verify(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")
    plain = tmp_path / "plain"
    plain.mkdir()

    ok = _invoke(tmp_path / "data.json", "git", "verify", str(repo))
    bad = _invoke(tmp_path / "data.json", "git", "verify", str(plain))

    assert ok.exit_code == 0
    assert ok.output.strip() == "true"
    assert bad.exit_code == 1
    assert bad.output.strip() == "false"


@needs_git
def test_git_commit_and_log(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")
    (repo / "a.txt").write_text("a")

    commit = _invoke(tmp_path / "data.json", "git", "commit", str(repo), "a.txt", "-m", "add a")
    log = _invoke(tmp_path / "data.json", "git", "log", str(repo), "-n", "1", "--json")

    assert commit.exit_code == 0, commit.output
    assert log.exit_code == 0, log.output
    commits = json.loads(log.output)
    assert [c["message"] for c in commits] == ["add a"]


@needs_git
def test_git_failure_is_reported(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")

    result = _invoke(tmp_path / "data.json", "git", "switch", str(repo), "missing-branch")

    assert result.exit_code == 1
    assert "Git command failed" in result.output


@needs_git
def test_git_branches_and_current_branch(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")

    created = _invoke(tmp_path / "data.json", "git", "create-branch", str(repo), "feature")
    current = _invoke(tmp_path / "data.json", "git", "current-branch", str(repo))
    listing = _invoke(tmp_path / "data.json", "git", "branches", str(repo), "--json")

    assert created.exit_code == 0, created.output
    assert current.output.strip() == "feature"
    branches = json.loads(listing.output)
    assert {b["name"]: b["current"] for b in branches} == {"feature": True, "main": False}


def test_commit_requires_message(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "data.json", "git", "commit", str(tmp_path), "-m", "  ")
    assert result.exit_code == 2


def test_remote_url_never_fails(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "data.json", "git", "remote-url", str(tmp_path))
    assert result.exit_code == 0
    assert result.output.strip() == ""


@needs_git
def test_repos_add_list_status_remove(tmp_path: Path) -> None:
    data_file = tmp_path / "data.json"
    repo = _init_repo(tmp_path / "project")

    added = _invoke(data_file, "repos", "add", str(repo))
    assert added.exit_code == 0, added.output
    assert "Added project" in added.output

    listed = _invoke(data_file, "repos", "list", "--json")
    repos = json.loads(listed.output)
    assert [(r["name"], r["path"]) for r in repos] == [("project", str(repo.resolve()))]

    status = _invoke(data_file, "repos", "status", "--json", "--no-fetch")
    assert status.exit_code == 0, status.output
    assert json.loads(status.output)[repos[0]["id"]]["branch"] == "main"

    table = _invoke(data_file, "repos", "status", "--no-fetch")
    assert "project" in table.output
    assert "clean" in table.output

    shown = _invoke(data_file, "repos", "show", "project")
    assert shown.exit_code == 0, shown.output
    assert "On branch main" in shown.output
    assert "init" in shown.output

    removed = _invoke(data_file, "repos", "remove", "project", "--yes")
    assert removed.exit_code == 0, removed.output
    assert json.loads(_invoke(data_file, "repos", "list", "--json").output) == []


@needs_git
def test_repos_add_rejects_non_repository(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()

    result = _invoke(tmp_path / "data.json", "repos", "add", str(plain))

    assert result.exit_code == 1
    assert "Not a valid Git repository" in result.output


def test_repos_remove_unknown(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "data.json", "repos", "remove", "nope", "--yes")
    assert result.exit_code == 1
    assert "Unknown repository 'nope'" in result.output


def test_repos_fetch_reports_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    data_file = tmp_path / "data.json"
    data_file.write_text(
        json.dumps({"gitRepositories": [{"id": "1", "name": "one", "path": "/work/one"}]})
    )

    def fake_fetch(path: str) -> None:
        raise git_ops.GitError(["fetch"], "fatal: no remote", 128)

    monkeypatch.setattr(git_ops, "fetch", fake_fetch)
    result = _invoke(data_file, "repos", "fetch")

    assert result.exit_code == 1
    assert "fatal: no remote" in result.output


def test_settings_set_and_show(tmp_path: Path) -> None:
    data_file = tmp_path / "data.json"

    result = _invoke(
        data_file, "settings", "set", "--username", "me", "--github-token", "t0k", "--auto-fetch"
    )
    assert result.exit_code == 0, result.output

    shown = json.loads(_invoke(data_file, "settings", "show").output)
    assert shown == {"autoFetch": True, "username": "me", "githubToken": "********"}
    raw = json.loads(data_file.read_text())
    assert raw["gitSettings"]["githubToken"] == "t0k"
