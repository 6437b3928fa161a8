from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from rock import git_ops, services
from rock.models import GitStatus, RegisteredRepo
from rock.store import DataStore

GIT_AVAILABLE = subprocess.run(["git", "--version"], capture_output=True).returncode == 0


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


def _repos() -> list[RegisteredRepo]:
    return [
        RegisteredRepo(id="1", name="one", path="/work/one"),
        RegisteredRepo(id="2", name="two", path="/work/two"),
        RegisteredRepo(id="3", name="three", path="/work/three"),
    ]


def test_refresh_statuses_skips_failed_repository(caplog: pytest.LogCaptureFixture) -> None:
    def fake_status(path: str) -> GitStatus:
        if path == "/work/two":
            raise git_ops.GitError(["status"], "fatal: not a git repository", 128)
        return GitStatus(branch=Path(path).name)

    statuses = services.refresh_statuses(_repos(), status_fn=fake_status)

    assert set(statuses) == {"1", "3"}
    assert statuses["1"].branch == "one"
    assert statuses["3"].branch == "three"
    assert "two" in caplog.text


def test_refresh_statuses_survives_unexpected_errors(caplog: pytest.LogCaptureFixture) -> None:
    def flaky_status(path: str) -> GitStatus:
        if path == "/work/one":
            raise ValueError("embedded null byte")
        return GitStatus(branch="main")

    statuses = services.refresh_statuses(_repos(), status_fn=flaky_status)

    assert set(statuses) == {"2", "3"}
    assert "embedded null byte" in caplog.text


def test_fetch_repositories_survives_unexpected_errors(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    for repo in _repos():
        store.add_repository(repo)

    def flaky_fetch(path: str) -> None:
        if path == "/work/two":
            raise RuntimeError("boom")

    failures = services.fetch_repositories(store, store.list_repositories(), fetch_fn=flaky_fetch)

    assert failures == {"2": "boom"}
    assert store.get_repository("1").last_fetched is not None  # type: ignore[union-attr]


def test_refresh_statuses_with_no_repositories() -> None:
    assert services.refresh_statuses([]) == {}


def test_fetch_repositories_stamps_successes(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    for repo in _repos():
        store.add_repository(repo)

    def fake_fetch(path: str) -> None:
        if path == "/work/three":
            raise git_ops.GitError(["fetch"], "fatal: could not read from remote", 128)

    failures = services.fetch_repositories(store, store.list_repositories(), fetch_fn=fake_fetch)

    assert list(failures) == ["3"]
    assert "could not read from remote" in failures["3"]
    by_id = {repo.id: repo for repo in store.list_repositories()}
    assert by_id["1"].last_fetched is not None
    assert by_id["2"].last_fetched is not None
    assert by_id["3"].last_fetched is None


def test_find_repository(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    for repo in _repos():
        store.add_repository(repo)

    assert services.find_repository(store, "2").name == "two"  # type: ignore[union-attr]
    assert services.find_repository(store, "three").id == "3"  # type: ignore[union-attr]
    assert services.find_repository(store, "/work/one").id == "1"  # type: ignore[union-attr]
    assert services.find_repository(store, "nope") is None


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_register_repository(tmp_path: Path) -> None:
    path = _init_repo(tmp_path / "project")
    _run(["git", "remote", "add", "origin", "https://github.com/me/project.git"], cwd=path)
    store = DataStore(tmp_path / "rock-data.json")

    repo = services.register_repository(store, path)

    assert repo.name == "project"
    assert repo.path == str(path.resolve())
    assert repo.remote_url == "https://github.com/me/project.git"
    assert repo.last_fetched
    assert store.list_repositories() == [repo]


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_register_repository_without_remote(tmp_path: Path) -> None:
    path = _init_repo(tmp_path / "local-only")
    store = DataStore(tmp_path / "rock-data.json")

    repo = services.register_repository(store, path)

    assert repo.remote_url is None
    assert "remoteUrl" not in repo.to_dict()


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_register_current_directory_stores_absolute_path(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = _init_repo(tmp_path / "myrepo")
    store = DataStore(tmp_path / "rock-data.json")
    monkeypatch.chdir(path)

    repo = services.register_repository(store, ".")

    assert repo.name == "myrepo"
    assert repo.path == str(path.resolve())
    with pytest.raises(services.RegistrationError):
        services.register_repository(store, "../myrepo/")

    monkeypatch.chdir(tmp_path)
    assert list(services.refresh_statuses(store.list_repositories())) == [repo.id]


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_register_rejects_invalid_and_duplicate_paths(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    plain = tmp_path / "plain"
    plain.mkdir()
    with pytest.raises(services.RegistrationError):
        services.register_repository(store, plain)

    path = _init_repo(tmp_path / "project")
    services.register_repository(store, path)
    with pytest.raises(services.RegistrationError):
        services.register_repository(store, path)
    assert len(store.list_repositories()) == 1


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_refresh_real_repositories(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    good = services.register_repository(store, _init_repo(tmp_path / "good"))
    (tmp_path / "good" / "new.txt").write_text("x")
    vanished = RegisteredRepo(id="gone", name="gone", path=str(tmp_path / "gone"))

    statuses = services.refresh_statuses([good, vanished])

    assert list(statuses) == [good.id]
    assert statuses[good.id].branch == "main"
    assert statuses[good.id].has_uncommitted is True


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_load_repository_detail(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    repo = services.register_repository(store, _init_repo(tmp_path / "project"))

    detail = services.load_repository_detail(repo)

    assert detail.repo == repo
    assert detail.status.branch == "main"
    assert [c.message for c in detail.commits] == ["init"]


def test_unregister_repository(tmp_path: Path) -> None:
    store = DataStore(tmp_path / "rock-data.json")
    for repo in _repos():
        store.add_repository(repo)

    assert services.unregister_repository(store, "2") is True
    assert [r.id for r in store.list_repositories()] == ["1", "3"]
