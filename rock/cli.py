import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from rock import git_ops, services, ui
from rock.store import DataStore, StoreError

logger = logging.getLogger(__name__)

REPO_PATH = click.Path(file_okay=False, path_type=Path)


@contextmanager
def _boundary() -> Iterator[None]:
    """Turn rock errors into a one-line failure message."""
    try:
        yield
    except (git_ops.GitError, StoreError, services.RegistrationError) as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_json(payload: object) -> None:
    click.echo(json.dumps(payload, indent=2))


def _store(ctx: click.Context) -> DataStore:
    return ctx.find_object(DataStore) or DataStore()


@click.group(context_settings={"help_option_names": ["-h", "--help"]}, invoke_without_command=True)
@click.option(
    "--data-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to rock-data.json (defaults to $ROCK_DATA_FILE or the app dir).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log git commands and advisories.")
@click.pass_context
def main(ctx: click.Context, data_file: Path | None, verbose: bool) -> None:
    """Track and sync local git repositories."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = DataStore(data_file)
    if ctx.invoked_subcommand is not None:
        return

    from rock.tui import run_tui

    run_tui(ctx.obj)


# git: one command per repository operation


@main.group("git")
def git_group() -> None:
    """Run a single operation against a working tree."""


@git_group.command("verify")
@click.argument("path", type=REPO_PATH)
def verify_cmd(path: Path) -> None:
    """Exit 0 when PATH is a git working tree, 1 otherwise."""
    ok = git_ops.verify(path)
    click.echo("true" if ok else "false")
    if not ok:
        raise SystemExit(1)


@git_group.command("status")
@click.argument("path", type=REPO_PATH)
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output.")
def status_cmd(path: Path, as_json: bool) -> None:
    with _boundary():
        result = git_ops.status(path)
    if as_json:
        _echo_json(result.to_dict())
    else:
        click.echo(ui.render_status(result))


@git_group.command("log")
@click.argument("path", type=REPO_PATH)
@click.option("-n", "--limit", type=click.IntRange(min=1), default=git_ops.DEFAULT_LOG_LIMIT)
@click.option("--ref", default=None, help="Show history of this ref instead of HEAD.")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output.")
def log_cmd(path: Path, limit: int, ref: str | None, as_json: bool) -> None:
    with _boundary():
        commits = git_ops.log(path, limit, ref)
    if as_json:
        _echo_json([c.to_dict() for c in commits])
    else:
        click.echo(ui.render_log(commits))


@git_group.command("branches")
@click.argument("path", type=REPO_PATH)
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output.")
def branches_cmd(path: Path, as_json: bool) -> None:
    with _boundary():
        result = git_ops.branches(path)
    if as_json:
        _echo_json([b.to_dict() for b in result])
    else:
        click.echo(ui.render_branches(result))


@git_group.command("current-branch")
@click.argument("path", type=REPO_PATH)
def current_branch_cmd(path: Path) -> None:
    with _boundary():
        click.echo(git_ops.current_branch(path))


@git_group.command("commit")
@click.argument("path", type=REPO_PATH)
@click.argument("files", nargs=-1)
@click.option("-m", "--message", required=True, help="Commit message.")
def commit_cmd(path: Path, files: tuple[str, ...], message: str) -> None:
    """Stage FILES (if given) and commit them."""
    if not message.strip():
        raise click.BadParameter("message cannot be empty", param_hint="--message")
    with _boundary():
        git_ops.commit(path, message, list(files))


@git_group.command("push")
@click.argument("path", type=REPO_PATH)
def push_cmd(path: Path) -> None:
    with _boundary():
        git_ops.push(path)


@git_group.command("pull")
@click.argument("path", type=REPO_PATH)
def pull_cmd(path: Path) -> None:
    with _boundary():
        git_ops.pull(path)


@git_group.command("fetch")
@click.argument("path", type=REPO_PATH)
def fetch_cmd(path: Path) -> None:
    with _boundary():
        git_ops.fetch(path)


@git_group.command("switch")
@click.argument("path", type=REPO_PATH)
@click.argument("name")
def switch_cmd(path: Path, name: str) -> None:
    with _boundary():
        git_ops.switch_branch(path, name)


@git_group.command("create-branch")
@click.argument("path", type=REPO_PATH)
@click.argument("name")
def create_branch_cmd(path: Path, name: str) -> None:
    with _boundary():
        git_ops.create_branch(path, name)


@git_group.command("clone")
@click.argument("url")
@click.argument("dest", type=click.Path(path_type=Path))
def clone_cmd(url: str, dest: Path) -> None:
    with _boundary():
        git_ops.clone_repository(url, dest)
    click.echo(dest)


@git_group.command("remote-url")
@click.argument("path", type=REPO_PATH)
def remote_url_cmd(path: Path) -> None:
    click.echo(git_ops.remote_url(path))


# repos: the registered repository list


@main.group("repos")
def repos_group() -> None:
    """Manage registered repositories."""


@repos_group.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output.")
@click.pass_context
def repos_list(ctx: click.Context, as_json: bool) -> None:
    with _boundary():
        repos = _store(ctx).list_repositories()
    if as_json:
        _echo_json([r.to_dict() for r in repos])
        return
    for repo in repos:
        click.echo(f"{repo.id}  {repo.name:24} {repo.path}")


@repos_group.command("add")
@click.argument("path", required=False, type=REPO_PATH)
@click.pass_context
def repos_add(ctx: click.Context, path: Path | None) -> None:
    """Register PATH (or pick a directory interactively)."""
    if path is None:
        selected = ui.select_directory()
        if not selected:
            return
        path = Path(selected)
    with _boundary():
        repo = services.register_repository(_store(ctx), path)
    click.echo(f"Added {repo.name} ({repo.id})")


@repos_group.command("remove")
@click.argument("key", required=False)
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def repos_remove(ctx: click.Context, key: str | None, yes: bool) -> None:
    """Unregister a repository by id, name or path."""
    store = _store(ctx)
    with _boundary():
        if key is None:
            repo = ui.pick_repository(store.list_repositories())
        else:
            repo = services.find_repository(store, key)
    if repo is None:
        raise click.ClickException(f"Unknown repository '{key}'" if key else "Nothing selected")
    if not yes and not ui.confirm(f"Remove {repo.name} ({repo.path})?"):
        return
    with _boundary():
        services.unregister_repository(store, repo.id)
    click.echo(f"Removed {repo.name}")


@repos_group.command("status")
@click.option("--fetch/--no-fetch", "do_fetch", default=None, help="Fetch before reading status.")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable output.")
@click.pass_context
def repos_status(ctx: click.Context, do_fetch: bool | None, as_json: bool) -> None:
    """Show the status of every registered repository."""
    store = _store(ctx)
    with _boundary():
        repos = store.list_repositories()
        if do_fetch is None:
            do_fetch = store.git_settings().auto_fetch
        if do_fetch:
            for message in services.fetch_repositories(store, repos).values():
                click.echo(message, err=True)
            repos = store.list_repositories()
    statuses = services.refresh_statuses(repos)
    if as_json:
        _echo_json({repo_id: s.to_dict() for repo_id, s in statuses.items()})
    else:
        click.echo(ui.render_repo_table(repos, statuses))


@repos_group.command("fetch")
@click.pass_context
def repos_fetch(ctx: click.Context) -> None:
    """Fetch every registered repository."""
    store = _store(ctx)
    with _boundary():
        failures = services.fetch_repositories(store, store.list_repositories())
    for message in failures.values():
        click.echo(message, err=True)
    if failures:
        raise SystemExit(1)


@repos_group.command("show")
@click.argument("key")
@click.option("-n", "--limit", type=click.IntRange(min=1), default=services.DETAIL_LOG_LIMIT)
@click.pass_context
def repos_show(ctx: click.Context, key: str, limit: int) -> None:
    """Show status and recent commits of one registered repository."""
    with _boundary():
        repo = services.find_repository(_store(ctx), key)
        if repo is None:
            raise click.ClickException(f"Unknown repository '{key}'")
        detail = services.load_repository_detail(repo, limit)
    click.echo(f"{repo.name}  {repo.path}")
    if repo.remote_url:
        click.echo(repo.remote_url)
    click.echo("")
    click.echo(ui.render_status(detail.status))
    click.echo("")
    click.echo(ui.render_log(detail.commits))


# settings: the gitSettings section


@main.group("settings")
def settings_group() -> None:
    """Read or change git settings."""


@settings_group.command("show")
@click.pass_context
def settings_show(ctx: click.Context) -> None:
    with _boundary():
        settings = _store(ctx).git_settings()
    data = settings.to_dict()
    if "githubToken" in data:
        data["githubToken"] = "********"
    _echo_json(data)


@settings_group.command("set")
@click.option("--username", default=None)
@click.option("--email", default=None)
@click.option("--github-token", default=None)
@click.option("--auto-fetch/--no-auto-fetch", default=None)
@click.pass_context
def settings_set(
    ctx: click.Context,
    username: str | None,
    email: str | None,
    github_token: str | None,
    auto_fetch: bool | None,
) -> None:
    store = _store(ctx)
    with _boundary():
        settings = store.git_settings()
        if username is not None:
            settings.username = username or None
        if email is not None:
            settings.email = email or None
        if github_token is not None:
            settings.github_token = github_token or None
        if auto_fetch is not None:
            settings.auto_fetch = auto_fetch
        store.save_git_settings(settings)
