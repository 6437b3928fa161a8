"""Textual TUI for the registered repositories."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Input, Static

from rock import git_ops, services, ui
from rock.models import GitStatus, RegisteredRepo, RepositoryDetail
from rock.store import DataStore, StoreError

logger = logging.getLogger(__name__)

HEADERS = ["NAME", "BRANCH", "PULL/PUSH", "CHANGES", "LAST FETCHED", "PATH"]
COMMAND_BAR = (
    "Enter: details  |  a: add  |  D: remove  |  c: commit  |  p: pull  |  P: push  "
    "|  f: fetch all  |  r: refresh  |  q/Esc: quit"
)
SPINNER = "|/-\\"


CSS = """
Screen {
    layout: vertical;
}

#command_bar {
    padding: 0 1;
    height: 1;
    color: $text-muted;
}

#status_line {
    padding: 0 1;
    height: 1;
}

#table {
    height: 1fr;
}

.modal {
    align: center middle;
}

.modal-body {
    width: 90;
    max-width: 100;
    height: auto;
    max-height: 90%;
    border: thick $primary;
    background: $surface;
    padding: 1 2;
}

.modal-title {
    margin-bottom: 1;
    text-style: bold;
}

.modal-hint {
    margin-top: 1;
    color: $text-muted;
}

.modal-input {
    margin-top: 1;
}
"""


def format_row(repo: RegisteredRepo, status: GitStatus | None) -> list[Text]:
    """Format a repository row; repositories without a status are dimmed."""
    style = "" if status is not None else "dim"
    values = [
        repo.name,
        status.branch if status else "n/a",
        ui.format_sync(status),
        ui.format_changes(status),
        ui.format_relative_time(repo.last_fetched),
        repo.path,
    ]
    return [Text(value, style=style) for value in values]


def format_detail(detail: RepositoryDetail) -> str:
    lines = [ui.render_status(detail.status), "", "Recent commits:"]
    log_text = ui.render_log(detail.commits)
    lines.append(log_text or "  (none)")
    return "\n".join(lines)


class ConfirmScreen(ModalScreen[bool]):
    """Simple yes/no modal."""

    BINDINGS = [
        Binding("y", "yes", "Yes"),
        Binding("n", "no", "No"),
        Binding("escape", "no", "No"),
    ]

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield Static("Press y to confirm, n or Esc to cancel.", classes="modal-hint")

    def action_yes(self) -> None:
        self.dismiss(True)

    def action_no(self) -> None:
        self.dismiss(False)


class TextInputScreen(ModalScreen[str | None]):
    """Text input modal."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield Input(
                    placeholder="Type and press Enter", classes="modal-input", id="value_input"
                )
                yield Static("Esc to cancel.", classes="modal-hint")

    def on_mount(self) -> None:
        self.query_one("#value_input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        self.dismiss(value or None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class DetailScreen(ModalScreen[None]):
    """Status and recent history of one repository."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close"),
    ]

    def __init__(self, title: str, body: str) -> None:
        super().__init__()
        self.title_text = title
        self.body = body

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with VerticalScroll(classes="modal-body"):
                yield Static(self.title_text, classes="modal-title")
                yield Static(Text(self.body))
                yield Static("Esc to close.", classes="modal-hint")

    def action_close(self) -> None:
        self.dismiss(None)


class RockApp(App[None]):
    """Main textual application."""

    CSS = CSS
    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("escape", "quit_app", "Quit"),
        Binding("enter", "details", "Details"),
        Binding("a", "add_repo", "Add"),
        Binding("shift+d", "remove_repo", "Remove"),
        Binding("c", "commit_repo", "Commit"),
        Binding("p", "pull_repo", "Pull"),
        Binding("shift+p", "push_repo", "Push"),
        Binding("f", "fetch_all", "Fetch"),
        Binding("r", "refresh", "Refresh"),
    ]

    def __init__(self, store: DataStore) -> None:
        super().__init__()
        self.store = store
        self.repos: list[RegisteredRepo] = []
        self.statuses: dict[str, GitStatus] = {}
        self.state_lock = threading.Lock()

        self._refreshing = False
        self._busy = False
        self._spinner_index = 0
        self._spinner_message: str | None = None

    def compose(self) -> ComposeResult:
        yield Static(COMMAND_BAR, id="command_bar")
        yield Static("", id="status_line")
        yield DataTable(id="table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#table", DataTable)
        table.zebra_stripes = True
        table.add_columns(*HEADERS)
        self._reload_repos()
        self._start_refresh_thread()
        self.set_interval(0.25, self._tick)

    def _tick(self) -> None:
        if self._spinner_message:
            spinner = SPINNER[self._spinner_index % len(SPINNER)]
            self._spinner_index += 1
            self._set_status(f"{self._spinner_message} {spinner}")

        # Repaint to show results from background refresh threads.
        self._populate_table()

    def _set_status(self, message: str | None) -> None:
        self.query_one("#status_line", Static).update(message or "")

    def _populate_table(self) -> None:
        table = self.query_one("#table", DataTable)
        row = table.cursor_row
        with self.state_lock:
            snapshot = [(repo, self.statuses.get(repo.id)) for repo in self.repos]

        table.clear(columns=False)
        for repo, status in snapshot:
            table.add_row(*format_row(repo, status), key=repo.id)

        if snapshot:
            table.move_cursor(row=min(max(row, 0), len(snapshot) - 1))

    def _current_repo(self) -> RegisteredRepo | None:
        table = self.query_one("#table", DataTable)
        row = table.cursor_row
        with self.state_lock:
            if row < 0 or row >= len(self.repos):
                return None
            return self.repos[row]

    def _reload_repos(self) -> None:
        try:
            repos = self.store.list_repositories()
        except StoreError as exc:
            self._set_status(str(exc))
            return
        with self.state_lock:
            self.repos = repos
        self._populate_table()

    def _start_refresh_thread(self) -> None:
        if self._refreshing:
            self._set_status("Refresh already in progress...")
            return

        self._refreshing = True
        with self.state_lock:
            repos = list(self.repos)

        def runner() -> None:
            try:
                statuses = services.refresh_statuses(repos)
                with self.state_lock:
                    self.statuses = statuses
                failed = len(repos) - len(statuses)
                message = f"{failed} repositories failed to refresh." if failed else ""
                self.call_from_thread(self._set_status, message)
            finally:
                self._refreshing = False

        threading.Thread(target=runner, daemon=True).start()

    def _run_action_with_spinner(
        self,
        spinner_message: str,
        action: Callable[[], None],
        success_message: str,
        failure_prefix: str,
    ) -> None:
        if self._busy:
            self._set_status("Another operation is in progress.")
            return

        self._busy = True
        self._spinner_index = 0
        self._spinner_message = spinner_message

        def runner() -> None:
            status, succeeded = f"{failure_prefix}: unexpected error", False
            try:
                action()
                status, succeeded = success_message, True
            except (git_ops.GitError, StoreError, services.RegistrationError) as exc:
                status = f"{failure_prefix}: {exc}"
            except Exception:
                logger.exception("%s failed", spinner_message)
            finally:
                self.call_from_thread(self._finish_action, status, succeeded)

        threading.Thread(target=runner, daemon=True).start()

    def _finish_action(self, status: str, succeeded: bool) -> None:
        self._spinner_message = None
        self._busy = False
        self._set_status(status)
        if succeeded:
            self._reload_repos()
            self._start_refresh_thread()

    def action_quit_app(self) -> None:
        self.exit(None)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Open details when DataTable handles Enter."""
        if event.data_table.id != "table":
            return
        self.action_details()

    def action_details(self) -> None:
        current = self._current_repo()
        if current is None:
            self._set_status("No repositories registered.")
            return
        self._set_status(f"Loading {current.name}...")

        def runner() -> None:
            try:
                detail = services.load_repository_detail(current)
            except git_ops.GitError as exc:
                self.call_from_thread(self._set_status, f"Failed to load {current.name}: {exc}")
                return
            self.call_from_thread(self._show_detail, current, detail)

        threading.Thread(target=runner, daemon=True).start()

    def _show_detail(self, repo: RegisteredRepo, detail: RepositoryDetail) -> None:
        self._set_status("")
        self.push_screen(DetailScreen(f"{repo.name}  {repo.path}", format_detail(detail)))

    def action_refresh(self) -> None:
        if self._busy:
            self._set_status("Another operation is in progress.")
            return
        self._set_status("Refreshing...")
        self._reload_repos()
        self._start_refresh_thread()

    def action_fetch_all(self) -> None:
        with self.state_lock:
            repos = list(self.repos)

        def do_fetch() -> None:
            failures = services.fetch_repositories(self.store, repos)
            if failures:
                raise git_ops.GitError(["fetch"], f"{len(failures)} repositories failed")

        self._run_action_with_spinner("Fetching", do_fetch, "Fetched all.", "Fetch failed")

    def action_pull_repo(self) -> None:
        current = self._current_repo()
        if current is None:
            self._set_status("No repositories registered.")
            return
        self._run_action_with_spinner(
            f"Pulling {current.name}",
            lambda: git_ops.pull(current.path),
            f"Pulled {current.name}.",
            "Pull failed",
        )

    def action_push_repo(self) -> None:
        current = self._current_repo()
        if current is None:
            self._set_status("No repositories registered.")
            return
        self._run_action_with_spinner(
            f"Pushing {current.name}",
            lambda: git_ops.push(current.path),
            f"Pushed {current.name}.",
            "Push failed",
        )

    def action_commit_repo(self) -> None:
        current = self._current_repo()
        if current is None:
            self._set_status("No repositories registered.")
            return
        with self.state_lock:
            status = self.statuses.get(current.id)
        if status is None or not status.has_uncommitted:
            self._set_status(f"Nothing to commit in {current.name}.")
            return
        files = [entry.path for entry in status.files]

        def on_message(message: str | None) -> None:
            if not message:
                self._set_status("Commit cancelled.")
                return
            self._run_action_with_spinner(
                f"Committing {len(files)} files in {current.name}",
                lambda: git_ops.commit(current.path, message, files),
                f"Committed {len(files)} files in {current.name}.",
                "Commit failed",
            )

        self.push_screen(TextInputScreen(f"Commit message for {current.name}:"), on_message)

    def action_add_repo(self) -> None:
        def on_path(path: str | None) -> None:
            if not path:
                self._set_status("Add cancelled.")
                return
            def do_add() -> None:
                services.register_repository(self.store, path)

            self._run_action_with_spinner(
                f"Adding {path}",
                do_add,
                f"Added {path}.",
                "Add failed",
            )

        self.push_screen(TextInputScreen("Path to a git working tree:"), on_path)

    def action_remove_repo(self) -> None:
        current = self._current_repo()
        if current is None:
            self._set_status("No repositories registered.")
            return

        def on_confirm(confirmed: bool | None) -> None:
            if not confirmed:
                self._set_status("Remove cancelled.")
                return
            def do_remove() -> None:
                services.unregister_repository(self.store, current.id)

            self._run_action_with_spinner(
                f"Removing {current.name}",
                do_remove,
                f"Removed {current.name}.",
                "Remove failed",
            )

        self.push_screen(ConfirmScreen(f"Remove {current.name} from rock?"), on_confirm)


def run_tui(store: DataStore) -> None:
    """Run the textual TUI application."""
    RockApp(store).run()
