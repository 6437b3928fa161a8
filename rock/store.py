"""JSON document persistence for rock data."""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import cast

import click

from rock.models import GitSettings, RegisteredRepo

logger = logging.getLogger(__name__)

APP_NAME = "rock"
DATA_FILE_NAME = "rock-data.json"
DATA_FILE_ENV = "ROCK_DATA_FILE"

Document = dict[str, object]

_DOC_LOCK = threading.Lock()


class StoreError(Exception):
    """The data file could not be read."""


def default_data_file() -> Path:
    """Resolve the data file from the environment or the user's app dir."""
    override = os.environ.get(DATA_FILE_ENV)
    if override:
        return Path(override).expanduser()
    return Path(click.get_app_dir(APP_NAME)) / DATA_FILE_NAME


def _expect_list(value: object, section: str) -> list[dict[str, object]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise StoreError(f"Invalid {section} section in data file.")
    entries: list[dict[str, object]] = []
    for entry in value:
        if not isinstance(entry, dict):
            raise StoreError(f"Invalid {section} entry in data file.")
        entries.append(cast(dict[str, object], entry))
    return entries


class DataStore:
    """The single JSON document shared by every view of the app.

    Sections this module does not know about are kept as-is.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_data_file()

    def get_document(self) -> Document:
        if not self.path.is_file():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON in {self.path}") from exc

        if not isinstance(raw, dict):
            raise StoreError(f"Invalid data format in {self.path}")
        return raw

    def save_document(self, document: Document) -> bool:
        """Write the whole document; False when the file cannot be written."""
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent, text=True
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps(document, indent=2) + "\n")
            os.replace(tmp_name, self.path)
        except OSError as exc:
            logger.error("Failed to write data file %s: %s", self.path, exc)
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False
        return True

    def update_document(self, mutator: Callable[[Document], Document | None]) -> Document:
        """Read, mutate and write the document while holding the store lock.

        ``mutator`` may edit the document in place or return a replacement.
        Only callers in this process are serialised.
        """
        with _DOC_LOCK:
            document = self.get_document()
            updated = mutator(document)
            if updated is not None:
                document = updated
            if not self.save_document(document):
                raise StoreError(f"Failed to write {self.path}")
            return document

    def list_repositories(self) -> list[RegisteredRepo]:
        entries = _expect_list(self.get_document().get("gitRepositories"), "gitRepositories")
        return [RegisteredRepo.from_dict(entry) for entry in entries]

    def get_repository(self, repo_id: str) -> RegisteredRepo | None:
        return next((repo for repo in self.list_repositories() if repo.id == repo_id), None)

    def add_repository(self, repo: RegisteredRepo) -> RegisteredRepo:
        def _add(document: Document) -> None:
            entries = _expect_list(document.get("gitRepositories"), "gitRepositories")
            entries.append(repo.to_dict())
            document["gitRepositories"] = entries

        self.update_document(_add)
        return repo

    def remove_repository(self, repo_id: str) -> bool:
        removed = False

        def _remove(document: Document) -> None:
            nonlocal removed
            entries = _expect_list(document.get("gitRepositories"), "gitRepositories")
            kept = [entry for entry in entries if entry.get("id") != repo_id]
            removed = len(kept) != len(entries)
            document["gitRepositories"] = kept

        self.update_document(_remove)
        return removed

    def update_repository(self, repo_id: str, **changes: str | None) -> RegisteredRepo | None:
        """Replace fields of one registered repository (snake_case names)."""
        updated: RegisteredRepo | None = None

        def _update(document: Document) -> None:
            nonlocal updated
            entries = _expect_list(document.get("gitRepositories"), "gitRepositories")
            for idx, entry in enumerate(entries):
                if entry.get("id") != repo_id:
                    continue
                current = RegisteredRepo.from_dict(entry)
                fields = {
                    "id": current.id,
                    "name": current.name,
                    "path": current.path,
                    "remote_url": current.remote_url,
                    "last_fetched": current.last_fetched,
                }
                fields.update(changes)
                updated = RegisteredRepo(**cast(dict[str, str], fields))
                entries[idx] = updated.to_dict()
            document["gitRepositories"] = entries

        self.update_document(_update)
        return updated

    def git_settings(self) -> GitSettings:
        raw = self.get_document().get("gitSettings")
        if raw is None:
            return GitSettings()
        if not isinstance(raw, dict):
            raise StoreError("Invalid gitSettings section in data file.")
        return GitSettings.from_dict(cast(dict[str, object], raw))

    def save_git_settings(self, settings: GitSettings) -> None:
        def _save(document: Document) -> None:
            document["gitSettings"] = settings.to_dict()

        self.update_document(_save)
