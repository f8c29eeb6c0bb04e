"""Tests for LocalStore against a real temporary git repository."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

import pytest

from graduate.coordinator.models import Environment, Unit
from graduate.infra.errors import StoreError
from graduate.store.repository import LocalStore

PRODUCTION = Environment("production", "deploy@prod.example.com")


def _store(repo: Path, *stamps: datetime) -> LocalStore:
    pending = list(stamps)
    return LocalStore(repo, now_fn=lambda: pending.pop(0))


def test_units_in_sorted_order(git_store: Path) -> None:
    (git_store / "apps" / ".cache").mkdir()
    (git_store / "apps" / "README").write_text("not a unit\n")

    assert LocalStore(git_store).units() == [
        Unit("web", PurePosixPath("apps/web")),
        Unit("worker", PurePosixPath("apps/worker")),
    ]


def test_units_missing_apps_dir(tmp_path: Path) -> None:
    assert LocalStore(tmp_path, apps_dir="services").units() == []


def test_clean_tree_passes(git_store: Path) -> None:
    (git_store / ".graduate").mkdir()
    (git_store / ".graduate" / "environments").write_text("production=deploy@host\n")

    LocalStore(git_store).ensure_clean()


def test_dirty_tree_rejected(git_store: Path) -> None:
    (git_store / "apps" / "web" / "app.py").write_text("print('changed')\n")

    with pytest.raises(StoreError, match="uncommitted changes") as exc_info:
        LocalStore(git_store).ensure_clean()

    assert exc_info.value.code == "DIRTY_WORKING_TREE"


def test_no_tag_lists_full_history(git_store: Path) -> None:
    store = LocalStore(git_store)

    assert store.last_tag(PRODUCTION) is None
    changes = store.changes_since(None)
    assert [line.split(" ", 1)[1] for line in changes] == ["add worker", "add web"]


def test_tag_then_changes(git_store: Path, commit_file) -> None:
    store = _store(
        git_store,
        datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC),
        datetime(2026, 2, 1, 0, 0, 0, tzinfo=UTC),
    )

    first = store.tag(PRODUCTION)
    assert first == "production/20260102030405"
    assert store.last_tag(PRODUCTION) == first
    assert store.changes_since(first) == []

    commit_file(git_store, "apps/web/app.py", "print('v2')\n", "web v2")
    commit_file(git_store, "docs/notes.md", "notes\n", "docs only")
    changes = store.changes_since(first)
    assert [line.split(" ", 1)[1] for line in changes] == ["web v2"]

    second = store.tag(PRODUCTION)
    assert store.last_tag(PRODUCTION) == second


def test_tags_are_per_environment(git_store: Path) -> None:
    store = _store(git_store, datetime(2026, 1, 1, tzinfo=UTC))
    store.tag(Environment("staging", "deploy@staging"))

    assert store.last_tag(PRODUCTION) is None


def test_git_errors_become_store_errors(tmp_path: Path) -> None:
    with pytest.raises(StoreError):
        LocalStore(tmp_path, git_bin=str(tmp_path / "missing-git")).ensure_clean()
