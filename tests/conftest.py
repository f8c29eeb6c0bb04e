"""Shared pytest fixtures for graduate tests.

Coordinator collaborators are replaced by in-memory fakes that record every
call. Store tests run against a real temporary git repository; transport
tests point ``git``/``ssh`` at small shell scripts written into tmp_path.
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path, PurePosixPath

import pytest
import structlog

from graduate.coordinator.models import (
    Directive,
    Environment,
    HookPhase,
    PushOutcome,
    PushResult,
    Unit,
)


class FakeRemote:
    """Records directives as ``(directive, unit_name | None)`` tuples."""

    def __init__(self, *, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str | None]] = []
        self._failing = failing or set()

    async def send(
        self,
        environment: Environment,
        directive: Directive,
        unit: Unit | None = None,
    ) -> int:
        name = unit.name if unit else None
        self.sent.append((directive.value, name))
        if directive.value in self._failing or (name is not None and name in self._failing):
            return 255
        return 0

    @property
    def unit_directives(self) -> list[tuple[str, str | None]]:
        return [(d, u) for d, u in self.sent if u is not None]


class FakeHooks:
    def __init__(self, *, pre: bool = True, post: bool = True) -> None:
        self.results = {HookPhase.pre: pre, HookPhase.post: post}
        self.phases: list[HookPhase] = []
        self.last_returncode: int | None = None

    async def run_phase(self, phase: HookPhase) -> bool:
        self.phases.append(phase)
        self.last_returncode = 0 if self.results[phase] else 1
        return self.results[phase]


class ScriptedPusher:
    """Returns a fixed outcome per unit name; default is streamed-until-sentinel."""

    def __init__(self, outcomes: dict[str, PushOutcome] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.pushed: list[str] = []

    async def push(self, unit: Unit, environment: Environment) -> PushResult:
        self.pushed.append(unit.name)
        outcome = self.outcomes.get(unit.name, PushOutcome.streamed_until_sentinel)
        returncode = 1 if outcome is PushOutcome.failed else None
        return PushResult(unit, outcome, returncode=returncode)


@pytest.fixture(autouse=True)
def _reset_structlog():
    """run_cli binds log output to the sys.stderr of the test that called it."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def environment() -> Environment:
    return Environment(name="production", url="deploy@prod.example.com")


@pytest.fixture
def make_remote() -> Callable[..., FakeRemote]:
    return FakeRemote


@pytest.fixture
def make_hooks() -> Callable[..., FakeHooks]:
    return FakeHooks


@pytest.fixture
def make_pusher() -> Callable[..., ScriptedPusher]:
    return ScriptedPusher


@pytest.fixture
def make_units() -> Callable[..., list[Unit]]:
    def _make(*names: str) -> list[Unit]:
        return [Unit(name=name, source=PurePosixPath("apps") / name) for name in names]

    return _make


def _git(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    ).stdout


def _commit_file(repo: Path, relpath: str, content: str, message: str) -> None:
    path = repo / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, "utf-8")
    _git(repo, "add", relpath)
    _git(repo, "commit", "-q", "-m", message)


@pytest.fixture
def git_store(tmp_path: Path) -> Path:
    """A git repository with two committed units: apps/web and apps/worker."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    repo = tmp_path / "store"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "config", "user.name", "Graduate Tests")
    _git(repo, "config", "user.email", "tests@graduate.local")
    _git(repo, "config", "commit.gpgsign", "false")
    _git(repo, "config", "tag.gpgsign", "false")
    _commit_file(repo, "apps/web/app.py", "print('web')\n", "add web")
    _commit_file(repo, "apps/worker/app.py", "print('worker')\n", "add worker")
    return repo


@pytest.fixture
def commit_file() -> Callable[[Path, str, str, str], None]:
    return _commit_file


@pytest.fixture
def write_script() -> Callable[[Path, str], Path]:
    def _write(path: Path, body: str) -> Path:
        path.write_text("#!/bin/sh\n" + body, "utf-8")
        path.chmod(0o755)
        return path

    return _write
