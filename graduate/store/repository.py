"""The local staging store: a git repository holding one subtree per unit."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

import structlog

from graduate.constants import STATE_DIRNAME, TAG_TIMESTAMP_FORMAT
from graduate.coordinator.models import Environment, Unit
from graduate.infra.errors import StoreError

logger = structlog.get_logger()


class LocalStore:
    def __init__(
        self,
        root: Path,
        *,
        apps_dir: str = "apps",
        git_bin: str = "git",
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.root = root
        self.apps_dir = apps_dir
        self._git_bin = git_bin
        self._now_fn = now_fn or (lambda: datetime.now(tz=UTC))

    def units(self) -> list[Unit]:
        """Deployable units in enumeration order (sorted directory names)."""
        base = self.root / self.apps_dir
        if not base.is_dir():
            return []
        return [
            Unit(name=child.name, source=PurePosixPath(self.apps_dir) / child.name)
            for child in sorted(base.iterdir(), key=lambda path: path.name)
            if child.is_dir() and not child.name.startswith(".")
        ]

    def ensure_clean(self) -> None:
        status = self._git("status", "--porcelain", "--untracked-files=normal")
        dirty = [
            line
            for line in status.splitlines()
            if line.strip() and not line[3:].startswith(f"{STATE_DIRNAME}/")
        ]
        if dirty:
            raise StoreError(
                "working tree has uncommitted changes; commit or stash them first:\n"
                + "\n".join(dirty),
                code="DIRTY_WORKING_TREE",
            )

    def last_tag(self, environment: Environment) -> str | None:
        tags = self._git(
            "tag",
            "--list",
            f"{environment.name}/*",
            "--sort=-refname",
        )
        for tag in tags.splitlines():
            if tag.strip():
                return tag.strip()
        return None

    def changes_since(self, tag: str | None) -> list[str]:
        """One-line commit summaries touching the units since ``tag`` (all history if None)."""
        revision = f"{tag}..HEAD" if tag else "HEAD"
        output = self._git("log", "--oneline", revision, "--", self.apps_dir)
        return [line for line in output.splitlines() if line.strip()]

    def tag(self, environment: Environment) -> str:
        name = f"{environment.name}/{self._now_fn().strftime(TAG_TIMESTAMP_FORMAT)}"
        self._git("tag", name)
        logger.info("version_tagged", environment=environment.name, tag=name)
        return name

    def _git(self, *args: str) -> str:
        return _git_output(self.root, self._git_bin, args)


def _git_output(cwd: Path, git_bin: str, args: Sequence[str]) -> str:
    try:
        result = subprocess.run(
            [git_bin, *args],
            cwd=cwd,
            capture_output=True,
            check=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise StoreError(f"missing binary while running git {' '.join(args)}: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.strip() or exc.stdout.strip()
        raise StoreError(f"git {' '.join(args)} failed: {stderr}") from exc
    return result.stdout
